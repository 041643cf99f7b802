"""
Unit tests for URI template compilation and matching.

Tests template validation, placeholder extraction, boundary handling and
selection among several matching templates.
"""

import pytest

from capability_registry.exceptions import InvalidTemplateError
from capability_registry.uri_template import (
    Segment,
    UriTemplate,
    compile_template,
    match,
    select_best_match
)


class TestCompileTemplate:
    """Test template parsing and validation."""

    def test_static_template(self):
        """A template without placeholders is a single literal segment."""
        template = compile_template("info://about")

        assert template.segments == (Segment("info://about"),)
        assert template.names == ()
        assert template.is_static

    def test_segments_alternate(self):
        """Literals and captures are split in order."""
        template = compile_template("repo://{owner}/{name}/readme")

        assert template.segments == (
            Segment("repo://"),
            Segment("owner", is_capture=True),
            Segment("/"),
            Segment("name", is_capture=True),
            Segment("/readme"),
        )
        assert template.names == ("owner", "name")
        assert not template.is_static

    @pytest.mark.parametrize("template", [
        "",
        "item://{}",
        "item://{id",
        "item://id}",
        "item://{a{b}}",
        "item://{1abc}",
        "item://{my-id}",
        "pair://{a}/{a}",
        "pair://{a}{b}",
    ])
    def test_invalid_templates(self, template):
        """Malformed templates are rejected at compile time."""
        with pytest.raises(InvalidTemplateError) as exc_info:
            compile_template(template)

        assert exc_info.value.error_code == "INVALID_TEMPLATE"
        assert exc_info.value.template == template

    def test_repeated_name_reason(self):
        """The rejection reason names the repeated placeholder."""
        with pytest.raises(InvalidTemplateError) as exc_info:
            compile_template("pair://{x}-{x}")

        assert "'x'" in exc_info.value.reason

    def test_literal_lengths(self):
        """Ranking inputs are computed from the literal segments."""
        template = compile_template("users://{id}/profile")

        assert template.literal_prefix_length == len("users://")
        assert template.literal_length == len("users://") + len("/profile")

    def test_leading_placeholder_has_no_prefix(self):
        template = compile_template("{scheme}://fixed")
        assert template.literal_prefix_length == 0

    def test_equality_by_template_string(self):
        assert compile_template("item://{id}") == compile_template("item://{id}")
        assert len({compile_template("item://{id}"), compile_template("item://{id}")}) == 1


class TestMatch:
    """Test matching concrete URIs against compiled templates."""

    def test_single_placeholder(self):
        """item://42 yields the captured id."""
        assert match("item://{id}", "item://42") == {"id": "42"}

    def test_static_template_exact_only(self):
        template = compile_template("info://about")

        assert template.match("info://about") == {}
        assert template.match("info://about/more") is None
        assert template.match("info://abou") is None

    def test_empty_capture_does_not_match(self):
        """greeting:// does not match greeting://{name}."""
        assert match("greeting://{name}", "greeting://") is None

    def test_prefix_mismatch(self):
        assert match("item://{id}", "items://42") is None

    def test_trailing_literal_required(self):
        assert match("users://{id}/profile", "users://7") is None
        assert match("users://{id}/profile", "users://7/profile") == {"id": "7"}

    def test_capture_stops_at_earliest_boundary(self):
        """A capture ends at the first occurrence of the next literal."""
        params = match("repo://{owner}/{name}", "repo://octo/cat/extra")

        assert params == {"owner": "octo", "name": "cat/extra"}

    def test_earliest_boundary_that_still_matches(self):
        """Earlier occurrences are skipped if the rest would not match."""
        params = match("file://{path}.txt", "file://notes.v2.txt")

        assert params == {"path": "notes.v2"}

    def test_last_capture_takes_remainder(self):
        params = match("greeting://{name}", "greeting://Ada Lovelace/x")
        assert params == {"name": "Ada Lovelace/x"}

    def test_multiple_captures(self):
        params = match("repo://{owner}/{name}/readme", "repo://octo/cat/readme")
        assert params == {"owner": "octo", "name": "cat"}

    @pytest.mark.parametrize("template,values", [
        ("item://{id}", {"id": "42"}),
        ("greeting://{name}", {"name": "Ada"}),
        ("repo://{owner}/{name}/readme", {"owner": "octo", "name": "cat"}),
        ("users://{id}/profile", {"id": "user-7"}),
    ])
    def test_substitution_matches_back(self, template, values):
        """Substituting values without the following literal recovers them."""
        compiled = compile_template(template)
        uri = compiled.expand(**values)

        assert compiled.match(uri) == values

    def test_captures_are_percent_decoded(self):
        """greeting://Ada%20L yields the decoded name."""
        assert match("greeting://{name}", "greeting://Ada%20L") == {"name": "Ada L"}

    def test_encoded_separator_stays_in_capture(self):
        """Boundaries are found before decoding, so %2F never splits a capture."""
        params = match("repo://{owner}/{name}", "repo://a%2Fb/cat")

        assert params == {"owner": "a/b", "name": "cat"}

    def test_expand_percent_encodes(self):
        compiled = compile_template("repo://{owner}/{name}")
        uri = compiled.expand(owner="a/b", name="Ada L")

        assert uri == "repo://a%2Fb/Ada%20L"
        assert compiled.match(uri) == {"owner": "a/b", "name": "Ada L"}

    def test_expand_requires_every_value(self):
        with pytest.raises(ValueError):
            compile_template("item://{id}").expand()

    def test_match_accepts_compiled_template(self):
        compiled = compile_template("item://{id}")
        assert match(compiled, "item://1") == {"id": "1"}


class TestSelectBestMatch:
    """Test selection when several templates match one URI."""

    def test_longest_literal_prefix_wins(self):
        """users://{id}/profile beats a generic catch-all."""
        generic = compile_template("{anything}")
        specific = compile_template("users://{id}/profile")

        template, params = select_best_match([generic, specific], "users://7/profile")

        assert template is specific
        assert params == {"id": "7"}

    def test_total_literal_length_breaks_prefix_tie(self):
        short = compile_template("users://{rest}")
        longer = compile_template("users://{id}/profile")

        template, params = select_best_match([short, longer], "users://7/profile")

        assert template is longer
        assert params == {"id": "7"}

    def test_first_registered_wins_full_tie(self):
        first = compile_template("x://{a}/y")
        second = compile_template("x://{b}/y")

        template, params = select_best_match([first, second], "x://1/y")

        assert template is first
        assert params == {"a": "1"}

    def test_no_match(self):
        assert select_best_match([compile_template("item://{id}")], "other://1") is None

    def test_empty_candidates(self):
        assert select_best_match([], "item://1") is None

    def test_uri_template_repr(self):
        assert repr(UriTemplate("a", [Segment("a")])) == "UriTemplate('a')"
