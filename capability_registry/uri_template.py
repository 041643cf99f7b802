"""
URI template compilation and matching.

Templates are URI strings with zero or more ``{name}`` placeholders, for
example ``item://{id}`` or ``repo://{owner}/{name}/readme``. A compiled
template is a sequence of literal and capture segments:

- literal segments must match the candidate URI exactly;
- a capture matches one or more characters, stopping at the earliest
  occurrence of the following literal that still lets the rest of the
  template match, or at the end of the URI.

Empty captures never match: ``greeting://`` does not match
``greeting://{name}``. Boundaries are found on the raw URI; captured values
are then percent-decoded, so ``greeting://Ada%20L`` yields ``name="Ada L"``.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, unquote

from .exceptions import InvalidTemplateError

_PLACEHOLDER_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Segment:
    """One piece of a compiled template: literal text or a named capture."""
    value: str
    is_capture: bool = False


class UriTemplate:
    """A compiled URI template."""

    def __init__(self, template: str, segments: Sequence[Segment]):
        self.template = template
        self.segments: Tuple[Segment, ...] = tuple(segments)
        self.names: Tuple[str, ...] = tuple(s.value for s in self.segments if s.is_capture)
        self._pattern = re.compile(self._build_pattern(), re.DOTALL)

    def _build_pattern(self) -> str:
        parts = []
        for index, segment in enumerate(self.segments):
            if not segment.is_capture:
                parts.append(re.escape(segment.value))
            elif index == len(self.segments) - 1:
                parts.append(f"(?P<{segment.value}>.+)")
            else:
                parts.append(f"(?P<{segment.value}>.+?)")
        return "".join(parts)

    @property
    def literal_prefix_length(self) -> int:
        """Length of the literal text before the first placeholder."""
        if self.segments and not self.segments[0].is_capture:
            return len(self.segments[0].value)
        return 0

    @property
    def literal_length(self) -> int:
        return sum(len(s.value) for s in self.segments if not s.is_capture)

    @property
    def is_static(self) -> bool:
        return not self.names

    def match(self, uri: str) -> Optional[Dict[str, str]]:
        """
        Match a concrete URI against this template.

        Returns:
            Mapping of placeholder name to percent-decoded captured value,
            or None when the URI does not match.
        """
        found = self._pattern.fullmatch(uri)
        if found is None:
            return None
        return {name: unquote(found.group(name)) for name in self.names}

    def expand(self, **values: str) -> str:
        """Substitute percent-encoded values for every placeholder."""
        parts = []
        for segment in self.segments:
            if not segment.is_capture:
                parts.append(segment.value)
                continue
            value = values.get(segment.value)
            if not value:
                raise ValueError(f"Missing value for placeholder '{segment.value}'")
            parts.append(quote(str(value), safe=""))
        return "".join(parts)

    def __eq__(self, other):
        return isinstance(other, UriTemplate) and other.template == self.template

    def __hash__(self):
        return hash(self.template)

    def __repr__(self) -> str:
        return f"UriTemplate({self.template!r})"


def compile_template(template: str) -> UriTemplate:
    """
    Parse a template string into a UriTemplate.

    Raises:
        InvalidTemplateError: On empty, repeated or malformed placeholder
            names, unbalanced braces, or adjacent placeholders.
    """
    if not template:
        raise InvalidTemplateError(template, "template is empty")

    segments: List[Segment] = []
    seen = set()
    literal: List[str] = []
    position = 0

    while position < len(template):
        char = template[position]
        if char == "}":
            raise InvalidTemplateError(template, f"unmatched '}}' at position {position}")
        if char != "{":
            literal.append(char)
            position += 1
            continue

        close = template.find("}", position + 1)
        if close == -1:
            raise InvalidTemplateError(template, f"unclosed '{{' at position {position}")
        name = template[position + 1:close]
        if "{" in name:
            raise InvalidTemplateError(template, f"nested '{{' at position {position}")
        if not name:
            raise InvalidTemplateError(template, f"empty placeholder at position {position}")
        if not _PLACEHOLDER_NAME.match(name):
            raise InvalidTemplateError(template, f"placeholder name '{name}' is not an identifier")
        if name in seen:
            raise InvalidTemplateError(template, f"placeholder '{name}' is used more than once")

        if literal:
            segments.append(Segment("".join(literal)))
            literal = []
        elif segments and segments[-1].is_capture:
            raise InvalidTemplateError(
                template,
                f"placeholders '{segments[-1].value}' and '{name}' need literal text between them"
            )

        seen.add(name)
        segments.append(Segment(name, is_capture=True))
        position = close + 1

    if literal:
        segments.append(Segment("".join(literal)))

    return UriTemplate(template, segments)


def match(template: Union[str, UriTemplate], uri: str) -> Optional[Dict[str, str]]:
    """Match ``uri`` against ``template``, compiling it first when given a string."""
    if isinstance(template, str):
        template = compile_template(template)
    return template.match(uri)


def select_best_match(
    templates: Iterable[UriTemplate],
    uri: str
) -> Optional[Tuple[UriTemplate, Dict[str, str]]]:
    """
    Pick the template that resolves ``uri`` when several could.

    Longest literal prefix wins; ties go to the longest total literal text,
    then to the template that came first in ``templates``.
    """
    best: Optional[Tuple[UriTemplate, Dict[str, str]]] = None
    best_rank: Optional[Tuple[int, int]] = None

    for candidate in templates:
        params = candidate.match(uri)
        if params is None:
            continue
        rank = (candidate.literal_prefix_length, candidate.literal_length)
        if best_rank is None or rank > best_rank:
            best = (candidate, params)
            best_rank = rank

    return best
