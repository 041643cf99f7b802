"""
Capability store.

Holds every registered tool, resource and prompt definition, keyed by kind
and identifier, in registration order.

Writes are serialised by a lock and publish a fresh copy of the mapping
(copy-on-write); reads never lock and always see a complete snapshot. The
lock is released before subscribers are notified, so a handler running
inside a dispatch can register new capabilities.
"""

import threading
from typing import Dict, Optional, Tuple

from .exceptions import DuplicateIdentifierError
from .logging_config import get_logger, log_registry_event
from .models import (
    CapabilityKind,
    Definition,
    ListChangedEvent,
    PromptDefinition,
    ResourceDefinition,
    ToolDefinition,
)
from .notifier import ChangeNotifier
from .uri_template import select_best_match

logger = get_logger('store')

Snapshot = Dict[CapabilityKind, Dict[str, Definition]]


class CapabilityStore:
    """
    Kind-indexed table of capability definitions.

    Args:
        notifier: Receives a list-changed event after every successful
            registration. A private notifier is created when omitted.
    """

    def __init__(self, notifier: Optional[ChangeNotifier] = None):
        self.notifier = notifier or ChangeNotifier()
        self._write_lock = threading.Lock()
        self._snapshot: Snapshot = {kind: {} for kind in CapabilityKind}

    def register_tool(self, definition: ToolDefinition) -> ToolDefinition:
        """
        Register a tool.

        Raises:
            DuplicateIdentifierError: If a tool with the same name exists
        """
        return self._register(CapabilityKind.TOOL, definition)

    def register_resource(self, definition: ResourceDefinition) -> ResourceDefinition:
        """
        Register a static or templated resource.

        Raises:
            DuplicateIdentifierError: If the URI or template string is taken
        """
        return self._register(CapabilityKind.RESOURCE, definition)

    def register_prompt(self, definition: PromptDefinition) -> PromptDefinition:
        """
        Register a prompt.

        Raises:
            DuplicateIdentifierError: If a prompt with the same name exists
        """
        return self._register(CapabilityKind.PROMPT, definition)

    def _register(self, kind: CapabilityKind, definition: Definition) -> Definition:
        key = definition.key
        with self._write_lock:
            current = self._snapshot
            if key in current[kind]:
                raise DuplicateIdentifierError(kind.value, key)
            updated = dict(current)
            updated[kind] = {**current[kind], key: definition}
            self._snapshot = updated

        log_registry_event(logger, "registered", kind.value, key)
        self.notifier.notify(ListChangedEvent(kind))
        return definition

    def list(self, kind: CapabilityKind) -> Tuple[Definition, ...]:
        """Current definitions of ``kind`` in registration order."""
        return tuple(self._snapshot[kind].values())

    def contains(self, kind: CapabilityKind, identifier: str) -> bool:
        return identifier in self._snapshot[kind]

    def get(self, kind: CapabilityKind, identifier: str) -> Optional[Definition]:
        """
        Look up a definition by its exact identifier.

        For resources the identifier may also be a concrete URI that only
        matches a template; use ``resolve_resource`` to get the extracted
        parameters as well.
        """
        if kind is CapabilityKind.RESOURCE:
            resolved = self.resolve_resource(identifier)
            return resolved[0] if resolved else None
        return self._snapshot[kind].get(identifier)

    def resolve_resource(self, uri: str) -> Optional[Tuple[ResourceDefinition, Dict[str, str]]]:
        """
        Resolve a concrete URI to a resource definition and its parameters.

        An exact URI match wins; otherwise every registered template is
        tried and the best match is chosen (longest literal prefix first).
        """
        resources = self._snapshot[CapabilityKind.RESOURCE]

        exact = resources.get(uri)
        if exact is not None and not exact.is_template:
            return exact, {}

        templated = [d for d in resources.values() if d.is_template]
        best = select_best_match((d.compiled for d in templated), uri)
        if best is None:
            return None

        template, params = best
        for definition in templated:
            if definition.compiled is template:
                return definition, params
        return None

    def __len__(self) -> int:
        snapshot = self._snapshot
        return sum(len(entries) for entries in snapshot.values())

    def __repr__(self) -> str:
        snapshot = self._snapshot
        return (
            f"CapabilityStore("
            f"tools={len(snapshot[CapabilityKind.TOOL])}, "
            f"resources={len(snapshot[CapabilityKind.RESOURCE])}, "
            f"prompts={len(snapshot[CapabilityKind.PROMPT])})"
        )
