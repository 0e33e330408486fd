"""hydrator.hydration.component

The contract a stateful component signs to be hydrated.

The orchestrator never reaches into component internals: it asks for a
document, hands one back, or asks for defaults.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Hydratable(Protocol):
    def persist_to_json(self) -> dict[str, Any]: ...

    def hydrate_from_json(self, document: dict[str, Any]) -> None: ...

    def initialize_default_state(self) -> None: ...


class HydratableComponent(ABC):
    """Template-method base class.

    Subclasses implement:
    - persist_to_json()
    - hydrate_from_json()
    - initialize_default_state()

    and may override:
    - migrate_state() (default: identity)
    - hydration_discriminator (default: None, one state per type)
    """

    hydration_discriminator: str | None = None

    @abstractmethod
    def persist_to_json(self) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def hydrate_from_json(self, document: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def initialize_default_state(self) -> None:
        raise NotImplementedError

    def migrate_state(self, document: dict[str, Any], from_version: int) -> dict[str, Any]:
        """Transform a document written at ``from_version`` into the current shape."""

        return document
