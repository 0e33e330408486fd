"""hydrator.hydration.history

Undo/redo over whole documents.

Branching invalidates redo: any new mutation clears it.
"""

from __future__ import annotations

import copy
from typing import Any


class UndoHistory:
    """Two stacks of fully materialized documents. Bounded only by memory."""

    def __init__(self) -> None:
        self._undo: list[dict[str, Any]] = []
        self._redo: list[dict[str, Any]] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def push(self, before: dict[str, Any]) -> None:
        """Record the pre-mutation document of a new change."""

        self._undo.append(copy.deepcopy(before))
        self._redo.clear()

    def undo(self, current: dict[str, Any]) -> dict[str, Any] | None:
        if not self._undo:
            return None
        self._redo.append(copy.deepcopy(current))
        return self._undo.pop()

    def redo(self, current: dict[str, Any]) -> dict[str, Any] | None:
        if not self._redo:
            return None
        self._undo.append(copy.deepcopy(current))
        return self._redo.pop()

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
