from __future__ import annotations

from hydrator.hydration.history import UndoHistory


def test_undo_redo_walks_both_stacks() -> None:
    h = UndoHistory()
    assert not h.can_undo
    assert h.undo({"v": 0}) is None

    h.push({"v": 0})
    h.push({"v": 1})
    assert h.can_undo and not h.can_redo

    assert h.undo({"v": 2}) == {"v": 1}
    assert h.can_redo
    assert h.redo({"v": 1}) == {"v": 2}
    assert not h.can_redo
    assert h.undo({"v": 2}) == {"v": 1}
    assert h.undo({"v": 1}) == {"v": 0}
    assert not h.can_undo


def test_push_clears_redo() -> None:
    h = UndoHistory()
    h.push({"v": 0})
    h.undo({"v": 1})
    assert h.can_redo

    h.push({"v": 0})
    assert not h.can_redo
    assert h.redo({"v": 5}) is None


def test_push_copies_documents() -> None:
    h = UndoHistory()
    doc = {"items": ["a"]}
    h.push(doc)
    doc["items"].append("b")
    assert h.undo({}) == {"items": ["a"]}


def test_clear() -> None:
    h = UndoHistory()
    h.push({"v": 0})
    h.undo({"v": 1})
    h.clear()
    assert not h.can_undo
    assert not h.can_redo
