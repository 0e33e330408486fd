from __future__ import annotations

from datetime import UTC, datetime

from hydrator.core.hashing import canonical_json, derive_state_key, digest_text, generate_hash


def test_canonical_json_ignores_insertion_order() -> None:
    a = {"b": 1, "a": {"y": 2, "x": 1}}
    b = {"a": {"x": 1, "y": 2}, "b": 1}
    assert canonical_json(a) == canonical_json(b)
    assert canonical_json(a) == '{"a":{"x":1,"y":2},"b":1}'


def test_generate_hash_is_stable_and_content_sensitive() -> None:
    doc = {"title": "groceries", "items": ["milk", "eggs"]}
    assert generate_hash(doc) == generate_hash(dict(reversed(list(doc.items()))))
    assert generate_hash(doc) != generate_hash({**doc, "items": ["eggs", "milk"]})
    assert len(generate_hash(doc)) == 64


def test_canonical_json_handles_datetimes_and_unicode() -> None:
    ts = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
    out = canonical_json({"when": ts, "name": "café"})
    assert "2026-01-02T03:04:05+00:00" in out
    assert "café" in out


def test_derive_state_key_format() -> None:
    key = derive_state_key("Notes")
    assert key == f"Notes_{digest_text('Notes-')}"
    assert derive_state_key("Notes", "work") == f"Notes_{digest_text('Notes-work')}"


def test_derive_state_key_separates_instances() -> None:
    assert derive_state_key("Notes", "a") != derive_state_key("Notes", "b")
    assert derive_state_key("Notes", "a") == derive_state_key("Notes", "a")
    assert derive_state_key("Notes") != derive_state_key("Todo")
