"""Component state must survive process restarts on the SQLite store."""

from __future__ import annotations

import time
from datetime import timedelta
from pathlib import Path

from hydrator.core.config import HydrationConfig
from hydrator.core.store import open_store
from hydrator.hydration.orchestrator import HydrationOrchestrator
from hydrator.security.cipher import generate_key


def _cfg(data_dir: Path, **overrides: object) -> HydrationConfig:
    base = {"data_dir": data_dir, "auto_save_interval": None, "retry_base_delay": 0.0}
    base.update(overrides)
    return HydrationConfig(**base)


def test_state_survives_restart(temp_dir: Path, make_notes) -> None:
    cfg = _cfg(temp_dir)

    first = make_notes()
    with HydrationOrchestrator(first) as o:
        o.initialize(cfg)
        o.commit_mutation(lambda: first.add("milk"))
        o.commit_mutation(lambda: first.add("eggs"))

    second = make_notes()
    with HydrationOrchestrator(second) as o:
        o.initialize(_cfg(temp_dir))
        assert second.items == ["milk", "eggs"]
        assert second.defaults_loaded == 0
        assert not o.can_undo


def test_encrypted_compressed_restart(temp_dir: Path, make_notes) -> None:
    key = generate_key()
    cfg = _cfg(temp_dir, use_compression=True, enable_encryption=True, encryption_key=key)

    first = make_notes()
    with HydrationOrchestrator(first) as o:
        o.initialize(cfg)
        first.title = "private"

    store = open_store(_cfg(temp_dir))
    try:
        assert store.keys()
        assert all(store.verify(k) == "locked" for k in store.keys())
    finally:
        store.close()

    second = make_notes()
    with HydrationOrchestrator(second) as o:
        o.initialize(_cfg(temp_dir, encryption_key=key))
        assert second.title == "private"


def test_snapshots_survive_restart(temp_dir: Path, make_notes) -> None:
    first = make_notes()
    with HydrationOrchestrator(first) as o:
        o.initialize(_cfg(temp_dir))
        o.commit_mutation(lambda: first.add("v1"))
        o.create_snapshot("v1")
        o.commit_mutation(lambda: first.add("v2"))

    second = make_notes()
    with HydrationOrchestrator(second) as o:
        o.initialize(_cfg(temp_dir))
        assert second.items == ["v1", "v2"]
        assert o.list_snapshots() == ["v1"]
        o.restore_snapshot("v1")
        assert second.items == ["v1"]


def test_debounced_write_lands_without_dispose(temp_dir: Path, make_notes) -> None:
    notes = make_notes()
    o = HydrationOrchestrator(notes)
    o.initialize(_cfg(temp_dir, debounce_delay=timedelta(milliseconds=20)))
    try:
        o.commit_mutation(lambda: notes.add("queued"))

        deadline = time.monotonic() + 5.0
        while o.cached_state is None and time.monotonic() < deadline:
            time.sleep(0.02)
        assert o.cached_state is not None
        assert o.cached_state["items"] == ["queued"]
    finally:
        o.dispose()
