from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

# pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from hydrator.core.config import HydrationConfig  # noqa: E402
from hydrator.core.scheduler import Scheduler  # noqa: E402
from hydrator.core.store import MemoryBackend, StateStore  # noqa: E402
from hydrator.hydration.component import HydratableComponent  # noqa: E402


class NotesComponent(HydratableComponent):
    """Small stateful component used across the suite."""

    def __init__(self) -> None:
        self.title = ""
        self.items: list[str] = []
        self.updated: datetime | None = None
        self.defaults_loaded = 0

    def add(self, item: str) -> None:
        self.items.append(item)

    def persist_to_json(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "title": self.title,
            "items": list(self.items),
            "meta": {"count": len(self.items)},
        }
        if self.updated is not None:
            doc["timestamp"] = self.updated
        return doc

    def hydrate_from_json(self, document: dict[str, Any]) -> None:
        self.title = document.get("title", "")
        self.items = list(document.get("items", []))
        self.updated = document.get("timestamp")

    def initialize_default_state(self) -> None:
        self.title = "untitled"
        self.items = []
        self.updated = None
        self.defaults_loaded += 1


class ManualScheduler(Scheduler):
    """Scheduler that never starts threads. Tests fire jobs with `run()`."""

    def __init__(self) -> None:
        super().__init__()
        self.pending: dict[str, tuple[float, Callable[[], object], float | None]] = {}
        self.sleeps: list[float] = []

    def _arm(self, name: str, delay_s: float, fn: Callable[[], object], *, interval_s: float | None) -> bool:
        if self.stopped:
            return False
        self.pending[name] = (delay_s, fn, interval_s)
        return True

    def cancel(self, name: str) -> None:
        self.pending.pop(name, None)

    def is_scheduled(self, name: str) -> bool:
        return name in self.pending

    def run(self, name: str) -> None:
        _, fn, interval_s = self.pending[name]
        if interval_s is None:
            del self.pending[name]
        fn()

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        return not self.stopped

    def shutdown(self) -> None:
        self._stopped.set()
        self.pending.clear()


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_config(temp_dir: Path) -> HydrationConfig:
    """Config fixture that points data_dir to a temp directory and disables timers."""

    return HydrationConfig(
        data_dir=temp_dir / "data",
        auto_save_interval=None,
        debounce_delay=timedelta(0),
        retry_base_delay=0.5,
    )


@pytest.fixture()
def memory_store() -> StateStore:
    return StateStore(MemoryBackend())


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def notes() -> NotesComponent:
    return NotesComponent()


@pytest.fixture()
def make_notes() -> Callable[[], NotesComponent]:
    return NotesComponent
