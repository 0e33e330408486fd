from __future__ import annotations

import threading
import time

import pytest

from hydrator.core.scheduler import Scheduler


def test_call_later_fires_once() -> None:
    s = Scheduler()
    fired = threading.Event()
    try:
        assert s.call_later("job", 0.01, fired.set)
        assert fired.wait(2.0)
        time.sleep(0.05)
        assert not s.is_scheduled("job")
    finally:
        s.shutdown()


def test_rescheduling_a_name_replaces_it() -> None:
    s = Scheduler()
    calls: list[str] = []
    done = threading.Event()
    try:
        s.call_later("debounce", 0.2, lambda: calls.append("first"))
        s.call_later("debounce", 0.01, lambda: (calls.append("second"), done.set()))
        assert done.wait(2.0)
        time.sleep(0.3)
        assert calls == ["second"]
    finally:
        s.shutdown()


def test_cancel_prevents_fire() -> None:
    s = Scheduler()
    fired = threading.Event()
    try:
        s.call_later("job", 0.05, fired.set)
        s.cancel("job")
        assert not fired.wait(0.2)
    finally:
        s.shutdown()


def test_call_every_repeats_and_survives_errors() -> None:
    s = Scheduler()
    calls: list[int] = []
    third = threading.Event()

    def tick() -> None:
        calls.append(1)
        if len(calls) >= 3:
            third.set()
        raise RuntimeError("tick failed")

    try:
        s.call_every("auto", 0.01, tick)
        assert third.wait(2.0)
        assert s.is_scheduled("auto")
    finally:
        s.shutdown()


def test_call_every_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        Scheduler().call_every("auto", 0, lambda: None)


def test_shutdown_stops_everything() -> None:
    s = Scheduler()
    fired = threading.Event()
    s.call_later("job", 0.05, fired.set)
    s.shutdown()

    assert s.stopped
    assert not fired.wait(0.2)
    assert s.call_later("late", 0.0, fired.set) is False
    assert s.sleep(10.0) is False


def test_sleep_is_interrupted_by_shutdown() -> None:
    s = Scheduler()
    threading.Timer(0.05, s.shutdown).start()
    started = time.monotonic()
    assert s.sleep(5.0) is False
    assert time.monotonic() - started < 2.0


def test_sleep_completes_normally() -> None:
    s = Scheduler()
    assert s.sleep(0.01) is True
    assert s.sleep(0) is True
