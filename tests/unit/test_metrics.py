from __future__ import annotations

import pytest

from hydrator.core.metrics import MetricsRegistry


def test_counters_and_gauges_snapshot() -> None:
    reg = MetricsRegistry()
    reg.counter("writes").inc()
    reg.counter("writes").inc(2)
    reg.gauge("depth").set(4)

    snap = reg.snapshot()
    assert snap["counter.writes"] == 3.0
    assert snap["gauge.depth"] == 4.0


def test_timed_records_gauge_even_on_error() -> None:
    reg = MetricsRegistry()
    with reg.timed("persist"):
        pass
    assert reg.snapshot()["gauge.persist_ms"] >= 0.0

    with pytest.raises(RuntimeError):
        with reg.timed("hydrate"):
            raise RuntimeError("boom")
    assert "gauge.hydrate_ms" in reg.snapshot()
