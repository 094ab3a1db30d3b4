"""Unit tests for the in-process stats provider."""

from __future__ import annotations

import threading

from usagestats.core.stats import CounterStatsProvider


def test_counters_and_apps() -> None:
    provider = CounterStatsProvider()
    provider.incr("render")
    provider.incr("render", 2)
    provider.record_ingest("pyspy")
    provider.record_ingest("rbspy")
    provider.set_apps_count(4)

    assert provider.stats() == {"render": 3, "ingest": 2, "ingest:pyspy": 1, "ingest:rbspy": 1}
    assert provider.apps_count() == 4


def test_stats_returns_a_copy() -> None:
    provider = CounterStatsProvider()
    provider.incr("diff")
    view = provider.stats()
    view["diff"] = 100
    assert provider.stats()["diff"] == 1


def test_concurrent_increments_are_not_lost() -> None:
    provider = CounterStatsProvider()

    def hammer() -> None:
        for _ in range(1000):
            provider.record_ingest("gospy")

    threads = [threading.Thread(target=hammer) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert provider.stats()["ingest"] == 8000
    assert provider.stats()["ingest:gospy"] == 8000
