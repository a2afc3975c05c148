"""Tests for the per-metric result cache."""

from types import SimpleNamespace

import pytest
from conftest import make_key

from analytics.services.lifecycle_mcp.orchestration import result_cache
from analytics.services.lifecycle_mcp.orchestration.result_cache import ResultCache

KEY_A = make_key("All")
KEY_B = make_key("High Value")
KEY_C = make_key("At Risk")


@pytest.fixture
def clock(monkeypatch):
    """Controllable monotonic clock for TTL tests."""
    now = {"t": 1000.0}
    monkeypatch.setattr(result_cache, "time", SimpleNamespace(monotonic=lambda: now["t"]))
    return now


def test_miss_then_hit():
    cache = ResultCache()
    assert cache.get("sankey", KEY_A) is None
    cache.set("sankey", KEY_A, [1])
    assert cache.get("sankey", KEY_A) == [1]

    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert cache.get_hit_rate() == 0.5


def test_entries_are_per_metric():
    cache = ResultCache()
    cache.set("sankey", KEY_A, [1])
    assert cache.get("churnRisk", KEY_A) is None
    assert cache.size("sankey") == 1
    assert cache.size("churnRisk") == 0


def test_lru_eviction_per_metric():
    cache = ResultCache(max_keys=2)
    cache.set("sankey", KEY_A, ["a"])
    cache.set("sankey", KEY_B, ["b"])
    cache.get("sankey", KEY_A)  # A becomes most recent
    cache.set("sankey", KEY_C, ["c"])

    assert cache.get("sankey", KEY_B) is None
    assert cache.get("sankey", KEY_A) == ["a"]
    assert cache.get("sankey", KEY_C) == ["c"]
    assert cache.get_stats()["evictions"] == 1


def test_eviction_does_not_touch_other_metrics():
    cache = ResultCache(max_keys=1)
    cache.set("sankey", KEY_A, ["a"])
    cache.set("churnRisk", KEY_B, ["b"])
    assert cache.size() == 2


def test_ttl_expiry(clock):
    cache = ResultCache(ttl_seconds=900)
    cache.set("sankey", KEY_A, [1])

    clock["t"] += 899
    assert cache.get("sankey", KEY_A) == [1]

    clock["t"] += 2
    assert cache.get("sankey", KEY_A) is None
    assert cache.size() == 0


def test_invalidate_and_clear():
    cache = ResultCache()
    cache.set("sankey", KEY_A, [1])
    cache.set("sankey", KEY_B, [2])
    cache.set("churnRisk", KEY_A, [3])

    cache.invalidate("sankey", KEY_A)
    cache.invalidate("funnelMetrics", KEY_A)  # unknown metric is fine
    assert cache.get("sankey", KEY_A) is None
    assert cache.size() == 2

    cache.clear()
    assert cache.size() == 0
