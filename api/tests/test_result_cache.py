from __future__ import annotations

from grants_api.services.result_cache import CACHE_MISS, InMemoryResultCache, fingerprint


def test_get_returns_miss_marker_for_unknown_key() -> None:
    cache = InMemoryResultCache()
    assert cache.get("missing") is CACHE_MISS
    assert not CACHE_MISS


def test_set_is_last_write_wins() -> None:
    cache = InMemoryResultCache()
    cache.set("k", {"v": 1})
    cache.set("k", {"v": 2})
    assert cache.get("k") == {"v": 2}
    assert len(cache) == 1


def test_falsy_values_are_not_misses() -> None:
    cache = InMemoryResultCache()
    cache.set("empty", [])
    assert cache.get("empty") == []
    assert cache.get("empty") is not CACHE_MISS


def test_clear_drops_everything() -> None:
    cache = InMemoryResultCache()
    cache.set("k", 1)
    cache.clear()
    assert cache.get("k") is CACHE_MISS


def test_fingerprint_normalizes_identifiers() -> None:
    assert fingerprint("round_summary", "1", "0xABC") == "round_summary:1:0xabc"
    assert fingerprint("project_summary", "10", "0xabc", "0xP1") == "project_summary:10:0xabc:0xp1"
    assert fingerprint("round_summary", "1", "0xabc") != fingerprint("round_match", "1", "0xabc")


def test_len_counts_distinct_keys() -> None:
    cache = InMemoryResultCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 3)
    assert len(cache) == 2
