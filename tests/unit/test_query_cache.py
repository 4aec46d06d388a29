"""
Unit tests for gigcrm/cache/query_cache.py.
A fake clock drives expiry; no sleeping.
"""

import pytest

from gigcrm.cache.query_cache import (
    QueryCache, QueryKey, QueryPattern,
    RESOURCE_ASSIGNMENTS, RESOURCE_ASSIGNMENTS_BY_MUSICIAN, RESOURCE_CONTRACT,
    RESOURCE_CONTRACT_MUSICIANS, RESOURCE_CONTRACTS,
    contract_patterns, planner_patterns,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def qc(clock):
    return QueryCache(ttl_seconds=60, clock=clock)


# ---------------------------------------------------------------------------
# get / set / expiry
# ---------------------------------------------------------------------------

def test_miss_returns_none(qc):
    assert qc.get(QueryKey(RESOURCE_CONTRACTS)) is None


def test_hit_within_ttl(qc, clock):
    key = QueryKey(RESOURCE_CONTRACT, contract_id=1)
    qc.set(key, {'id': 1})
    clock.now = 59
    assert qc.get(key) == {'id': 1}


def test_stale_entry_dropped(qc, clock):
    key = QueryKey(RESOURCE_CONTRACT, contract_id=1)
    qc.set(key, {'id': 1})
    clock.now = 61
    assert qc.get(key) is None
    assert key not in qc


def test_fetch_calls_loader_once(qc):
    calls = []
    key = QueryKey(RESOURCE_CONTRACTS)

    def loader():
        calls.append(1)
        return [{'id': 1}]

    assert qc.fetch(key, loader) == [{'id': 1}]
    assert qc.fetch(key, loader) == [{'id': 1}]
    assert len(calls) == 1


def test_fetch_loader_error_stores_nothing(qc):
    key = QueryKey(RESOURCE_CONTRACTS)

    def loader():
        raise RuntimeError('backend down')

    with pytest.raises(RuntimeError):
        qc.fetch(key, loader)
    assert key not in qc


# ---------------------------------------------------------------------------
# Patterns and invalidation
# ---------------------------------------------------------------------------

def test_pattern_matches_on_set_fields_only():
    pattern = QueryPattern(contract_id=4)
    assert pattern.matches(QueryKey(RESOURCE_CONTRACT, contract_id=4))
    assert pattern.matches(QueryKey(RESOURCE_CONTRACT_MUSICIANS, contract_id=4))
    assert not pattern.matches(QueryKey(RESOURCE_CONTRACT, contract_id=5))


def test_empty_pattern_matches_everything():
    assert QueryPattern().matches(QueryKey(RESOURCE_CONTRACTS))


def test_invalidate_planner(qc):
    qc.set(QueryKey(RESOURCE_ASSIGNMENTS_BY_MUSICIAN, planner_id=1), {})
    qc.set(QueryKey(RESOURCE_ASSIGNMENTS, planner_id=1), [])
    kept = QueryKey(RESOURCE_ASSIGNMENTS_BY_MUSICIAN, planner_id=2)
    qc.set(kept, {})
    assert qc.invalidate(*planner_patterns(1)) == 2
    assert list(qc._entries) == [kept]


def test_invalidate_contract_includes_lists(qc):
    qc.set(QueryKey(RESOURCE_CONTRACT, contract_id=4), {})
    qc.set(QueryKey(RESOURCE_CONTRACTS), [])
    assert qc.invalidate(*contract_patterns(4)) == 2
    assert len(qc) == 0


def test_invalidate_without_match(qc):
    qc.set(QueryKey(RESOURCE_CONTRACTS), [])
    assert qc.invalidate(QueryPattern(planner_id=9)) == 0
    assert len(qc) == 1


def test_clear(qc):
    qc.set(QueryKey(RESOURCE_CONTRACTS), [])
    qc.clear()
    assert len(qc) == 0
