import pytest
from hypothesis import given, strategies as st

from dlmm_state.oracle import (
    DEFAULT_OBSERVATION_LENGTH,
    DynamicOracle,
    Observation,
    OracleError,
)


def test_fresh_observation_not_initialized():
    obs = Observation()
    assert obs.initialized() is False
    assert obs.accumulate_active_bin_id(7, 500) == 7
    assert obs.compute_next_sampling_timestamp(60) is None


def test_observation_update_sets_created_once():
    obs = Observation()
    obs.update(5, 100)
    assert obs == Observation(cumulative_active_bin_id=5, created_at=100, last_updated_at=100)
    obs.update(9, 150)
    assert obs.created_at == 100
    assert obs.last_updated_at == 150


def test_accumulate_uses_elapsed_time():
    obs = Observation()
    obs.update(5, 100)
    assert obs.accumulate_active_bin_id(5, 110) == 55


@given(st.integers(1, 10**9), st.integers(1, 10**6))
def test_next_sampling_offset_is_lifetime(created_at, lifetime):
    obs = Observation()
    obs.update(0, created_at)
    assert obs.compute_next_sampling_timestamp(lifetime) - created_at == lifetime


def test_observation_reset():
    obs = Observation(cumulative_active_bin_id=3, created_at=4, last_updated_at=5)
    obs.reset()
    assert obs == Observation()


def test_default_length():
    oracle = DynamicOracle()
    assert oracle.length == DEFAULT_OBSERVATION_LENGTH
    assert len(oracle.observations) == DEFAULT_OBSERVATION_LENGTH


def test_empty_oracle_has_no_samples():
    oracle = DynamicOracle(length=3)
    assert oracle.latest_sample() is None
    assert oracle.earliest_sample() is None


def test_first_update_creates_sample():
    oracle = DynamicOracle(length=3, sample_lifetime=60)
    oracle.update(4, 1_000)
    assert oracle.active_size == 1
    assert oracle.latest_sample() is oracle.observations[0]
    assert oracle.latest_sample().cumulative_active_bin_id == 4


def test_update_within_lifetime_keeps_slot():
    oracle = DynamicOracle(length=3, sample_lifetime=60)
    oracle.update(4, 1_000)
    oracle.update(4, 1_030)
    assert oracle.idx == 0
    assert oracle.active_size == 1
    assert oracle.latest_sample().last_updated_at == 1_030


def test_update_after_lifetime_moves_slot():
    oracle = DynamicOracle(length=3, sample_lifetime=60)
    oracle.update(4, 1_000)
    before = oracle.observations[0].accumulate_active_bin_id(4, 1_060)
    oracle.update(4, 1_060)
    assert oracle.idx == 1
    assert oracle.active_size == 2
    assert oracle.latest_sample().cumulative_active_bin_id == before
    assert oracle.latest_sample().created_at == 1_060
    assert oracle.earliest_sample() is oracle.observations[0]


def test_ring_wraps_around():
    oracle = DynamicOracle(length=3, sample_lifetime=10)
    for step in range(5):
        oracle.update(1, 100 + step * 10)
    assert oracle.active_size == 3
    assert oracle.idx == 4 % 3
    assert oracle.earliest_sample() is oracle.observations[(oracle.idx + 1) % 3]


def test_increase_length():
    oracle = DynamicOracle(length=2)
    oracle.increase_length(3)
    assert oracle.length == 5
    assert len(oracle.observations) == 5


def test_increase_length_negative():
    oracle = DynamicOracle(length=2)
    with pytest.raises(OracleError):
        oracle.increase_length(-1)


def test_zero_length_update_fails():
    oracle = DynamicOracle(length=0)
    with pytest.raises(OracleError):
        oracle.update(1, 100)


@given(
    st.integers(1, 5),
    st.lists(st.integers(0, 50), min_size=1, max_size=30),
)
def test_ring_invariants(length, gaps):
    oracle = DynamicOracle(length=length, sample_lifetime=20)
    timestamp = 1
    for gap in gaps:
        timestamp += gap
        oracle.update(2, timestamp)
        assert 1 <= oracle.active_size <= length
        assert 0 <= oracle.idx < length
        assert oracle.latest_sample().last_updated_at == timestamp