import pytest
from hypothesis import given
from hypothesis import strategies as st

from dlmm_state.bin import Bin
from dlmm_state.position import (
    MAX_BIN_PER_POSITION,
    FeeInfo,
    Position,
    PositionError,
    PositionV2,
)

PAIR = bytes([1]) * 32
OWNER = bytes([2]) * 32
OPERATOR = bytes([3]) * 32
FEE_OWNER = bytes([4]) * 32
Q = 1 << 64


def make_position(lower=10, upper=20, locking=False):
    pos = PositionV2()
    pos.init(PAIR, OWNER, OPERATOR, lower, upper, 1000, 50, locking, FEE_OWNER)
    return pos


def test_init_sets_fields():
    pos = make_position(locking=True)
    assert pos.lb_pair == PAIR
    assert pos.owner == OWNER
    assert pos.operator == OPERATOR
    assert pos.last_updated_at == 1000
    assert pos.lock_release_slot == 50
    assert pos.fee_owner == FEE_OWNER
    assert pos.is_subjected_to_initial_liquidity_locking() is True


def test_init_without_locking_keeps_fee_owner():
    pos = make_position(locking=False)
    assert pos.fee_owner == bytes(32)
    assert pos.is_subjected_to_initial_liquidity_locking() is False


def test_width_of_single_bin_is_one():
    assert make_position(5, 5).width() == 1


def test_get_idx_and_back():
    pos = make_position(10, 20)
    assert pos.get_idx(10) == 0
    assert pos.from_idx_to_bin_id(pos.get_idx(17)) == 17


@pytest.mark.parametrize("bin_id", [9, 21, -100])
def test_bin_outside_position_raises(bin_id):
    pos = make_position(10, 20)
    with pytest.raises(PositionError):
        pos.id_within_position(bin_id)
    with pytest.raises(PositionError):
        pos.deposit(bin_id, 1)


@given(st.integers(0, 2**100), st.integers(0, 2**100))
def test_deposit_withdraw_round_trip(a, b):
    pos = make_position(10, 20)
    pos.deposit(12, a)
    pos.deposit(12, b)
    assert pos.get_liquidity_share_in_bin(12) == a + b
    pos.withdraw(12, b)
    assert pos.get_liquidity_share_in_bin(12) == a


def test_withdraw_more_than_share_raises():
    pos = make_position()
    pos.deposit(11, 5)
    with pytest.raises(PositionError):
        pos.withdraw(11, 6)
    assert pos.get_liquidity_share_in_bin(11) == 5


def test_deposit_overflow_raises():
    pos = make_position()
    pos.deposit(11, 2**128 - 1)
    with pytest.raises(PositionError):
        pos.deposit(11, 1)


def test_empty_after_init_and_not_after_deposit():
    pos = make_position()
    assert pos.is_empty() is True
    pos.deposit(15, 1)
    assert pos.is_empty() is False


def test_fee_update_and_claim():
    liquidity = 7
    pos = make_position()
    pos.deposit(10, liquidity * Q)
    bin_ = Bin(fee_amount_x_per_token_stored=Q, fee_amount_y_per_token_stored=2 * Q)
    pos.update_fee_per_token_stored(10, bin_)
    info = pos.fee_infos[0]
    assert info.fee_x_pending == liquidity
    assert info.fee_y_pending == 2 * liquidity
    assert info.fee_x_per_token_complete == Q
    # No new fees: a second update adds nothing.
    pos.update_fee_per_token_stored(10, bin_)
    assert info.fee_x_pending == liquidity
    assert pos.claim_fee() == (liquidity, 2 * liquidity)
    assert pos.claim_fee() == (0, 0)


def test_fee_update_with_stale_bin_raises():
    pos = make_position()
    pos.fee_infos[0] = FeeInfo(fee_x_per_token_complete=Q)
    with pytest.raises(PositionError):
        pos.update_fee_per_token_stored(10, Bin())


def test_reward_update_total_and_reset():
    liquidity = 3
    pos = make_position()
    pos.deposit(10, liquidity * Q)
    pos.deposit(11, liquidity * Q)
    bin_ = Bin(reward_per_token_stored=[Q, 0])
    pos.update_reward_per_token_stored(10, bin_)
    pos.update_reward_per_token_stored(11, bin_)
    assert pos.get_total_reward(0) == 2 * liquidity
    assert pos.get_total_reward(1) == 0
    assert pos.reward_infos[0].reward_per_token_completes == [Q, 0]
    pos.reset_all_pending_reward(0)
    assert pos.get_total_reward(0) == 0


def test_claimed_totals_wrap_at_64_bits():
    pos = make_position()
    pos.accumulate_total_claimed_fees(2**64 - 1, 4)
    pos.accumulate_total_claimed_fees(1, 6)
    assert pos.total_claimed_fee_x_amount == 0
    assert pos.total_claimed_fee_y_amount == 10
    pos.accumulate_total_claimed_rewards(1, 2**64 - 1)
    pos.accumulate_total_claimed_rewards(1, 2)
    assert pos.total_claimed_rewards == [0, 1]


def test_liquidity_lock():
    pos = make_position()
    assert pos.is_liquidity_locked(49) is True
    assert pos.is_liquidity_locked(50) is False


def test_migrate_from_v1_scales_shares():
    old = Position(lb_pair=PAIR, owner=OWNER, lower_bin_id=-5, upper_bin_id=3)
    old.liquidity_shares[0] = 9
    old.liquidity_shares[MAX_BIN_PER_POSITION - 1] = 2
    old.fee_infos[1].fee_x_pending = 4
    old.total_claimed_rewards = [1, 2]
    new = PositionV2()
    new.migrate_from_v1(old)
    assert new.liquidity_shares[0] == 9 * Q
    assert new.liquidity_shares[MAX_BIN_PER_POSITION - 1] == 2 * Q
    assert new.lower_bin_id == -5 and new.upper_bin_id == 3
    assert new.fee_infos[1].fee_x_pending == 4
    assert new.total_claimed_rewards == [1, 2]
    new.fee_infos[1].fee_x_pending = 0
    assert old.fee_infos[1].fee_x_pending == 4


def test_set_last_updated_at():
    pos = make_position()
    pos.set_last_updated_at(4242)
    assert pos.last_updated_at == 4242