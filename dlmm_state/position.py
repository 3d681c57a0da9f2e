"""Liquidity positions: shares per bin plus pending fees and rewards."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field

from dlmm_state.bin import DEFAULT_PUBKEY, NUM_REWARDS, SCALE_OFFSET, Bin

MAX_BIN_PER_POSITION = 70

_U64_MAX = 2**64 - 1
_U128_MAX = 2**128 - 1
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


class PositionError(ValueError):
    """Raised when a position operation is invalid or overflows."""


def _fit(value: int, limit: int, what: str) -> int:
    if not 0 <= value <= limit:
        raise PositionError(f"{what} out of range")
    return value


def _i32(value: int) -> int:
    if not _I32_MIN <= value <= _I32_MAX:
        raise PositionError("32-bit integer overflow")
    return value


def _earned(liquidity_share: int, per_token_delta: int) -> int:
    """Tokens earned by a Q64.64 share over a Q64.64 per-token delta, floored."""
    liquidity = _fit(liquidity_share >> SCALE_OFFSET, _U64_MAX, "liquidity")
    return _fit((liquidity * per_token_delta) >> SCALE_OFFSET, _U64_MAX, "earning")


@dataclass
class FeeInfo:
    """Swap fee checkpoint and pending fees of one bin of a position."""

    fee_x_per_token_complete: int = 0
    fee_y_per_token_complete: int = 0
    fee_x_pending: int = 0
    fee_y_pending: int = 0


@dataclass
class UserRewardInfo:
    """Reward checkpoints and pending rewards of one bin of a position."""

    reward_per_token_completes: list[int] = field(
        default_factory=lambda: [0] * NUM_REWARDS
    )
    reward_pendings: list[int] = field(default_factory=lambda: [0] * NUM_REWARDS)


def _reward_infos() -> list[UserRewardInfo]:
    return [UserRewardInfo() for _ in range(MAX_BIN_PER_POSITION)]


def _fee_infos() -> list[FeeInfo]:
    return [FeeInfo() for _ in range(MAX_BIN_PER_POSITION)]


def _zero_shares() -> list[int]:
    return [0] * MAX_BIN_PER_POSITION


@dataclass
class Position:
    """First layout of a position, with integer (not Q64.64) shares."""

    lb_pair: bytes = DEFAULT_PUBKEY
    owner: bytes = DEFAULT_PUBKEY
    liquidity_shares: list[int] = field(default_factory=_zero_shares)
    reward_infos: list[UserRewardInfo] = field(default_factory=_reward_infos)
    fee_infos: list[FeeInfo] = field(default_factory=_fee_infos)
    lower_bin_id: int = 0
    upper_bin_id: int = 0
    last_updated_at: int = 0
    total_claimed_fee_x_amount: int = 0
    total_claimed_fee_y_amount: int = 0
    total_claimed_rewards: list[int] = field(default_factory=lambda: [0, 0])


@dataclass
class PositionV2:
    """A position with Q64.64 liquidity shares, operator and lock state."""

    lb_pair: bytes = DEFAULT_PUBKEY
    owner: bytes = DEFAULT_PUBKEY
    liquidity_shares: list[int] = field(default_factory=_zero_shares)
    reward_infos: list[UserRewardInfo] = field(default_factory=_reward_infos)
    fee_infos: list[FeeInfo] = field(default_factory=_fee_infos)
    lower_bin_id: int = 0
    upper_bin_id: int = 0
    last_updated_at: int = 0
    total_claimed_fee_x_amount: int = 0
    total_claimed_fee_y_amount: int = 0
    total_claimed_rewards: list[int] = field(default_factory=lambda: [0, 0])
    operator: bytes = DEFAULT_PUBKEY
    lock_release_slot: int = 0
    subjected_to_bootstrap_liquidity_locking: int = 0
    fee_owner: bytes = DEFAULT_PUBKEY

    def init(
        self,
        lb_pair: bytes,
        owner: bytes,
        operator: bytes,
        lower_bin_id: int,
        upper_bin_id: int,
        current_time: int,
        lock_release_slot: int,
        subjected_to_bootstrap_liquidity_locking: bool,
        fee_owner: bytes,
    ) -> None:
        self.lb_pair = lb_pair
        self.owner = owner
        self.operator = operator
        self.lower_bin_id = lower_bin_id
        self.upper_bin_id = upper_bin_id
        self.liquidity_shares = _zero_shares()
        self.reward_infos = _reward_infos()
        self.last_updated_at = current_time
        self.lock_release_slot = lock_release_slot
        self.subjected_to_bootstrap_liquidity_locking = int(
            bool(subjected_to_bootstrap_liquidity_locking)
        )
        if subjected_to_bootstrap_liquidity_locking:
            self.fee_owner = fee_owner

    def migrate_from_v1(self, position: Position) -> None:
        """Copy a first-layout position, scaling its shares to Q64.64."""
        self.lb_pair = position.lb_pair
        self.owner = position.owner
        self.reward_infos = deepcopy(position.reward_infos)
        self.fee_infos = deepcopy(position.fee_infos)
        self.lower_bin_id = position.lower_bin_id
        self.upper_bin_id = position.upper_bin_id
        self.total_claimed_fee_x_amount = position.total_claimed_fee_x_amount
        self.total_claimed_fee_y_amount = position.total_claimed_fee_y_amount
        self.total_claimed_rewards = list(position.total_claimed_rewards)
        self.last_updated_at = position.last_updated_at
        for i, share in enumerate(position.liquidity_shares):
            self.liquidity_shares[i] = _fit(share << SCALE_OFFSET, _U128_MAX, "share")

    def id_within_position(self, bin_id: int) -> None:
        """Raise PositionError if the bin is outside the position."""
        if not self.lower_bin_id <= bin_id <= self.upper_bin_id:
            raise PositionError(f"bin {bin_id} is outside the position")

    def width(self) -> int:
        """Number of bins; 1 when lower and upper bin ids are equal."""
        return _i32(_i32(self.upper_bin_id - self.lower_bin_id) + 1)

    def get_idx(self, bin_id: int) -> int:
        self.id_within_position(bin_id)
        idx = _i32(bin_id - self.lower_bin_id)
        if idx >= len(self.liquidity_shares):
            raise PositionError(f"bin {bin_id} exceeds the position capacity")
        return idx

    def from_idx_to_bin_id(self, i: int) -> int:
        return _i32(self.lower_bin_id + i)

    def withdraw(self, bin_id: int, liquidity_share: int) -> None:
        idx = self.get_idx(bin_id)
        self.liquidity_shares[idx] = _fit(
            self.liquidity_shares[idx] - liquidity_share, _U128_MAX, "liquidity share"
        )

    def deposit(self, bin_id: int, liquidity_share: int) -> None:
        idx = self.get_idx(bin_id)
        self.liquidity_shares[idx] = _fit(
            self.liquidity_shares[idx] + liquidity_share, _U128_MAX, "liquidity share"
        )

    def get_liquidity_share_in_bin(self, bin_id: int) -> int:
        return self.liquidity_shares[self.get_idx(bin_id)]

    def accumulate_total_claimed_rewards(self, reward_index: int, reward: int) -> None:
        """Track claimed rewards; the counter wraps at 64 bits."""
        self.total_claimed_rewards[reward_index] = (
            self.total_claimed_rewards[reward_index] + reward
        ) & _U64_MAX

    def accumulate_total_claimed_fees(self, fee_x: int, fee_y: int) -> None:
        """Track claimed fees; the counters wrap at 64 bits."""
        self.total_claimed_fee_x_amount = (self.total_claimed_fee_x_amount + fee_x) & _U64_MAX
        self.total_claimed_fee_y_amount = (self.total_claimed_fee_y_amount + fee_y) & _U64_MAX

    def update_fee_per_token_stored(self, bin_id: int, bin: Bin) -> None:
        """Move fees earned in the bin since the last checkpoint to pending."""
        idx = self.get_idx(bin_id)
        info = self.fee_infos[idx]
        share = self.liquidity_shares[idx]

        stored_x = bin.fee_amount_x_per_token_stored
        delta_x = _fit(stored_x - info.fee_x_per_token_complete, _U128_MAX, "fee x delta")
        pending_x = _fit(_earned(share, delta_x) + info.fee_x_pending, _U64_MAX, "fee x")

        stored_y = bin.fee_amount_y_per_token_stored
        delta_y = _fit(stored_y - info.fee_y_per_token_complete, _U128_MAX, "fee y delta")
        pending_y = _fit(_earned(share, delta_y) + info.fee_y_pending, _U64_MAX, "fee y")

        info.fee_x_pending = pending_x
        info.fee_x_per_token_complete = stored_x
        info.fee_y_pending = pending_y
        info.fee_y_per_token_complete = stored_y

    def update_reward_per_token_stored(self, bin_id: int, bin: Bin) -> None:
        """Move rewards earned in the bin since the last checkpoint to pending."""
        idx = self.get_idx(bin_id)
        info = self.reward_infos[idx]
        share = self.liquidity_shares[idx]
        for reward_idx in range(NUM_REWARDS):
            stored = bin.reward_per_token_stored[reward_idx]
            delta = _fit(
                stored - info.reward_per_token_completes[reward_idx],
                _U128_MAX,
                "reward delta",
            )
            info.reward_pendings[reward_idx] = _fit(
                _earned(share, delta) + info.reward_pendings[reward_idx],
                _U64_MAX,
                "reward",
            )
            info.reward_per_token_completes[reward_idx] = stored

    def get_total_reward(self, reward_index: int) -> int:
        total = sum(info.reward_pendings[reward_index] for info in self.reward_infos)
        return _fit(total, _U64_MAX, "total reward")

    def reset_all_pending_reward(self, reward_index: int) -> None:
        for info in self.reward_infos:
            info.reward_pendings[reward_index] = 0

    def claim_fee(self) -> tuple[int, int]:
        """Return and clear all pending fees."""
        fee_x = _fit(sum(i.fee_x_pending for i in self.fee_infos), _U64_MAX, "fee x")
        fee_y = _fit(sum(i.fee_y_pending for i in self.fee_infos), _U64_MAX, "fee y")
        for info in self.fee_infos:
            info.fee_x_pending = 0
            info.fee_y_pending = 0
        return fee_x, fee_y

    def set_last_updated_at(self, current_time: int) -> None:
        self.last_updated_at = current_time

    def is_empty(self) -> bool:
        """True when shares, pending rewards and pending fees are all zero."""
        return all(
            share == 0
            and not any(rewards.reward_pendings)
            and fees.fee_x_pending == 0
            and fees.fee_y_pending == 0
            for share, rewards, fees in zip(
                self.liquidity_shares, self.reward_infos, self.fee_infos
            )
        )

    def is_liquidity_locked(self, current_slot: int) -> bool:
        return current_slot < self.lock_release_slot

    def is_subjected_to_initial_liquidity_locking(self) -> bool:
        return self.subjected_to_bootstrap_liquidity_locking != 0