"""Liquidity mining reward state of a liquidity book pair."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

SCALE_OFFSET = 64
DEFAULT_PUBKEY = bytes(32)

_U64_MAX = 2**64 - 1
_U128_MAX = 2**128 - 1
_U256_MAX = 2**256 - 1


class RewardError(ArithmeticError):
    """Raised when a reward computation overflows or is undefined."""


def _fit(value: int, limit: int, what: str) -> int:
    if not 0 <= value <= limit:
        raise RewardError(f"{what} out of range")
    return value


@dataclass
class RewardInfo:
    """State tracking one liquidity mining reward of a pair."""

    mint: bytes = DEFAULT_PUBKEY
    vault: bytes = DEFAULT_PUBKEY
    funder: bytes = DEFAULT_PUBKEY
    reward_duration: int = 0
    reward_duration_end: int = 0
    reward_rate: int = 0
    last_update_time: int = 0
    cumulative_seconds_with_empty_liquidity_reward: int = 0

    def initialized(self) -> bool:
        """True once a reward mint has been set."""
        return self.mint != DEFAULT_PUBKEY

    def is_valid_funder(self, funder: bytes, admins: Collection[bytes]) -> bool:
        """True if ``funder`` is an admin or the configured funder."""
        return funder in admins or funder == self.funder

    def init_reward(
        self, mint: bytes, vault: bytes, funder: bytes, reward_duration: int
    ) -> None:
        self.mint = mint
        self.vault = vault
        self.funder = funder
        self.reward_duration = reward_duration

    def update_last_update_time(self, current_time: int) -> None:
        self.last_update_time = min(current_time, self.reward_duration_end)

    def get_seconds_elapsed_since_last_update(self, current_time: int) -> int:
        """Seconds of reward distribution since the last update."""
        applicable = min(current_time, self.reward_duration_end)
        return _fit(applicable - self.last_update_time, _U64_MAX, "elapsed time")

    def calculate_reward_per_token_stored_since_last_update(
        self, current_time: int, liquidity_supply: int
    ) -> int:
        """Reward per liquidity unit accrued since the last update, floored."""
        time_period = self.get_seconds_elapsed_since_last_update(current_time)
        if liquidity_supply == 0:
            raise RewardError("division by zero liquidity supply")
        result = time_period * self.reward_rate // liquidity_supply
        return _fit(result, _U128_MAX, "reward per token")

    def calculate_reward_accumulated_since_last_update(self, current_time: int) -> int:
        """Total reward (scaled by 2**64) accrued since the last update."""
        time_period = self.get_seconds_elapsed_since_last_update(current_time)
        return _fit(time_period * self.reward_rate, _U256_MAX, "accumulated reward")

    def update_rate_after_funding(self, current_time: int, funding_amount: int) -> None:
        """Spread leftover plus newly funded reward over a fresh duration."""
        if current_time >= self.reward_duration_end:
            total_amount = funding_amount
        else:
            remaining_seconds = self.reward_duration_end - current_time
            leftover = _fit(
                (self.reward_rate * remaining_seconds) >> SCALE_OFFSET,
                _U64_MAX,
                "leftover reward",
            )
            total_amount = _fit(leftover + funding_amount, _U64_MAX, "total reward")

        if self.reward_duration == 0:
            raise RewardError("reward duration is zero")
        self.reward_rate = _fit(
            (total_amount << SCALE_OFFSET) // self.reward_duration,
            _U128_MAX,
            "reward rate",
        )
        self.last_update_time = current_time
        self.reward_duration_end = _fit(
            current_time + self.reward_duration, _U64_MAX, "reward duration end"
        )