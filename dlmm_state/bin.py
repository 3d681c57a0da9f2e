"""Liquidity bins and the bin arrays that hold them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Protocol, Sequence

from dlmm_state.rewards import RewardInfo

SCALE_OFFSET = 64
BASIS_POINT_MAX = 10_000
MAX_BIN_PER_ARRAY = 70
MAX_BIN_ID = 443_636
MIN_BIN_ID = -443_636
NUM_REWARDS = 2
DEFAULT_PUBKEY = bytes(32)

_U64_MAX = 2**64 - 1
_U128_MAX = 2**128 - 1
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


class BinError(ValueError):
    """Raised when a bin or bin array operation is invalid or overflows."""


class _FeeModel(Protocol):
    def compute_fee(self, amount: int) -> int: ...

    def compute_fee_from_amount(self, amount_with_fees: int) -> int: ...

    def compute_protocol_fee(self, fee_amount: int) -> int: ...


class _RewardedPair(Protocol):
    active_id: int
    reward_infos: Sequence[RewardInfo]


def _fit(value: int, limit: int, what: str = "value") -> int:
    if not 0 <= value <= limit:
        raise BinError(f"{what} out of range")
    return value


def _i32(value: int) -> int:
    if not _I32_MIN <= value <= _I32_MAX:
        raise BinError("32-bit integer overflow")
    return value


def _mul_div(x: int, y: int, denominator: int, round_up: bool, limit: int) -> int:
    if denominator == 0:
        raise BinError("division by zero")
    quotient, remainder = divmod(x * y, denominator)
    if round_up and remainder:
        quotient += 1
    return _fit(quotient, limit, "result")


def _mul_shr(x: int, y: int, offset: int, round_up: bool, limit: int) -> int:
    product = x * y
    result = product >> offset
    if round_up and product & ((1 << offset) - 1):
        result += 1
    return _fit(result, limit, "result")


def _shl_div(x: int, y: int, offset: int, round_up: bool, limit: int) -> int:
    return _mul_div(x, 1 << offset, y, round_up, limit)


def _liquidity_integer(liquidity_supply: int) -> int:
    return _fit(liquidity_supply >> SCALE_OFFSET, _U64_MAX, "liquidity")


def get_out_amount(liquidity_share: int, bin_token_amount: int, liquidity_supply: int) -> int:
    """Token amount owed to a liquidity share, floored."""
    if liquidity_supply == 0:
        return 0
    return _mul_div(liquidity_share, bin_token_amount, liquidity_supply, False, _U64_MAX)


def get_liquidity_share(in_liquidity: int, bin_liquidity: int, liquidity_supply: int) -> int:
    """Liquidity share minted for a deposit, floored."""
    return _mul_div(in_liquidity, liquidity_supply, bin_liquidity, False, _U128_MAX)


def get_amount_out(amount_in: int, price: int, swap_for_y: bool) -> int:
    """Out amount for an in amount at a Q64.64 price, floored."""
    if swap_for_y:
        return _mul_shr(price, amount_in, SCALE_OFFSET, False, _U64_MAX)
    return _shl_div(amount_in, price, SCALE_OFFSET, False, _U64_MAX)


class LayoutVersion(IntEnum):
    """Layout version of a bin array."""

    V0 = 0
    V1 = 1


@dataclass(frozen=True)
class SwapResult:
    """Outcome of swapping through one bin."""

    amount_in_with_fees: int
    amount_out: int
    fee: int
    protocol_fee_after_host_fee: int
    host_fee: int


@dataclass
class Bin:
    """Reserves, price and accumulators of one price bin."""

    amount_x: int = 0
    amount_y: int = 0
    price: int = 0
    liquidity_supply: int = 0
    reward_per_token_stored: list[int] = field(
        default_factory=lambda: [0] * NUM_REWARDS
    )
    fee_amount_x_per_token_stored: int = 0
    fee_amount_y_per_token_stored: int = 0
    amount_x_in: int = 0
    amount_y_in: int = 0

    def is_zero_liquidity(self) -> bool:
        return self.liquidity_supply == 0

    def deposit(self, amount_x: int, amount_y: int, liquidity_share: int) -> None:
        new_x = _fit(self.amount_x + amount_x, _U64_MAX, "amount x")
        new_y = _fit(self.amount_y + amount_y, _U64_MAX, "amount y")
        new_supply = _fit(self.liquidity_supply + liquidity_share, _U128_MAX, "liquidity")
        self.amount_x, self.amount_y, self.liquidity_supply = new_x, new_y, new_supply

    def deposit_composition_fee(self, fee_x: int, fee_y: int) -> None:
        new_x = _fit(self.amount_x + fee_x, _U64_MAX, "amount x")
        new_y = _fit(self.amount_y + fee_y, _U64_MAX, "amount y")
        self.amount_x, self.amount_y = new_x, new_y

    def get_or_store_bin_price(
        self, bin_id: int, bin_step: int, price_from_id: Callable[[int, int], int]
    ) -> int:
        """Return the bin price, computing and caching it when unset."""
        if self.price == 0:
            self.price = price_from_id(bin_id, bin_step)
        return self.price

    def update_fee_per_token_stored(self, fee: int, swap_for_y: bool) -> None:
        """Add a swap fee to the per-liquidity fee accumulator of the in token."""
        liquidity = _liquidity_integer(self.liquidity_supply)
        per_token = _shl_div(fee, liquidity, SCALE_OFFSET, False, _U128_MAX)
        if swap_for_y:
            self.fee_amount_x_per_token_stored = _fit(
                self.fee_amount_x_per_token_stored + per_token, _U128_MAX, "fee x"
            )
        else:
            self.fee_amount_y_per_token_stored = _fit(
                self.fee_amount_y_per_token_stored + per_token, _U128_MAX, "fee y"
            )

    def swap(
        self,
        amount_in: int,
        price: int,
        swap_for_y: bool,
        lb_pair: _FeeModel,
        host_fee_bps: int | None,
    ) -> SwapResult:
        """Swap as much of ``amount_in`` as this bin can take."""
        max_amount_out = self.get_max_amount_out(swap_for_y)
        max_amount_in = self.get_max_amount_in(price, swap_for_y)
        max_fee = lb_pair.compute_fee(max_amount_in)
        max_amount_in = _fit(max_amount_in + max_fee, _U64_MAX, "max amount in")

        if amount_in > max_amount_in:
            amount_in_with_fees = max_amount_in
            amount_out = max_amount_out
            fee = max_fee
        else:
            fee = lb_pair.compute_fee_from_amount(amount_in)
            amount_in_after_fee = _fit(amount_in - fee, _U64_MAX, "amount in after fee")
            amount_out = min(
                get_amount_out(amount_in_after_fee, price, swap_for_y), max_amount_out
            )
            amount_in_with_fees = amount_in
        protocol_fee = lb_pair.compute_protocol_fee(fee)

        if host_fee_bps is None:
            host_fee = 0
        else:
            host_fee = _fit(protocol_fee * host_fee_bps, _U64_MAX, "host fee") // BASIS_POINT_MAX
        protocol_fee_after_host_fee = _fit(protocol_fee - host_fee, _U64_MAX, "protocol fee")

        amount_into_bin = _fit(amount_in_with_fees - fee, _U64_MAX, "amount into bin")
        if swap_for_y:
            new_x = _fit(self.amount_x + amount_into_bin, _U64_MAX, "amount x")
            new_y = _fit(self.amount_y - amount_out, _U64_MAX, "amount y")
        else:
            new_y = _fit(self.amount_y + amount_into_bin, _U64_MAX, "amount y")
            new_x = _fit(self.amount_x - amount_out, _U64_MAX, "amount x")
        self.amount_x, self.amount_y = new_x, new_y

        return SwapResult(
            amount_in_with_fees=amount_in_with_fees,
            amount_out=amount_out,
            fee=fee,
            protocol_fee_after_host_fee=protocol_fee_after_host_fee,
            host_fee=host_fee,
        )

    def withdraw(self, liquidity_share: int) -> tuple[int, int]:
        """Remove a liquidity share and return the tokens it owns."""
        out_x, out_y = self.calculate_out_amount(liquidity_share)
        new_x = _fit(self.amount_x - out_x, _U64_MAX, "amount x")
        new_y = _fit(self.amount_y - out_y, _U64_MAX, "amount y")
        new_supply = _fit(self.liquidity_supply - liquidity_share, _U128_MAX, "liquidity")
        self.amount_x, self.amount_y, self.liquidity_supply = new_x, new_y, new_supply
        return out_x, out_y

    def calculate_out_amount(self, liquidity_share: int) -> tuple[int, int]:
        """Tokens owned by a liquidity share, floored."""
        out_x = _mul_div(liquidity_share, self.amount_x, self.liquidity_supply, False, _U64_MAX)
        out_y = _mul_div(liquidity_share, self.amount_y, self.liquidity_supply, False, _U64_MAX)
        return out_x, out_y

    def is_empty(self, is_x: bool) -> bool:
        return (self.amount_x if is_x else self.amount_y) == 0

    def get_max_amount_out(self, swap_for_y: bool) -> int:
        return self.amount_y if swap_for_y else self.amount_x

    def get_max_amount_in(self, price: int, swap_for_y: bool) -> int:
        """In amount needed to drain the opposite token, ceiled."""
        if swap_for_y:
            return _shl_div(self.amount_y, price, SCALE_OFFSET, True, _U64_MAX)
        return _mul_shr(self.amount_x, price, SCALE_OFFSET, True, _U64_MAX)

    def get_max_amounts_in(self, price: int) -> tuple[int, int]:
        return self.get_max_amount_in(price, True), self.get_max_amount_in(price, False)

    def accumulate_amounts_in(self, amount_x_in: int, amount_y_in: int) -> None:
        """Track swapped-in volume; the counters wrap at 128 bits."""
        self.amount_x_in = (self.amount_x_in + amount_x_in) & _U128_MAX
        self.amount_y_in = (self.amount_y_in + amount_y_in) & _U128_MAX


def _empty_bins() -> list[Bin]:
    return [Bin() for _ in range(MAX_BIN_PER_ARRAY)]


@dataclass
class BinArray:
    """A contiguous range of bins identified by its array index."""

    index: int = 0
    version: int = LayoutVersion.V0
    lb_pair: bytes = DEFAULT_PUBKEY
    bins: list[Bin] = field(default_factory=_empty_bins)

    def is_zero_liquidity(self) -> bool:
        return all(b.is_zero_liquidity() for b in self.bins)

    def initialize(self, index: int, lb_pair: bytes) -> None:
        if not _I32_MIN <= index <= _I32_MAX:
            raise BinError("invalid start bin index")
        self.check_valid_index(index)
        self.index = index
        self.lb_pair = lb_pair
        self.version = LayoutVersion.V1
        self.bins = _empty_bins()

    def migrate_to_v2(self) -> None:
        """Upgrade a V0 layout by scaling liquidity into Q64.64 form."""
        try:
            version = LayoutVersion(self.version)
        except ValueError as exc:
            raise BinError("unknown layout version") from exc
        if version is LayoutVersion.V0:
            self.version = LayoutVersion.V1
            for b in self.bins:
                b.liquidity_supply = (b.liquidity_supply << SCALE_OFFSET) & _U128_MAX

    def _index_in_array(self, bin_id: int) -> int:
        self.is_bin_id_within_range(bin_id)
        lower, upper = self.get_bin_array_lower_upper_bin_id(self.index)
        if bin_id > 0:
            idx = bin_id - lower
        else:
            # Negative ids are laid out descending from the end of the array.
            idx = MAX_BIN_PER_ARRAY - (upper - bin_id) - 1
        if not 0 <= idx < MAX_BIN_PER_ARRAY:
            raise BinError("invalid bin id")
        return idx

    def get_bin(self, bin_id: int) -> Bin:
        """The bin with the given id; it is shared, not copied."""
        return self.bins[self._index_in_array(bin_id)]

    def is_bin_id_within_range(self, bin_id: int) -> None:
        """Raise BinError if ``bin_id`` is outside this array."""
        lower, upper = self.get_bin_array_lower_upper_bin_id(self.index)
        if not lower <= bin_id <= upper:
            raise BinError("invalid bin id")

    @staticmethod
    def bin_id_to_bin_array_index(bin_id: int) -> int:
        quotient = abs(bin_id) // MAX_BIN_PER_ARRAY
        remainder = abs(bin_id) % MAX_BIN_PER_ARRAY
        if bin_id < 0:
            quotient = -quotient
            if remainder:
                quotient = _i32(quotient - 1)
        return quotient

    @staticmethod
    def get_bin_array_lower_upper_bin_id(index: int) -> tuple[int, int]:
        lower = _i32(index * MAX_BIN_PER_ARRAY)
        upper = _i32(_i32(lower + MAX_BIN_PER_ARRAY) - 1)
        return lower, upper

    @staticmethod
    def check_valid_index(index: int) -> None:
        lower, upper = BinArray.get_bin_array_lower_upper_bin_id(index)
        if not (lower >= MIN_BIN_ID and upper <= MAX_BIN_ID):
            raise BinError("invalid start bin index")

    def update_all_rewards(self, lb_pair: _RewardedPair, current_time: int) -> None:
        """Accrue every initialized reward into the pair's active bin."""
        for reward_idx in range(NUM_REWARDS):
            active_bin = self.get_bin(lb_pair.active_id)
            reward_info = lb_pair.reward_infos[reward_idx]
            if not reward_info.initialized():
                continue
            if active_bin.liquidity_supply > 0:
                delta = reward_info.calculate_reward_per_token_stored_since_last_update(
                    current_time, _liquidity_integer(active_bin.liquidity_supply)
                )
                active_bin.reward_per_token_stored[reward_idx] = _fit(
                    active_bin.reward_per_token_stored[reward_idx] + delta,
                    _U128_MAX,
                    "reward per token",
                )
            else:
                # Reward emitted into an empty bin is carried to the next window.
                period = reward_info.get_seconds_elapsed_since_last_update(current_time)
                reward_info.cumulative_seconds_with_empty_liquidity_reward = _fit(
                    reward_info.cumulative_seconds_with_empty_liquidity_reward + period,
                    _U64_MAX,
                    "empty liquidity seconds",
                )
            reward_info.update_last_update_time(current_time)