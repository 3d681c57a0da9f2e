# dlmm_state

`dlmm_state` models parts of the state of a liquidity-book (DLMM) pool in
plain Python: price bins and bin arrays, liquidity positions, farming
rewards and the active-bin price oracle.

All amounts are Python integers. The package checks them against the
fixed-width limits of the on-chain layout (64-bit and 128-bit unsigned
amounts, 32-bit bin ids), so an overflow or an out-of-range value raises an
exception instead of wrapping. The only values that wrap on purpose are the
analytic counters `Bin.amount_x_in` / `Bin.amount_y_in` (128 bits) and the
claimed-total counters of `PositionV2` (64 bits).

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `dlmm_state.bin`: `Bin`, `BinArray`, `SwapResult` and `LayoutVersion`,
  plus the helpers `get_out_amount`, `get_liquidity_share` and
  `get_amount_out`. Prices are Q64.64 integers. `Bin` handles deposit,
  withdraw, the per-bin swap, fee-per-token accounting and the maximum
  in/out amounts. `BinArray` maps bin ids to the bins it holds (70 per
  array), checks index ranges, migrates a V0 layout to V1 and accrues
  rewards into the active bin. Errors raise `BinError`.
- `dlmm_state.position`: `Position` (first layout, integer shares),
  `PositionV2` (Q64.64 shares, operator, lock state), `FeeInfo` and
  `UserRewardInfo`. `PositionV2` deposits and withdraws shares per bin,
  moves earned fees and rewards to pending, claims fees, and migrates from
  `Position`. Errors raise `PositionError`.
- `dlmm_state.rewards`: `RewardInfo`, which holds a reward's mint, vault,
  funder, rate and duration, computes elapsed time and reward per token,
  and recomputes the rate after funding. Errors raise `RewardError`.
- `dlmm_state.oracle`: `Observation` and `DynamicOracle`, a ring buffer of
  cumulative active-bin samples. A new sample starts once the latest one is
  older than `sample_lifetime` seconds (120 by default); the ring holds 100
  observations by default and can grow with `increase_length`. Errors raise
  `OracleError`.

## Example

`Bin.swap` takes any object that provides `compute_fee`,
`compute_fee_from_amount` and `compute_protocol_fee`:

```python
from dlmm_state.bin import Bin

FEE_PRECISION = 1_000_000_000


class FlatFee:
    rate = 10_000_000  # 1% in 1e9 units

    def compute_fee(self, amount):
        denominator = FEE_PRECISION - self.rate
        return (amount * self.rate + denominator - 1) // denominator

    def compute_fee_from_amount(self, amount_with_fees):
        return (amount_with_fees * self.rate + FEE_PRECISION - 1) // FEE_PRECISION

    def compute_protocol_fee(self, fee_amount):
        return fee_amount // 10


bin_ = Bin(amount_x=1_000_000, amount_y=1_000_000)
price = 1 << 64  # 1.0 in Q64.64
result = bin_.swap(10_000, price, True, FlatFee(), None)
print(result.amount_out, result.fee)  # 9900 100
```

The oracle:

```python
from dlmm_state.oracle import DynamicOracle

oracle = DynamicOracle(length=3)
oracle.update(active_id=5, current_timestamp=1_000)
oracle.update(active_id=7, current_timestamp=1_010)
print(oracle.latest_sample().cumulative_active_bin_id)  # 5 + 7 * 10 = 75
```

## What the package does not do

The package has no pool record of its own: it does not compute base,
variable or protocol fee rates, track volatility, move the active bin or
search for bin arrays holding liquidity. Those are supplied by the caller:
`Bin.swap` takes a fee model object, `Bin.get_or_store_bin_price` takes a
`price_from_id(bin_id, bin_step)` callable, and `BinArray.update_all_rewards`
takes any object with `active_id` and `reward_infos`. It does not derive
account addresses, read or write accounts on a chain, or send transactions,
and it has no command-line interface.