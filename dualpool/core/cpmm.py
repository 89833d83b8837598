"""
Constant Product Market Maker (CPMM) arithmetic for the dual-pool exchange.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Deterministic Rounding
- Time Complexity: O(1) per swap operation
- Space Complexity: O(1) auxiliary
- Invariant: After each swap, new_reserve_in * new_reserve_out >= k, where k is
  the product fixed when the pool was seeded.

Swap semantics:
- The fee is taken off the input before pricing:
      effective_in = floor(amount_in * fee_numerator / fee_denominator)
- Output is derived from the seeded invariant rather than the live product:
      new_reserve_in  = reserve_in + effective_in
      new_reserve_out = ceil(k / new_reserve_in)
      amount_out      = reserve_out - new_reserve_out
- The fee truncates toward zero and the output reserve is rounded up, so
  amount_out is always rounded down and the pool never pays out more than the
  invariant allows. (A floored output reserve would round amount_out *up* and
  let the product slip below k by up to new_reserve_in - 1.)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import InvalidAmount, InvariantViolation
from ..state.pools import Amount


# 0.3% fee, expressed as the retained fraction of the input.
FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000

PRICE_SCALE = 10**18
BPS_DENOM = 10_000

# Amounts are bounded to the 256-bit unsigned domain of an on-chain token ledger.
UINT256_MAX = 2**256 - 1


def _ceil_div(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (numerator + denominator - 1) // denominator


def require_amount(value: Amount, *, name: str = "amount", positive: bool = True) -> Amount:
    """Validate that `value` is an int in the uint256 domain (and > 0 if `positive`)."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidAmount(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise InvalidAmount(f"{name} must be non-negative: {value}")
    if positive and value == 0:
        raise InvalidAmount(f"{name} must be positive")
    if value > UINT256_MAX:
        raise InvalidAmount(f"{name} exceeds uint256: {value}")
    return value


def validate_fee(fee_numerator: int, fee_denominator: int) -> None:
    for name, v in (("fee_numerator", fee_numerator), ("fee_denominator", fee_denominator)):
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{name} must be an int")
    if fee_denominator <= 0:
        raise ValueError(f"fee_denominator must be positive: {fee_denominator}")
    if not (0 < fee_numerator <= fee_denominator):
        raise ValueError(f"fee_numerator must be in (0, {fee_denominator}]: {fee_numerator}")


def apply_fee(
    amount_in: Amount,
    fee_numerator: int = FEE_NUMERATOR,
    fee_denominator: int = FEE_DENOMINATOR,
) -> Amount:
    """Return floor(amount_in * fee_numerator / fee_denominator)."""
    require_amount(amount_in, name="amount_in", positive=False)
    validate_fee(fee_numerator, fee_denominator)
    return (amount_in * fee_numerator) // fee_denominator


@dataclass(frozen=True)
class SwapExactInResult:
    amount_in: int
    effective_in: int
    amount_out: int
    new_reserve_in: int
    new_reserve_out: int
    invariant: int


def swap_exact_in(
    *,
    reserve_in: Amount,
    reserve_out: Amount,
    invariant: int,
    amount_in: Amount,
    fee_numerator: int = FEE_NUMERATOR,
    fee_denominator: int = FEE_DENOMINATOR,
) -> SwapExactInResult:
    """
    Exact-in swap quote + post-state.

    Args:
        reserve_in: Current reserve of the input asset
        reserve_out: Current reserve of the output asset
        invariant: Seeded constant product k
        amount_in: Gross input amount (fee is deducted from it)
        fee_numerator: Retained fraction numerator (997 for 0.3%)
        fee_denominator: Retained fraction denominator

    Returns:
        SwapExactInResult with amount_out and post-swap reserves

    Raises:
        InvalidAmount: If amount_in is invalid, or too small to survive the
            fee and rounding (zero effective input or zero output)
        InvariantViolation: If the post-state product would fall below k
    """
    require_amount(amount_in, name="amount_in")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InvariantViolation(f"Reserves must be positive: ({reserve_in}, {reserve_out})")
    if invariant <= 0:
        raise InvariantViolation(f"invariant must be positive: {invariant}")

    effective_in = apply_fee(amount_in, fee_numerator, fee_denominator)
    if effective_in == 0:
        raise InvalidAmount(f"amount_in too small after fee: {amount_in}")

    new_reserve_in = reserve_in + effective_in
    # ceil(k / new_reserve_in) >= 1, so the output reserve can never be drained.
    new_reserve_out = _ceil_div(invariant, new_reserve_in)
    if new_reserve_out > reserve_out:
        # Only reachable if the reserves were corrupted below k.
        raise InvariantViolation(
            f"reserve product below invariant: ({reserve_in}, {reserve_out}) k={invariant}"
        )
    amount_out = reserve_out - new_reserve_out
    if amount_out == 0:
        raise InvalidAmount(f"amount_out is zero (trade too small): amount_in={amount_in}")

    if new_reserve_in * new_reserve_out < invariant:
        raise InvariantViolation(
            f"Invariant violation: {new_reserve_in} * {new_reserve_out} < {invariant}"
        )

    return SwapExactInResult(
        amount_in=amount_in,
        effective_in=effective_in,
        amount_out=amount_out,
        new_reserve_in=new_reserve_in,
        new_reserve_out=new_reserve_out,
        invariant=invariant,
    )


def spot_price(reserve_a: Amount, reserve_b: Amount, scale: int = PRICE_SCALE) -> int:
    """Fixed-point price of asset A in units of asset B: floor(reserve_b * scale / reserve_a)."""
    if reserve_a <= 0 or reserve_b <= 0:
        raise InvariantViolation(f"Reserves must be positive: ({reserve_a}, {reserve_b})")
    return (reserve_b * scale) // reserve_a


def spread_bps(price_1: int, price_2: int) -> int:
    """|p1 - p2| / min(p1, p2) in basis points (10_000 = 100%), rounded down."""
    low = min(price_1, price_2)
    if low <= 0:
        raise InvariantViolation(f"prices must be positive: ({price_1}, {price_2})")
    return (abs(price_1 - price_2) * BPS_DENOM) // low


def price_ratio(
    *,
    reserve_a_1: Amount,
    reserve_b_1: Amount,
    reserve_a_2: Amount,
    reserve_b_2: Amount,
) -> Tuple[int, int]:
    """
    Exact ratio of the higher pool price to the lower one, as (numerator, denominator).

    Prices are b / a, so the ratio is (b_hi * a_lo) / (a_hi * b_lo) >= 1. It is
    1 when the pools agree and grows with the spread. Nothing is rounded, so
    price moves far below one basis point still register.
    """
    if min(reserve_a_1, reserve_b_1, reserve_a_2, reserve_b_2) <= 0:
        raise InvariantViolation("price ratio needs four positive reserves")
    cross_1 = reserve_b_1 * reserve_a_2
    cross_2 = reserve_b_2 * reserve_a_1
    return max(cross_1, cross_2), min(cross_1, cross_2)


def ratio_narrowed(before: Tuple[int, int], after: Tuple[int, int]) -> bool:
    """True iff `after` is strictly closer to 1 than `before` (both from `price_ratio`)."""
    return after[0] * before[1] < before[0] * after[1]


def optimal_round_trip_in(
    *,
    leg1_reserve_in: Amount,
    leg1_reserve_out: Amount,
    leg2_reserve_in: Amount,
    leg2_reserve_out: Amount,
    fee_numerator: int = FEE_NUMERATOR,
    fee_denominator: int = FEE_DENOMINATOR,
) -> Optional[Amount]:
    """
    Closed-form profit-maximizing input for a two-pool round trip.

    Two CPMM legs with the same fee g compose into a single CPMM with
        A' = a1 * a2 / (a2 + g * b1),  B' = g * b1 * b2 / (a2 + g * b1)
    and the profit out(x) - x peaks at
        x* = (g * sqrt(a1 * b1 * a2 * b2) - a1 * a2) / (g * (a2 + g * b1))
    With g = n / d this is evaluated in integers using `math.isqrt`.

    Returns None when no positive input is profitable (the pools are within
    the round-trip fee of each other).
    """
    a1, b1, a2, b2 = leg1_reserve_in, leg1_reserve_out, leg2_reserve_in, leg2_reserve_out
    if min(a1, b1, a2, b2) <= 0:
        raise InvariantViolation("round trip needs four positive reserves")
    validate_fee(fee_numerator, fee_denominator)
    n, d = fee_numerator, fee_denominator

    numerator = n * d * math.isqrt(a1 * b1 * a2 * b2) - a1 * a2 * d * d
    if numerator <= 0:
        return None
    x = numerator // (n * (d * a2 + n * b1))
    return x if x > 0 else None
