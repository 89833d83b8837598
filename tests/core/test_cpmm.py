from __future__ import annotations

import pytest

from dualpool.core.cpmm import (
    PRICE_SCALE,
    UINT256_MAX,
    apply_fee,
    optimal_round_trip_in,
    price_ratio,
    ratio_narrowed,
    require_amount,
    spot_price,
    spread_bps,
    swap_exact_in,
)
from dualpool.errors import InvalidAmount, InvariantViolation

UNIT = 10**6


def test_fee_truncates_toward_zero() -> None:
    assert apply_fee(1000) == 997
    assert apply_fee(999) == 996  # 996.003
    assert apply_fee(1) == 0
    assert apply_fee(0) == 0


def test_swap_rounds_amount_out_down() -> None:
    # k = 1_000_000; 100 in -> 99 effective; new_in = 1099.
    # k / 1099 = 909.9..., so the output reserve must stay at 910 (not 909).
    res = swap_exact_in(reserve_in=1000, reserve_out=1000, invariant=1_000_000, amount_in=100)
    assert res.effective_in == 99
    assert res.new_reserve_in == 1099
    assert res.new_reserve_out == 910
    assert res.amount_out == 90
    assert res.new_reserve_in * res.new_reserve_out >= 1_000_000


def test_swap_rejects_non_positive_and_non_int_amounts() -> None:
    for bad in (0, -1, True, 1.5, "10"):
        with pytest.raises(InvalidAmount):
            swap_exact_in(reserve_in=1000, reserve_out=1000, invariant=1_000_000, amount_in=bad)  # type: ignore[arg-type]


def test_swap_rejects_amount_outside_uint256() -> None:
    with pytest.raises(InvalidAmount, match="uint256"):
        swap_exact_in(reserve_in=1000, reserve_out=1000, invariant=1_000_000, amount_in=UINT256_MAX + 1)


def test_swap_rejects_input_eaten_by_fee() -> None:
    with pytest.raises(InvalidAmount, match="too small"):
        swap_exact_in(reserve_in=1000, reserve_out=1000, invariant=1_000_000, amount_in=1)


def test_swap_rejects_zero_output() -> None:
    # 2 in -> 1 effective; ceil(1000 / 1001) == 1 == reserve_out, nothing to pay out.
    with pytest.raises(InvalidAmount, match="amount_out is zero"):
        swap_exact_in(reserve_in=1000, reserve_out=1, invariant=1000, amount_in=2)


def test_huge_swap_never_drains_output_reserve() -> None:
    res = swap_exact_in(reserve_in=1000, reserve_out=1000, invariant=1_000_000, amount_in=10**30)
    assert res.new_reserve_out == 1
    assert res.amount_out == 999


def test_swap_detects_reserves_below_invariant() -> None:
    with pytest.raises(InvariantViolation):
        swap_exact_in(reserve_in=10, reserve_out=10, invariant=10_000, amount_in=2)


def test_custom_fee_is_applied() -> None:
    no_fee = swap_exact_in(
        reserve_in=1000, reserve_out=1000, invariant=1_000_000, amount_in=100, fee_numerator=1, fee_denominator=1
    )
    assert no_fee.effective_in == 100
    assert no_fee.amount_out == 1000 - 910  # ceil(1e6 / 1100) == 910


def test_spot_price_is_exact_fixed_point() -> None:
    assert spot_price(10_000, 10_000) == PRICE_SCALE
    assert spot_price(10_000, 10_500) == 105 * 10**16
    assert spot_price(3, 1) == PRICE_SCALE // 3


def test_spread_bps_matches_reference_configuration() -> None:
    p1 = spot_price(10_000 * UNIT, 10_000 * UNIT)
    p2 = spot_price(10_000 * UNIT, 10_500 * UNIT)
    assert spread_bps(p1, p2) == 500
    assert spread_bps(p2, p1) == 500
    assert spread_bps(p1, p1) == 0


def test_require_amount_domain() -> None:
    assert require_amount(0, positive=False) == 0
    assert require_amount(UINT256_MAX) == UINT256_MAX
    with pytest.raises(InvalidAmount):
        require_amount(0)


def test_optimal_round_trip_none_without_edge() -> None:
    r = 10_000 * UNIT
    assert optimal_round_trip_in(leg1_reserve_in=r, leg1_reserve_out=r, leg2_reserve_in=r, leg2_reserve_out=r) is None
    # 0.5% apart is inside the ~0.6% round-trip fee.
    assert (
        optimal_round_trip_in(
            leg1_reserve_in=r, leg1_reserve_out=r, leg2_reserve_in=r, leg2_reserve_out=r + r // 200
        )
        is None
    )


def test_optimal_round_trip_reference_configuration() -> None:
    x = optimal_round_trip_in(
        leg1_reserve_in=10_000 * UNIT,
        leg1_reserve_out=10_000 * UNIT,
        leg2_reserve_in=10_000 * UNIT,
        leg2_reserve_out=10_500 * UNIT,
    )
    assert x is not None
    assert 100 * UNIT < x < 115 * UNIT


def test_price_ratio_is_exact_and_orientation_free() -> None:
    assert price_ratio(reserve_a_1=10, reserve_b_1=10, reserve_a_2=10, reserve_b_2=21) == (210, 100)
    assert price_ratio(reserve_a_1=10, reserve_b_1=21, reserve_a_2=10, reserve_b_2=10) == (210, 100)
    num, den = price_ratio(reserve_a_1=7, reserve_b_1=3, reserve_a_2=14, reserve_b_2=6)
    assert num == den


def test_ratio_narrowed_sees_moves_below_one_bp() -> None:
    r = 1_000_000 * UNIT
    b2 = 1_050_590 * UNIT
    before = price_ratio(reserve_a_1=r, reserve_b_1=r, reserve_a_2=r, reserve_b_2=b2)
    # Nudge pool 1 up by a single base unit of asset B.
    after = price_ratio(reserve_a_1=r, reserve_b_1=r + 1, reserve_a_2=r, reserve_b_2=b2)
    assert spread_bps(spot_price(r, r), spot_price(r, b2)) == 505
    assert spread_bps(spot_price(r, r + 1), spot_price(r, b2)) == 505
    assert ratio_narrowed(before, after)
    assert not ratio_narrowed(after, before)
    assert not ratio_narrowed(before, before)
