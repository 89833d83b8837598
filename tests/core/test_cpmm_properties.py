"""Property tests for the integer swap kernel."""

from __future__ import annotations

import importlib.util

import pytest

if importlib.util.find_spec("hypothesis") is None:  # pragma: no cover
    pytest.skip("hypothesis not installed", allow_module_level=True)

import hypothesis.strategies as st
from hypothesis import assume, given, settings

from dualpool.core.cpmm import apply_fee, swap_exact_in
from dualpool.errors import InvalidAmount

_reserve = st.integers(min_value=1, max_value=10**24)
_amount = st.integers(min_value=1, max_value=10**24)


@settings(max_examples=300, deadline=None)
@given(reserve_in=_reserve, reserve_out=_reserve, amount_in=_amount)
def test_swap_never_decreases_product(reserve_in: int, reserve_out: int, amount_in: int) -> None:
    k = reserve_in * reserve_out
    try:
        res = swap_exact_in(reserve_in=reserve_in, reserve_out=reserve_out, invariant=k, amount_in=amount_in)
    except InvalidAmount:
        return
    assert res.new_reserve_in * res.new_reserve_out >= k
    assert 0 < res.amount_out < reserve_out
    assert res.new_reserve_out >= 1
    # Never pays more than the exact curve would.
    eff = apply_fee(amount_in)
    assert res.amount_out * (reserve_in + eff) <= reserve_out * eff


@settings(max_examples=200, deadline=None)
@given(reserve_in=_reserve, reserve_out=_reserve, lo=_amount, hi=_amount)
def test_amount_out_is_monotone_in_amount_in(reserve_in: int, reserve_out: int, lo: int, hi: int) -> None:
    assume(lo <= hi)
    k = reserve_in * reserve_out
    try:
        small = swap_exact_in(reserve_in=reserve_in, reserve_out=reserve_out, invariant=k, amount_in=lo)
    except InvalidAmount:
        return
    large = swap_exact_in(reserve_in=reserve_in, reserve_out=reserve_out, invariant=k, amount_in=hi)
    assert large.amount_out >= small.amount_out
