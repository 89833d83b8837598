from __future__ import annotations

import pytest

from dualpool.errors import InvalidPool, InvalidToken
from dualpool.state.pools import Pool, PoolId


def _seeded(reserve_a: int = 1000, reserve_b: int = 2000) -> Pool:
    return Pool(
        pool_id=PoolId.POOL_1,
        asset_a="TKA",
        asset_b="TKB",
        reserve_a=reserve_a,
        reserve_b=reserve_b,
        invariant=reserve_a * reserve_b,
        initialized=True,
    )


def test_pool_id_coerce_accepts_ordinals() -> None:
    assert PoolId.coerce(1) is PoolId.POOL_1
    assert PoolId.coerce(2) is PoolId.POOL_2
    assert PoolId.coerce(PoolId.POOL_2) is PoolId.POOL_2


@pytest.mark.parametrize("bad", [0, 3, -1, True, "1", None, 1.0])
def test_pool_id_coerce_rejects_everything_else(bad: object) -> None:
    with pytest.raises(InvalidPool):
        PoolId.coerce(bad)  # type: ignore[arg-type]


def test_pool_id_other_is_an_involution() -> None:
    assert PoolId.POOL_1.other() is PoolId.POOL_2
    assert PoolId.POOL_2.other() is PoolId.POOL_1
    for pid in PoolId:
        assert pid.other().other() is pid


def test_reserves_for_orients_by_input_token() -> None:
    pool = _seeded()
    assert pool.reserves_for("TKA") == (1000, 2000)
    assert pool.reserves_for("TKB") == (2000, 1000)
    assert pool.other("TKA") == "TKB"
    assert pool.other("TKB") == "TKA"
    with pytest.raises(InvalidToken):
        pool.reserves_for("TKC")
    with pytest.raises(InvalidToken):
        pool.other("TKC")


def test_set_reserves_for_writes_the_right_sides() -> None:
    pool = _seeded()
    pool.set_reserves_for("TKB", 2100, 953)
    assert (pool.reserve_a, pool.reserve_b) == (953, 2100)
    with pytest.raises(InvalidToken):
        pool.set_reserves_for("TKC", 1, 1)


def test_verify_invariant_and_copy_isolation() -> None:
    pool = _seeded()
    assert pool.verify_invariant()
    clone = pool.copy()
    clone.reserve_a -= 1
    assert not clone.verify_invariant()
    assert pool.reserve_a == 1000


def test_uninitialized_pool_is_empty() -> None:
    pool = Pool(pool_id=PoolId.POOL_2)
    assert not pool.initialized
    assert pool.verify_invariant()
    assert "uninitialized" in repr(pool)
    with pytest.raises(ValueError, match="empty"):
        Pool(pool_id=PoolId.POOL_2, reserve_a=5)


def test_post_init_rejects_bad_initialized_state() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        _seeded(reserve_a=-1)
    with pytest.raises(ValueError, match="both reserves"):
        Pool(pool_id=PoolId.POOL_1, asset_a="TKA", asset_b="TKB", reserve_a=0, reserve_b=1, initialized=True)
    with pytest.raises(ValueError, match="differ"):
        Pool(pool_id=PoolId.POOL_1, asset_a="TKA", asset_b="TKA", reserve_a=1, reserve_b=1, invariant=1, initialized=True)


def test_fees_accrue_per_asset_and_count_toward_custody() -> None:
    pool = _seeded()
    pool.add_fee("TKA", 3)
    pool.add_fee("TKB", 0)
    assert (pool.fees_a, pool.fees_b) == (3, 0)
    assert pool.custody_for("TKA") == 1003
    assert pool.custody_for("TKB") == 2000
    with pytest.raises(InvalidToken):
        pool.add_fee("TKC", 1)
    with pytest.raises(ValueError):
        pool.add_fee("TKA", -1)
    with pytest.raises(ValueError, match="empty"):
        Pool(pool_id=PoolId.POOL_2, fees_b=1)
