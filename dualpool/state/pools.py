"""
Pool state for the two fixed liquidity pools.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, unique
from typing import Tuple, Union

from ..errors import InvalidPool, InvalidToken


# Type aliases
AssetId = str  # Opaque, equality-comparable asset identifier
Address = str  # Ledger holder identity
Amount = int  # Non-negative integer (arbitrary precision, bounded to uint256 at the core boundary)


@unique
class PoolId(Enum):
    """The exchange owns exactly two pools."""
    POOL_1 = 1
    POOL_2 = 2

    @classmethod
    def coerce(cls, value: Union["PoolId", int]) -> "PoolId":
        """Accept a `PoolId` or its ordinal (1 / 2); anything else is rejected."""
        if isinstance(value, PoolId):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidPool(f"unknown pool: {value!r}")

    def other(self) -> "PoolId":
        if self is PoolId.POOL_1:
            return PoolId.POOL_2
        return PoolId.POOL_1


@dataclass
class Pool:
    """
    State of one constant-product pool.

    Attributes:
        pool_id: Which of the two pools this is
        asset_a: First asset identifier (price is quoted as asset_b per asset_a)
        asset_b: Second asset identifier
        reserve_a: Reserve amount for asset_a
        reserve_b: Reserve amount for asset_b
        invariant: reserve_a * reserve_b at seed time (fixed afterwards)
        fees_a: Swap fees paid in asset_a, held in custody outside the reserves
        fees_b: Swap fees paid in asset_b, held in custody outside the reserves
        initialized: True once the pool has been seeded
    """
    pool_id: PoolId
    asset_a: AssetId = ""
    asset_b: AssetId = ""
    reserve_a: Amount = 0
    reserve_b: Amount = 0
    invariant: int = 0
    initialized: bool = False
    fees_a: Amount = 0
    fees_b: Amount = 0

    def __post_init__(self) -> None:
        """Validate pool state invariants."""
        if self.reserve_a < 0 or self.reserve_b < 0:
            raise ValueError(
                f"Reserves must be non-negative: ({self.reserve_a}, {self.reserve_b})"
            )
        if self.fees_a < 0 or self.fees_b < 0:
            raise ValueError(f"Fees must be non-negative: ({self.fees_a}, {self.fees_b})")
        if self.initialized:
            if self.reserve_a == 0 or self.reserve_b == 0:
                raise ValueError("Initialized pool must hold both reserves")
            if self.asset_a == self.asset_b:
                raise ValueError(f"Pool assets must differ: {self.asset_a}")
        elif self.reserve_a or self.reserve_b or self.invariant or self.fees_a or self.fees_b:
            raise ValueError("Uninitialized pool must be empty")

    def has_asset(self, asset: AssetId) -> bool:
        return asset == self.asset_a or asset == self.asset_b

    def other(self, asset: AssetId) -> AssetId:
        """Return the counter-asset of `asset` in this pool."""
        if asset == self.asset_a:
            return self.asset_b
        if asset == self.asset_b:
            return self.asset_a
        raise InvalidToken(f"Asset {asset} not in pool {self.pool_id.value}")

    def reserves_for(self, token_in: AssetId) -> Tuple[Amount, Amount]:
        """
        Get (reserve_in, reserve_out) for a swap paying `token_in`.

        Raises:
            InvalidToken: If token_in is not in this pool
        """
        if token_in == self.asset_a:
            return self.reserve_a, self.reserve_b
        if token_in == self.asset_b:
            return self.reserve_b, self.reserve_a
        raise InvalidToken(f"Asset {token_in} not in pool {self.pool_id.value}")

    def set_reserves_for(self, token_in: AssetId, reserve_in: Amount, reserve_out: Amount) -> None:
        if token_in == self.asset_a:
            self.reserve_a, self.reserve_b = reserve_in, reserve_out
        elif token_in == self.asset_b:
            self.reserve_b, self.reserve_a = reserve_in, reserve_out
        else:
            raise InvalidToken(f"Asset {token_in} not in pool {self.pool_id.value}")

    def add_fee(self, token_in: AssetId, fee: Amount) -> None:
        """Accrue the part of an input the fee kept out of the reserves."""
        if fee < 0:
            raise ValueError(f"fee must be non-negative: {fee}")
        if token_in == self.asset_a:
            self.fees_a += fee
        elif token_in == self.asset_b:
            self.fees_b += fee
        else:
            raise InvalidToken(f"Asset {token_in} not in pool {self.pool_id.value}")

    def custody_for(self, asset: AssetId) -> Amount:
        """Reserve plus accrued fees of `asset`: what this pool owns in engine custody."""
        if asset == self.asset_a:
            return self.reserve_a + self.fees_a
        if asset == self.asset_b:
            return self.reserve_b + self.fees_b
        raise InvalidToken(f"Asset {asset} not in pool {self.pool_id.value}")

    def get_constant_product(self) -> int:
        """Compute reserve_a * reserve_b for the current reserves."""
        return self.reserve_a * self.reserve_b

    def verify_invariant(self) -> bool:
        """
        Verify CPMM invariant: reserve_a * reserve_b >= invariant.

        Trivially true for an uninitialized pool.
        """
        return self.get_constant_product() >= self.invariant

    def copy(self) -> "Pool":
        return replace(self)

    def __repr__(self) -> str:
        if not self.initialized:
            return f"Pool({self.pool_id.name}, uninitialized)"
        return (
            f"Pool({self.pool_id.name}, assets=({self.asset_a}, {self.asset_b}), "
            f"reserves=({self.reserve_a}, {self.reserve_b}), k={self.invariant})"
        )
