"""
Dual-pool exchange engine (imperative shell over the CPMM arithmetic).

- Owns exactly two pools (`PoolId.POOL_1`, `PoolId.POOL_2`) and the custody
  address that holds their reserves and accrued fees in the value ledger.
- Every mutation (seed, swap) runs inside `atomic()`: the ledger's
  re-entrant lock plus a snapshot of both pools and the ledger that is
  restored if anything raises. Callers compose several mutations into one
  all-or-nothing operation by opening their own `atomic()` scope around them.
- Quotes are computed by the same function that swaps use, so a quote and an
  execution against identical reserves always agree.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..errors import AlreadyInitialized, InvalidAmount, InvalidToken, InvariantViolation, PoolNotInitialized
from ..state.ledger import ValueLedger
from ..state.pools import Address, Amount, AssetId, Pool, PoolId
from .config import EngineConfig
from .cpmm import UINT256_MAX, price_ratio, require_amount, spot_price, spread_bps, swap_exact_in
from .events import Event, EventLog, EventSink, PoolSeeded, SwapExecuted


logger = logging.getLogger(__name__)

PoolRef = Union[PoolId, int]


@dataclass(frozen=True)
class SwapQuote:
    pool_id: PoolId
    token_in: AssetId
    token_out: AssetId
    amount_in: Amount
    amount_in_effective: Amount
    amount_out: Amount
    new_reserve_in: Amount
    new_reserve_out: Amount
    invariant: int


class ExchangeEngine:
    """
    Two independent constant-product pools sharing one custody address.

    Args:
        ledger: Value ledger the engine pulls inputs from and pushes outputs to
        config: Fee / price-scale parameters and the engine's custody address
        events: Sink for `PoolSeeded` / `SwapExecuted` (defaults to an `EventLog`)
    """

    def __init__(
        self,
        ledger: ValueLedger,
        config: EngineConfig = EngineConfig(),
        events: Optional[EventSink] = None,
    ):
        self._ledger = ledger
        self._config = config
        self._events: EventSink = events if events is not None else EventLog()
        self._pools: Dict[PoolId, Pool] = {pid: Pool(pool_id=pid) for pid in PoolId}
        # Shared with the ledger so direct ledger writes serialize with atomic scopes.
        self._lock = ledger.lock
        self._depth = 0
        self._pending: List[Event] = []

    @property
    def ledger(self) -> ValueLedger:
        return self._ledger

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def address(self) -> Address:
        return self._config.address

    @property
    def events(self) -> EventSink:
        return self._events

    # ------------------------------------------------------------------
    # Transactional scope
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator["ExchangeEngine"]:
        """
        All-or-nothing scope over both pools and the ledger.

        Nested scopes join the outermost one: only the outermost scope takes
        the snapshot, restores it on failure, and flushes buffered events on
        success.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                pools_snap = {pid: pool.copy() for pid, pool in self._pools.items()}
                ledger_snap = self._ledger.snapshot()
                self._pending = []
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._pools = pools_snap
                    self._ledger.restore(ledger_snap)
                    dropped = len(self._pending)
                    self._pending = []
                    logger.warning("atomic scope rolled back (%d buffered events dropped)", dropped)
                raise
            else:
                self._depth -= 1
                if outermost:
                    pending, self._pending = self._pending, []
                    for event in pending:
                        self._events.emit(event)

    @property
    def lock(self) -> threading.RLock:
        """Engine-wide lock (the ledger's); hold it to read several values from one consistent state."""
        return self._lock

    def emit(self, event: Event) -> None:
        """Queue `event` for the enclosing atomic scope (delivered immediately outside one)."""
        with self._lock:
            if self._depth == 0:
                self._events.emit(event)
            else:
                self._pending.append(event)

    # ------------------------------------------------------------------
    # Pool access
    # ------------------------------------------------------------------

    def _pool(self, pool_id: PoolRef) -> Pool:
        return self._pools[PoolId.coerce(pool_id)]

    def _initialized_pool(self, pool_id: PoolRef) -> Pool:
        pool = self._pool(pool_id)
        if not pool.initialized:
            raise PoolNotInitialized(f"pool {pool.pool_id.value} is not initialized")
        return pool

    def get_pool(self, pool_id: PoolRef) -> Pool:
        """Return a copy of the pool state (mutating it has no effect on the engine)."""
        with self._lock:
            return self._pool(pool_id).copy()

    def is_initialized(self, pool_id: PoolRef) -> bool:
        with self._lock:
            return self._pool(pool_id).initialized

    def get_reserves(self, pool_id: PoolRef) -> Tuple[Amount, Amount]:
        with self._lock:
            pool = self._initialized_pool(pool_id)
            return pool.reserve_a, pool.reserve_b

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def seed_pool(
        self,
        pool_id: PoolRef,
        asset_a: AssetId,
        asset_b: AssetId,
        amount_a: Amount,
        amount_b: Amount,
        *,
        caller: Address,
    ) -> Pool:
        """
        Initialize a pool with its one and only liquidity deposit.

        Pulls `amount_a` / `amount_b` from `caller` (which must have approved
        the engine's address) into engine custody and fixes the invariant.

        Raises:
            AlreadyInitialized: If the pool was seeded before
            InvalidAmount: If either amount is zero / out of domain
            InvalidToken: If both assets are the same, or the pair differs from
                the other pool's (already seeded) pair
            InsufficientAllowance, InsufficientBalance: From the ledger
        """
        with self.atomic():
            pool = self._pool(pool_id)
            if pool.initialized:
                raise AlreadyInitialized(f"pool {pool.pool_id.value} is already initialized")
            require_amount(amount_a, name="amount_a")
            require_amount(amount_b, name="amount_b")
            if asset_a == asset_b:
                raise InvalidToken(f"pool assets must differ: {asset_a}")
            sibling = self._pools[pool.pool_id.other()]
            if sibling.initialized and (sibling.asset_a, sibling.asset_b) != (asset_a, asset_b):
                # Prices are only comparable when both pools quote the same pair the same way round.
                raise InvalidToken(
                    f"pool {pool.pool_id.value} must trade ({sibling.asset_a}, {sibling.asset_b}) "
                    f"like pool {sibling.pool_id.value}, got ({asset_a}, {asset_b})"
                )
            invariant = amount_a * amount_b
            if invariant > UINT256_MAX:
                raise InvalidAmount(f"reserve product exceeds uint256: {amount_a} * {amount_b}")

            self._ledger.transfer_from(asset_a, self.address, caller, self.address, amount_a)
            self._ledger.transfer_from(asset_b, self.address, caller, self.address, amount_b)

            seeded = Pool(
                pool_id=pool.pool_id,
                asset_a=asset_a,
                asset_b=asset_b,
                reserve_a=amount_a,
                reserve_b=amount_b,
                invariant=invariant,
                initialized=True,
            )
            self._pools[pool.pool_id] = seeded
            self.emit(
                PoolSeeded(
                    pool_id=seeded.pool_id,
                    provider=caller,
                    asset_a=asset_a,
                    asset_b=asset_b,
                    amount_a=amount_a,
                    amount_b=amount_b,
                    invariant=invariant,
                )
            )
            logger.info("seeded %r by %s", seeded, caller)
            return seeded.copy()

    # ------------------------------------------------------------------
    # Quotes / swaps
    # ------------------------------------------------------------------

    def _quote(self, pool: Pool, token_in: AssetId, amount_in: Amount) -> SwapQuote:
        reserve_in, reserve_out = pool.reserves_for(token_in)
        require_amount(amount_in, name="amount_in")
        res = swap_exact_in(
            reserve_in=reserve_in,
            reserve_out=reserve_out,
            invariant=pool.invariant,
            amount_in=amount_in,
            fee_numerator=self._config.fee_numerator,
            fee_denominator=self._config.fee_denominator,
        )
        return SwapQuote(
            pool_id=pool.pool_id,
            token_in=token_in,
            token_out=pool.other(token_in),
            amount_in=amount_in,
            amount_in_effective=res.effective_in,
            amount_out=res.amount_out,
            new_reserve_in=res.new_reserve_in,
            new_reserve_out=res.new_reserve_out,
            invariant=res.invariant,
        )

    def quote(self, pool_id: PoolRef, token_in: AssetId, amount_in: Amount) -> SwapQuote:
        """
        Side-effect-free exact-in quote.

        Raises:
            PoolNotInitialized, InvalidToken, InvalidAmount
        """
        with self._lock:
            q = self._quote(self._initialized_pool(pool_id), token_in, amount_in)
        logger.debug("quote pool=%d %s %s -> %s", q.pool_id.value, amount_in, token_in, q.amount_out)
        return q

    def get_amount_out(self, pool_id: PoolRef, token_in: AssetId, amount_in: Amount) -> Amount:
        return self.quote(pool_id, token_in, amount_in).amount_out

    def swap(self, pool_id: PoolRef, token_in: AssetId, amount_in: Amount, *, caller: Address) -> Amount:
        """
        Execute an exact-in swap for `caller`.

        Commits the quoted reserves, pulls `amount_in` of `token_in` from the
        caller (engine allowance required) and pays `amount_out` of the other
        asset back to the caller.
        """
        with self.atomic():
            pool = self._initialized_pool(pool_id)
            q = self._quote(pool, token_in, amount_in)

            self._ledger.transfer_from(q.token_in, self.address, caller, self.address, q.amount_in)
            pool.set_reserves_for(q.token_in, q.new_reserve_in, q.new_reserve_out)
            pool.add_fee(q.token_in, q.amount_in - q.amount_in_effective)
            if not pool.verify_invariant():
                raise InvariantViolation(f"post-swap product below invariant: {pool!r}")
            self._ledger.transfer(q.token_out, self.address, caller, q.amount_out)

            self.emit(
                SwapExecuted(
                    pool_id=pool.pool_id,
                    trader=caller,
                    token_in=q.token_in,
                    token_out=q.token_out,
                    amount_in=q.amount_in,
                    amount_out=q.amount_out,
                    fee=q.amount_in - q.amount_in_effective,
                    reserve_a_after=pool.reserve_a,
                    reserve_b_after=pool.reserve_b,
                )
            )
            logger.info(
                "swap pool=%d trader=%s %s %s -> %s %s",
                pool.pool_id.value,
                caller,
                q.amount_in,
                q.token_in,
                q.amount_out,
                q.token_out,
            )
            return q.amount_out

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    def price(self, pool_id: PoolRef) -> int:
        """Asset B per unit of asset A, scaled by `config.price_scale`."""
        with self._lock:
            pool = self._initialized_pool(pool_id)
            return spot_price(pool.reserve_a, pool.reserve_b, self._config.price_scale)

    def spread(self, pool_id_1: PoolRef = PoolId.POOL_1, pool_id_2: PoolRef = PoolId.POOL_2) -> int:
        """Relative price difference between two pools, in basis points."""
        with self._lock:
            return spread_bps(self.price(pool_id_1), self.price(pool_id_2))

    def price_ratio(self, pool_id_1: PoolRef = PoolId.POOL_1, pool_id_2: PoolRef = PoolId.POOL_2) -> Tuple[int, int]:
        """Exact higher/lower price ratio as a fraction; `spread` is its rounded bps view."""
        with self._lock:
            pool_1 = self._initialized_pool(pool_id_1)
            pool_2 = self._initialized_pool(pool_id_2)
            return price_ratio(
                reserve_a_1=pool_1.reserve_a,
                reserve_b_1=pool_1.reserve_b,
                reserve_a_2=pool_2.reserve_a,
                reserve_b_2=pool_2.reserve_b,
            )
