"""
Two-pool arbitrage strategy.

The strategy trades one asset pair across the engine's two pools. Prices are
quoted as asset B per unit of asset A, so asset B is the numeraire: every round
trip spends B on the pool where A is cheaper, sells the A it received on the
other pool, and measures profit in B.

Decision flow:
- `check_opportunity()` compares the spread with `min_spread_bps`.
- `simulate(amount)` quotes both legs without touching state.
- `execute_arbitrage(amount)` runs both legs inside one engine atomic scope;
  any failure (including an unprofitable second leg) rolls both legs back.
- `find_optimal_amount(lo, hi, steps)` grid-searches the concave profit curve
  with `simulate`.

Complexity:
- Time: O(1) per simulate/execute, O(steps) quotes per grid search.
- Space: O(steps) for the recorded grid samples.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import (
    ArbitrageUnprofitable,
    InvalidAmount,
    InvalidToken,
    InvariantViolation,
    NoProfitMade,
    NotAuthorized,
    SpreadTooLow,
)
from ..state.pools import Address, Amount, AssetId, PoolId
from .config import StrategyConfig
from .cpmm import optimal_round_trip_in, ratio_narrowed, require_amount
from .engine import ExchangeEngine
from .events import ArbitrageExecuted


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Direction:
    """Leg 1 buys asset A with the numeraire on `buy_pool`; leg 2 sells it on `sell_pool`."""

    buy_pool: PoolId
    sell_pool: PoolId


@dataclass(frozen=True)
class Opportunity:
    exists: bool
    spread_bps: int
    profitable: bool


@dataclass(frozen=True)
class Simulation:
    profitable: bool
    estimated_profit: Amount
    direction: Optional[Direction] = None
    leg1_out: Amount = 0
    leg2_out: Amount = 0


@dataclass(frozen=True)
class ArbitrageResult:
    profit_a: Amount
    profit_b: Amount
    spread_before_bps: int
    spread_after_bps: int
    amount_in: Amount
    leg1_out: Amount
    leg2_out: Amount
    direction: Direction

    @property
    def profit(self) -> Amount:
        """Realized profit in the numeraire."""
        return self.profit_b


@dataclass(frozen=True)
class OptimalAmount:
    amount: Amount
    profit: Amount
    samples: Tuple[Tuple[Amount, Amount], ...] = ()


class ArbitrageStrategy:
    """
    Operator-gated arbitrageur over an `ExchangeEngine`'s two pools.

    Working capital is held in the engine's ledger under `config.address`.
    Nothing else is stored: every decision is recomputed from the engine's
    current prices.
    """

    def __init__(
        self,
        engine: ExchangeEngine,
        asset_a: AssetId,
        asset_b: AssetId,
        config: StrategyConfig,
    ):
        if asset_a == asset_b:
            raise InvalidToken(f"strategy assets must differ: {asset_a}")
        self._engine = engine
        self._asset_a = asset_a
        self._asset_b = asset_b
        self._config = config

    @property
    def engine(self) -> ExchangeEngine:
        return self._engine

    @property
    def config(self) -> StrategyConfig:
        return self._config

    @property
    def address(self) -> Address:
        return self._config.address

    @property
    def operator(self) -> Address:
        return self._config.operator

    @property
    def assets(self) -> Tuple[AssetId, AssetId]:
        return self._asset_a, self._asset_b

    @property
    def numeraire(self) -> AssetId:
        return self._asset_b

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_operator(self, caller: Address) -> None:
        if caller != self._config.operator:
            raise NotAuthorized(f"{caller!r} is not the operator")

    def _require_asset(self, asset: AssetId) -> None:
        if asset != self._asset_a and asset != self._asset_b:
            raise InvalidToken(f"asset {asset} is not traded by this strategy")

    def _require_pair(self) -> None:
        for pid in PoolId:
            pool = self._engine.get_pool(pid)
            if pool.initialized and (pool.asset_a, pool.asset_b) != (self._asset_a, self._asset_b):
                raise InvalidToken(
                    f"pool {pid.value} trades ({pool.asset_a}, {pool.asset_b}), "
                    f"strategy trades ({self._asset_a}, {self._asset_b})"
                )

    def _direction(self) -> Direction:
        if self._engine.price(PoolId.POOL_1) < self._engine.price(PoolId.POOL_2):
            return Direction(buy_pool=PoolId.POOL_1, sell_pool=PoolId.POOL_2)
        return Direction(buy_pool=PoolId.POOL_2, sell_pool=PoolId.POOL_1)

    # ------------------------------------------------------------------
    # Read-only decisions
    # ------------------------------------------------------------------

    def check_opportunity(self) -> Opportunity:
        with self._engine.lock:
            self._require_pair()
            spread = self._engine.spread()
        return Opportunity(
            exists=spread > 0,
            spread_bps=spread,
            profitable=spread > self._config.min_spread_bps,
        )

    def simulate(self, amount_in: Amount) -> Simulation:
        """
        Quote the round trip for `amount_in` of the numeraire without mutating anything.

        An input the pools cannot price (too small to survive the fee and
        rounding on either leg) is reported as not profitable rather than
        raised, like any other "nothing to do" outcome.
        """
        require_amount(amount_in, name="amount_in")
        with self._engine.lock:
            self._require_pair()
            if self._engine.spread() <= self._config.min_spread_bps:
                return Simulation(profitable=False, estimated_profit=0)
            direction = self._direction()
            try:
                leg1_out = self._engine.get_amount_out(direction.buy_pool, self.numeraire, amount_in)
                leg2_out = self._engine.get_amount_out(direction.sell_pool, self._asset_a, leg1_out)
            except InvalidAmount:
                return Simulation(profitable=False, estimated_profit=0, direction=direction)

        profitable = leg2_out > amount_in
        sim = Simulation(
            profitable=profitable,
            estimated_profit=leg2_out - amount_in if profitable else 0,
            direction=direction,
            leg1_out=leg1_out,
            leg2_out=leg2_out,
        )
        logger.debug("simulate %s -> %r", amount_in, sim)
        return sim

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_arbitrage(self, amount_in: Amount, *, caller: Address) -> ArbitrageResult:
        """
        Run the two-leg round trip for `amount_in` of the numeraire.

        Both legs commit together or not at all. Leg 2 sells exactly what leg 1
        bought.

        Raises:
            NotAuthorized: If caller is not the operator (before any transfer)
            SpreadTooLow: If the spread does not exceed `min_spread_bps`
            ArbitrageUnprofitable: If leg 2 returns <= amount_in
            NoProfitMade: If neither strategy balance increased
            InvariantViolation: If the trade failed to narrow the exact price gap
        """
        self._require_operator(caller)
        require_amount(amount_in, name="amount_in")
        engine = self._engine
        ledger = engine.ledger

        with engine.atomic():
            self._require_pair()
            spread_before = engine.spread()
            ratio_before = engine.price_ratio()
            if spread_before <= self._config.min_spread_bps:
                raise SpreadTooLow(spread_before, self._config.min_spread_bps)

            direction = self._direction()
            before_a, before_b = self.get_balances()

            ledger.approve(self.numeraire, self.address, engine.address, amount_in)
            leg1_out = engine.swap(direction.buy_pool, self.numeraire, amount_in, caller=self.address)
            ledger.approve(self._asset_a, self.address, engine.address, leg1_out)
            leg2_out = engine.swap(direction.sell_pool, self._asset_a, leg1_out, caller=self.address)
            if leg2_out <= amount_in:
                raise ArbitrageUnprofitable(amount_in, leg2_out)

            after_a, after_b = self.get_balances()
            profit_a = max(after_a - before_a, 0)
            profit_b = max(after_b - before_b, 0)
            if profit_a == 0 and profit_b == 0:
                raise NoProfitMade("neither strategy balance increased")

            # bps are rounded down and may not move on a small trade; compare the exact ratio.
            if not ratio_narrowed(ratio_before, engine.price_ratio()):
                raise InvariantViolation(f"price gap did not narrow (spread was {spread_before}bp)")
            spread_after = engine.spread()

            engine.emit(
                ArbitrageExecuted(
                    operator=caller,
                    buy_pool=direction.buy_pool,
                    sell_pool=direction.sell_pool,
                    amount_in=amount_in,
                    amount_out=leg2_out,
                    profit_a=profit_a,
                    profit_b=profit_b,
                    spread_before_bps=spread_before,
                    spread_after_bps=spread_after,
                )
            )

        logger.info(
            "arbitrage pool %d -> pool %d: in=%s out=%s profit=%s spread %sbp -> %sbp",
            direction.buy_pool.value,
            direction.sell_pool.value,
            amount_in,
            leg2_out,
            profit_b,
            spread_before,
            spread_after,
        )
        return ArbitrageResult(
            profit_a=profit_a,
            profit_b=profit_b,
            spread_before_bps=spread_before,
            spread_after_bps=spread_after,
            amount_in=amount_in,
            leg1_out=leg1_out,
            leg2_out=leg2_out,
            direction=direction,
        )

    # ------------------------------------------------------------------
    # Sizing
    # ------------------------------------------------------------------

    def find_optimal_amount(self, min_amount: Amount, max_amount: Amount, steps: int) -> OptimalAmount:
        """
        Uniform grid search over [min_amount, max_amount] with `steps + 1` samples.

        Profit is concave in the trade size (spread gain first, slippage later),
        so the best sample approximates the optimum to within one grid step.
        Ties keep the smallest amount. Returns (0, 0) if no sample is profitable.
        """
        if not isinstance(steps, int) or isinstance(steps, bool):
            raise InvalidAmount("steps must be an int")
        if not (1 <= steps <= self._config.max_search_steps):
            raise InvalidAmount(f"steps must be in [1, {self._config.max_search_steps}]: {steps}")
        require_amount(min_amount, name="min_amount", positive=False)
        require_amount(max_amount, name="max_amount")
        if max_amount <= min_amount:
            raise InvalidAmount(f"max_amount ({max_amount}) must exceed min_amount ({min_amount})")

        best_amount, best_profit = 0, 0
        samples = []
        with self._engine.lock:
            for i in range(steps + 1):
                amount = min_amount + (max_amount - min_amount) * i // steps
                profit = self.simulate(amount).estimated_profit if amount > 0 else 0
                samples.append((amount, profit))
                if profit > best_profit:
                    best_amount, best_profit = amount, profit

        logger.debug("grid search [%s, %s]/%d -> %s (profit %s)", min_amount, max_amount, steps, best_amount, best_profit)
        return OptimalAmount(amount=best_amount, profit=best_profit, samples=tuple(samples))

    def closed_form_optimal_amount(self) -> OptimalAmount:
        """
        Analytic optimum from the current reserves (see `cpmm.optimal_round_trip_in`).

        The grid search stays authoritative; this is a cross-check and is
        priced through `simulate`, so it honours the spread threshold too.
        """
        with self._engine.lock:
            self._require_pair()
            direction = self._direction()
            buy = self._engine.get_pool(direction.buy_pool)
            sell = self._engine.get_pool(direction.sell_pool)
            b_in, a_out = buy.reserves_for(self.numeraire)
            a_in, b_out = sell.reserves_for(self._asset_a)
            amount = optimal_round_trip_in(
                leg1_reserve_in=b_in,
                leg1_reserve_out=a_out,
                leg2_reserve_in=a_in,
                leg2_reserve_out=b_out,
                fee_numerator=self._engine.config.fee_numerator,
                fee_denominator=self._engine.config.fee_denominator,
            )
            if amount is None:
                return OptimalAmount(amount=0, profit=0)
            sim = self.simulate(amount)
        if not sim.profitable:
            return OptimalAmount(amount=0, profit=0)
        return OptimalAmount(amount=amount, profit=sim.estimated_profit, samples=((amount, sim.estimated_profit),))

    # ------------------------------------------------------------------
    # Working capital
    # ------------------------------------------------------------------

    def deposit(self, asset: AssetId, amount: Amount, *, caller: Address) -> None:
        """Pull `amount` of `asset` from the operator (who must approve the strategy address)."""
        self._require_operator(caller)
        self._require_asset(asset)
        require_amount(amount)
        with self._engine.atomic():
            self._engine.ledger.transfer_from(asset, self.address, caller, self.address, amount)
        logger.info("deposit %s %s from %s", amount, asset, caller)

    def withdraw(self, asset: AssetId, amount: Amount, *, caller: Address, to: Optional[Address] = None) -> None:
        """Send `amount` of `asset` to `to` (the operator by default)."""
        self._require_operator(caller)
        self._require_asset(asset)
        require_amount(amount)
        recipient = caller if to is None else to
        with self._engine.atomic():
            self._engine.ledger.transfer(asset, self.address, recipient, amount)
        logger.info("withdraw %s %s to %s", amount, asset, recipient)

    def get_balances(self) -> Tuple[Amount, Amount]:
        ledger = self._engine.ledger
        return ledger.balance_of(self._asset_a, self.address), ledger.balance_of(self._asset_b, self.address)
