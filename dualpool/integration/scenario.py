"""
Scenario runner: an offline end-to-end exchange + arbitrage session.

Mirrors a live deployment in-process:
1. Mint both tokens to the operator.
2. Seed the two pools and fund the strategy's working capital.
3. Size the trade (grid search, analytic cross-check) and execute one round trip.

Usage:
    python -m dualpool.integration.scenario scenarios/default.yaml [--amount N] [--dry-run]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.arbitrage import ArbitrageStrategy
from ..core.config import EngineConfig, StrategyConfig, config_from_dict, load_yaml
from ..core.engine import ExchangeEngine
from ..core.events import EventLog, event_to_dict
from ..errors import DualPoolError
from ..state.ledger import ValueLedger
from ..state.pools import PoolId


logger = logging.getLogger(__name__)


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return int(value)


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be a mapping")
    return value


@dataclass(frozen=True)
class PoolSeed:
    pool_id: PoolId
    amount_a: int
    amount_b: int


@dataclass(frozen=True)
class SearchParams:
    min_amount: int
    max_amount: int
    steps: int = 10


@dataclass(frozen=True)
class Scenario:
    engine: EngineConfig
    strategy: StrategyConfig
    asset_a: str
    asset_b: str
    pools: Tuple[PoolSeed, ...]
    mint: Dict[str, Dict[str, int]] = field(default_factory=dict)
    funding: Dict[str, int] = field(default_factory=dict)
    search: Optional[SearchParams] = None
    execute: bool = True


def scenario_from_dict(obj: Mapping[str, Any]) -> Scenario:
    engine_cfg, strategy_cfg = config_from_dict(obj)

    tokens = _require_mapping(obj.get("tokens"), name="tokens")
    asset_a = tokens.get("asset_a")
    asset_b = tokens.get("asset_b")
    if not isinstance(asset_a, str) or not isinstance(asset_b, str) or not asset_a or not asset_b:
        raise ValueError("tokens.asset_a and tokens.asset_b must be non-empty strings")

    pools_raw = obj.get("pools")
    if not isinstance(pools_raw, list) or not pools_raw:
        raise ValueError("pools must be a non-empty list")
    pools: List[PoolSeed] = []
    for i, entry in enumerate(pools_raw):
        entry = _require_mapping(entry, name=f"pools[{i}]")
        pools.append(
            PoolSeed(
                pool_id=PoolId.coerce(entry.get("pool")),
                amount_a=_require_int(entry.get("amount_a"), name=f"pools[{i}].amount_a"),
                amount_b=_require_int(entry.get("amount_b"), name=f"pools[{i}].amount_b"),
            )
        )

    mint: Dict[str, Dict[str, int]] = {}
    for holder, per_asset in _require_mapping(obj.get("mint") or {}, name="mint").items():
        per_asset = _require_mapping(per_asset, name=f"mint.{holder}")
        mint[str(holder)] = {str(a): _require_int(v, name=f"mint.{holder}.{a}") for a, v in per_asset.items()}

    funding = {
        str(a): _require_int(v, name=f"funding.{a}")
        for a, v in _require_mapping(obj.get("funding") or {}, name="funding").items()
    }

    search = None
    if obj.get("search") is not None:
        s = _require_mapping(obj.get("search"), name="search")
        search = SearchParams(
            min_amount=_require_int(s.get("min_amount"), name="search.min_amount"),
            max_amount=_require_int(s.get("max_amount"), name="search.max_amount"),
            steps=_require_int(s.get("steps", 10), name="search.steps"),
        )

    execute = obj.get("execute", True)
    if not isinstance(execute, bool):
        raise TypeError("execute must be a bool")

    return Scenario(
        engine=engine_cfg,
        strategy=strategy_cfg,
        asset_a=asset_a,
        asset_b=asset_b,
        pools=tuple(pools),
        mint=mint,
        funding=funding,
        search=search,
        execute=execute,
    )


def load_scenario(path: Path) -> Scenario:
    return scenario_from_dict(load_yaml(path))


def build(scenario: Scenario) -> Tuple[ExchangeEngine, ArbitrageStrategy, EventLog]:
    """Mint, seed both pools and fund the strategy; returns the live objects."""
    ledger = ValueLedger()
    events = EventLog()
    engine = ExchangeEngine(ledger, scenario.engine, events)
    operator = scenario.strategy.operator

    for holder, per_asset in scenario.mint.items():
        for asset, amount in per_asset.items():
            ledger.mint(asset, holder, amount)

    for seed in scenario.pools:
        ledger.approve(scenario.asset_a, operator, engine.address, seed.amount_a)
        ledger.approve(scenario.asset_b, operator, engine.address, seed.amount_b)
        engine.seed_pool(
            seed.pool_id,
            scenario.asset_a,
            scenario.asset_b,
            seed.amount_a,
            seed.amount_b,
            caller=operator,
        )

    strategy = ArbitrageStrategy(engine, scenario.asset_a, scenario.asset_b, scenario.strategy)
    for asset, amount in scenario.funding.items():
        ledger.approve(asset, operator, strategy.address, amount)
        strategy.deposit(asset, amount, caller=operator)

    return engine, strategy, events


def _pool_report(engine: ExchangeEngine) -> List[Dict[str, Any]]:
    out = []
    for pid in PoolId:
        if not engine.is_initialized(pid):
            out.append({"pool": pid.value, "initialized": False})
            continue
        pool = engine.get_pool(pid)
        out.append(
            {
                "pool": pid.value,
                "initialized": True,
                "reserve_a": pool.reserve_a,
                "reserve_b": pool.reserve_b,
                "fees_a": pool.fees_a,
                "fees_b": pool.fees_b,
                "price": engine.price(pid),
            }
        )
    return out


def run(scenario: Scenario, *, amount: Optional[int] = None, dry_run: bool = False) -> Dict[str, Any]:
    """
    Execute a scenario and return a JSON-serializable report.

    `amount` overrides the searched trade size; `dry_run` skips execution.
    """
    engine, strategy, events = build(scenario)
    opp = strategy.check_opportunity()
    report: Dict[str, Any] = {
        "pools_before": _pool_report(engine),
        "opportunity": {"exists": opp.exists, "spread_bps": opp.spread_bps, "profitable": opp.profitable},
        "balances_before": list(strategy.get_balances()),
    }

    size = amount
    if scenario.search is not None:
        best = strategy.find_optimal_amount(
            scenario.search.min_amount, scenario.search.max_amount, scenario.search.steps
        )
        analytic = strategy.closed_form_optimal_amount()
        report["search"] = {
            "amount": best.amount,
            "profit": best.profit,
            "closed_form_amount": analytic.amount,
            "closed_form_profit": analytic.profit,
        }
        if size is None:
            size = best.amount

    report["execution"] = None
    if scenario.execute and not dry_run and size:
        try:
            res = strategy.execute_arbitrage(size, caller=scenario.strategy.operator)
        except DualPoolError as exc:
            logger.warning("arbitrage rejected: %s: %s", type(exc).__name__, exc)
            report["execution"] = {"ok": False, "amount_in": size, "error": f"{type(exc).__name__}: {exc}"}
        else:
            report["execution"] = {
                "ok": True,
                "amount_in": res.amount_in,
                "amount_out": res.leg2_out,
                "profit": res.profit,
                "spread_before_bps": res.spread_before_bps,
                "spread_after_bps": res.spread_after_bps,
            }

    report["pools_after"] = _pool_report(engine)
    report["balances_after"] = list(strategy.get_balances())
    report["events"] = [event_to_dict(e) for e in events.events]
    return report


def setup_logging(level: int = logging.INFO) -> None:
    """Console logging in a compact `time | level | message` layout."""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(console)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run an offline dual-pool arbitrage scenario.")
    parser.add_argument("scenario", type=Path, help="scenario YAML file")
    parser.add_argument("--amount", type=int, default=None, help="trade size (overrides the grid search)")
    parser.add_argument("--dry-run", action="store_true", help="size the trade but do not execute it")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        scenario = load_scenario(args.scenario)
        report = run(scenario, amount=args.amount, dry_run=args.dry_run)
    except (OSError, TypeError, ValueError, DualPoolError) as exc:
        logger.error("scenario failed: %s", exc)
        return 1

    print(json.dumps(report, indent=2, sort_keys=True))
    execution = report.get("execution")
    return 0 if execution is None or execution.get("ok") else 2


if __name__ == "__main__":
    raise SystemExit(main())
