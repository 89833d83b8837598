"""
Runtime configuration for the exchange engine and the arbitrage strategy.

Both configs are frozen dataclasses validated on construction. `load_config`
builds them from a YAML document with `engine:` and `strategy:` mappings;
other top-level keys (scenario sections) are ignored here.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Tuple, Type, TypeVar, Union

import yaml

from .cpmm import BPS_DENOM, FEE_DENOMINATOR, FEE_NUMERATOR, PRICE_SCALE, validate_fee


# Round-trip threshold tuned against a 0.3% per-leg fee; empirical, not a breakeven law.
DEFAULT_MIN_SPREAD_BPS = 30
MAX_SEARCH_STEPS = 100


def _require_int(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def _require_address(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")


@dataclass(frozen=True)
class EngineConfig:
    """Fee and pricing parameters shared by both pools."""

    fee_numerator: int = FEE_NUMERATOR
    fee_denominator: int = FEE_DENOMINATOR
    # Fixed-point scale of `price()`; must be identical across both pools.
    price_scale: int = PRICE_SCALE
    # Ledger address holding the pools' custody.
    address: str = "exchange"

    def __post_init__(self) -> None:
        validate_fee(self.fee_numerator, self.fee_denominator)
        _require_int("price_scale", self.price_scale)
        if self.price_scale <= 0:
            raise ValueError(f"price_scale must be positive: {self.price_scale}")
        _require_address("address", self.address)


@dataclass(frozen=True)
class StrategyConfig:
    """Access control and decision thresholds for the arbitrage strategy."""

    # The single principal allowed to trade and move working capital.
    operator: str
    # Ledger address holding the strategy's working capital.
    address: str = "arbitrage-bot"
    min_spread_bps: int = DEFAULT_MIN_SPREAD_BPS
    max_search_steps: int = MAX_SEARCH_STEPS

    def __post_init__(self) -> None:
        _require_address("operator", self.operator)
        _require_address("address", self.address)
        if self.operator == self.address:
            raise ValueError("operator and strategy address must differ")
        _require_int("min_spread_bps", self.min_spread_bps)
        if not (0 <= self.min_spread_bps <= BPS_DENOM):
            raise ValueError(f"min_spread_bps must be in [0, {BPS_DENOM}]: {self.min_spread_bps}")
        _require_int("max_search_steps", self.max_search_steps)
        if not (1 <= self.max_search_steps <= MAX_SEARCH_STEPS):
            raise ValueError(f"max_search_steps must be in [1, {MAX_SEARCH_STEPS}]: {self.max_search_steps}")


_C = TypeVar("_C", EngineConfig, StrategyConfig)


def _from_mapping(cls: Type[_C], obj: Any, *, section: str) -> _C:
    if obj is None:
        obj = {}
    if not isinstance(obj, Mapping):
        raise TypeError(f"{section} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(obj) - known)
    if unknown:
        raise ValueError(f"unknown {section} keys: {', '.join(map(str, unknown))}")
    return cls(**dict(obj))


def config_from_dict(obj: Mapping[str, Any]) -> Tuple[EngineConfig, StrategyConfig]:
    if not isinstance(obj, Mapping):
        raise TypeError("config document must be a mapping")
    engine = _from_mapping(EngineConfig, obj.get("engine"), section="engine")
    if obj.get("strategy") is None:
        raise ValueError("strategy section (with operator) is required")
    strategy = _from_mapping(StrategyConfig, obj.get("strategy"), section="strategy")
    return engine, strategy


def load_yaml(path: Union[str, Path]) -> Mapping[str, Any]:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise TypeError("config YAML must be a mapping")
    return obj


def load_config(path: Union[str, Path]) -> Tuple[EngineConfig, StrategyConfig]:
    """Load (EngineConfig, StrategyConfig) from a YAML file."""
    return config_from_dict(load_yaml(path))
