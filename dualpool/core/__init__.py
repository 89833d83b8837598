"""
Core exchange and arbitrage algorithms
"""

from .cpmm import (
    apply_fee,
    optimal_round_trip_in,
    spot_price,
    spread_bps,
    swap_exact_in,
)
from .config import EngineConfig, StrategyConfig, load_config
from .engine import ExchangeEngine, SwapQuote
from .arbitrage import (
    ArbitrageResult,
    ArbitrageStrategy,
    Direction,
    OptimalAmount,
    Opportunity,
    Simulation,
)
from .events import ArbitrageExecuted, EventLog, PoolSeeded, SwapExecuted

__all__ = [
    "apply_fee",
    "optimal_round_trip_in",
    "spot_price",
    "spread_bps",
    "swap_exact_in",
    "EngineConfig",
    "StrategyConfig",
    "load_config",
    "ExchangeEngine",
    "SwapQuote",
    "ArbitrageResult",
    "ArbitrageStrategy",
    "Direction",
    "OptimalAmount",
    "Opportunity",
    "Simulation",
    "ArbitrageExecuted",
    "EventLog",
    "PoolSeeded",
    "SwapExecuted",
]
