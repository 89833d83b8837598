"""Structured events emitted by the exchange engine and the arbitrage strategy.

All events are frozen dataclasses. The engine buffers events raised inside an
atomic scope and only hands them to the sink once the outermost scope commits,
so a rolled-back swap or round trip leaves no trace in the event stream.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Protocol, Union

from ..state.pools import Address, Amount, AssetId, PoolId


@dataclass(frozen=True)
class PoolSeeded:
    pool_id: PoolId
    provider: Address
    asset_a: AssetId
    asset_b: AssetId
    amount_a: Amount
    amount_b: Amount
    invariant: int


@dataclass(frozen=True)
class SwapExecuted:
    pool_id: PoolId
    trader: Address
    token_in: AssetId
    token_out: AssetId
    amount_in: Amount
    amount_out: Amount
    fee: Amount
    reserve_a_after: Amount
    reserve_b_after: Amount


@dataclass(frozen=True)
class ArbitrageExecuted:
    operator: Address
    buy_pool: PoolId
    sell_pool: PoolId
    amount_in: Amount
    amount_out: Amount
    profit_a: Amount
    profit_b: Amount
    spread_before_bps: int
    spread_after_bps: int


Event = Union[PoolSeeded, SwapExecuted, ArbitrageExecuted]


def event_to_dict(event: Event) -> Dict[str, Any]:
    """Flatten an event into JSON-friendly primitives (pool ids become ordinals)."""
    out: Dict[str, Any] = {"event": type(event).__name__}
    for key, value in asdict(event).items():
        out[key] = value.value if isinstance(value, PoolId) else value
    return out


class EventSink(Protocol):
    def emit(self, event: Event) -> None: ...


class EventLog:
    """In-memory sink; the default when no sink is injected."""

    def __init__(self) -> None:
        self._events: List[Event] = []

    def emit(self, event: Event) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    def of_type(self, kind: type) -> List[Event]:
        return [e for e in self._events if isinstance(e, kind)]

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
