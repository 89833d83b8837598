"""
State management for the dual-pool exchange
"""

from .ledger import LedgerSnapshot, ValueLedger
from .pools import Pool, PoolId

__all__ = [
    "LedgerSnapshot",
    "ValueLedger",
    "Pool",
    "PoolId",
]
