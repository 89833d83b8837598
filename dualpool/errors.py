"""Exception types for the dual-pool exchange and the arbitrage strategy.

Every failure aborts the enclosing operation; nothing here is retried
internally. "No opportunity" is reported through sentinel results
(``Simulation(profitable=False, ...)``), never through these exceptions.
"""

from __future__ import annotations


class DualPoolError(Exception):
    """Base class for all exchange / strategy failures."""


class PoolNotInitialized(DualPoolError):
    """Raised when a pool is used before it has been seeded."""


class AlreadyInitialized(DualPoolError):
    """Raised when a pool is seeded a second time."""


class InvalidToken(DualPoolError, ValueError):
    """Raised when an asset is not one of the pool's (or strategy's) two assets."""


class InvalidPool(DualPoolError, ValueError):
    """Raised when a pool identifier does not name pool 1 or pool 2."""


class InvalidAmount(DualPoolError, ValueError):
    """Raised for zero, negative, non-integer or out-of-domain amounts."""


class SpreadTooLow(DualPoolError):
    """Raised when the pool spread does not exceed the configured minimum."""

    def __init__(self, spread_bps: int, min_spread_bps: int) -> None:
        self.spread_bps = spread_bps
        self.min_spread_bps = min_spread_bps
        super().__init__(f"spread {spread_bps}bp <= minimum {min_spread_bps}bp")


class ArbitrageUnprofitable(DualPoolError):
    """Raised when the round trip returns no more numeraire than it spent."""

    def __init__(self, amount_in: int, amount_out: int) -> None:
        self.amount_in = amount_in
        self.amount_out = amount_out
        super().__init__(f"round trip returned {amount_out} for {amount_in}")


class NoProfitMade(DualPoolError):
    """Raised when neither strategy balance increased after a round trip."""


class NotAuthorized(DualPoolError):
    """Raised when a caller other than the configured operator invokes a gated operation."""


class InsufficientAllowance(DualPoolError):
    """Raised by the ledger when a spender's allowance is too small."""


class InsufficientBalance(DualPoolError):
    """Raised by the ledger when a holder's balance is too small."""


class InvariantViolation(DualPoolError):
    """Raised when a post-state violates a reserve or spread invariant."""
