"""
Value ledger: balances and allowances per (holder, asset).

Stands in for the token contracts the exchange and the strategy move value
through. Implements BalanceTable[Address, AssetId] -> Amount plus an
allowance table keyed by (owner, spender, asset).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Tuple

from ..errors import InsufficientAllowance, InsufficientBalance, InvalidAmount
from .pools import Address, Amount, AssetId


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    balances: Dict[Tuple[Address, AssetId], Amount]
    allowances: Dict[Tuple[Address, Address, AssetId], Amount]


def _require_amount(amount: Amount, *, name: str = "amount") -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(f"{name} must be an int")
    if amount < 0:
        raise InvalidAmount(f"{name} must be non-negative: {amount}")


class ValueLedger:
    """
    Deterministic balance + allowance table.

    Zero entries are dropped to keep both tables sparse. Callers that need
    all-or-nothing semantics over several transfers take a `snapshot()` first
    and `restore()` it on failure (see `ExchangeEngine.atomic`).

    Every mutation holds `lock`, a re-entrant lock the exchange engine adopts
    as its own. A direct write from another thread therefore waits for any
    open atomic scope to commit or roll back, and is never lost to a restore.
    """

    def __init__(self):
        """Initialize empty balance and allowance tables."""
        self._balances: Dict[Tuple[Address, AssetId], Amount] = {}
        self._allowances: Dict[Tuple[Address, Address, AssetId], Amount] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def balance_of(self, asset: AssetId, holder: Address) -> Amount:
        """Get balance for (holder, asset). Returns 0 if not found."""
        return self._balances.get((holder, asset), 0)

    def allowance(self, asset: AssetId, owner: Address, spender: Address) -> Amount:
        return self._allowances.get((owner, spender, asset), 0)

    def _set_balance(self, holder: Address, asset: AssetId, amount: Amount) -> None:
        if amount < 0:
            raise InsufficientBalance(f"Balance cannot be negative: {holder}/{asset} -> {amount}")
        if amount == 0:
            self._balances.pop((holder, asset), None)
        else:
            self._balances[(holder, asset)] = amount

    def mint(self, asset: AssetId, holder: Address, amount: Amount) -> None:
        """
        Credit `amount` of `asset` to `holder` out of thin air.

        Used to seed scenarios and tests; the exchange core never mints.
        """
        _require_amount(amount)
        with self._lock:
            self._set_balance(holder, asset, self.balance_of(asset, holder) + amount)
        logger.debug("mint %s %s -> %s", amount, asset, holder)

    def approve(self, asset: AssetId, owner: Address, spender: Address, amount: Amount) -> None:
        """Set (not add to) the allowance `spender` may pull from `owner`."""
        _require_amount(amount)
        with self._lock:
            if amount == 0:
                self._allowances.pop((owner, spender, asset), None)
            else:
                self._allowances[(owner, spender, asset)] = amount

    def transfer(self, asset: AssetId, sender: Address, recipient: Address, amount: Amount) -> None:
        """
        Move `amount` of `asset` from `sender` to `recipient`.

        Raises:
            InvalidAmount: If amount is not a non-negative int
            InsufficientBalance: If sender holds less than amount
        """
        _require_amount(amount)
        with self._lock:
            current = self.balance_of(asset, sender)
            if current < amount:
                raise InsufficientBalance(
                    f"Insufficient balance: {sender} holds {current} {asset}, needs {amount}"
                )
            self._set_balance(sender, asset, current - amount)
            self._set_balance(recipient, asset, self.balance_of(asset, recipient) + amount)

    def transfer_from(
        self,
        asset: AssetId,
        spender: Address,
        owner: Address,
        recipient: Address,
        amount: Amount,
    ) -> None:
        """
        Pull `amount` of `asset` from `owner` to `recipient` on `spender`'s allowance.

        The allowance is checked before the balance, and is consumed only when
        the transfer succeeds.
        """
        _require_amount(amount)
        with self._lock:
            allowed = self.allowance(asset, owner, spender)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"Insufficient allowance: {owner} -> {spender} allows {allowed} {asset}, needs {amount}"
                )
            self.transfer(asset, owner, recipient, amount)
            self.approve(asset, owner, spender, allowed - amount)

    def get_all_balances(self) -> Dict[Tuple[Address, AssetId], Amount]:
        with self._lock:
            return dict(self._balances)

    def total_supply(self, asset: AssetId) -> Amount:
        with self._lock:
            return sum(amount for (_holder, a), amount in self._balances.items() if a == asset)

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(balances=dict(self._balances), allowances=dict(self._allowances))

    def restore(self, snap: LedgerSnapshot) -> None:
        with self._lock:
            self._balances = dict(snap.balances)
            self._allowances = dict(snap.allowances)

    def __repr__(self) -> str:
        return f"ValueLedger({len(self._balances)} balances, {len(self._allowances)} allowances)"
