"""Settlement layer seen by the mixer.

The mixer never holds value itself; it tells a ledger to move it. Any object
with ``debit`` and ``credit`` works. ``InMemoryLedger`` is used by tests and
the demo, ``zkmixer.storage.database.SqlLedger`` persists balances.
"""

import logging
import threading
from typing import Dict, Protocol

from zkmixer.exceptions import InsufficientFunds, LedgerError

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    """Value transfer interface required by ``MixingLedger``."""

    def debit(self, account: str, amount: int) -> None:
        """Take amount from account; raise LedgerError if impossible."""

    def credit(self, account: str, amount: int) -> None:
        """Give amount to account."""


def check_transfer(account: str, amount: int) -> None:
    if not isinstance(account, str) or not account:
        raise LedgerError("Account id must be a non-empty string")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise LedgerError("Transfer amount must be a positive integer")


class InMemoryLedger:
    """Dictionary-backed ledger."""

    def __init__(self):
        self._balances: Dict[str, int] = {}
        self._lock = threading.Lock()

    def fund(self, account: str, amount: int) -> None:
        """Mint amount into account (test and demo helper)."""
        self.credit(account, amount)

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def debit(self, account: str, amount: int) -> None:
        check_transfer(account, amount)
        with self._lock:
            balance = self._balances.get(account, 0)
            if balance < amount:
                raise InsufficientFunds(f"Account {account} holds {balance}, needs {amount}")
            self._balances[account] = balance - amount
        logger.debug("Debited %d from %s", amount, account)

    def credit(self, account: str, amount: int) -> None:
        check_transfer(account, amount)
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount
        logger.debug("Credited %d to %s", amount, account)
