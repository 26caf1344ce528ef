# src/ubi/runtime/reserve.py
from __future__ import annotations

import threading
from typing import Dict

from ubi.ledger.constants import MAX_AMOUNT
from ubi.runtime.errors import TransferError


class TokenReserve:
    """In-process token ledger funded with the campaign's initial reserve.

    transfer() moves units from the reserve to a holder balance and raises
    TransferError when the reserve cannot cover it. Balances are not
    persisted; a real deployment injects its own Disburser.
    """

    def __init__(self, initial_reserve: int) -> None:
        r = int(initial_reserve)
        if r < 0 or r > MAX_AMOUNT:
            raise ValueError(f"initial_reserve out of range: {r}")
        self._lock = threading.Lock()
        self._reserve = r
        self._balances: Dict[str, int] = {}

    @property
    def reserve(self) -> int:
        with self._lock:
            return self._reserve

    def balance_of(self, holder: str) -> int:
        with self._lock:
            return int(self._balances.get(str(holder), 0))

    def transfer(self, to: str, amount: int) -> None:
        dest = str(to or "").strip()
        amt = int(amount)
        if not dest:
            raise TransferError("transfer_failed", "missing_recipient", {"amount": amt})
        if amt <= 0:
            raise TransferError("transfer_failed", "amount_must_be_positive", {"to": dest, "amount": amt})
        with self._lock:
            if amt > self._reserve:
                raise TransferError(
                    "transfer_failed",
                    "insufficient_reserve",
                    {"to": dest, "amount": amt, "reserve": self._reserve},
                )
            self._reserve -= amt
            self._balances[dest] = int(self._balances.get(dest, 0)) + amt

    def refund(self, to: str, amount: int) -> None:
        """Reverse an earlier transfer/sweep to `to`: the units go back to the reserve."""
        dest = str(to or "").strip()
        amt = int(amount)
        if not dest or amt <= 0:
            raise TransferError("transfer_failed", "invalid_refund", {"to": dest, "amount": amt})
        with self._lock:
            held = int(self._balances.get(dest, 0))
            if amt > held:
                raise TransferError(
                    "transfer_failed",
                    "refund_exceeds_balance",
                    {"to": dest, "amount": amt, "balance": held},
                )
            self._balances[dest] = held - amt
            self._reserve += amt

    def sweep(self, to: str) -> int:
        """Move the whole remaining reserve to `to`. Returns the amount moved."""
        dest = str(to or "").strip()
        if not dest:
            raise TransferError("transfer_failed", "missing_recipient", {})
        with self._lock:
            amt = self._reserve
            self._reserve = 0
            if amt:
                self._balances[dest] = int(self._balances.get(dest, 0)) + amt
            return amt
