"""Capability interfaces the claim processor consumes.

Everything here is a narrow seam: the processor never reads an ambient
clock, registry or token ledger directly. Inject fakes in tests.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Protocol

from ubi.ledger.types import ClaimSettled

Json = Dict[str, Any]


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    """Wall clock in whole seconds."""

    def now(self) -> int:
        return int(time.time())


class FixedClock:
    """Manually advanced clock for tests and replays."""

    def __init__(self, now: int = 0) -> None:
        self._now = int(now)

    def now(self) -> int:
        return self._now

    def set(self, now: int) -> None:
        self._now = int(now)

    def advance(self, seconds: int) -> int:
        self._now += int(seconds)
        return self._now


class IdentityRegistry(Protocol):
    def registered_at(self, address: str) -> Optional[int]: ...

    def is_privileged(self, address: str) -> bool: ...


class Disburser(Protocol):
    """Token ledger seam. transfer() raises TransferError on failure.

    Optional capabilities, looked up with getattr by the processor:
      refund(to, amount) -> None   take back a transfer whose ledger commit failed
      sweep(to) -> int             move the remaining reserve at campaign close
    A disburser without refund() leaves such a transfer unreconciled and the
    processor logs it at ERROR.
    """

    def transfer(self, to: str, amount: int) -> None: ...


class LedgerStore(Protocol):
    def exists(self) -> bool: ...

    def read(self) -> Json: ...

    def write(self, st: Json) -> None: ...

    def update(self, mut: Callable[[Json], Any]) -> Any: ...


ClaimSink = Callable[[ClaimSettled], None]
