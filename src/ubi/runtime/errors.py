from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class ClaimError(Exception):
    """Canonical error type for claim gates, settlement and campaign setup."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class OutsideWindow(ClaimError):
    """Claim attempted before period_start or after period_end."""


class NotPrivileged(ClaimError):
    """Caller does not currently hold claim privilege."""


class TooSoon(ClaimError):
    """Fewer than one full day accrued since the baseline."""


class TransferError(ClaimError):
    """External disbursement failed. Fatal to the claim attempt."""


class ConfigurationError(ClaimError):
    """Invalid campaign construction or rate overflow. Fatal at init."""
