"""ubi.ledger.types

Value objects shared by the ledger, the processor and the HTTP layer.

  - Campaign: immutable campaign parameters, validated at construction
  - ClaimRecord / DayBucket: the two entity kinds stored in the claim ledger
  - ClaimReceipt / ClaimSettled: results and signals of a settled claim
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ubi.runtime.errors import ConfigurationError

Json = Dict[str, Any]


def _coerce_int(v: Any, *, field: str) -> int:
    # bool is an int subclass; disallow it explicitly
    if isinstance(v, bool):
        raise ConfigurationError("invalid_campaign", f"{field}_must_be_int", {field: v})
    try:
        return int(v)
    except Exception as e:
        raise ConfigurationError("invalid_campaign", f"{field}_must_be_int", {field: repr(v)}) from e


@dataclass(frozen=True, slots=True)
class Campaign:
    period_start: int
    period_end: int
    daily_rate: int
    initial_reserve: int = 0

    def __post_init__(self) -> None:
        start = _coerce_int(self.period_start, field="period_start")
        end = _coerce_int(self.period_end, field="period_end")
        rate = _coerce_int(self.daily_rate, field="daily_rate")
        reserve = _coerce_int(self.initial_reserve, field="initial_reserve")

        if start >= end:
            raise ConfigurationError(
                "invalid_campaign",
                "period_start_must_precede_period_end",
                {"period_start": start, "period_end": end},
            )
        if rate <= 0:
            raise ConfigurationError("invalid_campaign", "daily_rate_must_be_positive", {"daily_rate": rate})
        if reserve < 0:
            raise ConfigurationError(
                "invalid_campaign", "initial_reserve_must_not_be_negative", {"initial_reserve": reserve}
            )

        object.__setattr__(self, "period_start", start)
        object.__setattr__(self, "period_end", end)
        object.__setattr__(self, "daily_rate", rate)
        object.__setattr__(self, "initial_reserve", reserve)

    def is_active(self, now: int) -> bool:
        return self.period_start <= int(now) <= self.period_end

    def to_dict(self) -> Json:
        return {
            "period_start": self.period_start,
            "period_end": self.period_end,
            "daily_rate": self.daily_rate,
            "initial_reserve": self.initial_reserve,
        }

    @classmethod
    def from_dict(cls, d: Any) -> "Campaign":
        if not isinstance(d, dict):
            raise ConfigurationError("invalid_campaign", "campaign_not_dict", {"type": type(d).__name__})
        return cls(
            period_start=d.get("period_start"),
            period_end=d.get("period_end"),
            daily_rate=d.get("daily_rate"),
            initial_reserve=d.get("initial_reserve", 0),
        )


@dataclass(frozen=True, slots=True)
class ClaimRecord:
    last_claimed_at: Optional[int] = None

    def to_dict(self) -> Json:
        return {"last_claimed_at": self.last_claimed_at}


@dataclass(frozen=True, slots=True)
class DayBucket:
    claimer_count: int = 0
    total_distributed: int = 0

    def to_dict(self) -> Json:
        return {"claimer_count": int(self.claimer_count), "total_distributed": int(self.total_distributed)}


@dataclass(frozen=True, slots=True)
class ClaimReceipt:
    address: str
    amount: int
    claimed_at: int
    day_index: int
    claim_days: int

    def to_dict(self) -> Json:
        return {
            "address": self.address,
            "amount": int(self.amount),
            "claimed_at": int(self.claimed_at),
            "day_index": int(self.day_index),
            "claim_days": int(self.claim_days),
        }


@dataclass(frozen=True, slots=True)
class ClaimSettled:
    """Signal emitted once per successful claim."""

    claimer: str
    amount: int
