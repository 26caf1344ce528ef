from __future__ import annotations

from dataclasses import dataclass, field
import copy
from typing import Any, Dict, Optional

from ubi.ledger.types import DayBucket


Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only ledger view used by queries and the HTTP layer.
    """

    campaign: Dict[str, Any] = field(default_factory=dict)
    claims: Dict[str, Any] = field(default_factory=dict)
    days: Dict[str, Any] = field(default_factory=dict)

    current_day: Optional[int] = None
    total_claims: int = 0
    total_distributed: int = 0

    closed_at: Optional[int] = None
    swept: int = 0

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "LedgerView":
        cd = state.get("current_day")
        ca = state.get("closed_at")
        return cls(
            campaign=copy.deepcopy(state.get("campaign", {})) if isinstance(state.get("campaign"), dict) else {},
            claims=copy.deepcopy(state.get("claims", {})) if isinstance(state.get("claims"), dict) else {},
            days=copy.deepcopy(state.get("days", {})) if isinstance(state.get("days"), dict) else {},
            current_day=None if cd is None else _as_int(cd),
            total_claims=_as_int(state.get("total_claims", 0)),
            total_distributed=_as_int(state.get("total_distributed", 0)),
            closed_at=None if ca is None else _as_int(ca),
            swept=_as_int(state.get("swept", 0)),
        )

    def to_ledger(self) -> Dict[str, Any]:
        return {
            "campaign": copy.deepcopy(self.campaign),
            "claims": copy.deepcopy(self.claims),
            "days": copy.deepcopy(self.days),
            "current_day": self.current_day,
            "total_claims": int(self.total_claims),
            "total_distributed": int(self.total_distributed),
            "closed_at": self.closed_at,
            "swept": int(self.swept),
        }

    def last_claimed_at(self, address: str) -> Optional[int]:
        rec = self.claims.get(address)
        if not isinstance(rec, dict) or rec.get("last_claimed_at") is None:
            return None
        return _as_int(rec.get("last_claimed_at"))

    def day_bucket(self, day: int) -> DayBucket:
        b = self.days.get(str(int(day)))
        if not isinstance(b, dict):
            return DayBucket()
        return DayBucket(
            claimer_count=_as_int(b.get("claimer_count")),
            total_distributed=_as_int(b.get("total_distributed")),
        )
