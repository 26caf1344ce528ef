# src/ubi/ledger/claims.py
from __future__ import annotations

from typing import Any, Dict, Optional

from ubi.ledger.types import ClaimRecord, DayBucket

Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


def _ensure_root(state: Json, key: str) -> Json:
    root = state.get(key)
    if not isinstance(root, dict):
        root = {}
        state[key] = root
    return root


def _ensure_day(days: Json, day: int) -> Json:
    # JSON object keys are strings; keep day indices canonical as str(int).
    key = str(int(day))
    bucket = days.get(key)
    if not isinstance(bucket, dict):
        bucket = {"claimer_count": 0, "total_distributed": 0}
        days[key] = bucket
    bucket.setdefault("claimer_count", 0)
    bucket.setdefault("total_distributed", 0)
    return bucket


class ClaimLedger:
    """Claim records and day buckets stored in a JSON ledger state.

    The ledger mutates the dict it wraps in place. Atomicity comes from the
    store that owns the dict (see MemoryLedgerStore / SqliteLedgerStore).
    Storage only grows: there is no delete operation.
    """

    def __init__(self, state: Json) -> None:
        if not isinstance(state, dict):
            raise ValueError("ClaimLedger expects a dict state")
        self._state = state

    @property
    def state(self) -> Json:
        return self._state

    def get(self, address: str) -> Optional[ClaimRecord]:
        claims = self._state.get("claims")
        if not isinstance(claims, dict):
            return None
        rec = claims.get(str(address))
        if not isinstance(rec, dict) or rec.get("last_claimed_at") is None:
            return None
        return ClaimRecord(last_claimed_at=_as_int(rec.get("last_claimed_at")))

    def day_bucket(self, day: int) -> DayBucket:
        days = self._state.get("days")
        if not isinstance(days, dict):
            return DayBucket()
        bucket = days.get(str(int(day)))
        if not isinstance(bucket, dict):
            return DayBucket()
        return DayBucket(
            claimer_count=_as_int(bucket.get("claimer_count")),
            total_distributed=_as_int(bucket.get("total_distributed")),
        )

    @property
    def current_day(self) -> Optional[int]:
        v = self._state.get("current_day")
        return None if v is None else _as_int(v)

    def totals(self) -> Json:
        return {
            "total_claims": _as_int(self._state.get("total_claims")),
            "total_distributed": _as_int(self._state.get("total_distributed")),
        }

    def record_claim(self, address: str, timestamp: int, day: int, amount: int) -> None:
        addr = str(address or "").strip()
        if not addr:
            raise ValueError("record_claim requires an address")
        ts = int(timestamp)
        amt = int(amount)
        if amt <= 0:
            raise ValueError(f"record_claim amount must be positive; got {amt}")
        if int(day) < 0:
            raise ValueError(f"record_claim day must be >= 0; got {day}")

        prev = self.get(addr)
        if prev is not None and prev.last_claimed_at is not None and ts < prev.last_claimed_at:
            raise ValueError(
                f"record_claim timestamp moved backwards for {addr}: {ts} < {prev.last_claimed_at}"
            )

        claims = _ensure_root(self._state, "claims")
        claims[addr] = {"last_claimed_at": ts}

        bucket = _ensure_day(_ensure_root(self._state, "days"), day)
        bucket["claimer_count"] = _as_int(bucket.get("claimer_count")) + 1
        bucket["total_distributed"] = _as_int(bucket.get("total_distributed")) + amt

        self._state["current_day"] = int(day)
        self._state["total_claims"] = _as_int(self._state.get("total_claims")) + 1
        self._state["total_distributed"] = _as_int(self._state.get("total_distributed")) + amt

    # ---- campaign close-out ----

    @property
    def closed_at(self) -> Optional[int]:
        v = self._state.get("closed_at")
        return None if v is None else _as_int(v)

    @property
    def swept(self) -> int:
        return _as_int(self._state.get("swept"))

    def record_close(self, timestamp: int, swept: int) -> None:
        """Mark the campaign closed once. `swept` is the reserve moved out at close."""
        if self.closed_at is not None:
            raise ValueError(f"campaign already closed at {self.closed_at}")
        amt = int(swept)
        if amt < 0:
            raise ValueError(f"record_close swept must be >= 0; got {amt}")
        self._state["closed_at"] = int(timestamp)
        self._state["swept"] = amt
