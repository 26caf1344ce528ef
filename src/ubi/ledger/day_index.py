# src/ubi/ledger/day_index.py
from __future__ import annotations

from ubi.ledger.constants import ONE_DAY


def day_index(now: int, period_start: int) -> int:
    """Zero-based count of whole days elapsed since the campaign started."""
    n = int(now)
    start = int(period_start)
    if n < start:
        raise ValueError(f"day_index before campaign start: now={n} period_start={start}")
    return (n - start) // ONE_DAY
