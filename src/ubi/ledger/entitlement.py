# src/ubi/ledger/entitlement.py
from __future__ import annotations

from typing import Optional

from ubi.ledger.constants import MAX_AMOUNT, MAX_CLAIM_DAYS, MIN_CLAIM_DAYS, ONE_DAY
from ubi.runtime.errors import ConfigurationError, TooSoon


def accrual_baseline(now: int, last_claimed_at: Optional[int], registered_at: Optional[int]) -> int:
    """Timestamp accrual is measured from.

    Precedence:
      1) last claim
      2) registration minus one day (first-time claimers get at least one day)
      3) now minus one day (no registration record at all)
    """
    if last_claimed_at is not None:
        return int(last_claimed_at)
    if registered_at is not None:
        return int(registered_at) - ONE_DAY
    return int(now) - ONE_DAY


def accrued_days(now: int, last_claimed_at: Optional[int], registered_at: Optional[int]) -> int:
    """Whole days since the baseline, capped at MAX_CLAIM_DAYS. May be <= 0."""
    baseline = accrual_baseline(now, last_claimed_at, registered_at)
    elapsed = (int(now) - baseline) // ONE_DAY
    return min(int(elapsed), MAX_CLAIM_DAYS)


def _checked_amount(daily_rate: int, claim_days: int) -> int:
    rate = int(daily_rate)
    if rate <= 0:
        raise ConfigurationError("invalid_campaign", "daily_rate_must_be_positive", {"daily_rate": rate})
    amount = rate * int(claim_days)
    if amount > MAX_AMOUNT:
        raise ConfigurationError(
            "amount_overflow",
            "daily_rate_times_days_exceeds_max_amount",
            {"daily_rate": rate, "claim_days": int(claim_days)},
        )
    return amount


def compute_entitlement(
    now: int,
    last_claimed_at: Optional[int],
    registered_at: Optional[int],
    daily_rate: int,
) -> int:
    """Amount claimable at `now`. Raises TooSoon when less than a full day accrued."""
    days = accrued_days(now, last_claimed_at, registered_at)
    if days < MIN_CLAIM_DAYS:
        raise TooSoon(
            "too_soon",
            "already_claimed_within_the_last_day",
            {"now": int(now), "last_claimed_at": last_claimed_at},
        )
    return _checked_amount(daily_rate, days)


def preview_entitlement(
    now: int,
    last_claimed_at: Optional[int],
    registered_at: Optional[int],
    daily_rate: int,
) -> int:
    """Read-only variant of compute_entitlement: reports 0 instead of raising TooSoon."""
    days = accrued_days(now, last_claimed_at, registered_at)
    if days < MIN_CLAIM_DAYS:
        return 0
    return _checked_amount(daily_rate, days)
