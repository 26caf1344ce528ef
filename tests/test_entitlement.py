from __future__ import annotations

import pytest

from ubi.ledger.constants import MAX_AMOUNT, MAX_CLAIM_DAYS, ONE_DAY
from ubi.ledger.entitlement import accrual_baseline, compute_entitlement, preview_entitlement
from ubi.runtime.errors import ConfigurationError, TooSoon

NOW = 1_767_225_600 + 30 * ONE_DAY


@pytest.mark.parametrize("elapsed_days", [8, 9, 10, 30, 365])
def test_entitlement_is_clamped_to_seven_days(elapsed_days: int) -> None:
    last = NOW - elapsed_days * ONE_DAY
    assert compute_entitlement(NOW, last, None, 10) == 10 * MAX_CLAIM_DAYS


@pytest.mark.parametrize("elapsed_days", [1, 2, 6, 7])
def test_entitlement_pays_whole_days(elapsed_days: int) -> None:
    last = NOW - elapsed_days * ONE_DAY - 5
    assert compute_entitlement(NOW, last, None, 10) == 10 * elapsed_days


@pytest.mark.parametrize("seconds_since", [0, 1, ONE_DAY // 2, ONE_DAY - 1])
def test_less_than_a_day_is_too_soon(seconds_since: int) -> None:
    with pytest.raises(TooSoon) as e:
        compute_entitlement(NOW, NOW - seconds_since, None, 10)
    assert e.value.code == "too_soon"


def test_first_claim_uses_registration_minus_one_day() -> None:
    # registered just now -> exactly one day of accrual
    assert compute_entitlement(NOW, None, NOW, 10) == 10
    assert accrual_baseline(NOW, None, NOW) == NOW - ONE_DAY


def test_registered_three_days_ago_without_claims() -> None:
    # baseline = registered_at - 1 day, whole days are floored
    registered = NOW - 3 * ONE_DAY + 1
    assert compute_entitlement(NOW, None, registered, 10) == 30


def test_last_claim_takes_precedence_over_registration() -> None:
    registered = NOW - 100 * ONE_DAY
    last = NOW - 2 * ONE_DAY
    assert compute_entitlement(NOW, last, registered, 10) == 20


def test_no_registration_falls_back_to_now_minus_one_day() -> None:
    assert accrual_baseline(NOW, None, None) == NOW - ONE_DAY
    assert compute_entitlement(NOW, None, None, 7) == 7


def test_preview_reports_zero_instead_of_raising() -> None:
    assert preview_entitlement(NOW, NOW - 60, None, 10) == 0
    assert preview_entitlement(NOW, NOW - 3 * ONE_DAY, None, 10) == 30


def test_entitlement_is_pure() -> None:
    args = (NOW, NOW - 4 * ONE_DAY, None, 25)
    assert compute_entitlement(*args) == compute_entitlement(*args) == preview_entitlement(*args)


def test_overflow_is_a_configuration_error() -> None:
    huge_rate = MAX_AMOUNT // 2 + 1
    with pytest.raises(ConfigurationError) as e:
        compute_entitlement(NOW, NOW - 2 * ONE_DAY, None, huge_rate)
    assert e.value.code == "amount_overflow"


def test_non_positive_rate_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        compute_entitlement(NOW, NOW - 2 * ONE_DAY, None, 0)
