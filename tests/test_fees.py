"""Tests for platform fees and trial status."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from lastbite.errors import ValidationError
from lastbite.fees import (
    FeePolicy,
    fee_breakdown,
    giver_receives,
    platform_fee,
    subscription_status,
    trial_window,
)
from lastbite.models import UserProfile

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_free_item_has_no_fee():
    breakdown = fee_breakdown(0)
    assert breakdown.fee == Decimal("0.00")
    assert breakdown.giver_receives == Decimal("0.00")
    assert breakdown.is_free


@pytest.mark.parametrize(
    "price, fee, receives",
    [
        ("10.00", "1.00", "9.00"),
        ("2.50", "0.25", "2.25"),
        ("0.05", "0.01", "0.04"),
        ("3.99", "0.40", "3.59"),
    ],
)
def test_ten_percent_fee(price, fee, receives):
    assert platform_fee(price) == Decimal(fee)
    assert giver_receives(price) == Decimal(receives)


def test_fee_and_payout_sum_to_price():
    for cents in range(1, 500, 7):
        price = Decimal(cents) / 100
        assert platform_fee(price) + giver_receives(price) == price


def test_custom_rate():
    assert platform_fee("20", Decimal("0.05")) == Decimal("1.00")


def test_negative_price_rejected():
    with pytest.raises(ValidationError):
        platform_fee("-1")


def test_formatted_breakdown():
    data = FeePolicy(currency_symbol="$").breakdown("4.00").formatted()
    assert data == {
        "price": "$4.00",
        "fee": "$0.40",
        "giver_receives": "$3.60",
        "is_free": False,
    }


class TestSubscriptionStatus:
    def _profile(self, start=None, end=None):
        return UserProfile(
            id="u1",
            username="HappyApple1",
            trial_start=start.isoformat() if start else None,
            trial_end=end.isoformat() if end else None,
        )

    def test_trial_window_is_seven_days(self):
        start, end = trial_window(NOW)
        assert end - start == timedelta(days=7)

    def test_in_trial(self):
        start, end = trial_window(NOW - timedelta(days=2))
        status = subscription_status(self._profile(start, end), now=NOW)
        assert status.status == "trial"
        assert status.days_remaining == 5
        assert not status.fees_apply

    def test_partial_day_rounds_up(self):
        start, end = trial_window(NOW - timedelta(days=6, hours=12))
        status = subscription_status(self._profile(start, end), now=NOW)
        assert status.days_remaining == 1

    def test_trial_expired(self):
        start, end = trial_window(NOW - timedelta(days=8))
        status = subscription_status(self._profile(start, end), now=NOW)
        assert status.status == "active"
        assert status.fees_apply

    def test_legacy_profile_without_trial(self):
        status = subscription_status(self._profile(), now=NOW)
        assert status.status == "legacy-trial"
        assert status.days_remaining == 7

    def test_naive_now_is_utc(self):
        start, end = trial_window(NOW)
        status = subscription_status(self._profile(start, end), now=NOW.replace(tzinfo=None))
        assert status.status == "trial"
        assert status.days_remaining == 7
