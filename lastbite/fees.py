"""Platform fee and trial subscription calculations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from .models import UserProfile, to_money

DEFAULT_FEE_RATE = Decimal("0.10")
DEFAULT_TRIAL_DAYS = 7

_CENT = Decimal("0.01")
_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class FeePolicy:
    rate: Decimal = DEFAULT_FEE_RATE
    trial_days: int = DEFAULT_TRIAL_DAYS
    currency_symbol: str = "€"

    def fee(self, price) -> Decimal:
        return platform_fee(price, self.rate)

    def giver_receives(self, price) -> Decimal:
        return giver_receives(price, self.rate)

    def breakdown(self, price) -> FeeBreakdown:
        return fee_breakdown(price, self.rate, self.currency_symbol)


@dataclass(frozen=True)
class FeeBreakdown:
    price: Decimal
    fee: Decimal
    giver_receives: Decimal
    is_free: bool
    currency_symbol: str = "€"

    def formatted(self) -> dict[str, str | bool]:
        sym = self.currency_symbol
        return {
            "price": f"{sym}{self.price:.2f}",
            "fee": f"{sym}{self.fee:.2f}",
            "giver_receives": f"{sym}{self.giver_receives:.2f}",
            "is_free": self.is_free,
        }


def platform_fee(price, rate: Decimal = DEFAULT_FEE_RATE) -> Decimal:
    """Fee charged on a sale; free items carry no fee."""
    amount = to_money(price)
    if amount == 0:
        return _ZERO
    return (amount * Decimal(rate)).quantize(_CENT, rounding=ROUND_HALF_UP)


def giver_receives(price, rate: Decimal = DEFAULT_FEE_RATE) -> Decimal:
    """What the giver is paid after the platform fee."""
    amount = to_money(price)
    if amount == 0:
        return _ZERO
    return amount - platform_fee(amount, rate)


def fee_breakdown(
    price, rate: Decimal = DEFAULT_FEE_RATE, currency_symbol: str = "€"
) -> FeeBreakdown:
    amount = to_money(price)
    return FeeBreakdown(
        price=amount,
        fee=platform_fee(amount, rate),
        giver_receives=giver_receives(amount, rate),
        is_free=amount == 0,
        currency_symbol=currency_symbol,
    )


@dataclass(frozen=True)
class SubscriptionStatus:
    """Where a user stands relative to their free trial.

    ``status`` is ``"trial"`` while the window is open, ``"active"`` once it
    has ended (fees apply), and ``"legacy-trial"`` for profiles created
    before trials existed.
    """

    status: str
    days_remaining: int = 0
    trial_end: datetime | None = None

    @property
    def fees_apply(self) -> bool:
        return self.status == "active"


def trial_window(
    start: datetime, days: int = DEFAULT_TRIAL_DAYS
) -> tuple[datetime, datetime]:
    return start, start + timedelta(days=days)


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def subscription_status(
    profile: UserProfile,
    now: datetime | None = None,
    trial_days: int = DEFAULT_TRIAL_DAYS,
) -> SubscriptionStatus:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if not profile.trial_start:
        return SubscriptionStatus("legacy-trial", days_remaining=trial_days)
    if not profile.trial_end:
        return SubscriptionStatus("active")

    end = _parse_ts(profile.trial_end)
    if now < end:
        remaining = math.ceil((end - now).total_seconds() / 86400)
        return SubscriptionStatus("trial", days_remaining=remaining, trial_end=end)
    return SubscriptionStatus("active", trial_end=end)
