"""
Pure pricing rules for checkout: promocode discount, bonus spending limit
and cashback accrual.

Nothing here touches the database; callers load rows (under lock where it
matters) and pass plain values in. All money is floored to whole currency
units so the merchant never loses a fraction.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal

from django.conf import settings

from .exceptions import (
    PromocodeAlreadyUsed,
    PromocodeExpired,
    PromocodeInactive,
    PromocodeMinAmountNotMet,
    PromocodeNotFound,
)
from .models import Promocode

DEFAULT_BONUS_MAX_USAGE_PERCENT = 20
DEFAULT_CASHBACK_RATES: Mapping[str, int] = {
    'default': 5,
    'discount_applied': 2,
    'bonuses_used': 0,
}


def floor_amount(amount: Decimal) -> Decimal:
    """Round down to a whole currency unit."""
    return amount.to_integral_value(rounding=ROUND_FLOOR)


# ===============================================================================
# DISCOUNT ENGINE
# ===============================================================================


def validate_promocode(
    promocode: Promocode | None,
    subtotal: Decimal,
    *,
    already_used: bool,
    now: datetime,
) -> Promocode:
    """
    Check a promocode against an order subtotal. The first failing rule wins:
    not found, inactive, expired, minimum amount, already used (temporary only).
    """
    if promocode is None:
        raise PromocodeNotFound()
    if not promocode.is_active:
        raise PromocodeInactive()
    if promocode.is_expired(now):
        raise PromocodeExpired()
    if subtotal < promocode.min_order_amount:
        raise PromocodeMinAmountNotMet(promocode.min_order_amount)
    if promocode.is_temporary and already_used:
        raise PromocodeAlreadyUsed()
    return promocode


def calculate_discount(
    subtotal: Decimal,
    discount_percentage: Decimal,
    max_discount_amount: Decimal | None = None,
) -> Decimal:
    """floor(subtotal * pct / 100), capped by the optional maximum and by the subtotal."""
    discount = floor_amount(subtotal * discount_percentage / Decimal('100'))
    if max_discount_amount is not None:
        discount = min(discount, floor_amount(max_discount_amount))
    return max(min(discount, subtotal), Decimal('0'))


def calculate_order_total(
    subtotal: Decimal,
    discount_amount: Decimal,
    bonuses_used: int,
    delivery_cost: Decimal,
) -> Decimal:
    return subtotal - discount_amount - Decimal(bonuses_used) + delivery_cost


# ===============================================================================
# BONUS LEDGER RULES
# ===============================================================================


def max_usable_bonuses(balance: int, subtotal: Decimal, max_usage_percent: int | None = None) -> int:
    """
    The lesser of the balance and the configured share of the subtotal.

    The share guarantees the merchant always collects part of the order in money.
    """
    if max_usage_percent is None:
        max_usage_percent = getattr(settings, 'BONUS_MAX_USAGE_PERCENT', DEFAULT_BONUS_MAX_USAGE_PERCENT)

    cap = int(floor_amount(subtotal * Decimal(max_usage_percent) / Decimal('100')))
    return max(min(balance, cap), 0)


def get_cashback_rate(
    *,
    bonuses_used: bool,
    discount_applied: bool,
    rates: Mapping[str, int] | None = None,
) -> int:
    if rates is None:
        rates = getattr(settings, 'BONUS_CASHBACK_RATES', DEFAULT_CASHBACK_RATES)

    # Spending bonuses takes precedence over a promocode discount
    if bonuses_used:
        return rates['bonuses_used']
    if discount_applied:
        return rates['discount_applied']
    return rates['default']


def calculate_cashback(
    total: Decimal,
    *,
    bonuses_used: bool,
    discount_applied: bool,
    rates: Mapping[str, int] | None = None,
) -> int:
    """Bonuses earned for an order, credited once the order is completed."""
    rate = get_cashback_rate(bonuses_used=bonuses_used, discount_applied=discount_applied, rates=rates)
    if total <= 0 or rate <= 0:
        return 0
    return int(floor_amount(total * Decimal(rate) / Decimal('100')))
