"""
Promotion services for the Storefront platform.
Database-facing promocode lookup, redemption and preview.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from . import rules
from .exceptions import PromocodeAlreadyUsed, PromocodeError
from .models import Promocode, PromocodeUsage

if TYPE_CHECKING:
    from apps.orders.models import Order
    from apps.users.models import User

logger = logging.getLogger(__name__)


# ===============================================================================
# Data Classes for Results
# ===============================================================================


@dataclass(frozen=True)
class AppliedPromocode:
    """A promocode that passed validation together with its computed discount."""

    promocode: Promocode
    discount_amount: Decimal


@dataclass(frozen=True)
class PromocodePreview:
    """Read-only answer to "what would this code give me on this amount?"."""

    code: str
    discount_percentage: Decimal
    discount_amount: Decimal
    max_discount_amount: Decimal | None

    def to_dict(self) -> dict[str, Any]:
        return {
            'valid': True,
            'code': self.code,
            'discount_percentage': str(self.discount_percentage),
            'discount_amount': str(self.discount_amount),
            'max_discount_amount': str(self.max_discount_amount) if self.max_discount_amount is not None else None,
        }


# ===============================================================================
# PROMOCODE SERVICE
# ===============================================================================


class PromocodeService:
    """
    Promocode lookup, validation and consumption.

    ``apply`` and ``redeem`` must run inside the caller's transaction so the
    promocode row lock is held until the order commits.
    """

    @staticmethod
    def normalize_code(code: str) -> str:
        """Normalize promocode to uppercase and trimmed."""
        return code.upper().strip()

    @classmethod
    def get_promocode(cls, code: str, *, lock: bool = False) -> Promocode | None:
        """Get promocode by code (case-insensitive), optionally locking the row."""
        queryset = Promocode.objects.all()
        if lock:
            queryset = queryset.select_for_update()
        return queryset.filter(code=cls.normalize_code(code)).first()

    @staticmethod
    def has_used(promocode: Promocode, user: User) -> bool:
        return PromocodeUsage.objects.filter(promocode=promocode, user=user).exists()

    @classmethod
    def apply(cls, code: str, subtotal: Decimal, user: User) -> AppliedPromocode:
        """
        Lock, validate and price a promocode for checkout.

        Raises a PromocodeError subclass when the code cannot be applied.
        """
        promocode = cls.get_promocode(code, lock=True)
        already_used = promocode is not None and promocode.is_temporary and cls.has_used(promocode, user)
        rules.validate_promocode(promocode, subtotal, already_used=already_used, now=timezone.now())
        assert promocode is not None

        discount = rules.calculate_discount(subtotal, promocode.discount_percentage, promocode.max_discount_amount)
        return AppliedPromocode(promocode=promocode, discount_amount=discount)

    @classmethod
    def redeem(cls, promocode: Promocode, user: User) -> None:
        """
        Consume a validated promocode inside the order transaction.

        single_use codes are deleted; temporary codes are re-checked so a
        concurrent checkout by the same user fails here.
        """
        if promocode.is_single_use:
            Promocode.objects.filter(pk=promocode.pk).delete()
            logger.info(f"🎟️ [Promocode] Single-use code {promocode.code} consumed")
            return

        if cls.has_used(promocode, user):
            raise PromocodeAlreadyUsed()

    @staticmethod
    def record_usage(promocode: Promocode, user: User, order: Order) -> PromocodeUsage:
        """Insert the usage row of a temporary code, mapping a duplicate to PromocodeAlreadyUsed."""
        try:
            with transaction.atomic():
                return PromocodeUsage.objects.create(promocode=promocode, user=user, order=order)
        except IntegrityError as e:
            raise PromocodeAlreadyUsed() from e

    @staticmethod
    def ensure_usage_recorded(promocode: Promocode, user: User, order: Order) -> bool:
        """
        Idempotently make sure a temporary code has its usage row.

        Returns True when a row had to be inserted.
        """
        _usage, created = PromocodeUsage.objects.get_or_create(
            promocode=promocode,
            user=user,
            defaults={'order': order},
        )
        return created

    @classmethod
    def preview(cls, code: str, order_amount: Decimal, user: User) -> Result[PromocodePreview, PromocodeError]:
        """Validate a code against an amount without any side effects."""
        promocode = cls.get_promocode(code)
        already_used = promocode is not None and promocode.is_temporary and cls.has_used(promocode, user)

        try:
            rules.validate_promocode(promocode, order_amount, already_used=already_used, now=timezone.now())
        except PromocodeError as e:
            return Err(e)

        assert promocode is not None
        return Ok(PromocodePreview(
            code=promocode.code,
            discount_percentage=promocode.discount_percentage,
            discount_amount=rules.calculate_discount(
                order_amount, promocode.discount_percentage, promocode.max_discount_amount
            ),
            max_discount_amount=promocode.max_discount_amount,
        ))
