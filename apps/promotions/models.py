"""
Promotion models for the Storefront platform.
Percentage promocodes and per-user usage tracking for temporary codes.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, ClassVar

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# PROMOCODES
# ===============================================================================


class Promocode(models.Model):
    """
    🎟️ Percentage discount code.

    Types:
    - single_use: one redemption in total; the row is deleted once redeemed
    - temporary: one redemption per user, tracked through PromocodeUsage
    """

    TYPE_SINGLE_USE = 'single_use'
    TYPE_TEMPORARY = 'temporary'

    TYPE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        (TYPE_SINGLE_USE, _('Single use')),
        (TYPE_TEMPORARY, _('Once per customer')),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=50, unique=True, help_text=_("Stored uppercase; lookup is case-insensitive"))
    discount_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
    )
    max_discount_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Upper bound for the discount, no cap when empty")
    )
    min_order_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_SINGLE_USE)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_promocodes'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'promocodes'
        verbose_name = _('Promocode')
        verbose_name_plural = _('Promocodes')
        ordering: ClassVar[tuple[str, ...]] = ('-created_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['is_active', 'expires_at'], name='promocodes_active_expiry_idx'),
        )

    def __str__(self) -> str:
        return f"{self.code} ({self.discount_percentage}%)"

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Normalize code to uppercase before saving."""
        if self.code:
            self.code = self.code.upper().strip()
        super().save(*args, **kwargs)

    @property
    def is_single_use(self) -> bool:
        return self.type == self.TYPE_SINGLE_USE

    @property
    def is_temporary(self) -> bool:
        return self.type == self.TYPE_TEMPORARY

    def is_expired(self, now: Any = None) -> bool:
        return self.expires_at is not None and self.expires_at < (now or timezone.now())


class PromocodeUsage(models.Model):
    """
    Redemption record of a temporary promocode.

    At most one row per (promocode, user); single_use codes never get rows.
    """

    promocode = models.ForeignKey(Promocode, on_delete=models.CASCADE, related_name='usages')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='promocode_usages')
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='promocode_usages'
    )
    used_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'promocode_usage'
        verbose_name = _('Promocode Usage')
        verbose_name_plural = _('Promocode Usages')
        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(fields=['promocode', 'user'], name='unique_promocode_usage_per_user'),
        ]

    def __str__(self) -> str:
        return f"{self.promocode_id} used by {self.user_id}"
