"""
Order Management models for the Storefront platform
Checkout result: financial snapshot, line items, delivery, payment and status lifecycle.
"""

import secrets
import uuid
from decimal import Decimal
from typing import Any, ClassVar

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# ORDER MANAGEMENT MODELS
# ===============================================================================

class Order(models.Model):
    """
    Customer order produced by checkout.

    The financial fields are fixed at creation:
    ``total = subtotal - discount_amount - bonuses_used + delivery_cost``.
    Status changes afterwards only move timestamps, and completion credits
    ``bonuses_earned`` to the buyer once.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Order identification
    order_number = models.CharField(
        max_length=50,
        unique=True,
        help_text=_("Human-readable order number")
    )

    # Buyer; kept nullable so orders survive account anonymization
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    customer_email = models.EmailField(blank=True, help_text=_("Buyer email at time of order"))

    # Order status workflow
    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('pending', _('Pending')),         # Awaiting payment
        ('paid', _('Paid')),               # Payment confirmed
        ('shipped', _('Shipped')),         # Handed over to delivery
        ('delivered', _('Delivered')),     # Reached the buyer
        ('completed', _('Completed')),     # Closed, cashback credited
        ('cancelled', _('Cancelled')),     # Cancelled by staff
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='pending',
        help_text=_("Current order status")
    )

    PAYMENT_STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('pending', _('Pending')),
        ('paid', _('Paid')),
    )
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')

    # Financial snapshot
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    bonuses_used = models.PositiveIntegerField(default=0)
    bonuses_earned = models.PositiveIntegerField(default=0, help_text=_("Cashback credited on completion"))
    delivery_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    total = models.DecimalField(max_digits=12, decimal_places=2)

    # Promocode: the row may be deleted after redemption, so code and type are snapshotted
    promocode = models.ForeignKey(
        'promotions.Promocode',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    promocode_code = models.CharField(max_length=50, blank=True)
    promocode_type = models.CharField(max_length=20, blank=True)

    # Delivery
    delivery_service = models.CharField(max_length=50, blank=True)
    delivery_type = models.CharField(max_length=50, blank=True)
    delivery_point_code = models.CharField(max_length=100, blank=True)
    delivery_address = models.JSONField(default=dict, blank=True)
    delivery_tracking_number = models.CharField(max_length=100, blank=True)

    # Payment
    payment_method = models.CharField(max_length=50, blank=True)
    payment_reference = models.CharField(
        max_length=64,
        unique=True,
        help_text=_("Reference echoed back by the payment provider in webhook metadata")
    )
    transaction_id = models.CharField(max_length=255, blank=True, help_text=_("Provider payment ID"))

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Status to the timestamp field it stamps
    STATUS_TIMESTAMP_FIELDS: ClassVar[dict[str, str]] = {
        'paid': 'paid_at',
        'shipped': 'shipped_at',
        'delivered': 'delivered_at',
        'completed': 'completed_at',
        'cancelled': 'cancelled_at',
    }

    class Meta:
        db_table = 'orders'
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering: ClassVar[tuple[str, ...]] = ('-created_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['user', '-created_at'], name='orders_user_created_idx'),
            models.Index(fields=['status', '-created_at'], name='orders_status_created_idx'),
            models.Index(fields=['payment_status'], name='orders_payment_status_idx'),
        )

    def __str__(self) -> str:
        return f"Order {self.order_number} - {self.customer_email}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.payment_reference:
            self.payment_reference = uuid.uuid4().hex
        super().save(*args, **kwargs)

    @staticmethod
    def generate_order_number() -> str:
        """Format: ORD-YYYYMMDDHHMMSS-XXXXXX"""
        return f"ORD-{timezone.now().strftime('%Y%m%d%H%M%S')}-{secrets.token_hex(3).upper()}"

    @property
    def is_paid(self) -> bool:
        return self.payment_status == 'paid'

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in ('pending', 'paid')


class OrderItem(models.Model):
    """
    Order line item: an immutable snapshot of product name and unit price.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.SET_NULL,
        null=True,
        related_name='order_items'
    )

    product_name = models.CharField(max_length=255, help_text=_("Product name at time of order"))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, help_text=_("Unit price at time of order"))
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        verbose_name = _('Order Item')
        verbose_name_plural = _('Order Items')
        ordering: ClassVar[tuple[str, ...]] = ('created_at',)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.line_total = self.unit_price * self.quantity
        super().save(*args, **kwargs)


class OrderStatusHistory(models.Model):
    """
    Track order status changes for audit trail and customer notifications.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='status_history')

    old_status = models.CharField(max_length=20, blank=True, help_text=_("Previous status"))
    new_status = models.CharField(max_length=20, help_text=_("New status"))

    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text=_("User who made the change")
    )
    notes = models.TextField(blank=True)

    # Webhook-driven changes are automatic, staff changes are not
    is_automatic = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_status_history'
        verbose_name = _('Order Status History')
        verbose_name_plural = _('Order Status Histories')
        ordering: ClassVar[tuple[str, ...]] = ('-created_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['order', '-created_at'], name='order_history_order_idx'),
        )

    def __str__(self) -> str:
        return f"{self.order_id}: {self.old_status or '∅'} → {self.new_status}"
