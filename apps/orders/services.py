"""
Order Management Services for the Storefront platform
Checkout transaction, status lifecycle and payment confirmation.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar, TypedDict

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.cart.models import CartItem
from apps.common.types import BusinessError, Err, Ok, Result
from apps.common.validators import log_security_event
from apps.products.models import Product
from apps.promotions import rules
from apps.promotions.models import Promocode
from apps.promotions.services import AppliedPromocode, PromocodeService

from .exceptions import (
    BonusLimitExceeded,
    ConflictingDiscounts,
    InsufficientBonusBalance,
    InsufficientStock,
    InvalidStatusTransition,
    OrderCreationFailed,
    OrderNotFound,
    OrderUpdateFailed,
    PriceChanged,
    ProductNotFound,
)
from .models import Order, OrderItem, OrderStatusHistory

if TYPE_CHECKING:
    from apps.notifications.services import OrderEventBroadcaster
    from apps.users.models import User

UserModel = get_user_model()
logger = logging.getLogger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 5

# ===============================================================================
# ORDER SERVICE PARAMETER OBJECTS
# ===============================================================================

class OrderItemData(TypedDict):
    """Type definition for a submitted order line"""
    product_id: uuid.UUID
    unit_price: Decimal
    quantity: int


@dataclass
class OrderCreateData:
    """Parameter object for checkout"""
    items: list[OrderItemData]
    promocode: str = ''
    bonuses_used: int = 0
    delivery_service: str = ''
    delivery_type: str = ''
    delivery_point_code: str = ''
    delivery_address: dict[str, Any] = field(default_factory=dict)
    payment_method: str = ''


@dataclass
class StatusChangeData:
    """Parameter object for status changes"""
    new_status: str
    notes: str = ''
    changed_by: User | None = None
    is_automatic: bool = False

# ===============================================================================
# ORDER CALCULATION SERVICE
# ===============================================================================

class OrderCalculationService:
    """Order money arithmetic that does not depend on locked rows"""

    @staticmethod
    def calculate_subtotal(items: list[OrderItemData]) -> Decimal:
        """Σ unit_price × quantity over the submitted lines"""
        return sum((Decimal(item['unit_price']) * item['quantity'] for item in items), Decimal('0'))

    @staticmethod
    def get_delivery_cost() -> Decimal:
        return Decimal(str(getattr(settings, 'ORDER_DELIVERY_COST', '0')))


def _broadcast(broadcaster: OrderEventBroadcaster | None, send: Callable[[OrderEventBroadcaster], Any]) -> None:
    """Run a fan-out after commit; failures never reach the caller."""
    try:
        if broadcaster is None:
            from apps.notifications.services import OrderEventBroadcaster  # noqa: PLC0415 - Circular import prevention

            broadcaster = OrderEventBroadcaster()
        send(broadcaster)
    except Exception:
        logger.exception("⚠️ [Orders] Order event broadcast failed")

# ===============================================================================
# ORDER SERVICE
# ===============================================================================

class OrderService:
    """
    🛒 Checkout and order lifecycle.

    Business failures are raised inside ``transaction.atomic()`` so every
    partial write rolls back, then returned as ``Err(BusinessError)``.
    """

    # Define valid transitions
    VALID_TRANSITIONS: ClassVar[dict[str, tuple[str, ...]]] = {
        'pending': ('paid', 'cancelled'),
        'paid': ('shipped', 'delivered', 'completed', 'cancelled'),
        'shipped': ('delivered', 'completed'),
        'delivered': ('completed',),
        'completed': (),  # Terminal state
        'cancelled': (),  # Terminal state
    }

    @staticmethod
    def create_order(
        user: User,
        data: OrderCreateData,
        broadcaster: OrderEventBroadcaster | None = None,
    ) -> Result[Order, BusinessError]:
        """
        Place an order atomically: stock, bonuses, promocode, order row, cart.

        Any failure leaves no partial effect. Notifications go out after commit.
        """
        try:
            with transaction.atomic():
                order = OrderService._place_order(user, data)
        except BusinessError as e:
            logger.info(
                f"🛒 [Orders] Checkout rejected for user {user.pk}: {e.code}",
                extra={'user_id': user.pk, 'error_code': e.code},
            )
            return Err(e)
        except Exception as e:
            logger.exception(f"🔥 [Orders] Failed to create order for user {user.pk}: {e}")
            return Err(OrderCreationFailed())

        log_security_event(
            'order_created',
            {
                'order_number': order.order_number,
                'order_id': str(order.id),
                'user_id': str(user.pk),
                'total': str(order.total),
                'bonuses_used': order.bonuses_used,
                'promocode': order.promocode_code or None,
            }
        )

        _broadcast(broadcaster, lambda b: b.order_created(order))
        return Ok(order)

    @staticmethod
    def _place_order(user: User, data: OrderCreateData) -> Order:
        """Checkout steps; must run inside an atomic block."""
        subtotal = OrderCalculationService.calculate_subtotal(data.items)
        promocode_code = data.promocode.strip()
        bonuses_used = data.bonuses_used

        if promocode_code and bonuses_used > 0:
            raise ConflictingDiscounts()

        if bonuses_used > 0:
            balance = UserModel.objects.filter(pk=user.pk).values_list('bonus_balance', flat=True).first() or 0
            max_usable = rules.max_usable_bonuses(balance, subtotal)
            if bonuses_used > max_usable:
                raise BonusLimitExceeded(max_usable)

        applied: AppliedPromocode | None = None
        if promocode_code:
            applied = PromocodeService.apply(promocode_code, subtotal, user)

        discount_amount = applied.discount_amount if applied else Decimal('0')
        delivery_cost = OrderCalculationService.get_delivery_cost()
        total = rules.calculate_order_total(subtotal, discount_amount, bonuses_used, delivery_cost)
        bonuses_earned = rules.calculate_cashback(
            total,
            bonuses_used=bonuses_used > 0,
            discount_applied=discount_amount > 0,
        )

        products = OrderService._reserve_stock(data.items)

        if bonuses_used > 0:
            OrderService._debit_bonuses(user, bonuses_used)

        if applied:
            PromocodeService.redeem(applied.promocode, user)

        promocode = applied.promocode if applied else None
        order = OrderService._insert_order(
            user=user,
            customer_email=user.email,
            subtotal=subtotal,
            discount_amount=discount_amount,
            bonuses_used=bonuses_used,
            bonuses_earned=bonuses_earned,
            delivery_cost=delivery_cost,
            total=total,
            # A consumed single-use row no longer exists; only its snapshot is kept
            promocode=promocode if promocode and promocode.is_temporary else None,
            promocode_code=promocode.code if promocode else '',
            promocode_type=promocode.type if promocode else '',
            delivery_service=data.delivery_service,
            delivery_type=data.delivery_type,
            delivery_point_code=data.delivery_point_code,
            delivery_address=data.delivery_address,
            payment_method=data.payment_method,
        )

        for item in data.items:
            product = products[str(item['product_id'])]
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                unit_price=product.price,
                quantity=item['quantity'],
            )

        if promocode and promocode.is_temporary:
            PromocodeService.record_usage(promocode, user, order)

        CartItem.objects.filter(user=user).delete()

        OrderService._create_status_history(order, None, 'pending', 'Order created', user)

        logger.info(
            f"✅ [Orders] Order {order.order_number} placed: subtotal {subtotal}, "
            f"discount {discount_amount}, bonuses {bonuses_used}, total {total}",
            extra={'order_id': str(order.id), 'user_id': user.pk},
        )
        return order

    @staticmethod
    def _reserve_stock(items: list[OrderItemData]) -> dict[str, Product]:
        """
        Lock the ordered products (ascending id, so concurrent checkouts never
        deadlock), verify price and stock, then decrement.
        """
        requested: dict[str, int] = defaultdict(int)
        for item in items:
            requested[str(item['product_id'])] += item['quantity']

        products = {
            str(product.pk): product
            for product in Product.objects.select_for_update()
            .filter(pk__in=list(requested), is_active=True)
            .order_by('pk')
        }

        for item in items:
            product = products.get(str(item['product_id']))
            if product is None:
                raise ProductNotFound(item['product_id'])
            if Decimal(item['unit_price']) != product.price:
                raise PriceChanged(product.name, item['unit_price'], product.price)

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock_quantity < quantity:
                raise InsufficientStock(product.name, product.stock_quantity, quantity)

            Product.objects.filter(pk=product.pk).update(
                stock_quantity=F('stock_quantity') - quantity,
                updated_at=timezone.now(),
            )
            product.stock_quantity -= quantity

        return products

    @staticmethod
    def _debit_bonuses(user: User, amount: int) -> None:
        locked = UserModel.objects.select_for_update().only('pk', 'bonus_balance').get(pk=user.pk)
        if locked.bonus_balance < amount:
            raise InsufficientBonusBalance(locked.bonus_balance, amount)

        UserModel.objects.filter(pk=user.pk).update(bonus_balance=F('bonus_balance') - amount)
        user.bonus_balance = locked.bonus_balance - amount

    @staticmethod
    def _insert_order(**fields: Any) -> Order:
        """Insert the order, regenerating the number on a unique collision."""
        attempt = 0
        while True:
            attempt += 1
            try:
                with transaction.atomic():
                    return Order.objects.create(order_number=Order.generate_order_number(), **fields)
            except IntegrityError:
                if attempt == MAX_ORDER_NUMBER_ATTEMPTS:
                    raise
                logger.warning(f"⚠️ [Orders] Order number collision, retrying ({attempt}/{MAX_ORDER_NUMBER_ATTEMPTS})")

    # ---- status lifecycle --------------------------------------------------

    @staticmethod
    def update_order_status(
        order_id: uuid.UUID | str,
        status_data: StatusChangeData,
        broadcaster: OrderEventBroadcaster | None = None,
    ) -> Result[Order, BusinessError]:
        """
        Move an order through its lifecycle with validation and audit trail.

        Re-applying the current status is a no-op, so completion credits the
        cashback exactly once.
        """
        try:
            with transaction.atomic():
                try:
                    order = Order.objects.select_for_update().get(pk=order_id)
                except Order.DoesNotExist as e:
                    raise OrderNotFound() from e

                old_status = order.status
                if old_status == status_data.new_status:
                    return Ok(order)

                if not OrderService._is_valid_status_transition(old_status, status_data.new_status):
                    raise InvalidStatusTransition(old_status, status_data.new_status)

                order.status = status_data.new_status
                update_fields = ['status', 'updated_at']
                timestamp_field = Order.STATUS_TIMESTAMP_FIELDS.get(status_data.new_status)
                if timestamp_field:
                    setattr(order, timestamp_field, timezone.now())
                    update_fields.append(timestamp_field)
                order.save(update_fields=update_fields)

                if status_data.new_status == 'completed':
                    OrderService._credit_cashback(order)

                OrderService._create_status_history(
                    order, old_status, status_data.new_status,
                    status_data.notes, status_data.changed_by, status_data.is_automatic
                )
        except BusinessError as e:
            return Err(e)
        except Exception as e:
            logger.exception(f"🔥 [Orders] Failed to update order status: {e}")
            return Err(OrderUpdateFailed())

        log_security_event(
            'order_status_changed',
            {
                'order_number': order.order_number,
                'order_id': str(order.id),
                'old_status': old_status,
                'new_status': status_data.new_status,
                'user_id': str(status_data.changed_by.pk) if status_data.changed_by else None,
                'notes': status_data.notes
            }
        )

        _broadcast(broadcaster, lambda b: b.order_status_updated(order, old_status))
        return Ok(order)

    @staticmethod
    def _credit_cashback(order: Order) -> None:
        if order.bonuses_earned <= 0 or order.user_id is None:
            return

        UserModel.objects.filter(pk=order.user_id).update(bonus_balance=F('bonus_balance') + order.bonuses_earned)
        logger.info(
            f"🎁 [Orders] Credited {order.bonuses_earned} bonuses for order {order.order_number}",
            extra={'order_id': str(order.id), 'user_id': order.user_id},
        )

    @staticmethod
    def confirm_payment(order: Order, transaction_id: str) -> bool:
        """
        Record a successful payment. The caller must hold the order row lock.

        Returns False when the order was already paid. Only a pending order
        moves to ``paid``; payment on a cancelled order is recorded but the
        status is left alone.
        """
        if order.payment_status == 'paid':
            return False

        now = timezone.now()
        old_status = order.status
        order.payment_status = 'paid'
        order.transaction_id = transaction_id
        order.paid_at = order.paid_at or now
        update_fields = ['payment_status', 'transaction_id', 'paid_at', 'updated_at']

        if old_status == 'pending':
            order.status = 'paid'
            update_fields.append('status')
        else:
            logger.warning(
                f"⚠️ [Orders] Payment received for order {order.order_number} in status {old_status}",
                extra={'order_id': str(order.id)},
            )

        order.save(update_fields=update_fields)

        if order.status != old_status:
            OrderService._create_status_history(
                order, old_status, order.status, f'Payment {transaction_id} confirmed', None, True
            )

        if order.promocode_id and order.promocode_type == Promocode.TYPE_TEMPORARY and order.user_id:
            if PromocodeService.ensure_usage_recorded(order.promocode, order.user, order):
                logger.info(f"🎟️ [Orders] Late promocode usage recorded for order {order.order_number}")

        return True

    @staticmethod
    def _create_status_history(
        order: Order,
        old_status: str | None,
        new_status: str,
        notes: str,
        changed_by: User | None,
        is_automatic: bool = False,
    ) -> None:
        """Create order status history entry"""
        OrderStatusHistory.objects.create(
            order=order,
            old_status=old_status or '',  # Convert None to empty string
            new_status=new_status,
            notes=notes,
            changed_by=changed_by,
            is_automatic=is_automatic,
        )

    @staticmethod
    def _is_valid_status_transition(old_status: str, new_status: str) -> bool:
        """Validate order status transitions according to business rules"""
        return new_status in OrderService.VALID_TRANSITIONS.get(old_status, ())

# ===============================================================================
# ORDER QUERY SERVICE
# ===============================================================================

class OrderQueryService:
    """Service for order querying"""

    @staticmethod
    def get_orders_for_user(user: User, status: str | None = None) -> list[Order]:
        """Own orders for customers, every order for administrators"""
        queryset = Order.objects.select_related('user')
        if not (user.is_superuser or user.staff_role == 'admin'):
            queryset = queryset.filter(user=user)
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset.order_by('-created_at'))

    @staticmethod
    def get_order_with_items(order_id: uuid.UUID, user: User) -> Result[Order, BusinessError]:
        """Get order with related items; customers only see their own"""
        queryset = Order.objects.select_related('user').prefetch_related('items', 'status_history')
        if not (user.is_superuser or user.staff_role == 'admin'):
            queryset = queryset.filter(user=user)

        try:
            return Ok(queryset.get(pk=order_id))
        except Order.DoesNotExist:
            return Err(OrderNotFound())
