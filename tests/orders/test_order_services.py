"""
Tests for the checkout transaction.

Covers pricing, stock and bonus bookkeeping, promocode consumption and the
all-or-nothing guarantee when any step fails.
"""

import uuid
from decimal import Decimal
from unittest.mock import Mock, patch

from django.test import TestCase, override_settings

from apps.cart.models import CartItem
from apps.notifications.connections import InMemoryConnectionDirectory
from apps.notifications.services import OrderEventBroadcaster
from apps.orders.models import Order, OrderStatusHistory
from apps.orders.services import OrderService
from apps.promotions.models import Promocode, PromocodeUsage
from tests.factories.checkout import (
    FakeConnection,
    checkout_data,
    create_admin,
    create_product,
    create_promocode,
    create_user,
    line,
)


@override_settings(ORDER_DELIVERY_COST=Decimal('300'))
class CheckoutTestCase(TestCase):
    """🛒 Shared checkout fixtures"""

    def setUp(self) -> None:
        self.user = create_user(bonus_balance=500)
        self.mug = create_product(name='Ceramic Mug', price='500.00', stock=10)
        self.directory = InMemoryConnectionDirectory()
        self.broadcaster = OrderEventBroadcaster(directory=self.directory)

    def place(self, data, user=None):
        return OrderService.create_order(user or self.user, data, broadcaster=self.broadcaster)

    def assert_stock(self, product, expected: int) -> None:
        product.refresh_from_db()
        self.assertEqual(product.stock_quantity, expected)

    def assert_balance(self, user, expected: int) -> None:
        user.refresh_from_db()
        self.assertEqual(user.bonus_balance, expected)


class CheckoutPricingTests(CheckoutTestCase):
    def test_capped_promocode_with_delivery(self) -> None:
        create_promocode(code='SPRING10', percentage='10', max_discount='80')

        result = self.place(checkout_data(line(self.mug, 2), promocode='spring10'))

        self.assertTrue(result.is_ok())
        order = result.unwrap()
        self.assertEqual(order.subtotal, Decimal('1000'))
        self.assertEqual(order.discount_amount, Decimal('80'))
        self.assertEqual(order.delivery_cost, Decimal('300'))
        self.assertEqual(order.total, Decimal('1220'))
        self.assertEqual(order.bonuses_earned, 24)  # 2% when a discount applied
        self.assertEqual(order.promocode_code, 'SPRING10')
        self.assertEqual(order.status, 'pending')
        self.assertEqual(order.payment_status, 'pending')

    def test_plain_order_earns_default_cashback(self) -> None:
        order = self.place(checkout_data(line(self.mug, 2))).unwrap()

        self.assertEqual(order.total, Decimal('1300'))
        self.assertEqual(order.bonuses_earned, 65)

    def test_order_number_format(self) -> None:
        order = self.place(checkout_data(line(self.mug))).unwrap()

        self.assertRegex(order.order_number, r'^ORD-\d{14}-[0-9A-F]{6}$')
        self.assertTrue(order.payment_reference)

    def test_items_snapshot_current_product(self) -> None:
        order = self.place(checkout_data(line(self.mug, 3))).unwrap()

        item = order.items.get()
        self.assertEqual(item.product_name, 'Ceramic Mug')
        self.assertEqual(item.unit_price, Decimal('500.00'))
        self.assertEqual(item.line_total, Decimal('1500.00'))

    def test_created_order_has_history_and_clears_cart(self) -> None:
        CartItem.objects.create(user=self.user, product=self.mug, quantity=2)

        order = self.place(checkout_data(line(self.mug, 2))).unwrap()

        self.assertFalse(CartItem.objects.filter(user=self.user).exists())
        history = OrderStatusHistory.objects.get(order=order)
        self.assertEqual((history.old_status, history.new_status), ('', 'pending'))


class CheckoutStockTests(CheckoutTestCase):
    def test_stock_is_decremented(self) -> None:
        self.place(checkout_data(line(self.mug, 4)))

        self.assert_stock(self.mug, 6)

    def test_insufficient_stock_names_product_and_quantities(self) -> None:
        lamp = create_product(name='Desk Lamp', price='300.00', stock=1)

        result = self.place(checkout_data(line(self.mug, 1), line(lamp, 2)))

        self.assertTrue(result.is_err())
        error = result.error
        self.assertEqual(error.code, 'insufficient_stock')
        self.assertEqual(error.details, {'product_name': 'Desk Lamp', 'available': 1, 'requested': 2})
        self.assert_stock(self.mug, 10)
        self.assertFalse(Order.objects.exists())

    def test_repeated_lines_are_checked_together(self) -> None:
        lamp = create_product(name='Desk Lamp', price='300.00', stock=3)

        result = self.place(checkout_data(line(lamp, 2), line(lamp, 2)))

        self.assertEqual(result.error.code, 'insufficient_stock')
        self.assert_stock(lamp, 3)

    def test_unknown_product(self) -> None:
        missing = {'product_id': uuid.uuid4(), 'unit_price': Decimal('10'), 'quantity': 1}

        result = self.place(checkout_data(missing))

        self.assertEqual(result.error.code, 'product_not_found')
        self.assertEqual(result.error.http_status, 404)

    def test_inactive_product_cannot_be_ordered(self) -> None:
        retired = create_product(name='Retired Vase', is_active=False)

        result = self.place(checkout_data(line(retired)))

        self.assertEqual(result.error.code, 'product_not_found')

    def test_price_changed_since_the_client_saw_it(self) -> None:
        result = self.place(checkout_data(line(self.mug, 1, unit_price=Decimal('450.00'))))

        self.assertEqual(result.error.code, 'price_changed')
        self.assertEqual(result.error.details['current_price'], '500.00')
        self.assert_stock(self.mug, 10)


class CheckoutBonusTests(CheckoutTestCase):
    def test_bonuses_are_debited_and_earn_nothing(self) -> None:
        order = self.place(checkout_data(line(self.mug, 2), bonuses_used=200)).unwrap()

        self.assertEqual(order.bonuses_used, 200)
        self.assertEqual(order.total, Decimal('1100'))
        self.assertEqual(order.bonuses_earned, 0)
        self.assert_balance(self.user, 300)

    def test_bonus_limit_is_twenty_percent_of_subtotal(self) -> None:
        result = self.place(checkout_data(line(self.mug, 2), bonuses_used=201))

        self.assertEqual(result.error.code, 'bonus_limit_exceeded')
        self.assertEqual(result.error.details, {'max_usable': 200})
        self.assert_balance(self.user, 500)
        self.assert_stock(self.mug, 10)

    def test_bonus_limit_uses_persisted_balance(self) -> None:
        poor = create_user(email='poor@example.com', bonus_balance=50)
        poor.bonus_balance = 1000  # stale in-memory value must not matter

        result = self.place(checkout_data(line(self.mug, 2), bonuses_used=100), user=poor)

        self.assertEqual(result.error.code, 'bonus_limit_exceeded')
        self.assertEqual(result.error.details, {'max_usable': 50})

    def test_promocode_and_bonuses_are_mutually_exclusive(self) -> None:
        create_promocode()

        result = self.place(checkout_data(line(self.mug, 2), promocode='SPRING10', bonuses_used=100))

        self.assertEqual(result.error.code, 'conflicting_discounts')
        self.assertTrue(Promocode.objects.filter(code='SPRING10').exists())
        self.assert_balance(self.user, 500)
        self.assert_stock(self.mug, 10)
        self.assertFalse(Order.objects.exists())


class CheckoutPromocodeTests(CheckoutTestCase):
    def test_single_use_code_is_consumed(self) -> None:
        create_promocode(code='ONCE')
        other = create_user(email='other@example.com')

        first = self.place(checkout_data(line(self.mug), promocode='ONCE'))
        second = self.place(checkout_data(line(self.mug), promocode='ONCE'), user=other)

        self.assertTrue(first.is_ok())
        self.assertIsNone(first.unwrap().promocode)
        self.assertEqual(first.unwrap().promocode_type, Promocode.TYPE_SINGLE_USE)
        self.assertEqual(second.error.code, 'promocode_not_found')
        self.assertFalse(Promocode.objects.filter(code='ONCE').exists())

    def test_temporary_code_once_per_user(self) -> None:
        promocode = create_promocode(code='WEEKEND', promo_type=Promocode.TYPE_TEMPORARY)
        other = create_user(email='other@example.com')

        first = self.place(checkout_data(line(self.mug), promocode='WEEKEND'))
        again = self.place(checkout_data(line(self.mug), promocode='WEEKEND'))
        someone_else = self.place(checkout_data(line(self.mug), promocode='WEEKEND'), user=other)

        self.assertTrue(first.is_ok())
        self.assertEqual(first.unwrap().promocode, promocode)
        self.assertEqual(again.error.code, 'promocode_already_used')
        self.assertTrue(someone_else.is_ok())

        usage = PromocodeUsage.objects.get(promocode=promocode, user=self.user)
        self.assertEqual(usage.order, first.unwrap())
        self.assertEqual(PromocodeUsage.objects.filter(promocode=promocode).count(), 2)
        self.assert_stock(self.mug, 8)

    def test_invalid_code_rolls_back(self) -> None:
        create_promocode(code='BIGSPEND', min_order='5000')

        result = self.place(checkout_data(line(self.mug, 2), promocode='BIGSPEND'))

        self.assertEqual(result.error.code, 'promocode_min_amount_not_met')
        self.assert_stock(self.mug, 10)


class CheckoutSideEffectTests(CheckoutTestCase):
    def test_buyer_and_staff_are_notified(self) -> None:
        staff = create_admin()
        buyer_conn, staff_conn = FakeConnection(), FakeConnection()
        self.directory.register(self.user.pk, buyer_conn)
        self.directory.register(staff.pk, staff_conn, roles=['admin'])

        order = self.place(checkout_data(line(self.mug))).unwrap()

        self.assertEqual([m['type'] for m in buyer_conn.messages], ['order_created'])
        self.assertEqual([m['type'] for m in staff_conn.messages], ['new_order'])
        self.assertEqual(staff_conn.messages[0]['order']['order_number'], order.order_number)

    def test_broadcast_failure_does_not_fail_checkout(self) -> None:
        broadcaster = Mock()
        broadcaster.order_created.side_effect = RuntimeError('push gateway down')

        result = OrderService.create_order(self.user, checkout_data(line(self.mug)), broadcaster=broadcaster)

        self.assertTrue(result.is_ok())
        broadcaster.order_created.assert_called_once()

    def test_unexpected_failure_is_opaque_and_rolls_back(self) -> None:
        with patch.object(OrderService, '_insert_order', side_effect=RuntimeError('connection reset')):
            result = self.place(checkout_data(line(self.mug, 2), bonuses_used=100))

        self.assertEqual(result.error.code, 'order_creation_failed')
        self.assertEqual(result.error.http_status, 500)
        self.assertNotIn('connection reset', result.error.message)
        self.assert_stock(self.mug, 10)
        self.assert_balance(self.user, 500)
