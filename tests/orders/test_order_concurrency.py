"""
Concurrent checkout against a real database.

Row locks only serialize on PostgreSQL, so these run with
DJANGO_SETTINGS_MODULE pointing at a postgres-backed settings module.
"""

import threading
from decimal import Decimal
from unittest import skipUnless

import pytest
from django.db import connection, connections
from django.test import TransactionTestCase, override_settings

from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.promotions.models import Promocode
from tests.factories.checkout import checkout_data, create_product, create_promocode, create_user, line


@pytest.mark.postgres
@skipUnless(connection.vendor == 'postgresql', 'row locking needs PostgreSQL')
@override_settings(ORDER_DELIVERY_COST=Decimal('300'))
class ConcurrentCheckoutTests(TransactionTestCase):
    def race(self, attempts):
        """Run every checkout at once and collect the results."""
        barrier = threading.Barrier(len(attempts))
        results = []
        lock = threading.Lock()

        def run(user, data):
            try:
                barrier.wait()
                result = OrderService.create_order(user, data)
                with lock:
                    results.append(result)
            finally:
                connections.close_all()

        threads = [threading.Thread(target=run, args=attempt) for attempt in attempts]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    def test_last_unit_is_sold_once(self) -> None:
        product = create_product(stock=1)
        buyers = [create_user(email=f'buyer{i}@example.com') for i in range(2)]

        results = self.race([(buyer, checkout_data(line(product))) for buyer in buyers])

        self.assertEqual(sorted(r.is_ok() for r in results), [False, True])
        failure = next(r for r in results if r.is_err())
        self.assertEqual(failure.error.code, 'insufficient_stock')
        product.refresh_from_db()
        self.assertEqual(product.stock_quantity, 0)
        self.assertEqual(Order.objects.count(), 1)

    def test_bonus_balance_never_goes_negative(self) -> None:
        product = create_product(price='1000.00', stock=10)
        user = create_user(bonus_balance=200)

        results = self.race([(user, checkout_data(line(product), bonuses_used=200)) for _ in range(2)])

        self.assertEqual(sum(r.is_ok() for r in results), 1)
        user.refresh_from_db()
        self.assertEqual(user.bonus_balance, 0)

    def test_single_use_code_is_redeemed_once(self) -> None:
        product = create_product(stock=10)
        create_promocode(code='ONCE')
        buyers = [create_user(email=f'buyer{i}@example.com') for i in range(2)]

        results = self.race([(buyer, checkout_data(line(product), promocode='ONCE')) for buyer in buyers])

        self.assertEqual(sorted(r.is_ok() for r in results), [False, True])
        failure = next(r for r in results if r.is_err())
        self.assertEqual(failure.error.code, 'promocode_not_found')
        self.assertFalse(Promocode.objects.filter(code='ONCE').exists())
        product.refresh_from_db()
        self.assertEqual(product.stock_quantity, 9)
