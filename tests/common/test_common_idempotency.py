"""
Tests for the Idempotency-Key guard and its maintenance task.
"""

from datetime import timedelta
from unittest.mock import patch

from django.db import DatabaseError, IntegrityError
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from apps.common.idempotency import (
    CLAIM_ACQUIRED,
    CLAIM_FORBIDDEN,
    CLAIM_IN_FLIGHT,
    CLAIM_REPLAY,
    claim_key,
    release_key,
    store_response,
)
from apps.common.models import IdempotencyKey
from apps.common.tasks import cleanup_expired_idempotency_keys
from apps.orders.models import Order
from tests.factories.checkout import create_product, create_user

KEY = 'retry-5b0e6d1c9a7f4e23'


class ClaimKeyTests(TestCase):
    def setUp(self) -> None:
        self.user = create_user()
        self.other = create_user(email='other@example.com')

    def test_new_key_is_acquired_as_placeholder(self) -> None:
        claim = claim_key(KEY, self.user, '/api/orders/create/')

        self.assertEqual(claim.outcome, CLAIM_ACQUIRED)
        record = IdempotencyKey.objects.get(key=KEY)
        self.assertFalse(record.is_completed)
        self.assertEqual(record.user, self.user)

    def test_placeholder_is_in_flight(self) -> None:
        claim_key(KEY, self.user)

        self.assertEqual(claim_key(KEY, self.user).outcome, CLAIM_IN_FLIGHT)

    def test_completed_key_replays(self) -> None:
        claim_key(KEY, self.user)
        store_response(KEY, b'{"success":true}', 200)

        claim = claim_key(KEY, self.user)

        self.assertEqual(claim.outcome, CLAIM_REPLAY)
        self.assertEqual(claim.record.response_body, '{"success":true}')

    def test_other_users_key_is_forbidden(self) -> None:
        claim_key(KEY, self.user)

        self.assertEqual(claim_key(KEY, self.other).outcome, CLAIM_FORBIDDEN)

    def test_expired_key_is_recycled(self) -> None:
        claim_key(KEY, self.user)
        store_response(KEY, b'{}', 200)
        IdempotencyKey.objects.filter(key=KEY).update(expires_at=timezone.now() - timedelta(seconds=1))

        claim = claim_key(KEY, self.other)

        self.assertEqual(claim.outcome, CLAIM_ACQUIRED)
        self.assertEqual(IdempotencyKey.objects.get(key=KEY).user, self.other)

    @override_settings(IDEMPOTENCY_KEY_TTL_HOURS=2)
    def test_stored_response_expiry_follows_ttl(self) -> None:
        claim_key(KEY, self.user)
        store_response(KEY, b'{}', 200)

        record = IdempotencyKey.objects.get(key=KEY)
        self.assertAlmostEqual(
            (record.expires_at - record.completed_at).total_seconds(), 7200, delta=1
        )

    def test_release_keeps_completed_keys(self) -> None:
        claim_key(KEY, self.user)
        store_response(KEY, b'{}', 200)

        release_key(KEY)

        self.assertTrue(IdempotencyKey.objects.filter(key=KEY).exists())


class ConcurrentClaimTests(TestCase):
    """A competing request inserts the key between our lookup and our insert."""

    def setUp(self) -> None:
        self.user = create_user()
        self.other = create_user(email='other@example.com')

    def claim_after_competitor(self, owner, completed: bool = False):
        IdempotencyKey.objects.create(key=KEY, user=owner, expires_at=timezone.now() + timedelta(hours=1))
        if completed:
            store_response(KEY, b'{"success":true}', 200)
        # The lookup misses the competitor's row, so the insert hits the unique constraint
        nothing = IdempotencyKey.objects.none()
        with patch.object(IdempotencyKey.objects, 'select_for_update', return_value=nothing):
            return claim_key(KEY, self.user)

    def test_competitor_from_another_user_is_forbidden(self) -> None:
        claim = self.claim_after_competitor(self.other)

        self.assertEqual(claim.outcome, CLAIM_FORBIDDEN)
        self.assertEqual(IdempotencyKey.objects.get(key=KEY).user, self.other)

    def test_own_competing_request_is_in_flight(self) -> None:
        self.assertEqual(self.claim_after_competitor(self.user).outcome, CLAIM_IN_FLIGHT)

    def test_own_competing_request_that_finished_replays(self) -> None:
        self.assertEqual(self.claim_after_competitor(self.user, completed=True).outcome, CLAIM_REPLAY)

    def test_competitor_gone_before_relookup_is_in_flight(self) -> None:
        with patch.object(IdempotencyKey.objects, 'create', side_effect=IntegrityError('duplicate key')):
            claim = claim_key(KEY, self.user)

        self.assertEqual(claim.outcome, CLAIM_IN_FLIGHT)
        self.assertFalse(IdempotencyKey.objects.exists())


class IdempotentViewTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.user = create_user()
        self.client.force_authenticate(self.user)
        product = create_product(price='500.00', stock=5)
        self.payload = {'items': [{'product_id': str(product.pk), 'unit_price': '500.00', 'quantity': 1}]}
        self.url = reverse('orders:create_order')

    def test_in_flight_key_is_409(self) -> None:
        IdempotencyKey.objects.create(
            key=KEY, user=self.user, expires_at=timezone.now() + timedelta(hours=1)
        )

        response = self.client.post(self.url, self.payload, format='json', HTTP_IDEMPOTENCY_KEY=KEY)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'idempotency_key_in_use')
        self.assertFalse(Order.objects.exists())

    def test_failure_to_store_response_does_not_fail_request(self) -> None:
        with patch('apps.common.idempotency.store_response', side_effect=DatabaseError('disk full')):
            response = self.client.post(self.url, self.payload, format='json', HTTP_IDEMPOTENCY_KEY=KEY)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Order.objects.count(), 1)
        # Placeholder stays in flight so a blind retry cannot create a second order
        self.assertFalse(IdempotencyKey.objects.get(key=KEY).is_completed)

    def test_view_exception_releases_key(self) -> None:
        with patch('apps.orders.views.OrderService.create_order', side_effect=RuntimeError('boom')):
            with self.assertRaises(RuntimeError):
                self.client.post(self.url, self.payload, format='json', HTTP_IDEMPOTENCY_KEY=KEY)

        self.assertFalse(IdempotencyKey.objects.filter(key=KEY).exists())


class IdempotencyCleanupTests(TestCase):
    def test_cleanup_removes_only_expired_keys(self) -> None:
        user = create_user()
        now = timezone.now()
        IdempotencyKey.objects.create(key='expired-key-000000001', user=user, expires_at=now - timedelta(hours=1))
        IdempotencyKey.objects.create(key='live-key-0000000000002', user=user, expires_at=now + timedelta(hours=1))

        result = cleanup_expired_idempotency_keys()

        self.assertEqual(result, {'success': True, 'deleted': 1})
        self.assertEqual(list(IdempotencyKey.objects.values_list('key', flat=True)), ['live-key-0000000000002'])
