"""
Tests for the YooKassa payment webhook.

Signature checks run over the raw body; a delivery that was already handled
must never mark an order paid twice or insert a second promocode usage.
"""

import json
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.test.client import Client
from django.urls import reverse

from apps.integrations.models import WebhookEvent
from apps.integrations.webhooks.base import BaseWebhookProcessor, verify_hmac_signature
from apps.notifications.connections import InMemoryConnectionDirectory
from apps.orders.models import OrderStatusHistory
from apps.orders.services import OrderService, StatusChangeData
from apps.promotions.models import Promocode, PromocodeUsage
from tests.factories.checkout import (
    WEBHOOK_SECRET,
    FakeConnection,
    checkout_data,
    create_admin,
    create_product,
    create_promocode,
    create_user,
    line,
    payment_succeeded_payload,
    sign,
)


@override_settings(PAYMENT_WEBHOOK_SECRET=WEBHOOK_SECRET, ORDER_DELIVERY_COST=Decimal('300'))
class PaymentWebhookTestCase(TestCase):
    """💳 Base test case with a pending order awaiting payment"""

    def setUp(self) -> None:
        self.client = Client()
        self.url = reverse('integrations:yookassa_webhook')
        self.user = create_user()
        self.product = create_product(stock=10)
        self.order = OrderService.create_order(self.user, checkout_data(line(self.product))).unwrap()

    def deliver(self, body: bytes, signature: str | None = None):
        headers = {}
        if signature is None:
            signature = sign(body)
        if signature:
            headers['HTTP_X_YOOKASSA_SIGNATURE'] = signature
        return self.client.post(self.url, data=body, content_type='application/json', **headers)


class WebhookSignatureTests(PaymentWebhookTestCase):
    def test_missing_signature(self) -> None:
        response = self.deliver(payment_succeeded_payload(self.order.payment_reference), signature='')

        self.assertEqual(response.status_code, 401)

    def test_signature_for_different_body(self) -> None:
        body = payment_succeeded_payload(self.order.payment_reference)

        response = self.deliver(body, signature=sign(body + b' '))

        self.assertEqual(response.status_code, 401)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'pending')

    def test_non_hex_signature(self) -> None:
        response = self.deliver(payment_succeeded_payload(self.order.payment_reference), signature='not-a-hex-digest')

        self.assertEqual(response.status_code, 401)

    def test_signature_made_with_wrong_secret(self) -> None:
        body = payment_succeeded_payload(self.order.payment_reference)

        response = self.deliver(body, signature=sign(body, secret='guessed-secret'))

        self.assertEqual(response.status_code, 401)

    @override_settings(PAYMENT_WEBHOOK_SECRET='')
    def test_missing_secret_is_server_error(self) -> None:
        response = self.deliver(payment_succeeded_payload(self.order.payment_reference), signature='')

        self.assertEqual(response.status_code, 500)

    def test_invalid_signature_is_logged_as_security_event(self) -> None:
        with self.assertLogs('apps.common.validators', level='WARNING') as logs:
            self.deliver(payment_succeeded_payload(self.order.payment_reference), signature='ab' * 32)

        self.assertIn('webhook_signature_invalid', logs.output[0])

    def test_base_processor_fails_secure(self) -> None:
        class UnsignedProcessor(BaseWebhookProcessor):
            source_name = 'other'

        with self.assertLogs('apps.integrations.webhooks.base', level='ERROR') as logs:
            self.assertFalse(UnsignedProcessor().verify_signature(b'{}', 'ab' * 32))

        self.assertIn('UnsignedProcessor', logs.output[0])

    def test_hmac_helper_accepts_uppercase_hex(self) -> None:
        body = b'{"event":"payment.succeeded"}'

        self.assertTrue(verify_hmac_signature(body, sign(body).upper(), WEBHOOK_SECRET))


class WebhookPayloadTests(PaymentWebhookTestCase):
    def test_other_events_are_acknowledged_and_ignored(self) -> None:
        body = json.dumps({'event': 'payment.canceled', 'object': {'id': 'pay_1'}}).encode()

        response = self.deliver(body)

        self.assertEqual(response.status_code, 200)
        self.assertFalse(WebhookEvent.objects.exists())
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'pending')

    def test_invalid_json(self) -> None:
        response = self.deliver(b'{not json')

        self.assertEqual(response.status_code, 400)

    def test_missing_order_reference(self) -> None:
        body = json.dumps({'event': 'payment.succeeded', 'object': {'id': 'pay_1', 'metadata': {}}}).encode()

        response = self.deliver(body)

        self.assertEqual(response.status_code, 400)

    def test_payment_object_that_is_not_an_object(self) -> None:
        body = json.dumps({'event': 'payment.succeeded', 'object': 'pay_1'}).encode()

        response = self.deliver(body)

        self.assertEqual(response.status_code, 400)

    def test_metadata_that_is_not_an_object(self) -> None:
        body = json.dumps({
            'event': 'payment.succeeded',
            'object': {'id': 'pay_1', 'metadata': [self.order.payment_reference]},
        }).encode()

        response = self.deliver(body)

        self.assertEqual(response.status_code, 400)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'pending')

    def test_event_kind_under_type_key(self) -> None:
        body = json.dumps({
            'type': 'payment.succeeded',
            'object': {'id': 'pay_1', 'metadata': {'order_id': self.order.payment_reference}},
        }).encode()

        response = self.deliver(body)

        self.assertEqual(response.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'paid')

    def test_unknown_order_reference(self) -> None:
        response = self.deliver(payment_succeeded_payload('0' * 32))

        self.assertEqual(response.status_code, 404)
        self.assertFalse(WebhookEvent.objects.exists())

    def test_unexpected_error_is_500_so_provider_retries(self) -> None:
        with patch.object(OrderService, 'confirm_payment', side_effect=RuntimeError('deadlock detected')):
            response = self.deliver(payment_succeeded_payload(self.order.payment_reference))

        self.assertEqual(response.status_code, 500)
        self.assertFalse(WebhookEvent.objects.exists())


class PaymentConfirmationTests(PaymentWebhookTestCase):
    def test_pending_order_becomes_paid(self) -> None:
        response = self.deliver(payment_succeeded_payload(self.order.payment_reference, payment_id='pay_777'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'success')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'paid')
        self.assertEqual(self.order.payment_status, 'paid')
        self.assertEqual(self.order.transaction_id, 'pay_777')
        self.assertIsNotNone(self.order.paid_at)

        history = OrderStatusHistory.objects.get(order=self.order, new_status='paid')
        self.assertTrue(history.is_automatic)
        self.assertEqual(WebhookEvent.objects.get().status, 'processed')

    def test_replayed_delivery_is_a_noop(self) -> None:
        body = payment_succeeded_payload(self.order.payment_reference)

        self.deliver(body)
        self.order.refresh_from_db()
        paid_at = self.order.paid_at
        replay = self.deliver(body)

        self.assertEqual(replay.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_at, paid_at)
        self.assertEqual(OrderStatusHistory.objects.filter(order=self.order, new_status='paid').count(), 1)
        self.assertEqual(WebhookEvent.objects.count(), 1)

    def test_second_payment_for_paid_order_is_skipped(self) -> None:
        self.deliver(payment_succeeded_payload(self.order.payment_reference, payment_id='pay_1'))

        response = self.deliver(payment_succeeded_payload(self.order.payment_reference, payment_id='pay_2'))

        self.assertEqual(response.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.transaction_id, 'pay_1')
        self.assertEqual(WebhookEvent.objects.get(event_id='payment.succeeded:pay_2').status, 'skipped')

    def test_payment_on_cancelled_order_keeps_status(self) -> None:
        OrderService.update_order_status(self.order.pk, StatusChangeData(new_status='cancelled'))

        response = self.deliver(payment_succeeded_payload(self.order.payment_reference))

        self.assertEqual(response.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'cancelled')
        self.assertEqual(self.order.payment_status, 'paid')

    def test_buyer_and_staff_are_notified(self) -> None:
        directory = InMemoryConnectionDirectory()
        buyer, staff = FakeConnection(), FakeConnection()
        directory.register(self.user.pk, buyer)
        directory.register(create_admin().pk, staff, roles=['admin'])

        with patch('apps.notifications.services.get_connection_directory', return_value=directory):
            self.deliver(payment_succeeded_payload(self.order.payment_reference))

        self.assertEqual([m['type'] for m in buyer.messages], ['order_paid'])
        self.assertEqual([m['type'] for m in staff.messages], ['order_paid'])


class TemporaryPromocodeWebhookTests(PaymentWebhookTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.promocode = create_promocode(code='WEEKEND', promo_type=Promocode.TYPE_TEMPORARY)
        self.promo_order = OrderService.create_order(
            self.user, checkout_data(line(self.product), promocode='WEEKEND')
        ).unwrap()

    def test_usage_recorded_at_checkout_is_not_duplicated(self) -> None:
        body = payment_succeeded_payload(self.promo_order.payment_reference)

        self.deliver(body)
        self.deliver(body)

        self.assertEqual(PromocodeUsage.objects.filter(promocode=self.promocode, user=self.user).count(), 1)

    def test_missing_usage_is_inserted_once(self) -> None:
        PromocodeUsage.objects.filter(promocode=self.promocode).delete()
        body = payment_succeeded_payload(self.promo_order.payment_reference)

        self.deliver(body)
        self.deliver(body)

        usage = PromocodeUsage.objects.get(promocode=self.promocode, user=self.user)
        self.assertEqual(usage.order, self.promo_order)
