"""
Tests for request correlation and security logging helpers.
"""

import logging

from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase

from apps.common.logging import (
    RequestIDFilter,
    clear_request_context,
    get_request_id,
    set_request_context,
    set_request_id,
)
from apps.common.middleware import RequestIDMiddleware
from apps.common.validators import get_client_ip, log_security_event


class RequestIDMiddlewareTests(SimpleTestCase):
    def setUp(self) -> None:
        self.factory = RequestFactory()
        self.seen: list[str | None] = []

        def view(request):
            self.seen.append(get_request_id())
            return HttpResponse('ok')

        self.middleware = RequestIDMiddleware(view)

    def test_generates_id_and_echoes_it(self) -> None:
        response = self.middleware(self.factory.get('/api/orders/'))

        self.assertEqual(len(response['X-Request-ID']), 36)
        self.assertEqual(self.seen, [response['X-Request-ID']])

    def test_honours_upstream_id(self) -> None:
        response = self.middleware(self.factory.get('/', HTTP_X_REQUEST_ID='lb-3c9a71'))

        self.assertEqual(response['X-Request-ID'], 'lb-3c9a71')

    def test_context_is_cleared_after_response(self) -> None:
        self.middleware(self.factory.get('/'))

        self.assertIsNone(get_request_id())


class RequestIDFilterTests(SimpleTestCase):
    def setUp(self) -> None:
        clear_request_context()

    def make_record(self) -> logging.LogRecord:
        return logging.LogRecord('apps.orders', logging.INFO, __file__, 1, 'checkout', None, None)

    def test_defaults_outside_a_request(self) -> None:
        record = self.make_record()

        self.assertTrue(RequestIDFilter().filter(record))
        self.assertEqual(record.request_id, '-')
        self.assertIsNone(record.user_id)

    def test_copies_current_context(self) -> None:
        set_request_id('req-42')
        set_request_context(user_id=7)
        self.addCleanup(clear_request_context)
        record = self.make_record()

        RequestIDFilter().filter(record)

        self.assertEqual((record.request_id, record.user_id), ('req-42', 7))


class SecurityHelperTests(SimpleTestCase):
    def test_client_ip_prefers_first_forwarded_address(self) -> None:
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1', REMOTE_ADDR='10.0.0.2')

        self.assertEqual(get_client_ip(request), '203.0.113.9')

    def test_client_ip_falls_back_to_remote_addr(self) -> None:
        self.assertEqual(get_client_ip(RequestFactory().get('/')), '127.0.0.1')

    def test_security_event_is_a_warning_with_context(self) -> None:
        with self.assertLogs('apps.common.validators', level='WARNING') as logs:
            log_security_event('webhook_signature_invalid', {'source': 'yookassa'}, '203.0.113.9')

        record = logs.records[0]
        self.assertEqual(record.security_event, 'webhook_signature_invalid')
        self.assertEqual(record.request_ip, '203.0.113.9')
