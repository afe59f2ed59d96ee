"""
Idempotency guard for side-effecting API endpoints.

Wraps a DRF function view so that a client retrying with the same
``Idempotency-Key`` header gets the first successful response replayed
byte-for-byte instead of repeating the side effects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from functools import wraps
from typing import Any

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.http import HttpResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.renderers import JSONRenderer
from rest_framework.request import Request
from rest_framework.response import Response

from apps.common.logging import set_request_context
from apps.common.models import IdempotencyKey
from apps.common.validators import get_client_ip, log_security_event

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = 'Idempotency-Key'
MIN_KEY_LENGTH = 16
MAX_KEY_LENGTH = 255
DEFAULT_TTL_HOURS = 24

# ===============================================================================
# KEY CLAIMING
# ===============================================================================

CLAIM_ACQUIRED = 'acquired'
CLAIM_REPLAY = 'replay'
CLAIM_IN_FLIGHT = 'in_flight'
CLAIM_FORBIDDEN = 'forbidden'


@dataclass(frozen=True)
class KeyClaim:
    """Outcome of trying to claim an idempotency key for a request"""
    outcome: str
    record: IdempotencyKey | None = None


def get_key_ttl() -> timedelta:
    return timedelta(hours=getattr(settings, 'IDEMPOTENCY_KEY_TTL_HOURS', DEFAULT_TTL_HOURS))


def _classify(record: IdempotencyKey, user_id: Any) -> KeyClaim:
    if record.user_id != user_id:
        return KeyClaim(CLAIM_FORBIDDEN, record)
    if record.is_completed:
        return KeyClaim(CLAIM_REPLAY, record)
    return KeyClaim(CLAIM_IN_FLIGHT, record)


def claim_key(key: str, user: Any, request_path: str = '') -> KeyClaim:
    """
    🔑 Look up ``key`` and either classify the existing record or insert an
    in-flight placeholder owned by ``user``.

    Expired records are deleted and the key is claimed afresh.
    """
    with transaction.atomic():
        record = IdempotencyKey.objects.select_for_update().filter(key=key).first()

        if record is not None and record.is_expired():
            logger.info(f"♻️ [Idempotency] Recycling expired key {key[:8]}…")
            record.delete()
            record = None

        if record is not None:
            return _classify(record, user.pk)

        try:
            with transaction.atomic():
                record = IdempotencyKey.objects.create(
                    key=key,
                    user=user,
                    request_path=request_path[:255],
                    expires_at=timezone.now() + get_key_ttl(),
                )
        except IntegrityError:
            # A concurrent request inserted the same key first
            record = IdempotencyKey.objects.filter(key=key).first()
            if record is None:
                return KeyClaim(CLAIM_IN_FLIGHT)
            return _classify(record, user.pk)

    return KeyClaim(CLAIM_ACQUIRED, record)


def store_response(key: str, body: bytes, status_code: int) -> None:
    """Persist the rendered response for replay and refresh the expiry."""
    now = timezone.now()
    IdempotencyKey.objects.filter(key=key).update(
        response_body=body.decode('utf-8'),
        response_status=status_code,
        completed_at=now,
        expires_at=now + get_key_ttl(),
    )


def release_key(key: str) -> None:
    """Drop an in-flight placeholder so the client may retry with the same key."""
    IdempotencyKey.objects.filter(key=key, completed_at__isnull=True).delete()


# ===============================================================================
# VIEW DECORATOR
# ===============================================================================


def _error(code: str, message: str, http_status: int) -> Response:
    return Response({'error': code, 'message': message}, status=http_status)


def idempotent(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator for DRF function views (place it below ``@api_view``).

    - missing or badly sized key → 400 before any business logic
    - key owned by another user → 403
    - key still being processed → 409
    - completed key → stored body replayed with 200
    - otherwise the view runs; a 2xx result is stored, anything else releases the key
    """
    @wraps(view_func)
    def wrapper(request: Request, *args: Any, **kwargs: Any) -> Any:
        key = request.headers.get(IDEMPOTENCY_HEADER, '')

        if not key:
            return _error(
                'idempotency_key_required',
                f'{IDEMPOTENCY_HEADER} header is required',
                status.HTTP_400_BAD_REQUEST,
            )
        if not MIN_KEY_LENGTH <= len(key) <= MAX_KEY_LENGTH:
            return _error(
                'idempotency_key_invalid',
                f'{IDEMPOTENCY_HEADER} must be between {MIN_KEY_LENGTH} and {MAX_KEY_LENGTH} characters',
                status.HTTP_400_BAD_REQUEST,
            )

        user = request.user
        set_request_context(user_id=user.pk)
        claim = claim_key(key, user, request.path)

        if claim.outcome == CLAIM_FORBIDDEN:
            log_security_event(
                'idempotency_key_owner_mismatch',
                {'user_id': str(user.pk), 'path': request.path},
                get_client_ip(request),
            )
            return _error(
                'idempotency_key_forbidden',
                'This idempotency key belongs to another user',
                status.HTTP_403_FORBIDDEN,
            )

        if claim.outcome == CLAIM_IN_FLIGHT:
            return _error(
                'idempotency_key_in_use',
                'A request with this idempotency key is still being processed, retry shortly',
                status.HTTP_409_CONFLICT,
            )

        if claim.outcome == CLAIM_REPLAY:
            assert claim.record is not None
            logger.info(
                f"🔁 [Idempotency] Replaying stored response for user {user.pk}",
                extra={'user_id': user.pk, 'path': request.path},
            )
            return HttpResponse(
                claim.record.response_body or '',
                status=status.HTTP_200_OK,
                content_type='application/json',
            )

        try:
            response = view_func(request, *args, **kwargs)
        except Exception:
            release_key(key)
            raise

        if not status.is_success(response.status_code):
            release_key(key)
            return response

        body = JSONRenderer().render(response.data) if hasattr(response, 'data') else response.content
        try:
            store_response(key, body, response.status_code)
        except DatabaseError:
            # The request itself succeeded; the placeholder stays and expires on its own
            logger.exception(
                f"⚠️ [Idempotency] Failed to store response for user {user.pk}",
                extra={'user_id': user.pk, 'path': request.path},
            )

        return HttpResponse(body, status=response.status_code, content_type='application/json')

    return wrapper
