"""
Notification Services for the Storefront platform
Best-effort push of order events to the buyer and to on-duty staff.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from django.apps import apps
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder

from .connections import ConnectionDirectory, LiveSession

if TYPE_CHECKING:
    from apps.orders.models import Order

logger = logging.getLogger(__name__)

DEFAULT_STAFF_ROLES = ('admin', 'consultant')

# Event types pushed to clients
EVENT_NEW_ORDER = 'new_order'
EVENT_ORDER_CREATED = 'order_created'
EVENT_ORDER_STATUS_UPDATED = 'order_status_updated'
EVENT_ORDER_PAID = 'order_paid'


def get_connection_directory() -> ConnectionDirectory:
    """The directory owned by the notifications app"""
    return apps.get_app_config('notifications').connection_directory


def order_summary(order: Order) -> dict[str, Any]:
    return {
        'id': str(order.id),
        'order_number': order.order_number,
        'user_id': order.user_id,
        'status': order.status,
        'payment_status': order.payment_status,
        'total': str(order.total),
        'created_at': order.created_at.isoformat() if order.created_at else None,
    }


# ===============================================================================
# ORDER EVENT BROADCASTER
# ===============================================================================

class OrderEventBroadcaster:
    """
    📣 Fans order events out to live sessions.

    Never raises: closed or missing connections are skipped and send
    failures are logged per connection.
    """

    def __init__(self, directory: ConnectionDirectory | None = None, staff_roles: Iterable[str] | None = None):
        self.directory = directory if directory is not None else get_connection_directory()
        if staff_roles is None:
            staff_roles = getattr(settings, 'NOTIFICATION_STAFF_ROLES', DEFAULT_STAFF_ROLES)
        self.staff_roles = frozenset(staff_roles)

    # ---- order events ------------------------------------------------------

    def order_created(self, order: Order) -> int:
        """Tell staff about a new order and confirm it to the buyer."""
        summary = order_summary(order)
        sent = self.notify_staff({'type': EVENT_NEW_ORDER, 'order': summary})
        sent += self.notify_user(order.user_id, {'type': EVENT_ORDER_CREATED, 'order': summary})
        return sent

    def order_status_updated(self, order: Order, old_status: str) -> int:
        message = {
            'type': EVENT_ORDER_STATUS_UPDATED,
            'order': order_summary(order),
            'old_status': old_status,
        }
        return self.notify_staff(message) + self.notify_user(order.user_id, message)

    def order_paid(self, order: Order) -> int:
        message = {'type': EVENT_ORDER_PAID, 'order': order_summary(order)}
        return self.notify_user(order.user_id, message) + self.notify_staff(message)

    # ---- delivery ----------------------------------------------------------

    def notify_user(self, user_id: Any, message: dict[str, Any]) -> int:
        if user_id is None:
            return 0
        try:
            session = self.directory.get(user_id)
        except Exception:
            logger.exception(f"🔥 [Notifications] Connection lookup failed for user {user_id}")
            return 0
        if session is None:
            return 0
        return int(self._send(session, message))

    def notify_staff(self, message: dict[str, Any]) -> int:
        try:
            sessions = self.directory.snapshot()
        except Exception:
            logger.exception("🔥 [Notifications] Could not snapshot live sessions")
            return 0

        sent = 0
        for session in sessions:
            if session.has_any_role(self.staff_roles):
                sent += int(self._send(session, message))
        return sent

    def _send(self, session: LiveSession, message: dict[str, Any]) -> bool:
        try:
            if not session.connection.is_open:
                return False
            session.connection.send(json.dumps(message, cls=DjangoJSONEncoder))
            return True
        except Exception:
            logger.exception(
                f"⚠️ [Notifications] Failed to push {message.get('type')} to user {session.user_id}",
                extra={'user_id': session.user_id, 'event_type': message.get('type')},
            )
            return False
