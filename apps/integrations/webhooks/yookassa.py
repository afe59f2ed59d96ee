import logging
from typing import Any

from django.conf import settings
from django.db import transaction

from apps.orders.models import Order
from apps.orders.services import OrderService

from .base import BaseWebhookProcessor, WebhookContext, WebhookProcessingResult, verify_hmac_signature

logger = logging.getLogger(__name__)

EVENT_PAYMENT_SUCCEEDED = "payment.succeeded"


# ===============================================================================
# YOOKASSA WEBHOOK PROCESSOR
# ===============================================================================

class YooKassaWebhookProcessor(BaseWebhookProcessor):
    """
    💳 YooKassa payment notifications

    Handles:
    - payment.succeeded → order marked paid, temporary promocode usage finalized
    Everything else is acknowledged and ignored.
    """

    source_name = "yookassa"
    supported_events = frozenset({EVENT_PAYMENT_SUCCEEDED})

    def extract_event_type(self, payload: dict[str, Any]) -> str | None:
        """🏷️ Notifications carry the kind under ``event``; older ones under ``type``"""
        event_type = payload.get("event") or payload.get("type")
        return event_type if isinstance(event_type, str) else None

    def extract_event_id(self, payload: dict[str, Any]) -> str | None:
        """🔍 The provider payment id identifies the notification"""
        payment = payload.get("object")
        if not isinstance(payment, dict) or not payment.get("id"):
            return None
        payment_id = payment["id"]
        return f"{self.extract_event_type(payload)}:{payment_id}"

    def is_configured(self) -> bool:
        if not getattr(settings, "PAYMENT_WEBHOOK_SECRET", None):
            logger.error("🔥 PAYMENT_WEBHOOK_SECRET not configured - rejecting webhook")
            return False
        return True

    def verify_signature(self, payload_body: bytes, signature: str) -> bool:
        """🔐 HMAC-SHA256 (hex) of the raw body with PAYMENT_WEBHOOK_SECRET"""
        return verify_hmac_signature(payload_body, signature, getattr(settings, "PAYMENT_WEBHOOK_SECRET", None) or "")

    def handle_event(self, context: WebhookContext) -> WebhookProcessingResult:
        """🎯 Apply payment.succeeded to the referenced order"""
        payment = context.payload.get("object")
        metadata = payment.get("metadata") if isinstance(payment, dict) else None
        if not isinstance(metadata, dict):
            return WebhookProcessingResult.error_result("❌ Payment metadata must be an object")

        payment_id = payment.get("id")
        order_reference = metadata.get("order_id")

        if not payment_id or not order_reference:
            return WebhookProcessingResult.error_result("❌ Missing payment id or order reference")

        with transaction.atomic():
            order = Order.objects.select_for_update().filter(payment_reference=str(order_reference)).first()
            if order is None:
                logger.warning(f"⚠️ YooKassa payment {payment_id} references unknown order {order_reference}")
                return WebhookProcessingResult.error_result("❌ Order not found", status_code=404)

            webhook_event, created = self.record_event(context)
            if not created and webhook_event.is_handled:
                logger.info(f"🔄 Duplicate webhook {self.source_name}:{context.event_id} - skipping")
                return WebhookProcessingResult.success_result(
                    f"⏭️ Duplicate webhook skipped: {context.event_id}", webhook_event
                )

            confirmed = OrderService.confirm_payment(order, str(payment_id))
            if confirmed:
                webhook_event.mark_processed()
            else:
                webhook_event.mark_skipped("Order already paid")

        if not confirmed:
            return WebhookProcessingResult.success_result(
                f"Order {order.order_number} already paid", webhook_event
            )

        logger.info(f"✅ Order {order.order_number} paid via YooKassa payment {payment_id}")
        self._notify_paid(order)
        return WebhookProcessingResult.success_result(f"Order {order.order_number} marked as paid", webhook_event)

    def _notify_paid(self, order: Order) -> None:
        try:
            from apps.notifications.services import OrderEventBroadcaster  # noqa: PLC0415

            OrderEventBroadcaster().order_paid(order)
        except Exception:
            logger.exception(f"⚠️ Failed to broadcast payment of order {order.order_number}")
