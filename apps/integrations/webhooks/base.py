import hashlib
import hmac
import logging
import re
from dataclasses import dataclass
from typing import Any

from apps.integrations.models import WebhookEvent

logger = logging.getLogger(__name__)

HEX_SIGNATURE_RE = re.compile(r"^[0-9a-fA-F]+$")


# ===============================================================================
# WEBHOOK PROCESSING RESULT TYPES
# ===============================================================================


@dataclass(frozen=True)
class WebhookProcessingResult:
    """Result of webhook processing with success flag, message, HTTP status and optional event."""

    success: bool
    message: str
    status_code: int = 200
    webhook_event: WebhookEvent | None = None

    @classmethod
    def success_result(cls, message: str, event: WebhookEvent | None = None) -> "WebhookProcessingResult":
        """Create a successful result."""
        return cls(success=True, message=message, status_code=200, webhook_event=event)

    @classmethod
    def error_result(
        cls, message: str, status_code: int = 400, event: WebhookEvent | None = None
    ) -> "WebhookProcessingResult":
        """Create an error result."""
        return cls(success=False, message=message, status_code=status_code, webhook_event=event)


@dataclass(frozen=True)
class WebhookContext:
    """Context for webhook event processing."""

    payload: dict[str, Any]
    signature: str
    ip_address: str | None
    user_agent: str | None
    event_id: str
    event_type: str


# ===============================================================================
# BASE WEBHOOK PROCESSING
# ===============================================================================


class BaseWebhookProcessor:
    """
    🔧 Base class for webhook processing with deduplication

    Provides common functionality for all webhook sources:
    - Signature verification (fails secure unless overridden)
    - Event type filtering
    - Deduplication record keeping
    """

    source_name: str | None = None  # Override in subclasses
    supported_events: frozenset[str] = frozenset()

    def __init__(self) -> None:
        if not self.source_name:
            raise ValueError("source_name must be defined in subclass")

    def process_webhook(
        self,
        payload: dict[str, Any],
        signature: str = "",
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> WebhookProcessingResult:
        """
        🔄 Main webhook processing pipeline for an already authenticated payload
        """
        event_type = self.extract_event_type(payload)
        if not event_type:
            return WebhookProcessingResult.error_result("❌ Missing event type in payload")

        if self.supported_events and event_type not in self.supported_events:
            logger.info(f"⏭️ Ignoring {self.source_name} event {event_type}")
            return WebhookProcessingResult.success_result(f"Event {event_type} ignored")

        event_id = self.extract_event_id(payload)
        if not event_id:
            return WebhookProcessingResult.error_result("❌ Missing event ID in payload")

        context = WebhookContext(
            payload=payload,
            signature=signature,
            ip_address=ip_address,
            user_agent=user_agent,
            event_id=event_id,
            event_type=event_type,
        )
        return self.handle_event(context)

    def record_event(self, context: WebhookContext) -> tuple[WebhookEvent, bool]:
        """
        Get or create the deduplication row. Call inside the transaction that
        applies the event so both commit or roll back together.
        """
        assert self.source_name is not None
        webhook_event, created = WebhookEvent.objects.get_or_create(
            source=self.source_name,
            event_id=context.event_id,
            defaults={
                "event_type": context.event_type,
                "payload": context.payload,
                "ip_address": context.ip_address,
                "user_agent": context.user_agent or "",
            },
        )
        if created and context.signature:
            webhook_event.set_signature(context.signature)
            webhook_event.save(update_fields=["signature_hash", "updated_at"])
        return webhook_event, created

    def is_configured(self) -> bool:
        """Whether the secrets needed to authenticate deliveries are present"""
        return True

    def extract_event_id(self, payload: dict[str, Any]) -> str | None:
        """🔍 Extract unique event ID from payload - override in subclasses"""
        return payload.get("id")

    def extract_event_type(self, payload: dict[str, Any]) -> str | None:
        """🏷️ Extract event type from payload - override in subclasses"""
        return payload.get("type")

    def verify_signature(self, payload_body: bytes, signature: str) -> bool:
        """🔐 Verify webhook signature - secure default is to fail and log an error.

        Subclasses must implement verification over the raw request body.
        """
        logger.error(f"Signature verification not implemented for {type(self).__name__}")
        return False

    def handle_event(self, context: WebhookContext) -> WebhookProcessingResult:
        """
        🎯 Handle specific webhook event - override in subclasses
        """
        raise NotImplementedError("Subclasses must implement handle_event")


# ===============================================================================
# WEBHOOK SIGNATURE VERIFICATION UTILITIES
# ===============================================================================


def is_hex_signature(signature: str | None) -> bool:
    return bool(signature) and HEX_SIGNATURE_RE.match(signature) is not None and len(signature) % 2 == 0


def verify_hmac_signature(payload_body: bytes, signature: str, secret: str, algorithm: str = "sha256") -> bool:
    """
    🔐 Verify a hex HMAC signature computed over the exact raw request body
    """
    if not secret or not is_hex_signature(signature):
        return False

    mac = hmac.new(secret.encode("utf-8"), payload_body, getattr(hashlib, algorithm))
    expected_signature = mac.hexdigest()

    # Compare signatures (timing-safe)
    return hmac.compare_digest(signature.lower(), expected_signature)


# ===============================================================================
# PROCESSOR REGISTRY
# ===============================================================================


def get_webhook_processor(source: str) -> BaseWebhookProcessor | None:
    """
    🏭 Factory function to get appropriate webhook processor
    """
    from .yookassa import YooKassaWebhookProcessor  # Factory pattern avoids circular imports  # noqa: PLC0415

    processors: dict[str, type[BaseWebhookProcessor]] = {
        "yookassa": YooKassaWebhookProcessor,
    }

    processor_class = processors.get(source)
    if processor_class:
        return processor_class()

    return None
