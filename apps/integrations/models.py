import hashlib
import uuid
from typing import ClassVar

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# WEBHOOK DEDUPLICATION SYSTEM
# ===============================================================================


class WebhookEvent(models.Model):
    """
    🔄 Webhook event deduplication and tracking

    One row per (source, event_id). Payment providers redeliver until they
    get a 2xx, so a processed row turns every later delivery into a no-op.
    """

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("pending", _("⏳ Pending")),
        ("processed", _("✅ Processed")),
        ("failed", _("❌ Failed")),
        ("skipped", _("⏭️ Skipped")),  # Duplicate or irrelevant
    )

    SOURCE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("yookassa", _("💳 YooKassa")),
        ("other", _("🔌 Other")),
    )

    # Core identification
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.CharField(
        max_length=50, choices=SOURCE_CHOICES, help_text=_("External service that sent the webhook")
    )
    event_id = models.CharField(max_length=255, help_text=_("Unique event ID from the external service"))
    event_type = models.CharField(max_length=100, help_text=_("Type of event (e.g., 'payment.succeeded')"))

    # Processing status
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")

    # Timing
    received_at = models.DateTimeField(default=timezone.now, help_text=_("When webhook was received by our system"))
    processed_at = models.DateTimeField(null=True, blank=True, help_text=_("When webhook processing completed"))

    # Data storage
    payload = models.JSONField(help_text=_("Complete webhook payload from external service"))
    signature_hash = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text=_("SHA-256 hash of webhook signature for verification tracking"),
    )
    error_message = models.TextField(blank=True, help_text=_("Error details if processing failed"))

    # Metadata
    ip_address = models.GenericIPAddressField(null=True, blank=True, help_text=_("IP address webhook was received from"))
    user_agent = models.TextField(blank=True, help_text=_("User agent of webhook sender"))

    # Audit trail
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "webhook_events"
        verbose_name = _("🔄 Webhook Event")
        verbose_name_plural = _("🔄 Webhook Events")
        constraints: ClassVar[list[models.BaseConstraint]] = [
            # Prevent duplicate processing
            models.UniqueConstraint(fields=["source", "event_id"], name="unique_webhook_event_per_source"),
        ]
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["source", "event_type", "received_at"], name="webhook_source_type_idx"),
        )
        ordering: ClassVar[tuple[str, ...]] = ("-received_at",)

    def __str__(self) -> str:
        return f"🔄 {self.get_source_display()} | {self.event_type} | {self.status}"

    def set_signature(self, signature: str | None) -> None:
        """Store only a hash of the signature. Empty/None -> empty hash string."""
        self.signature_hash = hashlib.sha256(signature.encode()).hexdigest() if signature else ""

    def mark_processed(self, save: bool = True) -> None:
        """✅ Mark webhook as successfully processed"""
        self.status = "processed"
        self.error_message = ""
        self.processed_at = timezone.now()
        if save:
            self.save(update_fields=["status", "error_message", "processed_at", "updated_at"])

    def mark_skipped(self, reason: str, save: bool = True) -> None:
        """⏭️ Mark webhook as skipped (nothing left to do)"""
        self.status = "skipped"
        self.error_message = reason
        self.processed_at = timezone.now()
        if save:
            self.save(update_fields=["status", "error_message", "processed_at", "updated_at"])

    @property
    def is_handled(self) -> bool:
        return self.status in ("processed", "skipped")
