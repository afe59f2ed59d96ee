"""
Shared models for the Storefront platform.
"""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# IDEMPOTENCY KEYS
# ===============================================================================


class IdempotencyKey(models.Model):
    """
    🔁 Client-supplied retry key guarding a side-effecting endpoint.

    A row is inserted as an in-flight placeholder before the protected
    operation runs; the unique constraint on ``key`` makes that insert the
    lock. Once the operation succeeds the exact response bytes are stored and
    ``completed_at`` is set, after which retries replay the stored body.
    """

    key = models.CharField(max_length=255, unique=True, help_text=_("Idempotency-Key header value"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='idempotency_keys',
    )
    request_path = models.CharField(max_length=255, blank=True, default='')

    response_body = models.TextField(null=True, blank=True, help_text=_("Rendered response, stored verbatim"))
    response_status = models.PositiveSmallIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(db_index=True)

    class Meta:
        db_table = 'idempotency_keys'
        verbose_name = _('Idempotency Key')
        verbose_name_plural = _('Idempotency Keys')

    def __str__(self) -> str:
        return f"{self.key} ({'completed' if self.is_completed else 'in flight'})"

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or timezone.now())

    @classmethod
    def purge_expired(cls) -> int:
        """Delete every expired key, returning how many were removed."""
        deleted, _details = cls.objects.filter(expires_at__lt=timezone.now()).delete()
        return deleted
