"""
Purge expired idempotency keys immediately, without waiting for the scheduler.
"""

from typing import Any

from django.core.management.base import BaseCommand, CommandError

from apps.common.tasks import cleanup_expired_idempotency_keys


class Command(BaseCommand):
    help = 'Delete idempotency keys whose replay window has expired'

    def handle(self, *args: Any, **options: Any) -> None:
        result = cleanup_expired_idempotency_keys()
        if not result['success']:
            raise CommandError(f"Cleanup failed: {result['error']}")

        self.stdout.write(self.style.SUCCESS(f"✅ Removed {result['deleted']} expired idempotency keys"))
