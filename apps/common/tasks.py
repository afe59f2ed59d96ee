"""
Maintenance background tasks for shared platform tables.

Django-Q2 tasks and their schedule registration.
"""

from __future__ import annotations

import logging
from typing import Any

from django_q.models import Schedule
from django_q.tasks import schedule

from apps.common.models import IdempotencyKey

logger = logging.getLogger(__name__)

CLEANUP_IDEMPOTENCY_SCHEDULE = 'common-cleanup-idempotency-keys'


def cleanup_expired_idempotency_keys() -> dict[str, Any]:
    """
    🧹 Delete idempotency keys whose replay window has passed.

    Expired keys are also recycled lazily on lookup; this keeps the table small.
    """
    try:
        deleted = IdempotencyKey.purge_expired()
        if deleted:
            logger.info(f"🧹 [Idempotency] Removed {deleted} expired keys")
        return {'success': True, 'deleted': deleted}
    except Exception as e:
        logger.exception(f"💥 [Idempotency] Cleanup failed: {e}")
        return {'success': False, 'error': str(e)}


def setup_common_scheduled_tasks() -> dict[str, str]:
    """Set up platform maintenance scheduled tasks."""
    tasks_created = {}

    if not Schedule.objects.filter(name=CLEANUP_IDEMPOTENCY_SCHEDULE).exists():
        schedule(
            'apps.common.tasks.cleanup_expired_idempotency_keys',
            schedule_type=Schedule.HOURLY,
            name=CLEANUP_IDEMPOTENCY_SCHEDULE,
        )
        tasks_created['cleanup_idempotency_keys'] = 'created'
    else:
        tasks_created['cleanup_idempotency_keys'] = 'already_exists'

    return tasks_created
