"""
Security event logging helpers shared by the checkout and webhook flows.
"""

import logging
from typing import Any

from django.http import HttpRequest

logger = logging.getLogger(__name__)


def get_client_ip(request: HttpRequest) -> str | None:
    """🌐 Get client IP address"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    return x_forwarded_for.split(',')[0].strip() if x_forwarded_for else request.META.get('REMOTE_ADDR')


def log_security_event(event_type: str, details: dict[str, Any], request_ip: str | None = None) -> None:
    """
    Log security events for monitoring and forensics
    """
    logger.warning(
        f"🚨 [Security] {event_type}: {details} from IP: {request_ip}",
        extra={'security_event': event_type, 'request_ip': request_ip},
    )
