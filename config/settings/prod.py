"""
Production settings for the Storefront platform
Security-first configuration with structured logging.
"""

import os

from .base import *  # noqa: F403

# ===============================================================================
# PRODUCTION FLAGS
# ===============================================================================

DEBUG = False

validate_production_secret_key()

if not PAYMENT_WEBHOOK_SECRET:
    import warnings
    warnings.warn(
        "🚨 PAYMENT_WEBHOOK_SECRET is not set - payment webhooks will be rejected with 500",
        UserWarning,
        stacklevel=2
    )

ALLOWED_HOSTS = [host for host in os.environ.get("ALLOWED_HOSTS", "").split(",") if host]
CSRF_TRUSTED_ORIGINS = [origin for origin in os.environ.get("CSRF_TRUSTED_ORIGINS", "").split(",") if origin]

# ===============================================================================
# HTTPS SECURITY SETTINGS 🔒
# ===============================================================================

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = True

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SAMESITE = "Lax"

SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = False

SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"

# ===============================================================================
# SESSION SECURITY CONFIGURATION
# ===============================================================================

SESSION_COOKIE_AGE = 3600  # 1 hour
SESSION_COOKIE_NAME = "storefront_sessionid"
SESSION_SAVE_EVERY_REQUEST = True

# ===============================================================================
# LOGGING CONFIGURATION (Production)
# ===============================================================================

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "format": '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "request_id": "%(request_id)s"}',
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "filters": {
        "add_request_id": {
            "()": "apps.common.logging.RequestIDFilter",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["add_request_id"],
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "django.security": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}

# ===============================================================================
# BACKGROUND TASKS
# ===============================================================================

Q_CLUSTER = {
    **Q_CLUSTER_BASE,
    "workers": int(os.environ.get("Q_CLUSTER_WORKERS", "4")),
    "recycle": 500,
    "sync": False,
}
