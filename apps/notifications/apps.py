"""
Django app configuration for Notifications app
"""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class NotificationsConfig(AppConfig):
    """
    📣 Real-time order notifications

    Owns the process-wide connection directory that the transport layer
    registers live sessions in and the order broadcaster reads from.
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.notifications'
    verbose_name = _('📣 Notifications')

    def ready(self) -> None:
        from .connections import InMemoryConnectionDirectory  # noqa: PLC0415 - Django app ready() pattern

        self.connection_directory = InMemoryConnectionDirectory()
