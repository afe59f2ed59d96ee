from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class IntegrationsConfig(AppConfig):
    """
    🔌 External service integrations and webhook management

    Handles:
    - Signed payment provider webhooks
    - Webhook deduplication
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.integrations'
    verbose_name = _('🔌 Integrations')
