"""
ASGI config for the Storefront platform

HTTP goes to Django; websockets on the notifications path go to the live
notification endpoint.
"""

import os

from django.core.asgi import get_asgi_application

# Set default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.prod')

django_application = get_asgi_application()

# Imported after setup: the socket app touches models
from apps.notifications.sockets import (  # noqa: E402
    NOTIFICATIONS_SOCKET_PATH,
    NotificationSocketApp,
    reject_socket,
)

notification_sockets = NotificationSocketApp()


async def application(scope, receive, send):
    if scope['type'] == 'websocket':
        if scope['path'] == NOTIFICATIONS_SOCKET_PATH:
            await notification_sockets(scope, receive, send)
        else:
            await reject_socket(scope, receive, send)
        return
    await django_application(scope, receive, send)
