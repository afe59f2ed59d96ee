"""
Live notification sockets for the Storefront platform

ASGI websocket endpoint that registers an authenticated client in the
connection directory for as long as its socket stays open. Clients pass a
DRF token as ``?token=<key>`` or an ``Authorization: Token <key>`` header.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from typing import Any
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from rest_framework.authtoken.models import Token

from .connections import ConnectionDirectory
from .services import get_connection_directory

logger = logging.getLogger(__name__)

NOTIFICATIONS_SOCKET_PATH = '/ws/notifications/'

# Close codes sent before accepting (4000-4999 are application defined)
CLOSE_UNAUTHENTICATED = 4401

Scope = dict[str, Any]
Receive = Callable[[], Awaitable[dict[str, Any]]]
Send = Callable[[dict[str, Any]], Awaitable[None]]


# ===============================================================================
# SOCKET CONNECTION
# ===============================================================================

class WebSocketConnection:
    """
    🔌 SessionConnection backed by an ASGI websocket.

    Broadcasts run in sync request threads, so frames are handed to the
    event loop that owns the socket.
    """

    def __init__(self, send: Send, loop: asyncio.AbstractEventLoop, user_id: Any):
        self._send = send
        self._loop = loop
        self.user_id = user_id
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open and not self._loop.is_closed()

    def send(self, message: str) -> None:
        if not self.is_open:
            raise ConnectionError('websocket is closed')
        future = asyncio.run_coroutine_threadsafe(
            self._send({'type': 'websocket.send', 'text': message}), self._loop
        )
        future.add_done_callback(self._log_failed_send)

    def close(self) -> None:
        self._open = False

    def _log_failed_send(self, future: Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.warning(
                f"⚠️ [Notifications] Websocket push to user {self.user_id} failed: {future.exception()}"
            )


# ===============================================================================
# AUTHENTICATION
# ===============================================================================

def extract_token(scope: Scope) -> str:
    """Token key from the query string, falling back to the Authorization header"""
    query = parse_qs(scope.get('query_string', b'').decode('latin-1'))
    if query.get('token'):
        return query['token'][0]

    for name, value in scope.get('headers', []):
        if name.lower() == b'authorization':
            keyword, _, key = value.decode('latin-1').partition(' ')
            if keyword.lower() == 'token':
                return key.strip()
    return ''


@sync_to_async
def authenticate_token(key: str) -> Any:
    """Active user owning the token, or None"""
    if not key:
        return None
    token = Token.objects.select_related('user').filter(key=key).first()
    if token is None or not token.user.is_active:
        return None
    return token.user


# ===============================================================================
# ASGI APPLICATION
# ===============================================================================

class NotificationSocketApp:
    """
    📡 Keeps one directory entry per connected client.

    Registers on connect with the user's staff role and unregisters on
    disconnect. Inbound frames from the client are ignored.
    """

    def __init__(self, directory: ConnectionDirectory | None = None):
        self._directory = directory

    @property
    def directory(self) -> ConnectionDirectory:
        return self._directory if self._directory is not None else get_connection_directory()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        message = await receive()
        if message['type'] != 'websocket.connect':
            return

        user = await authenticate_token(extract_token(scope))
        if user is None:
            logger.info("🔒 [Notifications] Rejected unauthenticated websocket")
            await send({'type': 'websocket.close', 'code': CLOSE_UNAUTHENTICATED})
            return

        await send({'type': 'websocket.accept'})
        connection = WebSocketConnection(send, asyncio.get_running_loop(), user.pk)
        roles = [user.staff_role] if user.staff_role else []
        self.directory.register(user.pk, connection, roles=roles)
        logger.info(f"📡 [Notifications] User {user.pk} connected", extra={'user_id': user.pk})

        try:
            while True:
                message = await receive()
                if message['type'] == 'websocket.disconnect':
                    break
        finally:
            connection.close()
            self.directory.unregister(user.pk, connection)
            logger.info(f"📴 [Notifications] User {user.pk} disconnected", extra={'user_id': user.pk})


async def reject_socket(scope: Scope, receive: Receive, send: Send) -> None:
    """Refuse websockets on paths nothing listens on"""
    message = await receive()
    if message['type'] == 'websocket.connect':
        await send({'type': 'websocket.close'})
