"""
Registry of live client sessions (WebSocket or similar) keyed by user.

The transport layer registers a connection when a client authenticates and
unregisters it on disconnect. Broadcasters only read snapshots, so a session
dropping mid fan-out never breaks iteration.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SessionConnection(Protocol):
    """Minimal push channel to one client"""

    @property
    def is_open(self) -> bool: ...

    def send(self, message: str) -> None: ...


@dataclass(frozen=True)
class LiveSession:
    user_id: Any
    connection: SessionConnection
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(roles)


class ConnectionDirectory(Protocol):
    def register(self, user_id: Any, connection: SessionConnection, roles: Iterable[str] = ()) -> LiveSession: ...

    def unregister(self, user_id: Any, connection: SessionConnection | None = None) -> None: ...

    def get(self, user_id: Any) -> LiveSession | None: ...

    def snapshot(self) -> list[LiveSession]: ...


class InMemoryConnectionDirectory:
    """
    Process-local directory, one live session per user.

    A newer registration for the same user replaces the older one.
    """

    def __init__(self) -> None:
        self._sessions: dict[Any, LiveSession] = {}
        self._lock = threading.Lock()

    def register(self, user_id: Any, connection: SessionConnection, roles: Iterable[str] = ()) -> LiveSession:
        session = LiveSession(user_id=user_id, connection=connection, roles=frozenset(roles))
        with self._lock:
            self._sessions[user_id] = session
        return session

    def unregister(self, user_id: Any, connection: SessionConnection | None = None) -> None:
        """Remove the user's session; with ``connection`` only if it is still the registered one."""
        with self._lock:
            current = self._sessions.get(user_id)
            if current is None:
                return
            if connection is not None and current.connection is not connection:
                return
            del self._sessions[user_id]

    def get(self, user_id: Any) -> LiveSession | None:
        with self._lock:
            return self._sessions.get(user_id)

    def snapshot(self) -> list[LiveSession]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
