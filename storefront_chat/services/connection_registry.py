"""In-memory registry of live chat sockets and their roles.

All methods are synchronous and never await, so on a single event loop
every mutation is atomic and a recipient snapshot cannot interleave with an
``unregister``.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any

import structlog

from storefront_chat.schemas.auth_schema import CurrentUser

logger = structlog.get_logger()

Frame = dict[str, Any]


@dataclass(frozen=True, slots=True)
class PendingRole:
    """Registered but not yet bound to a session or marked admin."""


@dataclass(frozen=True, slots=True)
class VisitorRole:
    """Bound to exactly one visitor session."""

    session_id: str


@dataclass(frozen=True, slots=True)
class AdminRole:
    """Support-staff console receiving every session's traffic."""


ConnectionRole = PendingRole | VisitorRole | AdminRole

PENDING = PendingRole()
ADMIN = AdminRole()


class UnknownConnectionError(LookupError):
    """Raised when a role change targets a connection that is not registered."""


class Connection:
    """Server-side handle for one live socket.

    Delivery only enqueues onto the outbox; a writer task owned by the
    socket endpoint drains it in FIFO order.
    """

    def __init__(
        self,
        principal: CurrentUser | None = None,
        connection_id: str | None = None,
    ) -> None:
        self.id = connection_id or uuid.uuid4().hex[:12]
        self.principal = principal
        self._outbox: asyncio.Queue[Frame | None] = asyncio.Queue()
        self._open = True

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, open={self._open})"

    @property
    def is_open(self) -> bool:
        return self._open

    def deliver(self, frame: Frame) -> bool:
        """Queue a frame for the writer; False once the socket is closed."""
        if not self._open:
            return False
        self._outbox.put_nowait(frame)
        return True

    async def next_frame(self) -> Frame | None:
        """Wait for the next queued frame; None signals shutdown."""
        return await self._outbox.get()

    def drain(self) -> list[Frame]:
        """Remove and return every frame queued so far without waiting."""
        frames: list[Frame] = []
        while not self._outbox.empty():
            frame = self._outbox.get_nowait()
            if frame is not None:
                frames.append(frame)
        return frames

    def close(self) -> None:
        """Stop accepting frames and wake the writer."""
        if self._open:
            self._open = False
            self._outbox.put_nowait(None)


class ConnectionRegistry:
    """Authoritative set of live connections with O(1) role indexes."""

    def __init__(self) -> None:
        self._roles: dict[Connection, ConnectionRole] = {}
        self._by_session: dict[str, set[Connection]] = {}
        self._admins: set[Connection] = set()

    def __len__(self) -> int:
        return len(self._roles)

    def __contains__(self, connection: object) -> bool:
        return connection in self._roles

    def register(self, connection: Connection) -> None:
        """Add an unbound connection; registering twice is a no-op."""
        if connection in self._roles:
            return
        self._roles[connection] = PENDING
        logger.debug("Connection registered", connection_id=connection.id)

    def bind_to_session(self, connection: Connection, session_id: str) -> None:
        """Bind to a visitor session, replacing any previous role."""
        self._require(connection)
        self._detach(connection)
        self._roles[connection] = VisitorRole(session_id=session_id)
        self._by_session.setdefault(session_id, set()).add(connection)

    def mark_admin(self, connection: Connection) -> None:
        """Switch a connection to the admin role."""
        self._require(connection)
        self._detach(connection)
        self._roles[connection] = ADMIN
        self._admins.add(connection)

    def unregister(self, connection: Connection) -> None:
        """Remove a connection; safe to call repeatedly."""
        if connection not in self._roles:
            return
        self._detach(connection)
        del self._roles[connection]
        logger.debug("Connection unregistered", connection_id=connection.id)

    def role_of(self, connection: Connection) -> ConnectionRole | None:
        return self._roles.get(connection)

    def connections_for_session(self, session_id: str) -> list[Connection]:
        """Every connection currently bound to the session."""
        return list(self._by_session.get(session_id, ()))

    def all_admin_connections(self) -> list[Connection]:
        return list(self._admins)

    def recipients_for_session(self, session_id: str) -> list[Connection]:
        """Session members plus admins; a socket appears at most once."""
        members = self._by_session.get(session_id, set())
        return list(members | self._admins)

    def close_all(self) -> None:
        """Close and forget every connection (process shutdown)."""
        for connection in list(self._roles):
            connection.close()
        self._roles.clear()
        self._by_session.clear()
        self._admins.clear()

    def _require(self, connection: Connection) -> None:
        if connection not in self._roles:
            raise UnknownConnectionError(f"{connection!r} is not registered")

    def _detach(self, connection: Connection) -> None:
        """Drop the connection from whichever role index holds it."""
        match self._roles.get(connection):
            case VisitorRole(session_id=session_id):
                members = self._by_session.get(session_id)
                if members is not None:
                    members.discard(connection)
                    if not members:
                        del self._by_session[session_id]
            case AdminRole():
                self._admins.discard(connection)
            case _:
                pass
