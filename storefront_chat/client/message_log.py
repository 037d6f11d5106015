"""Visitor-side message history with echo suppression."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from storefront_chat.schemas.chat_schema import ChatMessageResponse

DEDUP_WINDOW = timedelta(milliseconds=1000)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A message as the visitor sees it; ``id`` is None until confirmed."""

    username: str
    message: str
    created_at: datetime = field(default_factory=_utcnow)
    id: int | None = None
    is_admin: bool = False

    @classmethod
    def from_response(cls, response: ChatMessageResponse) -> "LogEntry":
        return cls(
            id=response.id,
            username=response.username,
            message=response.message,
            created_at=response.created_at,
            is_admin=response.is_admin,
        )


class MessageLog:
    """Ordered local history that drops duplicate deliveries.

    An incoming entry is a duplicate when a held entry has the same id, or
    the same text and username with timestamps at most ``window`` apart.
    The second rule absorbs the server echo of an optimistically shown
    message.
    """

    def __init__(self, window: timedelta = DEDUP_WINDOW) -> None:
        self._window = window
        self._entries: list[LogEntry] = []
        self._ids: set[int] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def is_duplicate(self, incoming: LogEntry) -> bool:
        if incoming.id is not None and incoming.id in self._ids:
            return True
        return any(
            held.message == incoming.message
            and held.username == incoming.username
            and abs(held.created_at - incoming.created_at) <= self._window
            for held in self._entries
        )

    def add(self, incoming: LogEntry) -> bool:
        """Append unless duplicate; returns whether the entry was kept."""
        if self.is_duplicate(incoming):
            return False
        self._entries.append(incoming)
        if incoming.id is not None:
            self._ids.add(incoming.id)
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._ids.clear()
