"""Set of chats that have talked to the bot at least once."""

from __future__ import annotations

from ...core.state import ReadWriteLock


class ChatRegistry:
    """Chat ids known to the bot; grows only."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        # dict keys keep a stable iteration order for snapshots.
        self._chats: dict[int, None] = {}

    def add(self, chat_id: int) -> bool:
        """Register a chat; returns True when it was not known before."""
        with self._lock.read():
            if chat_id in self._chats:
                return False
        with self._lock.write():
            if chat_id in self._chats:
                return False
            self._chats[chat_id] = None
            return True

    def snapshot(self) -> list[int]:
        with self._lock.read():
            return list(self._chats)

    def __contains__(self, chat_id: object) -> bool:
        with self._lock.read():
            return chat_id in self._chats

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._chats)


__all__ = ["ChatRegistry"]
