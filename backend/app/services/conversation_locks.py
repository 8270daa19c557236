"""Per-conversation mutual exclusion for chat turns."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock


class ConversationLockRegistry:
    """Hands out one lock per conversation id, dropping entries nobody holds."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, conversation_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(conversation_id, Lock())
            self._holders[conversation_id] = self._holders.get(conversation_id, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                remaining = self._holders[conversation_id] - 1
                if remaining:
                    self._holders[conversation_id] = remaining
                else:
                    del self._holders[conversation_id]
                    del self._locks[conversation_id]

    def active_count(self) -> int:
        with self._guard:
            return len(self._locks)


conversation_locks = ConversationLockRegistry()
