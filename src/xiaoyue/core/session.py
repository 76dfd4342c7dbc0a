"""Optional per-session serialization of gate-check-then-write sequences."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from xiaoyue.log import get_logger

logger = get_logger(__name__)


class SessionLocks:
    """Keyed asyncio locks, one per session id.

    When disabled, ``hold`` is a no-op and two concurrent turns on the same
    session may both pass the gate with a pre-limit count.
    """

    def __init__(self, enabled: bool = False):
        self._enabled = enabled
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        if not self._enabled:
            yield
            return

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if self._waiters[session_id] == 0:
                del self._waiters[session_id]
                del self._locks[session_id]

    def active(self) -> int:
        """Number of session ids that currently have a lock allocated."""
        return len(self._locks)
