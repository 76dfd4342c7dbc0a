"""Session store: sessions plus an append-only, ordered message log per session."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Optional

import aiosqlite

from xiaoyue.core.types import Locale, Role
from xiaoyue.errors import StorageUnavailable
from xiaoyue.log import get_logger
from xiaoyue.storage.database import Database
from xiaoyue.storage.models import Message, Session

logger = get_logger(__name__)

MAX_ID_ATTEMPTS = 3


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class SessionStore:
    """Owns the sessions and messages tables. No other component writes to them."""

    def __init__(self, db: Database, default_locale: str = Locale.EN):
        self._db = db
        self._default_locale = default_locale

    @asynccontextmanager
    async def _guard(self, operation: str, write: bool = False) -> AsyncIterator[aiosqlite.Connection]:
        """Translate driver errors into StorageUnavailable, rolling back failed writes."""
        conn = self._db.conn
        try:
            yield conn
            if write:
                await conn.commit()
        except aiosqlite.Error as e:
            if write:
                try:
                    await conn.rollback()
                except aiosqlite.Error:
                    logger.warning("rollback_failed", operation=operation)
            logger.error("storage_error", operation=operation, error=str(e))
            raise StorageUnavailable(f"{operation} failed") from e

    async def create_session(
        self, locale: Optional[str] = None, wallet_address: Optional[str] = None
    ) -> Session:
        """Allocate a fresh UUID session, retrying on the (negligible) chance of a collision."""
        locale = locale or self._default_locale
        created_at = _now()
        for _ in range(MAX_ID_ATTEMPTS):
            session_id = str(uuid.uuid4())
            try:
                async with self._guard("create_session", write=True) as conn:
                    await conn.execute(
                        "INSERT INTO sessions (id, wallet_address, locale, created_at) VALUES (?, ?, ?, ?)",
                        (session_id, wallet_address, locale, created_at),
                    )
            except StorageUnavailable as e:
                if isinstance(e.__cause__, aiosqlite.IntegrityError):
                    logger.warning("session_id_collision", session_id=session_id)
                    continue
                raise
            logger.info("session_created", session_id=session_id, locale=locale, has_wallet=bool(wallet_address))
            return Session(
                id=session_id,
                locale=locale,
                wallet_address=wallet_address,
                created_at=_parse_ts(created_at),
            )
        raise StorageUnavailable("create_session failed: could not allocate a unique id")

    async def get_session(self, session_id: str) -> Optional[Session]:
        async with self._guard("get_session") as conn:
            cursor = await conn.execute(
                "SELECT id, wallet_address, locale, created_at FROM sessions WHERE id = ?",
                (session_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return Session(
            id=row["id"],
            locale=row["locale"] or self._default_locale,
            wallet_address=row["wallet_address"],
            created_at=_parse_ts(row["created_at"]),
        )

    async def attach_wallet(self, session_id: str, wallet_address: str) -> bool:
        """Bind a wallet to the session. Returns False when it was already bound to that address."""
        async with self._guard("attach_wallet", write=True) as conn:
            cursor = await conn.execute(
                "UPDATE sessions SET wallet_address = ? WHERE id = ? AND wallet_address IS NOT ?",
                (wallet_address, session_id, wallet_address),
            )
        changed = cursor.rowcount > 0
        if changed:
            logger.info("wallet_attached", session_id=session_id)
        return changed

    async def append_message(self, session_id: str, role: Role, content: str) -> Message:
        """Durably append one message. Raises StorageUnavailable if it was not recorded."""
        messages = await self.append_messages(session_id, [(role, content)])
        return messages[0]

    async def append_messages(
        self, session_id: str, entries: Iterable[tuple[Role, str]]
    ) -> list[Message]:
        """Append several messages in one transaction: all of them are recorded or none are."""
        created_at = _now()
        messages = [
            Message(
                id=str(uuid.uuid4()),
                session_id=session_id,
                role=Role(role),
                content=content,
                created_at=_parse_ts(created_at),
            )
            for role, content in entries
        ]
        async with self._guard("append_messages", write=True) as conn:
            await conn.executemany(
                "INSERT INTO messages (id, session_id, role, content, created_at) VALUES (?, ?, ?, ?, ?)",
                [(m.id, m.session_id, m.role.value, m.content, created_at) for m in messages],
            )
        return messages

    async def list_messages(self, session_id: str) -> list[Message]:
        """Full history, ascending. Equal timestamps fall back to insertion order."""
        async with self._guard("list_messages") as conn:
            cursor = await conn.execute(
                """SELECT id, session_id, role, content, created_at FROM messages
                   WHERE session_id = ?
                   ORDER BY created_at ASC, rowid ASC""",
                (session_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def recent_messages(self, session_id: str, limit: int = 8) -> list[Message]:
        """The last ``limit`` messages, returned in ascending order."""
        if limit <= 0:
            return []
        async with self._guard("recent_messages") as conn:
            cursor = await conn.execute(
                """SELECT id, session_id, role, content, created_at FROM messages
                   WHERE session_id = ?
                   ORDER BY created_at DESC, rowid DESC
                   LIMIT ?""",
                (session_id, limit),
            )
            rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in reversed(rows)]

    async def user_message_count(self, session_id: str) -> int:
        async with self._guard("user_message_count") as conn:
            cursor = await conn.execute(
                "SELECT COUNT(*) AS count FROM messages WHERE session_id = ? AND role = ?",
                (session_id, Role.USER.value),
            )
            row = await cursor.fetchone()
        return int(row["count"]) if row else 0

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row["id"],
            session_id=row["session_id"],
            role=Role(row["role"]),
            content=row["content"],
            created_at=_parse_ts(row["created_at"]),
        )
