# SPDX-License-Identifier: Apache-2.0
"""Async SQLite connection handling shared by the repositories."""

from __future__ import annotations

import asyncio
import contextlib
import weakref
from collections.abc import AsyncIterator
from typing import Any, Dict, Optional, Sequence

import aiosqlite

# asyncio.Lock is bound to one loop, so locks are kept per loop and per file.
_LOCKS: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]] = (
    weakref.WeakKeyDictionary()
)

_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA busy_timeout=30000;",
)


def _lock_for(db_path: str) -> asyncio.Lock:
    locks = _LOCKS.setdefault(asyncio.get_running_loop(), {})
    if db_path not in locks:
        locks[db_path] = asyncio.Lock()
    return locks[db_path]


class SqliteAsyncMixin:
    """Mixin giving repositories a serialized, configured aiosqlite connection.

    Writers to the same file queue behind one lock, which keeps the voucher
    bookkeeping free of SQLITE_BUSY retries inside a single process.

    Usage:
        class MyRepository(SqliteAsyncMixin):
            def __init__(self, db_path: str):
                self.db_path = db_path

            async def count(self) -> int:
                return await self._scalar("SELECT COUNT(*) FROM orders") or 0
    """

    db_path: str

    @contextlib.asynccontextmanager
    async def _conn(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection in WAL mode with rows addressable by column name."""
        async with _lock_for(self.db_path):
            async with aiosqlite.connect(self.db_path, timeout=30) as db:
                for pragma in _PRAGMAS:
                    await db.execute(pragma)
                db.row_factory = aiosqlite.Row
                yield db

    async def _scalar(self, sql: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """First column of the first row, or None when the query returns nothing."""
        async with self._conn() as db:
            cursor = await db.execute(sql, tuple(params))
            row = await cursor.fetchone()
        return row[0] if row else None
