"""
Persistent storage for outstanding sanctions, one store per sanction kind.

Timestamps are stored as INTEGER unix seconds so comparisons are trivial.
Each row is keyed by ``(kind, sanction_key)`` where ``sanction_key`` is the
composite ``"<subject_id>,<scope_id>"`` string.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from warden.database.db_connection import ConnectionManager
from warden.datatypes.sanction_datatypes import SanctionKey, SanctionKind, SanctionRecord
from warden.util.logger import get_logger

logger = get_logger("sanction_storage")


class SanctionStore:
    """CRUD for the rows of one sanction kind in the ``sanctions`` table.

    Mutations take the store's lock, so an upsert and a conditional removal
    of the same key never interleave. Every mutation is its own committed
    transaction, which keeps removals atomic per key even when the caller is
    cancelled.
    """

    def __init__(self, connection: ConnectionManager, kind: SanctionKind) -> None:
        self._connection = connection
        self.kind = kind
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(self, key: SanctionKey, expires_at: int) -> SanctionRecord:
        """Insert or replace the sanction for ``key``."""
        async with self._lock:
            async with self._connection.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO sanctions (kind, sanction_key, expires_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(kind, sanction_key) DO UPDATE SET
                        expires_at = excluded.expires_at
                    """,
                    (self.kind.value, key.to_storage(), int(expires_at)),
                )
        logger.debug("[SANCTION STORE] %s %s recorded until %d", self.kind, key, expires_at)
        return SanctionRecord(kind=self.kind, key=key, expires_at=int(expires_at))

    async def remove(self, key: SanctionKey) -> bool:
        """Remove the sanction for ``key``. Returns True if a row was deleted."""
        async with self._lock:
            async with self._connection.transaction() as conn:
                cursor = await conn.execute(
                    "DELETE FROM sanctions WHERE kind = ? AND sanction_key = ?",
                    (self.kind.value, key.to_storage()),
                )
                return cursor.rowcount > 0

    async def remove_if_unchanged(self, record: SanctionRecord) -> bool:
        """
        Remove ``record`` only if the stored expiry still matches it.

        A re-sanction issued while a revoke was in flight replaces the row with
        a new expiry; that newer sanction must survive.
        """
        async with self._lock:
            async with self._connection.transaction() as conn:
                cursor = await conn.execute(
                    "DELETE FROM sanctions WHERE kind = ? AND sanction_key = ? AND expires_at = ?",
                    (self.kind.value, record.key.to_storage(), record.expires_at),
                )
                return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, key: SanctionKey) -> Optional[SanctionRecord]:
        """Return the outstanding sanction for ``key`` or None."""
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                "SELECT expires_at FROM sanctions WHERE kind = ? AND sanction_key = ?",
                (self.kind.value, key.to_storage()),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return SanctionRecord(kind=self.kind, key=key, expires_at=int(row[0]))

    async def snapshot(self) -> List[SanctionRecord]:
        """Return every outstanding sanction of this kind, oldest expiry first."""
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                "SELECT sanction_key, expires_at FROM sanctions WHERE kind = ? ORDER BY expires_at ASC",
                (self.kind.value,),
            )
            rows = await cursor.fetchall()
        return self._to_records(rows)

    def _to_records(self, rows) -> List[SanctionRecord]:
        records: List[SanctionRecord] = []
        for row in rows:
            try:
                key = SanctionKey.from_storage(row[0])
            except ValueError:
                logger.warning("[SANCTION STORE] Skipping malformed %s key %r", self.kind, row[0])
                continue
            records.append(SanctionRecord(kind=self.kind, key=key, expires_at=int(row[1])))
        return records
