"""Async Data Access Layer for the SIGN_VOCABULARY table.

The vocabulary is read-only to the live pipeline; writes happen only from
the seeding script.
"""

from __future__ import annotations

import json
import time
from typing import Iterable, List, Sequence

from models.sign_models import VocabularyEntry
from utils.database_init import AsyncDatabaseInitializer


class VocabularyDAL:
    """Data access layer for vocabulary entries."""

    _COLUMNS = (
        "sign_name",
        "description",
        "hand_shape",
        "location",
        "motion",
        "orientation",
        "similar_signs",
        "difference_from_similar",
        "common_mistakes",
        "is_phrase",
        "created_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def fetch_all(self) -> List[VocabularyEntry]:
        """Return every vocabulary entry in insertion order."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM SIGN_VOCABULARY ORDER BY rowid"
            )
            rows = await cur.fetchall()
            return [self._row_to_entry(r) for r in rows]

    async def upsert_many(self, entries: Iterable[VocabularyEntry]) -> int:
        """Insert or replace entries keyed by sign name. Returns rows written."""
        created_at = int(time.time())
        rows = [
            (
                entry.sign_name,
                entry.description,
                entry.hand_shape,
                entry.location,
                entry.motion,
                entry.orientation,
                json.dumps(list(entry.similar_signs)),
                entry.difference_from_similar,
                json.dumps(list(entry.common_mistakes)),
                int(entry.is_phrase),
                created_at,
            )
            for entry in entries
        ]
        if not rows:
            return 0

        placeholders = ", ".join("?" for _ in self._COLUMNS)
        async with self._db.connection() as conn:
            await conn.executemany(
                f"INSERT OR REPLACE INTO SIGN_VOCABULARY ({self._COLUMN_LIST}) VALUES ({placeholders})",
                rows,
            )
            await conn.commit()
        return len(rows)

    async def count(self) -> int:
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT COUNT(*) FROM SIGN_VOCABULARY")
            row = await cur.fetchone()
            return int(row[0]) if row else 0

    @staticmethod
    def _row_to_entry(row: Sequence[object]) -> VocabularyEntry:
        """Convert a DB row tuple into a VocabularyEntry."""
        return VocabularyEntry(
            sign_name=row[0],
            description=row[1] or "",
            hand_shape=row[2],
            location=row[3],
            motion=row[4],
            orientation=row[5],
            similar_signs=tuple(json.loads(row[6] or "[]")),
            difference_from_similar=row[7],
            common_mistakes=tuple(json.loads(row[8] or "[]")),
            is_phrase=bool(row[9]),
        )
