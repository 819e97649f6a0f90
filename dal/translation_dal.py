"""Async Data Access Layer for translation sessions and their results."""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional

from models.sign_models import ClassificationResult
from utils.database_init import AsyncDatabaseInitializer


class TranslationDAL:
    """Store classification results per session id.

    Sessions are upserted on first append, so the live stream never needs to
    create them up front.
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_session(self, session_id: str) -> Dict[str, Any]:
        """Register a session and return its summary."""
        now = int(time.time())
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT OR IGNORE INTO TRANSLATION_SESSION (session_id, created_at, last_activity) VALUES (?, ?, ?)",
                (session_id, now, now),
            )
            await conn.commit()
        return {"session_id": session_id, "created_at": now}

    async def append(self, session_id: str, result: ClassificationResult, frame_count: int = 1) -> int:
        """Add one classification result to a session and return its row id.

        Args:
            session_id: Session the result belongs to.
            result: Classification to store.
            frame_count: Number of frames that were sent for this result.
        """
        now = int(time.time())
        async with self._db.connection() as conn:
            await conn.execute(
                """
                INSERT INTO TRANSLATION_SESSION (session_id, created_at, last_activity) VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET last_activity = excluded.last_activity
                """,
                (session_id, now, now),
            )
            cur = await conn.execute(
                """
                INSERT INTO TRANSLATION
                    (session_id, created_at, detected_sign, confidence, reasoning, analysis_json, frame_count)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    now,
                    result.detected_sign,
                    result.confidence,
                    result.reasoning,
                    json.dumps(result.to_dict()),
                    frame_count,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the session with its translations, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT session_id, created_at, last_activity FROM TRANSLATION_SESSION WHERE session_id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
            if row is None:
                return None
            cur = await conn.execute(
                """
                SELECT created_at, detected_sign, confidence, reasoning, analysis_json, frame_count
                FROM TRANSLATION WHERE session_id = ? ORDER BY id
                """,
                (session_id,),
            )
            translations: List[Dict[str, Any]] = []
            for t_row in await cur.fetchall():
                translations.append(
                    {
                        "timestamp": t_row[0],
                        "detectedSign": t_row[1],
                        "confidence": t_row[2],
                        "reasoning": t_row[3],
                        "analysis": json.loads(t_row[4]) if t_row[4] else None,
                        "frameCount": t_row[5],
                    }
                )
        return {
            "sessionId": row[0],
            "createdAt": row[1],
            "lastActivity": row[2],
            "translations": translations,
        }
