import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS SIGN_VOCABULARY (
        sign_name TEXT PRIMARY KEY,
        description TEXT NOT NULL,
        hand_shape TEXT,
        location TEXT,
        motion TEXT,
        orientation TEXT,
        similar_signs TEXT,
        difference_from_similar TEXT,
        common_mistakes TEXT,
        is_phrase INTEGER NOT NULL DEFAULT 0,
        created_at INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS TRANSLATION_SESSION (
        session_id TEXT PRIMARY KEY,
        created_at INTEGER NOT NULL,
        last_activity INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS TRANSLATION (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        detected_sign TEXT,
        confidence REAL,
        reasoning TEXT,
        analysis_json TEXT,
        frame_count INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_translation_session_id ON TRANSLATION(session_id)",
)


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database holding vocabulary and translation history.

    - The database file is located at: <DATABASE_DIR>/app.db
    - DATABASE_DIR (or an explicit `db_dir`) is required. A RuntimeError is
      raised if it is missing or points at a file.
    - `ensure_database()` creates the tables on first use. Existing data is
      kept, since the vocabulary is seeded once and reused across restarts.
    """

    def __init__(self, db_dir: Optional[Path | str] = None) -> None:
        env_dir = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        path = Path(env_dir).expanduser()

        if path.exists() and not path.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                f"({path}). Please set DATABASE_DIR to a directory path."
            )

        try:
            path.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {path}"
            ) from exc

        self.db_dir = path
        self.db_path = self.db_dir / "app.db"
        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database and its tables exist at `self.db_path`.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    for statement in SCHEMA:
                        await db.execute(statement)
                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The tables are created on the first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
