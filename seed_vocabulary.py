"""Load the sign vocabulary into the project's SQLite database.

Reads a JSON list of signs (camelCase keys, as in `data/vocabulary.json`)
and upserts each entry keyed by sign name. It reuses the same
`DATABASE_DIR` behavior as the application via
`utils.database_init.AsyncDatabaseInitializer`.

Run: set the `DATABASE_DIR` environment variable and run
      `python seed_vocabulary.py [path/to/vocabulary.json]`.
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from dal.vocabulary_dal import VocabularyDAL
from models.sign_models import VocabularyEntry
from utils.database_init import AsyncDatabaseInitializer

DEFAULT_SOURCE = Path(__file__).resolve().parent / "data" / "vocabulary.json"


def load_entries(path: Path) -> List[VocabularyEntry]:
    """Parse vocabulary entries from a JSON file.

    Args:
        path: File holding a JSON array of sign objects.

    Returns:
        Entries in file order.
    """
    with path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON array of signs")
    return [VocabularyEntry.from_dict(item) for item in raw]


async def main(source: Path = DEFAULT_SOURCE) -> None:
    """Upsert every sign from `source` and print the resulting count."""
    entries = load_entries(source)
    dal = VocabularyDAL(AsyncDatabaseInitializer())
    written = await dal.upsert_many(entries)
    total = await dal.count()
    print(f"Seeded {written} signs from {source} ({total} in vocabulary)")
    for i, entry in enumerate(entries, start=1):
        print(f"  {i}. {entry.sign_name}")


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(main(Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_SOURCE))
