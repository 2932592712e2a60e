"""
One reaper pass: delete expired working memory chunks and archive entries past retention.
Usage: python -m scripts.reap_memory [retention_days]   (from project root; default from ARCHIVE_RETENTION_DAYS)
"""

import asyncio
import sys
from pathlib import Path

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from memboard.config import settings
from memboard.db import async_session_factory, init_db
from memboard.memory import run_reaper_once


async def main(retention_days: int | None) -> None:
    await init_db()
    result = await run_reaper_once(async_session_factory, retention_days=retention_days)
    print(
        f"Deleted {result.chunks_deleted} expired chunks and "
        f"{result.archive_entries_deleted} archive entries."
    )


if __name__ == "__main__":
    days = int(sys.argv[1]) if len(sys.argv) > 1 else settings.ARCHIVE_RETENTION_DAYS
    asyncio.run(main(days))
