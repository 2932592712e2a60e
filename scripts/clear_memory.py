"""
Clear working memory: delete all summary boards, memory chunks and archive entries.
Chat messages are left alone; the next trigger rebuilds boards from scratch.
Usage: python -m scripts.clear_memory   (from project root)
"""

import asyncio
import sys
from pathlib import Path

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from sqlalchemy import delete

from memboard.db import SummaryArchiveEntry, SummaryBoard, WorkingMemoryChunk, async_session_factory, init_db


async def main() -> None:
    await init_db()
    async with async_session_factory() as session:
        result_boards = await session.execute(delete(SummaryBoard))
        result_chunks = await session.execute(delete(WorkingMemoryChunk))
        result_archive = await session.execute(delete(SummaryArchiveEntry))
        await session.commit()
    print(
        f"Cleared {result_boards.rowcount} boards, {result_chunks.rowcount} chunks "
        f"and {result_archive.rowcount} archive entries."
    )


if __name__ == "__main__":
    asyncio.run(main())
