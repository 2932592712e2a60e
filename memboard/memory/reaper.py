"""
Periodic cleanup: expired working memory chunks and archive retention.
Deletes only rows past their expiry/retention cutoff, so it can run next to summarizer runs.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

import logfire
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memboard.config import settings
from memboard.db import stores, utcnow


@dataclass(frozen=True)
class ReapResult:
    chunks_deleted: int
    archive_entries_deleted: int


async def reap_expired_chunks(session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None) -> int:
    now = now or utcnow()
    async with session_factory() as session:
        async with session.begin():
            return await stores.delete_expired_chunks(session, now)


async def prune_archive(
    session_factory: async_sessionmaker[AsyncSession],
    retention_days: int | None,
    now: datetime | None = None,
) -> int:
    """Delete archive entries older than retention_days. None disables pruning."""
    if retention_days is None:
        return 0
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    async with session_factory() as session:
        async with session.begin():
            return await stores.delete_archive_before(session, cutoff)


async def run_reaper_once(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    retention_days: int | None = settings.ARCHIVE_RETENTION_DAYS,
    now: datetime | None = None,
) -> ReapResult:
    now = now or utcnow()
    result = ReapResult(
        chunks_deleted=await reap_expired_chunks(session_factory, now),
        archive_entries_deleted=await prune_archive(session_factory, retention_days, now),
    )
    logfire.info(
        "reaper removed {chunks} chunks and {archived} archive entries",
        chunks=result.chunks_deleted,
        archived=result.archive_entries_deleted,
    )
    return result


async def run_reaper_forever(
    session_factory: async_sessionmaker[AsyncSession],
    interval_seconds: int | None = None,
) -> None:
    """Run the reaper every interval until cancelled. Failures are logged and retried next tick."""
    interval = interval_seconds or settings.REAPER_INTERVAL_SECONDS
    while True:
        try:
            await run_reaper_once(session_factory)
        except Exception:
            logfire.exception("reaper pass failed")
        await asyncio.sleep(interval)
