"""Tests for the reaper: expired chunk cleanup and archive retention."""

from datetime import timedelta

import pytest

from memboard.db import stores, utcnow
from memboard.memory import BackgroundSummarizer, run_reaper_once
from memboard.memory.reaper import prune_archive


async def _counts(session_factory, conversation_id):
    async with session_factory() as session:
        chunks = await stores.list_chunks(session, conversation_id)
        archive = await stores.list_archive_entries(session, conversation_id)
    return len(chunks), len(archive)


@pytest.mark.asyncio
async def test_reaper_removes_expired_chunks_and_keeps_board(
    session_factory, summarizer, embedder, manager, add, conversation_id
):
    old = BackgroundSummarizer(
        session_factory, summarizer, embedder, chunk_size=5, clock=lambda: utcnow() - timedelta(days=10)
    )
    await add(conversation_id, [f"m{i}" for i in range(10)])
    await old.run(conversation_id)
    assert await _counts(session_factory, conversation_id) == (2, 1)

    result = await run_reaper_once(session_factory, retention_days=90)

    assert result.chunks_deleted == 2
    assert result.archive_entries_deleted == 0
    assert await _counts(session_factory, conversation_id) == (0, 1)
    board = await manager.get_working_context(conversation_id)
    assert board.message_count == 10


@pytest.mark.asyncio
async def test_reaper_leaves_unexpired_chunks(background, session_factory, add, conversation_id):
    await add(conversation_id, [f"m{i}" for i in range(5)])
    await background.run(conversation_id)

    result = await run_reaper_once(session_factory, retention_days=90)

    assert result.chunks_deleted == 0
    assert await _counts(session_factory, conversation_id) == (1, 1)


@pytest.mark.asyncio
async def test_archive_retention(session_factory, summarizer, embedder, add, conversation_id):
    old = BackgroundSummarizer(
        session_factory, summarizer, embedder, chunk_size=5, clock=lambda: utcnow() - timedelta(days=120)
    )
    await add(conversation_id, [f"m{i}" for i in range(5)])
    await old.run(conversation_id)

    assert await prune_archive(session_factory, None) == 0
    assert await _counts(session_factory, conversation_id) == (1, 1)

    assert await prune_archive(session_factory, 90) == 1
    assert await _counts(session_factory, conversation_id) == (1, 0)
