"""Tests for store queries: message source, board compare-and-set, chunk/archive cleanup."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from memboard.db import SummaryArchiveEntry, VECTOR_DIM, WorkingMemoryChunk
from memboard.db import stores
from memboard.errors import ConcurrencyConflict


def _board_values(count: int, summary: str = "s") -> dict:
    return {
        "summary": summary,
        "important_facts": ["f"],
        "action_items": [],
        "pending_questions": [],
        "context_notes": "",
        "message_count": count,
        "update_frequency": 5,
        "last_updated": datetime(2026, 1, 1),
    }


def _vector(first: float = 1.0) -> list[float]:
    return [first] + [0.0] * (VECTOR_DIM - 1)


@pytest.mark.asyncio
async def test_fetch_messages_after_skips_summarized_prefix(session_factory, add, conversation_id):
    rows = await add(conversation_id, [f"m{i}" for i in range(7)])
    await add(uuid4(), ["other conversation"])

    async with session_factory() as session:
        after = await stores.fetch_messages_after(session, conversation_id, 5, 100)
        capped = await stores.fetch_messages_after(session, conversation_id, 0, 3)
        total = await stores.count_messages(session, conversation_id)

    assert [m.id for m in after] == [rows[5].id, rows[6].id]
    assert [m.content for m in capped] == ["m0", "m1", "m2"]
    assert total == 7


@pytest.mark.asyncio
async def test_fetch_recent_messages_oldest_first(session_factory, add, conversation_id):
    await add(conversation_id, [f"m{i}" for i in range(6)])
    async with session_factory() as session:
        recent = await stores.fetch_recent_messages(session, conversation_id, 3)
        none = await stores.fetch_recent_messages(session, conversation_id, 0)
    assert [m.content for m in recent] == ["m3", "m4", "m5"]
    assert none == []


@pytest.mark.asyncio
async def test_save_board_insert_then_compare_and_set(session_factory, add, conversation_id):
    await add(conversation_id, [f"m{i}" for i in range(8)])

    async with session_factory() as session:
        async with session.begin():
            await stores.save_board(session, conversation_id, _board_values(5), expected_count=0)
    async with session_factory() as session:
        async with session.begin():
            await stores.save_board(session, conversation_id, _board_values(8, "newer"), expected_count=5)

    async with session_factory() as session:
        board = await stores.get_board(session, conversation_id)
        pending = await stores.unsummarized_count(session, conversation_id)
    assert board.message_count == 8
    assert board.summary == "newer"
    assert pending == 0


@pytest.mark.asyncio
async def test_save_board_stale_expected_count_conflicts(session_factory, conversation_id):
    async with session_factory() as session:
        async with session.begin():
            await stores.save_board(session, conversation_id, _board_values(5), expected_count=0)

    with pytest.raises(ConcurrencyConflict):
        async with session_factory() as session:
            async with session.begin():
                await stores.save_board(session, conversation_id, _board_values(9, "stale"), expected_count=3)

    with pytest.raises(ConcurrencyConflict):
        async with session_factory() as session:
            async with session.begin():
                await stores.save_board(session, conversation_id, _board_values(5, "dup"), expected_count=0)

    async with session_factory() as session:
        board = await stores.get_board(session, conversation_id)
    assert board.message_count == 5
    assert board.summary == "s"


@pytest.mark.asyncio
async def test_unsummarized_count_without_board(session_factory, add, conversation_id):
    await add(conversation_id, ["a", "b", "c"])
    async with session_factory() as session:
        assert await stores.unsummarized_count(session, conversation_id) == 3
        assert await stores.get_board(session, conversation_id) is None


@pytest.mark.asyncio
async def test_delete_expired_chunks_only_touches_expired(session_factory, conversation_id):
    now = datetime(2026, 3, 1)
    async with session_factory() as session:
        async with session.begin():
            session.add_all(
                [
                    WorkingMemoryChunk(
                        conversation_id=conversation_id,
                        chunk_index=0,
                        text="old",
                        embedding=_vector(),
                        created_at=now - timedelta(days=8),
                        expires_at=now - timedelta(days=1),
                    ),
                    WorkingMemoryChunk(
                        conversation_id=conversation_id,
                        chunk_index=1,
                        text="fresh",
                        embedding=_vector(),
                        created_at=now,
                        expires_at=now + timedelta(days=7),
                    ),
                ]
            )

    async with session_factory() as session:
        async with session.begin():
            deleted = await stores.delete_expired_chunks(session, now)
        remaining = await stores.list_chunks(session, conversation_id)
        next_index = await stores.next_chunk_index(session, conversation_id)

    assert deleted == 1
    assert [c.text for c in remaining] == ["fresh"]
    assert next_index == 2


@pytest.mark.asyncio
async def test_archive_candidates_date_filter(session_factory):
    jan, feb = datetime(2026, 1, 10), datetime(2026, 2, 10)
    async with session_factory() as session:
        async with session.begin():
            for created in (jan, feb):
                session.add(
                    SummaryArchiveEntry(
                        conversation_id=uuid4(),
                        summary_snapshot=f"snapshot {created:%b}",
                        covered_start=created,
                        covered_end=created,
                        embedding=_vector(),
                        created_at=created,
                    )
                )

    async with session_factory() as session:
        everything = await stores.archive_candidates(
            session, _vector(), start_date=None, end_date=None, candidate_limit=10
        )
        february = await stores.archive_candidates(
            session, _vector(), start_date=datetime(2026, 2, 1), end_date=None, candidate_limit=10
        )

    assert len(everything) == 2
    assert [e.summary_snapshot for e, _ in february] == ["snapshot Feb"]
    assert february[0][1] == pytest.approx(1.0)
