"""
Store queries: message source (read-only), summary boards, memory chunks, summary archive.
All functions take an AsyncSession; callers own transaction boundaries.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memboard.db.database import ChatMessage, SummaryArchiveEntry, SummaryBoard, WorkingMemoryChunk
from memboard.errors import ConcurrencyConflict
from memboard.search.ranking import cosine_similarity, similarity_from_distance


def supports_vector_ops(session: AsyncSession) -> bool:
    """True when the bound database has pgvector operators (Postgres)."""
    return session.bind is not None and session.bind.dialect.name == "postgresql"


# --- Message source ---------------------------------------------------------


async def count_messages(session: AsyncSession, conversation_id: UUID) -> int:
    stmt = select(func.count(ChatMessage.id)).where(ChatMessage.conversation_id == conversation_id)
    return int((await session.execute(stmt)).scalar_one())


async def fetch_messages_after(
    session: AsyncSession,
    conversation_id: UUID,
    offset: int,
    limit: int,
) -> list[ChatMessage]:
    """Messages past the first `offset` (already summarized), oldest first."""
    stmt = (
        select(ChatMessage)
        .where(ChatMessage.conversation_id == conversation_id)
        .order_by(ChatMessage.created_at, ChatMessage.id)
        .offset(offset)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())


async def fetch_recent_messages(session: AsyncSession, conversation_id: UUID, limit: int) -> list[ChatMessage]:
    """Last `limit` messages of a conversation, oldest first."""
    if limit <= 0:
        return []
    stmt = (
        select(ChatMessage)
        .where(ChatMessage.conversation_id == conversation_id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
    )
    rows = list((await session.execute(stmt)).scalars().all())
    return rows[::-1]


# --- Summary boards ---------------------------------------------------------


async def get_board(session: AsyncSession, conversation_id: UUID) -> SummaryBoard | None:
    stmt = select(SummaryBoard).where(SummaryBoard.conversation_id == conversation_id).limit(1)
    return (await session.execute(stmt)).scalars().first()


async def get_board_message_count(session: AsyncSession, conversation_id: UUID) -> int:
    stmt = select(SummaryBoard.message_count).where(SummaryBoard.conversation_id == conversation_id)
    return int((await session.execute(stmt)).scalar_one_or_none() or 0)


async def unsummarized_count(session: AsyncSession, conversation_id: UUID) -> int:
    """Messages persisted after the board's message_count."""
    total = await count_messages(session, conversation_id)
    summarized = await get_board_message_count(session, conversation_id)
    return max(total - summarized, 0)


async def save_board(
    session: AsyncSession,
    conversation_id: UUID,
    values: dict[str, Any],
    *,
    expected_count: int,
) -> None:
    """
    Compare-and-set write of the whole board.
    expected_count == 0 inserts the first row; otherwise the row is updated only if its
    message_count still equals expected_count. Raises ConcurrencyConflict when another
    writer got there first.
    """
    if expected_count == 0:
        try:
            await session.execute(insert(SummaryBoard).values(conversation_id=conversation_id, **values))
        except IntegrityError as e:
            raise ConcurrencyConflict(conversation_id, "board already created by another run") from e
        return

    stmt = (
        update(SummaryBoard)
        .where(
            SummaryBoard.conversation_id == conversation_id,
            SummaryBoard.message_count == expected_count,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        raise ConcurrencyConflict(conversation_id, f"board moved past message_count={expected_count}")


# --- Memory chunks ----------------------------------------------------------


async def next_chunk_index(session: AsyncSession, conversation_id: UUID) -> int:
    stmt = select(func.max(WorkingMemoryChunk.chunk_index)).where(
        WorkingMemoryChunk.conversation_id == conversation_id
    )
    current = (await session.execute(stmt)).scalar_one_or_none()
    return 0 if current is None else int(current) + 1


async def chunk_candidates(
    session: AsyncSession,
    conversation_id: UUID,
    query_embedding: Sequence[float],
    *,
    now: datetime,
    candidate_limit: int,
) -> list[tuple[WorkingMemoryChunk, float]]:
    """
    Unexpired chunks of one conversation with their cosine similarity to the query.
    On Postgres the HNSW index picks the nearest `candidate_limit`; elsewhere every scoped row is scored.
    """
    stmt = select(WorkingMemoryChunk).where(
        WorkingMemoryChunk.conversation_id == conversation_id,
        WorkingMemoryChunk.expires_at > now,
    )
    if supports_vector_ops(session):
        distance = WorkingMemoryChunk.embedding.cosine_distance(query_embedding)
        stmt = stmt.add_columns(distance.label("distance")).order_by(distance).limit(candidate_limit)
        rows = (await session.execute(stmt)).all()
        return [(row[0], similarity_from_distance(row.distance)) for row in rows]

    stmt = stmt.order_by(WorkingMemoryChunk.chunk_index)
    chunks = (await session.execute(stmt)).scalars().all()
    return [(chunk, cosine_similarity(query_embedding, chunk.embedding)) for chunk in chunks]


async def list_chunks(session: AsyncSession, conversation_id: UUID) -> list[WorkingMemoryChunk]:
    stmt = (
        select(WorkingMemoryChunk)
        .where(WorkingMemoryChunk.conversation_id == conversation_id)
        .order_by(WorkingMemoryChunk.chunk_index)
    )
    return list((await session.execute(stmt)).scalars().all())


async def delete_expired_chunks(session: AsyncSession, now: datetime) -> int:
    """Delete chunks whose expires_at has passed. Returns rows deleted."""
    result = await session.execute(delete(WorkingMemoryChunk).where(WorkingMemoryChunk.expires_at < now))
    return result.rowcount or 0


# --- Summary archive --------------------------------------------------------


async def archive_candidates(
    session: AsyncSession,
    query_embedding: Sequence[float],
    *,
    start_date: datetime | None,
    end_date: datetime | None,
    candidate_limit: int,
) -> list[tuple[SummaryArchiveEntry, float]]:
    """Archive entries (all conversations, optionally date-filtered on created_at) with similarity."""
    stmt = select(SummaryArchiveEntry)
    if start_date is not None:
        stmt = stmt.where(SummaryArchiveEntry.created_at >= start_date)
    if end_date is not None:
        stmt = stmt.where(SummaryArchiveEntry.created_at <= end_date)
    if supports_vector_ops(session):
        distance = SummaryArchiveEntry.embedding.cosine_distance(query_embedding)
        stmt = stmt.add_columns(distance.label("distance")).order_by(distance).limit(candidate_limit)
        rows = (await session.execute(stmt)).all()
        return [(row[0], similarity_from_distance(row.distance)) for row in rows]

    stmt = stmt.order_by(SummaryArchiveEntry.created_at)
    entries = (await session.execute(stmt)).scalars().all()
    return [(entry, cosine_similarity(query_embedding, entry.embedding)) for entry in entries]


async def list_archive_entries(session: AsyncSession, conversation_id: UUID) -> list[SummaryArchiveEntry]:
    stmt = (
        select(SummaryArchiveEntry)
        .where(SummaryArchiveEntry.conversation_id == conversation_id)
        .order_by(SummaryArchiveEntry.created_at, SummaryArchiveEntry.message_count)
    )
    return list((await session.execute(stmt)).scalars().all())


async def delete_archive_before(session: AsyncSession, cutoff: datetime) -> int:
    """Retention pruning: delete archive entries created before cutoff."""
    result = await session.execute(delete(SummaryArchiveEntry).where(SummaryArchiveEntry.created_at < cutoff))
    return result.rowcount or 0
