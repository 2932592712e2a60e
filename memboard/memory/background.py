"""
Background summarizer: fold unsummarized messages into the board, then write memory chunks and one archive entry.

A run either commits everything (board, chunks, archive entry) in one transaction or nothing.
Single writer per conversation: an in-process lock coalesces concurrent runs, and the board
write is a compare-and-set on message_count so separate worker processes cannot double-count.
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

import logfire
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memboard.config import settings
from memboard.db import ChatMessage, SummaryArchiveEntry, WorkingMemoryChunk, utcnow
from memboard.db import stores
from memboard.errors import (
    ConcurrencyConflict,
    EmbeddingFailure,
    SummarizationCapabilityError,
    SummarizationTimeout,
    WorkingMemoryError,
)
from memboard.memory.board import BoardState, Summarizer, SummaryUpdate, empty_state, next_board_state, state_from_row
from memboard.memory.chunking import ChunkDraft, build_chunks
from memboard.search.embeddings import Embedder


@dataclass(frozen=True)
class RunResult:
    conversation_id: UUID
    status: str  # "noop" | "updated" | "partial" (full batch, more may be pending)
    message_count: int
    messages_processed: int = 0
    chunks_created: int = 0


class BackgroundSummarizer:
    """Runs one summarization step for a conversation. Never called on the request path."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        summarizer: Summarizer,
        embedder: Embedder,
        *,
        timeout_seconds: float | None = None,
        max_batch: int | None = None,
        chunk_size: int | None = None,
        chunk_ttl_days: int | None = None,
        update_frequency: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.summarizer = summarizer
        self.embedder = embedder
        self.timeout_seconds = timeout_seconds or settings.SUMMARIZER_TIMEOUT_SECONDS
        self.max_batch = max_batch or settings.SUMMARIZER_MAX_BATCH
        self.chunk_size = chunk_size or settings.CHUNK_SIZE_MESSAGES
        self.chunk_ttl = timedelta(days=chunk_ttl_days or settings.CHUNK_TTL_DAYS)
        self.update_frequency = update_frequency or settings.SUMMARY_TRIGGER_THRESHOLD
        self.clock = clock
        self._locks: dict[UUID, asyncio.Lock] = {}

    def is_running(self, conversation_id: UUID) -> bool:
        lock = self._locks.get(conversation_id)
        return lock is not None and lock.locked()

    async def run(self, conversation_id: UUID) -> RunResult:
        """
        Summarize everything past the board's message_count.
        Raises ConcurrencyConflict if a run for this conversation is already in progress
        (coalesced, not queued) or if the board changed under the compare-and-set.
        Capability failures raise SummarizationTimeout / SummarizationCapabilityError / EmbeddingFailure
        before anything is written.
        """
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        if lock.locked():
            raise ConcurrencyConflict(conversation_id, "summarizer run already in progress")
        try:
            async with lock:
                with logfire.span("summarize conversation {conversation_id}", conversation_id=str(conversation_id)):
                    return await self._run(conversation_id)
        finally:
            if not lock.locked():
                self._locks.pop(conversation_id, None)

    async def _run(self, conversation_id: UUID) -> RunResult:
        async with self.session_factory() as session:
            row = await stores.get_board(session, conversation_id)
            prior = state_from_row(row) if row is not None else empty_state(conversation_id)
            messages = await stores.fetch_messages_after(
                session, conversation_id, prior.message_count, self.max_batch
            )
            if not messages:
                return RunResult(conversation_id, "noop", prior.message_count)
            start_index = await stores.next_chunk_index(session, conversation_id)

        # Connection released while the model works.
        update = await self._summarize(prior, messages)
        now = self.clock()
        state = next_board_state(prior, update, messages, now)
        drafts = build_chunks(messages, start_index=start_index, size=self.chunk_size)
        chunk_vectors = [await self._embed(d.text) for d in drafts]
        summary_vector = await self._embed(state.summary)

        async with self.session_factory() as session:
            async with session.begin():
                await stores.save_board(
                    session,
                    conversation_id,
                    state.board_values(self.update_frequency),
                    expected_count=prior.message_count,
                )
                session.add_all(self._chunk_rows(conversation_id, drafts, chunk_vectors, now))
                session.add(self._archive_row(state, messages, summary_vector, now))

        logfire.info(
            "board updated for {conversation_id}: {processed} messages, count {count}",
            conversation_id=str(conversation_id),
            processed=len(messages),
            count=state.message_count,
            chunks=len(drafts),
        )
        return RunResult(
            conversation_id,
            "partial" if len(messages) >= self.max_batch else "updated",
            state.message_count,
            messages_processed=len(messages),
            chunks_created=len(drafts),
        )

    async def _summarize(self, prior: BoardState, messages: Sequence[ChatMessage]) -> SummaryUpdate:
        try:
            return await asyncio.wait_for(self.summarizer.summarize(prior, messages), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise SummarizationTimeout(
                f"Summarize exceeded {self.timeout_seconds}s for conversation {prior.conversation_id}"
            ) from e
        except WorkingMemoryError:
            raise
        except Exception as e:
            raise SummarizationCapabilityError(str(e)) from e

    async def _embed(self, text: str) -> list[float]:
        try:
            return await asyncio.wait_for(self.embedder.embed(text), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise EmbeddingFailure(f"Embedding exceeded {self.timeout_seconds}s") from e
        except WorkingMemoryError:
            raise
        except Exception as e:
            raise EmbeddingFailure(str(e)) from e

    def _chunk_rows(
        self,
        conversation_id: UUID,
        drafts: Sequence[ChunkDraft],
        vectors: Sequence[list[float]],
        now: datetime,
    ) -> list[WorkingMemoryChunk]:
        return [
            WorkingMemoryChunk(
                conversation_id=conversation_id,
                chunk_index=draft.chunk_index,
                text=draft.text,
                message_ids=list(draft.message_ids),
                importance_score=draft.importance_score,
                chunk_type=draft.chunk_type,
                embedding=vector,
                created_at=now,
                expires_at=now + self.chunk_ttl,
            )
            for draft, vector in zip(drafts, vectors)
        ]

    def _archive_row(
        self,
        state: BoardState,
        messages: Sequence[ChatMessage],
        vector: list[float],
        now: datetime,
    ) -> SummaryArchiveEntry:
        return SummaryArchiveEntry(
            conversation_id=state.conversation_id,
            summary_snapshot=state.summary,
            key_facts=list(state.important_facts),
            topics=list(state.topics),
            entities=dict(state.entities),
            message_count=state.message_count,
            covered_start=messages[0].created_at,
            covered_end=messages[-1].created_at,
            embedding=vector,
            created_at=now,
        )
