"""
Working memory manager: read-side access to boards, recent messages, and semantic search
over memory chunks and the summary archive. Never writes.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memboard.config import settings
from memboard.db import ChatMessage, utcnow
from memboard.db import stores
from memboard.errors import NotFoundError
from memboard.memory.board import BoardState, state_from_row
from memboard.search.embeddings import Embedder
from memboard.search.ranking import rank_by_similarity

CONTEXT_HEADER = "=== CONVERSATION CONTEXT ==="
CONTEXT_FOOTER = "=== END CONTEXT ==="
CHUNKS_HEADER = "=== RECENT CONTEXT CHUNKS ==="
CHUNKS_FOOTER = "=== END CHUNKS ==="

MAX_SUMMARY_CHARS = 2000
MAX_SECTION_ITEMS = 10
MAX_ITEM_CHARS = 200
MAX_NOTES_CHARS = 500

_LIST_SECTIONS = (
    ("Key Facts", "important_facts"),
    ("Action Items", "action_items"),
    ("Pending Questions", "pending_questions"),
)

# Upper bound of format_context_for_llm output, whatever the conversation length.
MAX_CONTEXT_CHARS = (
    len(CONTEXT_HEADER)
    + len(CONTEXT_FOOTER)
    + len("Summary:\n")
    + MAX_SUMMARY_CHARS
    + sum(len(label) + 2 + MAX_SECTION_ITEMS * (MAX_ITEM_CHARS + 3) for label, _ in _LIST_SECTIONS)
    + len("Notes:\n")
    + MAX_NOTES_CHARS
    + 2 * 6
)


@dataclass(frozen=True)
class ChunkHit:
    text: str
    similarity: float
    created_at: datetime
    chunk_type: str = "dialogue"
    importance_score: float = 0.5

    def as_dict(self) -> dict:
        return {
            "text": self.text,
            "similarity": round(self.similarity, 4),
            "created_at": self.created_at.isoformat(),
            "chunk_type": self.chunk_type,
            "importance_score": self.importance_score,
        }


@dataclass(frozen=True)
class SummaryHit:
    conversation_id: UUID
    summary_snapshot: str
    similarity: float
    covered_range: tuple[datetime, datetime]
    key_facts: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    entities: dict[str, list[str]] = field(default_factory=dict, compare=False)

    def as_dict(self) -> dict:
        start, end = self.covered_range
        return {
            "conversation_id": str(self.conversation_id),
            "summary_snapshot": self.summary_snapshot,
            "similarity": round(self.similarity, 4),
            "covered_range": {"start": start.isoformat(), "end": end.isoformat()},
            "key_facts": list(self.key_facts),
            "topics": list(self.topics),
            "entities": {kind: list(names) for kind, names in self.entities.items()},
        }


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def format_context_for_llm(board: BoardState) -> str:
    """
    Render populated board sections into one labeled block.
    Each field is truncated, so len(output) <= MAX_CONTEXT_CHARS.
    """
    parts = [CONTEXT_HEADER]
    summary = (board.summary or "").strip()
    if summary:
        parts.append(f"Summary:\n{_truncate(summary, MAX_SUMMARY_CHARS)}")
    for label, attr in _LIST_SECTIONS:
        items = [i.strip() for i in getattr(board, attr) or () if i and i.strip()][:MAX_SECTION_ITEMS]
        if items:
            lines = "\n".join(f"• {_truncate(item, MAX_ITEM_CHARS)}" for item in items)
            parts.append(f"{label}:\n{lines}")
    notes = (board.context_notes or "").strip()
    if notes:
        parts.append(f"Notes:\n{_truncate(notes, MAX_NOTES_CHARS)}")
    parts.append(CONTEXT_FOOTER)
    return "\n\n".join(parts)


def format_chunks_for_llm(hits: Sequence[ChunkHit]) -> str:
    if not hits:
        return ""
    parts = [CHUNKS_HEADER]
    for i, hit in enumerate(hits, start=1):
        parts.append(f"[{i}] ({hit.chunk_type}, similarity: {hit.similarity:.2f})\n{hit.text}")
    parts.append(CHUNKS_FOOTER)
    return "\n\n".join(parts)


class WorkingMemoryManager:
    """Read-only operations over the three memory stores and the message source."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        embedder: Embedder,
        *,
        candidate_factor: int | None = None,
        clock=utcnow,
    ):
        self.session_factory = session_factory
        self.embedder = embedder
        self.candidate_factor = candidate_factor or settings.SEARCH_CANDIDATE_FACTOR
        self.clock = clock

    async def get_working_context(self, conversation_id: UUID) -> BoardState:
        """Current board. Raises NotFoundError when none exists yet (message_count == 0)."""
        async with self.session_factory() as session:
            row = await stores.get_board(session, conversation_id)
        if row is None or row.message_count == 0:
            raise NotFoundError(conversation_id)
        return state_from_row(row)

    async def get_recent_messages(self, conversation_id: UUID, limit: int | None = None) -> list[ChatMessage]:
        """Last `limit` raw messages, oldest first. Fallback when no board exists."""
        limit = settings.CHAT_HISTORY_LIMIT if limit is None else limit
        async with self.session_factory() as session:
            return await stores.fetch_recent_messages(session, conversation_id, limit)

    def format_context_for_llm(self, board: BoardState) -> str:
        return format_context_for_llm(board)

    async def search_working_memory(
        self,
        conversation_id: UUID,
        query: str,
        similarity_threshold: float | None = None,
        limit: int | None = None,
    ) -> list[ChunkHit]:
        """
        Chunks of one conversation with cosine similarity >= similarity_threshold, best first.
        Empty list when nothing qualifies.
        """
        if not query or not query.strip():
            raise ValueError("query is required")
        threshold = settings.SEARCH_SIMILARITY_THRESHOLD if similarity_threshold is None else similarity_threshold
        limit = settings.SEARCH_LIMIT if limit is None else limit
        if limit <= 0:
            return []

        query_embedding = await self.embedder.embed(query)
        async with self.session_factory() as session:
            candidates = await stores.chunk_candidates(
                session,
                conversation_id,
                query_embedding,
                now=self.clock(),
                candidate_limit=limit * self.candidate_factor,
            )
        return [
            ChunkHit(
                text=chunk.text,
                similarity=similarity,
                created_at=chunk.created_at,
                chunk_type=chunk.chunk_type,
                importance_score=chunk.importance_score,
            )
            for chunk, similarity in rank_by_similarity(candidates, threshold=threshold, limit=limit)
        ]

    async def search_summaries(
        self,
        query: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int | None = None,
        similarity_threshold: float = 0.0,
    ) -> list[SummaryHit]:
        """Archive entries across all conversations, ranked by similarity, optionally date-filtered."""
        if not query or not query.strip():
            raise ValueError("query is required")
        limit = settings.SEARCH_LIMIT if limit is None else limit
        if limit <= 0:
            return []

        query_embedding = await self.embedder.embed(query)
        async with self.session_factory() as session:
            candidates = await stores.archive_candidates(
                session,
                query_embedding,
                start_date=start_date,
                end_date=end_date,
                candidate_limit=limit * self.candidate_factor,
            )
        return [
            SummaryHit(
                conversation_id=entry.conversation_id,
                summary_snapshot=entry.summary_snapshot,
                similarity=similarity,
                covered_range=(entry.covered_start, entry.covered_end),
                key_facts=tuple(entry.key_facts or ()),
                topics=tuple(entry.topics or ()),
                entities=dict(entry.entities or {}),
            )
            for entry, similarity in rank_by_similarity(candidates, threshold=similarity_threshold, limit=limit)
        ]
