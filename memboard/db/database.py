"""
PostgreSQL async connection and table definitions.
Host chat messages (read-only here), summary boards, working memory chunks, summary archive.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON, Index, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from memboard.config import settings

# Embedding dimension; must be <= 2000 for pgvector HNSW index (gemini-embedding-001 with output_dimensionality=768)
VECTOR_DIM = 768

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")
JSONDict = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _default_expiry() -> datetime:
    return utcnow() + timedelta(days=settings.CHUNK_TTL_DAYS)


def _hnsw_cosine_index(name: str, column) -> Index:
    return Index(
        name,
        column,
        postgresql_using="hnsw",
        postgresql_with={"m": 16, "ef_construction": 64},
        postgresql_ops={"embedding": "vector_cosine_ops"},
    )


class Base(DeclarativeBase):
    """Declarative base for all models."""

    pass


class ChatMessage(Base):
    """Single message in a conversation. Owned by the host; the memory engine only reads it."""

    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    conversation_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    role: Mapped[str] = mapped_column(nullable=False)  # 'user' | 'assistant' | 'system' | 'tool'
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(default=utcnow, index=True)


class SummaryBoard(Base):
    """The rolling "whiteboard" for one conversation. Exactly one row per conversation_id."""

    __tablename__ = "conversation_summary_boards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    conversation_id: Mapped[UUID] = mapped_column(nullable=False, unique=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    important_facts: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    action_items: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    pending_questions: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    context_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Compare-and-set token: number of leading messages folded into `summary`
    message_count: Mapped[int] = mapped_column(nullable=False, default=0)
    update_frequency: Mapped[int] = mapped_column(nullable=False, default=5)
    last_updated: Mapped[datetime] = mapped_column(default=utcnow)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)


class WorkingMemoryChunk(Base):
    """Short-lived, embedded span of recently summarized messages."""

    __tablename__ = "working_memory_chunks"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    conversation_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    chunk_index: Mapped[int] = mapped_column(nullable=False)  # order within the conversation
    text: Mapped[str] = mapped_column(Text, nullable=False)
    message_ids: Mapped[list[int]] = mapped_column(JSONList, nullable=False, default=list)
    importance_score: Mapped[float] = mapped_column(nullable=False, default=0.5)
    chunk_type: Mapped[str] = mapped_column(nullable=False, default="dialogue")
    embedding: Mapped[list[float]] = mapped_column(Vector(VECTOR_DIM), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(default=_default_expiry, index=True)

    __table_args__ = (_hnsw_cosine_index("working_memory_chunks_embedding_hnsw_idx", embedding),)


class SummaryArchiveEntry(Base):
    """Append-only snapshot of a board summary, written once per successful run."""

    __tablename__ = "conversation_summaries"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    conversation_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    summary_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    key_facts: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    topics: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    entities: Mapped[dict[str, list[str]]] = mapped_column(JSONDict, nullable=False, default=dict)
    message_count: Mapped[int] = mapped_column(nullable=False, default=0)
    covered_start: Mapped[datetime] = mapped_column(nullable=False)
    covered_end: Mapped[datetime] = mapped_column(nullable=False)
    embedding: Mapped[list[float]] = mapped_column(Vector(VECTOR_DIM), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, index=True)

    __table_args__ = (_hnsw_cosine_index("conversation_summaries_embedding_hnsw_idx", embedding),)


def get_engine(url: str | None = None) -> AsyncEngine:
    """Create async engine (asyncpg for Postgres). JIT off for compatibility."""
    url = url or settings.DATABASE_URL
    connect_args = {"server_settings": {"jit": "off"}} if url.startswith("postgresql+asyncpg") else {}
    return create_async_engine(url, echo=False, connect_args=connect_args)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = get_engine()
async_session_factory = make_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create extension (Postgres) and all tables. Call once at startup."""
    bind = bind or engine
    if bind.dialect.name == "postgresql":
        async with bind.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
