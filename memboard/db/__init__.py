"""Database: models, engine, session, init_db, store queries."""
from memboard.db.database import (
    Base,
    ChatMessage,
    SummaryArchiveEntry,
    SummaryBoard,
    VECTOR_DIM,
    WorkingMemoryChunk,
    async_session_factory,
    engine,
    get_engine,
    init_db,
    make_session_factory,
    utcnow,
)

__all__ = [
    "Base",
    "ChatMessage",
    "SummaryArchiveEntry",
    "SummaryBoard",
    "VECTOR_DIM",
    "WorkingMemoryChunk",
    "async_session_factory",
    "engine",
    "get_engine",
    "init_db",
    "make_session_factory",
    "utcnow",
]
