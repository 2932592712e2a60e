"""
Default wiring for a host process: Gemini capabilities, the shared session factory,
background summarizer, scheduler and read-side manager.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memboard.db import async_session_factory
from memboard.memory.background import BackgroundSummarizer
from memboard.memory.board import Summarizer
from memboard.memory.manager import WorkingMemoryManager
from memboard.memory.summarizer import GeminiSummarizer
from memboard.memory.trigger import SummarizationScheduler
from memboard.search.embeddings import Embedder, GeminiEmbedder


@dataclass
class MemoryService:
    manager: WorkingMemoryManager
    summarizer: BackgroundSummarizer
    scheduler: SummarizationScheduler


def build_memory_service(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    summarizer: Summarizer | None = None,
    embedder: Embedder | None = None,
) -> MemoryService:
    session_factory = session_factory or async_session_factory
    embedder = embedder or GeminiEmbedder()
    background = BackgroundSummarizer(session_factory, summarizer or GeminiSummarizer(), embedder)
    return MemoryService(
        manager=WorkingMemoryManager(session_factory, embedder),
        summarizer=background,
        scheduler=SummarizationScheduler(background, session_factory),
    )


_memory_service: MemoryService | None = None


def get_memory_service() -> MemoryService:
    global _memory_service
    if _memory_service is None:
        _memory_service = build_memory_service()
    return _memory_service
