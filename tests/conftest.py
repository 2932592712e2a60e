"""
Shared fixtures: file-backed SQLite (aiosqlite) database, deterministic fake capabilities,
and a helper that plays the host's message write path.
"""

import asyncio
import itertools
import re
import zlib
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import logfire
import numpy as np
import pytest
import pytest_asyncio

from memboard.db import VECTOR_DIM, ChatMessage, get_engine, init_db, make_session_factory
from memboard.memory import BackgroundSummarizer, SummaryUpdate, WorkingMemoryManager
from memboard.memory.board import Entities

logfire.configure(send_to_logfire=False, console=False)

BASE_TIME = datetime(2026, 1, 5, 9, 0, 0)
_seq = itertools.count()


class HashingEmbedder:
    """Bag-of-words hashed into VECTOR_DIM buckets, L2-normalized. Shared words -> positive cosine."""

    def __init__(self):
        self.calls: list[str] = []
        self.fail_with: Exception | None = None

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        vec = np.zeros(VECTOR_DIM, dtype=np.float64)
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            vec[zlib.crc32(token.encode()) % VECTOR_DIM] += 1.0
        norm = np.linalg.norm(vec)
        if norm:
            vec /= norm
        return [float(x) for x in vec]


class ScriptedSummarizer:
    """
    Summarize test double. Records every call; the summary lists message contents so tests
    can see exactly which messages were folded in.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail_with: Exception | None = None
        self.delay: float = 0.0
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def summarize(self, seed, new_messages) -> SummaryUpdate:
        self.calls.append((seed, list(new_messages)))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        contents = [m.content for m in new_messages]
        summary = " | ".join(filter(None, [seed.summary, *contents]))
        return SummaryUpdate(
            summary=summary,
            facts=[*seed.important_facts, f"fact from message {new_messages[-1].id}"],
            action_items=["follow up"],
            pending_questions=[c for c in contents if c.endswith("?")],
            notes="friendly tone",
            topics=["testing"],
            entities=Entities(people=["Ana", " Ana "], dates=["May 12"]),
        )


async def add_messages(session_factory, conversation_id: UUID, contents: list[str]) -> list[ChatMessage]:
    """Persist messages like the host would; roles alternate user/assistant, timestamps strictly increase."""
    rows = []
    async with session_factory() as session:
        for i, content in enumerate(contents):
            rows.append(
                ChatMessage(
                    conversation_id=conversation_id,
                    role="user" if i % 2 == 0 else "assistant",
                    content=content,
                    created_at=BASE_TIME + timedelta(seconds=next(_seq)),
                )
            )
        session.add_all(rows)
        await session.commit()
    return rows


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'memboard.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def summarizer():
    return ScriptedSummarizer()


@pytest.fixture
def background(session_factory, summarizer, embedder):
    return BackgroundSummarizer(
        session_factory,
        summarizer,
        embedder,
        timeout_seconds=2.0,
        max_batch=100,
        chunk_size=5,
        chunk_ttl_days=7,
        update_frequency=5,
    )


@pytest.fixture
def manager(session_factory, embedder):
    return WorkingMemoryManager(session_factory, embedder, candidate_factor=4)


@pytest.fixture
def conversation_id():
    return uuid4()


@pytest.fixture
def add(session_factory):
    """add(conversation_id, contents) -> persisted ChatMessage rows."""

    async def _add(conversation_id: UUID, contents: list[str]) -> list[ChatMessage]:
        return await add_messages(session_factory, conversation_id, contents)

    return _add


def numbered(prefix: str, n: int) -> list[str]:
    return [f"{prefix} message {i}" for i in range(n)]


@pytest.fixture
def make_contents():
    return numbered
