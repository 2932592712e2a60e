"""
Context assembly for a chat turn: the formatted board when one exists, otherwise the
last K raw messages. Fails open to raw history; never raises into the chat turn.
"""

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

import logfire
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart

from memboard.config import settings
from memboard.db import ChatMessage, utcnow
from memboard.errors import NotFoundError
from memboard.memory.chunking import format_message
from memboard.memory.manager import WorkingMemoryManager


class MemoryState(str, enum.Enum):
    EMPTY = "empty"  # no messages
    RAW = "raw"  # messages, no board yet
    SUMMARIZED = "summarized"  # board exists


@dataclass
class TurnContext:
    """What the chat turn injects before generation."""

    conversation_id: UUID
    mode: str  # "summary" | "raw"
    text: str
    messages: list[ChatMessage] = field(default_factory=list)
    message_count: int = 0

    @property
    def history(self) -> list[ModelMessage]:
        return to_model_history(self.messages)


def to_model_history(messages: Sequence[ChatMessage]) -> list[ModelMessage]:
    """Convert raw messages (oldest first) to a pydantic-ai message history."""
    history: list[ModelMessage] = []
    for m in messages:
        ts = m.created_at or utcnow()
        if m.role == "user":
            history.append(ModelRequest(parts=[UserPromptPart(content=m.content or "", timestamp=ts)]))
        else:
            history.append(ModelResponse(parts=[TextPart(content=m.content or "")], timestamp=ts))
    return history


async def assemble_context(
    manager: WorkingMemoryManager,
    conversation_id: UUID,
    *,
    history_limit: int | None = None,
) -> TurnContext:
    """Board block when summarized, else up to `history_limit` raw messages. Never raises."""
    history_limit = settings.CHAT_HISTORY_LIMIT if history_limit is None else history_limit
    try:
        board = await manager.get_working_context(conversation_id)
        return TurnContext(
            conversation_id=conversation_id,
            mode="summary",
            text=manager.format_context_for_llm(board),
            message_count=board.message_count,
        )
    except NotFoundError:
        pass
    except Exception:
        logfire.exception(
            "working context unavailable for {conversation_id}, using raw history",
            conversation_id=str(conversation_id),
        )

    try:
        messages = await manager.get_recent_messages(conversation_id, history_limit)
    except Exception:
        logfire.exception("recent messages unavailable for {conversation_id}", conversation_id=str(conversation_id))
        messages = []
    return TurnContext(
        conversation_id=conversation_id,
        mode="raw",
        text="\n".join(format_message(m) for m in messages),
        messages=messages,
    )


async def memory_state(manager: WorkingMemoryManager, conversation_id: UUID) -> MemoryState:
    try:
        await manager.get_working_context(conversation_id)
        return MemoryState.SUMMARIZED
    except NotFoundError:
        pass
    recent = await manager.get_recent_messages(conversation_id, 1)
    return MemoryState.RAW if recent else MemoryState.EMPTY
