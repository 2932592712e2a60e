"""
Chunking policy for working memory: fixed groups of consecutive messages.
A run chunks only the messages it just summarized, so spans never overlap across runs.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from memboard.memory.board import MessageLike

_TOOL_WORDS = ("tool", "function")
_ACTION_WORDS = ("action", "task", "todo", "to do")
_FACT_WORDS = ("fact", " is ", " are ")


@dataclass(frozen=True)
class ChunkDraft:
    """A chunk ready to be embedded and stored."""

    chunk_index: int
    text: str
    message_ids: tuple[int, ...]
    importance_score: float
    chunk_type: str


def format_message(message: MessageLike) -> str:
    return f"[{message.role}]: {message.content or ''}"


def partition_messages(messages: Sequence[MessageLike], size: int) -> list[list[MessageLike]]:
    """Split into consecutive groups of `size` (last group may be shorter)."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [list(messages[i : i + size]) for i in range(0, len(messages), size)]


def importance_score(messages: Sequence[MessageLike]) -> float:
    """Heuristic 0..1: questions, long messages and tool mentions raise importance."""
    score = 0.5
    for m in messages:
        content = m.content or ""
        if "?" in content:
            score += 0.1
        if len(content) > 200:
            score += 0.1
        lowered = content.lower()
        if any(word in lowered for word in _TOOL_WORDS):
            score += 0.1
    return round(min(score, 1.0), 2)


def chunk_type(messages: Sequence[MessageLike]) -> str:
    text = " ".join(m.content or "" for m in messages).lower()
    if "?" in text:
        return "question"
    if any(word in text for word in _ACTION_WORDS):
        return "action"
    if any(word in text for word in _FACT_WORDS):
        return "fact"
    return "dialogue"


def build_chunks(messages: Sequence[MessageLike], *, start_index: int, size: int) -> list[ChunkDraft]:
    """Chunk drafts for one summarized window, indexed from start_index."""
    drafts = []
    for offset, group in enumerate(partition_messages(messages, size)):
        drafts.append(
            ChunkDraft(
                chunk_index=start_index + offset,
                text="\n".join(format_message(m) for m in group),
                message_ids=tuple(m.id for m in group),
                importance_score=importance_score(group),
                chunk_type=chunk_type(group),
            )
        )
    return drafts
