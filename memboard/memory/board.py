"""
Board state and the incremental fold: (prior state, summary update, new messages) -> next state.
Nothing here touches the database or a model provider.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from pydantic import BaseModel, Field


class Entities(BaseModel):
    """Named entities mentioned in the conversation."""

    people: list[str] = Field(default_factory=list)
    places: list[str] = Field(default_factory=list)
    organizations: list[str] = Field(default_factory=list)
    dates: list[str] = Field(default_factory=list)


class SummaryUpdate(BaseModel):
    """Structured output of the Summarize capability."""

    summary: str = Field(description="Updated conversation summary covering every message so far.")
    facts: list[str] = Field(default_factory=list, description="Important facts, most important first.")
    action_items: list[str] = Field(default_factory=list, description="Open action items or tasks.")
    pending_questions: list[str] = Field(default_factory=list, description="Questions not yet answered.")
    notes: str = Field(default="", description="Short free-form context notes (tone, preferences).")
    topics: list[str] = Field(default_factory=list, description="Main topics of the conversation.")
    entities: Entities = Field(default_factory=Entities, description="People, places, organizations and dates mentioned.")


class MessageLike(Protocol):
    id: int
    role: str
    content: str
    created_at: datetime


@dataclass(frozen=True)
class BoardState:
    """In-memory image of one conversation_summary_boards row."""

    conversation_id: UUID
    summary: str = ""
    important_facts: tuple[str, ...] = ()
    action_items: tuple[str, ...] = ()
    pending_questions: tuple[str, ...] = ()
    context_notes: str = ""
    message_count: int = 0
    last_updated: datetime | None = None
    topics: tuple[str, ...] = field(default=(), compare=False)
    entities: dict[str, list[str]] = field(default_factory=dict, compare=False)

    @property
    def exists(self) -> bool:
        return self.message_count > 0

    def board_values(self, update_frequency: int) -> dict[str, Any]:
        """Column values for a full-row board write."""
        return {
            "summary": self.summary,
            "important_facts": list(self.important_facts),
            "action_items": list(self.action_items),
            "pending_questions": list(self.pending_questions),
            "context_notes": self.context_notes,
            "message_count": self.message_count,
            "update_frequency": update_frequency,
            "last_updated": self.last_updated,
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": str(self.conversation_id),
            "summary": self.summary,
            "important_facts": list(self.important_facts),
            "action_items": list(self.action_items),
            "pending_questions": list(self.pending_questions),
            "context_notes": self.context_notes,
            "message_count": self.message_count,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


def empty_state(conversation_id: UUID) -> BoardState:
    return BoardState(conversation_id=conversation_id)


def state_from_row(row) -> BoardState:
    """Build a BoardState from a SummaryBoard ORM row."""
    return BoardState(
        conversation_id=row.conversation_id,
        summary=row.summary or "",
        important_facts=tuple(row.important_facts or ()),
        action_items=tuple(row.action_items or ()),
        pending_questions=tuple(row.pending_questions or ()),
        context_notes=row.context_notes or "",
        message_count=row.message_count or 0,
        last_updated=row.last_updated,
    )


def _clean(items: Sequence[str]) -> tuple[str, ...]:
    """Strip, drop empties and exact duplicates, keep order."""
    seen: set[str] = set()
    out = []
    for item in items:
        text = (item or "").strip()
        if text and text not in seen:
            seen.add(text)
            out.append(text)
    return tuple(out)


def next_board_state(
    prior: BoardState,
    update: SummaryUpdate,
    new_messages: Sequence[MessageLike],
    now: datetime,
) -> BoardState:
    """
    Fold one summarization step into the board.
    Every text field is replaced by the update; message_count advances by exactly len(new_messages).
    """
    if not new_messages:
        return prior
    return replace(
        prior,
        summary=update.summary.strip(),
        important_facts=_clean(update.facts),
        action_items=_clean(update.action_items),
        pending_questions=_clean(update.pending_questions),
        context_notes=update.notes.strip(),
        message_count=prior.message_count + len(new_messages),
        last_updated=now,
        topics=_clean(update.topics),
        entities={kind: list(_clean(names)) for kind, names in update.entities.model_dump().items()},
    )


class Summarizer(Protocol):
    """Summarize capability: seed board + new messages -> SummaryUpdate."""

    async def summarize(self, seed: BoardState, new_messages: Sequence[MessageLike]) -> SummaryUpdate: ...
