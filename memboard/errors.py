"""
Error taxonomy for the working-memory engine.
Summarizer-side errors are absorbed by the scheduler; NotFoundError is an expected query outcome.
"""

from uuid import UUID


class WorkingMemoryError(Exception):
    """Base class for all working-memory errors."""


class SummarizationTimeout(WorkingMemoryError):
    """The Summarize capability did not answer within the configured timeout."""


class SummarizationCapabilityError(WorkingMemoryError):
    """The Summarize capability failed (provider error, invalid output)."""


class EmbeddingFailure(WorkingMemoryError):
    """The Embed capability failed or returned an empty vector."""


class NotFoundError(WorkingMemoryError):
    """No summary board exists yet for the conversation."""

    def __init__(self, conversation_id: UUID):
        super().__init__(f"No summary board for conversation {conversation_id}")
        self.conversation_id = conversation_id


class ConcurrencyConflict(WorkingMemoryError):
    """Another run owns the conversation, or the board moved under a compare-and-set."""

    def __init__(self, conversation_id: UUID, reason: str):
        super().__init__(f"Conversation {conversation_id}: {reason}")
        self.conversation_id = conversation_id
        self.reason = reason
