"""
Trigger/observer: called after the host persists a message; schedules a background
summarizer run once enough unsummarized messages have accumulated.

Scheduling is coalescing, not queuing: while a run for a conversation is pending or
running, further triggers only mark it dirty, and the threshold is re-checked once
when that run finishes. A run that consumed a full batch is re-checked the same way.
"""

import asyncio
from uuid import UUID

import logfire
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memboard.config import settings
from memboard.db import stores
from memboard.errors import ConcurrencyConflict, WorkingMemoryError
from memboard.memory.background import BackgroundSummarizer


class SummarizationScheduler:
    """Per-conversation task registry in front of a BackgroundSummarizer."""

    def __init__(
        self,
        summarizer: BackgroundSummarizer,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        threshold: int | None = None,
        max_concurrency: int | None = None,
    ):
        self.summarizer = summarizer
        self.session_factory = session_factory or summarizer.session_factory
        self.threshold = threshold or settings.SUMMARY_TRIGGER_THRESHOLD
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.SUMMARIZER_MAX_CONCURRENCY)
        self._tasks: dict[UUID, asyncio.Task] = {}
        self._started: set[UUID] = set()
        self._dirty: set[UUID] = set()

    def is_scheduled(self, conversation_id: UUID) -> bool:
        return conversation_id in self._tasks

    async def pending_count(self, conversation_id: UUID) -> int:
        async with self.session_factory() as session:
            return await stores.unsummarized_count(session, conversation_id)

    async def on_message_persisted(self, conversation_id: UUID) -> bool:
        """
        Observer hook for the host's message write path. Never summarizes inline.
        Returns True when a new run was scheduled. Failures are logged, never raised to the host.
        """
        try:
            return await self._schedule_if_due(conversation_id)
        except Exception:
            logfire.exception(
                "summarizer trigger failed for {conversation_id}",
                conversation_id=str(conversation_id),
            )
            return False

    async def _schedule_if_due(self, conversation_id: UUID) -> bool:
        if self._coalesce(conversation_id):
            return False
        pending = await self.pending_count(conversation_id)
        if pending < self.threshold:
            return False
        # Another trigger may have scheduled while we were counting.
        if self._coalesce(conversation_id):
            return False
        self._tasks[conversation_id] = asyncio.create_task(
            self._execute(conversation_id), name=f"summarize-{conversation_id}"
        )
        logfire.info(
            "summarizer scheduled for {conversation_id} ({pending} pending)",
            conversation_id=str(conversation_id),
            pending=pending,
        )
        return True

    def _coalesce(self, conversation_id: UUID) -> bool:
        if conversation_id not in self._tasks:
            return False
        self._dirty.add(conversation_id)
        conflict = ConcurrencyConflict(conversation_id, "run already pending, trigger coalesced")
        logfire.debug("{conflict}", conflict=str(conflict))
        return True

    def cancel(self, conversation_id: UUID) -> bool:
        """Cancel a scheduled run that has not started. In-flight runs are left to their timeout."""
        task = self._tasks.get(conversation_id)
        if task is None or conversation_id in self._started:
            return False
        task.cancel()
        self._tasks.pop(conversation_id, None)
        self._dirty.discard(conversation_id)
        logfire.info("summarizer run cancelled for {conversation_id}", conversation_id=str(conversation_id))
        return True

    async def _execute(self, conversation_id: UUID) -> None:
        this_task = asyncio.current_task()
        try:
            async with self._semaphore:
                self._started.add(conversation_id)
                try:
                    result = await self.summarizer.run(conversation_id)
                except WorkingMemoryError as exc:
                    # Pending window stays pending; the next trigger retries it.
                    logfire.warn(
                        "summarizer run failed for {conversation_id}: {error}",
                        conversation_id=str(conversation_id),
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                except Exception:
                    logfire.exception(
                        "unexpected summarizer failure for {conversation_id}",
                        conversation_id=str(conversation_id),
                    )
                else:
                    if result.status == "partial":
                        # backlog may remain past a full batch
                        self._dirty.add(conversation_id)
        finally:
            self._started.discard(conversation_id)
            if self._tasks.get(conversation_id) is this_task:
                self._tasks.pop(conversation_id, None)
        if conversation_id in self._dirty:
            self._dirty.discard(conversation_id)
            await self.on_message_persisted(conversation_id)

    async def drain(self) -> None:
        """Wait until no run is pending (including follow-up runs). For shutdown and tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
