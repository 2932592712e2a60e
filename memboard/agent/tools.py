"""
Consumer-facing query interface: plain async functions returning JSON-ready dicts,
plus registration as pydantic-ai tools for any agent that carries MemoryDeps.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import logfire
from pydantic_ai import Agent, RunContext

from memboard.config import settings
from memboard.errors import NotFoundError, WorkingMemoryError
from memboard.memory.manager import WorkingMemoryManager

NO_BOARD_MESSAGE = (
    "No summary board found for this conversation yet. "
    "It will be created after {threshold} messages."
)


@dataclass
class MemoryDeps:
    """Dependencies injected into the agent run."""

    manager: WorkingMemoryManager
    conversation_id: UUID


def _parse_date(value: str | None) -> datetime | None:
    """ISO 8601 -> naive UTC datetime (None passes through)."""
    if value is None or value == "":
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _error(tool_name: str, message: str) -> dict[str, Any]:
    return {"success": False, "tool_name": tool_name, "error": message}


async def get_conversation_summary_board(manager: WorkingMemoryManager, conversation_id: UUID) -> dict[str, Any]:
    try:
        board = await manager.get_working_context(conversation_id)
    except NotFoundError:
        return {
            "success": True,
            "found": False,
            "message": NO_BOARD_MESSAGE.format(threshold=settings.SUMMARY_TRIGGER_THRESHOLD),
        }
    return {"success": True, "found": True, "board": board.as_dict()}


async def search_working_memory(
    manager: WorkingMemoryManager,
    conversation_id: UUID,
    query: str,
    similarity_threshold: float | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    tool_name = "search_working_memory"
    try:
        hits = await manager.search_working_memory(conversation_id, query, similarity_threshold, limit)
    except (ValueError, WorkingMemoryError) as e:
        logfire.warn("{tool} failed: {error}", tool=tool_name, error=str(e))
        return _error(tool_name, str(e))
    return {
        "success": True,
        "conversation_id": str(conversation_id),
        "query": query,
        "match_count": len(hits),
        "chunks": [hit.as_dict() for hit in hits],
    }


async def search_conversation_summaries(
    manager: WorkingMemoryManager,
    query: str,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    tool_name = "search_conversation_summaries"
    try:
        start, end = _parse_date(start_date), _parse_date(end_date)
        hits = await manager.search_summaries(query, start, end, limit)
    except (ValueError, WorkingMemoryError) as e:
        logfire.warn("{tool} failed: {error}", tool=tool_name, error=str(e))
        return _error(tool_name, str(e))
    return {
        "success": True,
        "query": query,
        "match_count": len(hits),
        "summaries": [hit.as_dict() for hit in hits],
    }


def register_memory_tools(agent: Agent[MemoryDeps, Any]) -> Agent[MemoryDeps, Any]:
    """Attach the three memory tools to an agent whose deps_type is MemoryDeps."""

    @agent.tool(name="get_conversation_summary_board")
    async def summary_board_tool(ctx: RunContext[MemoryDeps]) -> dict[str, Any]:
        """Get the current summary board for this conversation: summary, key facts, action items and pending questions."""
        return await get_conversation_summary_board(ctx.deps.manager, ctx.deps.conversation_id)

    @agent.tool(name="search_working_memory")
    async def working_memory_tool(
        ctx: RunContext[MemoryDeps],
        query: str,
        similarity_threshold: float | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Search recent context of this conversation by semantic similarity. similarity_threshold is 0-1."""
        return await search_working_memory(
            ctx.deps.manager, ctx.deps.conversation_id, query, similarity_threshold, limit
        )

    @agent.tool(name="search_conversation_summaries")
    async def summaries_tool(
        ctx: RunContext[MemoryDeps],
        query: str,
        start_date: str | None = None,
        end_date: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Search past conversation summaries across all conversations. Dates are ISO 8601."""
        return await search_conversation_summaries(ctx.deps.manager, query, start_date, end_date, limit)

    return agent
