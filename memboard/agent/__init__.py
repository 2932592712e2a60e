"""PydanticAI integration: memory tools and agent factory."""
from memboard.agent.agent import create_memory_agent, run_kwargs_for
from memboard.agent.tools import (
    MemoryDeps,
    get_conversation_summary_board,
    register_memory_tools,
    search_conversation_summaries,
    search_working_memory,
)

__all__ = [
    "MemoryDeps",
    "create_memory_agent",
    "get_conversation_summary_board",
    "register_memory_tools",
    "run_kwargs_for",
    "search_conversation_summaries",
    "search_working_memory",
]
