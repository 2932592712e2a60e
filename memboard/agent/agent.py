"""
PydanticAI agent wired to working memory: memory tools plus per-turn context injection.
Logfire instrumentation when LOGFIRE_TOKEN is set.
"""

from typing import Any

from pydantic_ai import Agent

from memboard.agent.tools import MemoryDeps, register_memory_tools
from memboard.config import settings
from memboard.memory.context import TurnContext

SYSTEM_PROMPT = """You are a helpful assistant with a working memory of this conversation.

The conversation context is either a summary board (summary, key facts, action items, pending questions) or the most recent raw messages.
When the user refers to something not in that context, call search_working_memory with a short query before answering.
For questions about earlier conversations, call search_conversation_summaries.
"""


def create_memory_agent(model: Any = None) -> Agent[MemoryDeps, str]:
    """Build an agent with the memory tools registered."""
    agent = Agent(
        model or settings.SUMMARY_MODEL,
        deps_type=MemoryDeps,
        system_prompt=SYSTEM_PROMPT,
        instrument=bool(settings.LOGFIRE_TOKEN),
        retries=1,
        defer_model_check=True,
    )
    return register_memory_tools(agent)


def run_kwargs_for(context: TurnContext) -> dict[str, Any]:
    """
    agent.run() keyword arguments for one turn.
    Summary mode: the board block is the only context and no raw history is sent.
    Raw mode: recent messages go in as message_history.
    """
    if context.mode == "summary":
        return {"instructions": context.text, "message_history": None}
    history = context.history
    return {"instructions": None, "message_history": history or None}
