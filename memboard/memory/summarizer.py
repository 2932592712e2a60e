"""
Summarize capability: fold new messages into the conversation board with Gemini (via pydantic-ai).
Incremental prompt when a previous summary exists, full prompt otherwise. Output is a structured SummaryUpdate.
"""

from collections.abc import Sequence

from pydantic_ai import Agent

from memboard.config import settings
from memboard.errors import SummarizationCapabilityError
from memboard.memory.board import BoardState, MessageLike, SummaryUpdate

SYSTEM_PROMPT = """You are a conversation summarization specialist. You maintain a compact "summary board" for an ongoing conversation so that later turns do not need the full history.

Rules:
1) The summary must cover the whole conversation so far: the previous summary plus the new messages. Keep it under 500 tokens.
2) Preserve important context from the previous board, consolidate redundant information, keep chronological flow.
3) Facts: durable information (names, decisions, numbers, preferences). Drop greetings and small talk.
4) Action items: open tasks only; remove items the new messages resolved.
5) Pending questions: questions still unanswered at the end of the new messages.
6) Notes: one or two sentences on tone or preferences, or empty.
7) Entities: people, places, organizations and dates mentioned anywhere in the conversation so far."""

INCREMENTAL_PROMPT = """You are updating an ongoing conversation summary board.

PREVIOUS SUMMARY:
{summary}

PREVIOUS FACTS:
{facts}

PREVIOUS ACTION ITEMS:
{action_items}

PREVIOUS PENDING QUESTIONS:
{pending_questions}

PREVIOUS NOTES:
{notes}

NEW MESSAGES:
{new_messages}

Return the complete updated board."""

FULL_PROMPT = """You are creating the summary board of a conversation.

CONVERSATION:
{new_messages}

Return the complete board."""


def _format_messages(messages: Sequence[MessageLike]) -> str:
    """Format messages into "[role]: content" lines for the prompt."""
    return "\n".join(f"[{m.role}]: {m.content or ''}" for m in messages)


def _format_list(items: Sequence[str]) -> str:
    if not items:
        return "(none)"
    return "\n".join(f"- {item}" for item in items)


def build_prompt(seed: BoardState, new_messages: Sequence[MessageLike]) -> str:
    """Incremental prompt when the seed has a summary, full prompt otherwise."""
    formatted = _format_messages(new_messages)
    if not seed.summary:
        return FULL_PROMPT.format(new_messages=formatted)
    return INCREMENTAL_PROMPT.format(
        summary=seed.summary,
        facts=_format_list(seed.important_facts),
        action_items=_format_list(seed.action_items),
        pending_questions=_format_list(seed.pending_questions),
        notes=seed.context_notes or "(none)",
        new_messages=formatted,
    )


def create_summary_agent(model: str | None = None) -> Agent[None, SummaryUpdate]:
    """Build the summarization agent (structured output, Logfire instrumentation when configured)."""
    return Agent(
        model or settings.SUMMARY_MODEL,
        output_type=SummaryUpdate,
        system_prompt=SYSTEM_PROMPT,
        instrument=bool(settings.LOGFIRE_TOKEN),
        retries=1,
        defer_model_check=True,
    )


class GeminiSummarizer:
    """Default Summarize capability."""

    def __init__(self, agent: Agent[None, SummaryUpdate] | None = None, model: str | None = None):
        self._agent = agent
        self._model = model

    @property
    def agent(self) -> Agent[None, SummaryUpdate]:
        if self._agent is None:
            self._agent = create_summary_agent(self._model)
        return self._agent

    async def summarize(self, seed: BoardState, new_messages: Sequence[MessageLike]) -> SummaryUpdate:
        """
        Summarize new_messages on top of seed.
        Provider errors and empty summaries raise SummarizationCapabilityError; timeouts are the caller's.
        """
        prompt = build_prompt(seed, new_messages)
        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            raise SummarizationCapabilityError(f"Summarization request failed: {e}") from e
        update = result.output
        if update is None or not update.summary.strip():
            raise SummarizationCapabilityError("Summarizer returned an empty summary")
        return update
