"""Working memory: summary board fold, background summarizer, trigger, read-side manager, context assembly."""
from memboard.memory.background import BackgroundSummarizer, RunResult
from memboard.memory.board import BoardState, Summarizer, SummaryUpdate, next_board_state
from memboard.memory.context import MemoryState, TurnContext, assemble_context, memory_state
from memboard.memory.manager import (
    MAX_CONTEXT_CHARS,
    ChunkHit,
    SummaryHit,
    WorkingMemoryManager,
    format_context_for_llm,
)
from memboard.memory.reaper import ReapResult, run_reaper_forever, run_reaper_once
from memboard.memory.summarizer import GeminiSummarizer
from memboard.memory.trigger import SummarizationScheduler

__all__ = [
    "BackgroundSummarizer",
    "BoardState",
    "ChunkHit",
    "GeminiSummarizer",
    "MAX_CONTEXT_CHARS",
    "MemoryState",
    "ReapResult",
    "RunResult",
    "SummarizationScheduler",
    "Summarizer",
    "SummaryHit",
    "SummaryUpdate",
    "TurnContext",
    "WorkingMemoryManager",
    "assemble_context",
    "format_context_for_llm",
    "memory_state",
    "next_board_state",
    "run_reaper_forever",
    "run_reaper_once",
]
