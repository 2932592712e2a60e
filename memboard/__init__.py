"""memboard: conversational working memory (summary boards, memory chunks, summary archive)."""

__version__ = "0.1.0"
