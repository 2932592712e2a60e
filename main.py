"""
memboard worker — main entrypoint.
Loads settings, initializes Logfire (if configured) and the DB, then runs the periodic memory reaper.
Summarizer runs are scheduled in the host process via memboard.service.get_memory_service().scheduler.
"""

import asyncio
import os
import sys

from memboard.config import settings

# So pydantic_ai (GoogleProvider) and other libs that read from os.environ see .env values
if settings.GOOGLE_API_KEY:
    os.environ["GOOGLE_API_KEY"] = settings.GOOGLE_API_KEY

from memboard.db import async_session_factory, init_db
from memboard.memory import run_reaper_forever


def _init_logfire() -> None:
    """Initialize Logfire if LOGFIRE_TOKEN is set. Use LOGFIRE_BASE_URL for local/self-hosted backend."""
    if not settings.LOGFIRE_TOKEN:
        return
    try:
        import logfire
        if settings.LOGFIRE_BASE_URL:
            os.environ["LOGFIRE_BASE_URL"] = settings.LOGFIRE_BASE_URL.rstrip("/")
        logfire.configure(token=settings.LOGFIRE_TOKEN)
    except Exception as e:
        print(f"Logfire init skipped: {e}", file=sys.stderr)


async def main() -> None:
    """Initialize DB and run the reaper loop."""
    _init_logfire()
    await init_db()
    await run_reaper_forever(async_session_factory)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)
