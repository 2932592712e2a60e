"""Configuration: pydantic-settings loaded from environment and .env."""
from memboard.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
