"""Configuration for the personalization engine."""

from .settings import OPENAI_CHAT_COMPLETIONS_URL, Settings, get_settings

__all__ = ["OPENAI_CHAT_COMPLETIONS_URL", "Settings", "get_settings"]
