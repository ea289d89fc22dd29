"""Row consumers: passthrough and AI-based field cleaning."""

from .base import PassthroughConsumer, RowConsumer, apply_outcomes
from .openai_cleaner import ADDRESS_COLUMNS, OpenAIFieldCleaner

__all__ = [
    "ADDRESS_COLUMNS",
    "OpenAIFieldCleaner",
    "PassthroughConsumer",
    "RowConsumer",
    "apply_outcomes",
]
