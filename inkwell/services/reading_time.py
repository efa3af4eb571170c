"""Estimated reading time for post content."""

import math

from inkwell.core.config import settings


def count_words(content: str) -> int:
    """Whitespace-delimited words. Markup is counted as-is."""
    return len(content.split())


def estimate_reading_time(content: str, words_per_minute: int = settings.WORDS_PER_MINUTE) -> int:
    """Minutes to read ``content``: ``ceil(words / wpm)``, never less than 1."""
    return max(1, math.ceil(count_words(content) / words_per_minute))
