"""Budgeted chunk planning.

Two budget domains share the same shape but must not be mixed up:

* tokens, for transcript text sent to a language model;
* wall-clock seconds, for audio sent to a transcription service.
"""

import logging
import math
from typing import Sequence, TypeVar

from themeforge.models import ResourceBudget, TimeRange

LOGGER = logging.getLogger("themeforge.chunking")

T = TypeVar("T")

DEFAULT_SAFETY_DIVISOR = 4
DEFAULT_CHUNK_DURATION = 600.0

# Rough characters-per-token ratio used when sizing transcript chunks.
CHARS_PER_TOKEN = 4
# Allowance for the system and instruction parts of a theme prompt.
PROMPT_OVERHEAD_TOKENS = 500
# Japanese text tokenises far worse than English, hence the large factor.
TOKENS_PER_WORD = 8.0
CHARS_PER_ESTIMATED_TOKEN = 3

_OPENAI_LIMITS = {
    "gpt-3.5-turbo": 16385,
    "gpt-3.5-turbo-16k": 16385,
    "gpt-4": 8192,
    "gpt-4-32k": 32768,
    "gpt-4-turbo": 128000,
    "gpt-4o": 128000,
    "gpt-4o-mini": 128000,
}
_GOOGLE_LIMITS = {
    "gemini-pro": 32768,
    "gemini-1.5-flash": 1048576,
    "gemini-1.5-pro": 1048576,
    "gemini-2.0-flash": 1048576,
}
_DEFAULT_LIMITS = {"openai": 16385, "google": 32768}


def model_max_tokens(model: str, provider: str = "openai") -> int:
    """Context window of *model*, falling back to a per-provider default."""
    if provider == "google":
        return _GOOGLE_LIMITS.get(model, _DEFAULT_LIMITS["google"])
    return _OPENAI_LIMITS.get(model, _DEFAULT_LIMITS["openai"])


def token_budget(model: str, provider: str = "openai") -> ResourceBudget:
    return ResourceBudget(
        capacity_units=model_max_tokens(model, provider),
        overhead_units=PROMPT_OVERHEAD_TOKENS,
    )


def estimate_tokens(text: str) -> int:
    """Conservative token estimate that holds up for CJK transcripts."""
    words = len(text.split())
    return math.ceil(max(words * TOKENS_PER_WORD, len(text) / CHARS_PER_ESTIMATED_TOKEN))


def chunk_size(
    item_count: int,
    total_size: float,
    budget: ResourceBudget,
    safety_divisor: float = DEFAULT_SAFETY_DIVISOR,
    min_chunk_size: int = 1,
) -> int:
    """Number of items per chunk so that one chunk fits *budget*.

    *total_size* is the aggregate size of all items in budget units.  The
    result is shrunk by *safety_divisor* because the size estimate is only
    approximate, and never drops below *min_chunk_size*.
    """
    if item_count <= 0:
        raise ValueError("Cannot plan chunks for zero items")
    if budget.usable <= 0:
        raise ValueError(
            f"Budget has no usable capacity ({budget.capacity_units} - {budget.overhead_units})"
        )
    if safety_divisor <= 0:
        raise ValueError("safety_divisor must be positive")

    floor = max(1, min_chunk_size)
    average = total_size / item_count
    if average <= 0:
        # Zero-sized items: everything fits in one chunk.
        return max(item_count, floor)

    size = math.floor(budget.usable / average / safety_divisor)
    return max(size, floor)


def plan(
    items: Sequence[T],
    total_size: float,
    budget: ResourceBudget,
    safety_divisor: float = DEFAULT_SAFETY_DIVISOR,
    min_chunk_size: int = 1,
) -> list[list[T]]:
    """Partition *items* into contiguous chunks that each fit *budget*.

    Items are never reordered or split; an oversized single item is passed
    through whole.
    """
    size = chunk_size(len(items), total_size, budget, safety_divisor, min_chunk_size)
    chunks = [list(items[i:i + size]) for i in range(0, len(items), size)]
    LOGGER.info(
        "Split %d items into %d chunks of up to %d items", len(items), len(chunks), size
    )
    return chunks


def plan_time_windows(
    total_duration: float, chunk_duration: float = DEFAULT_CHUNK_DURATION
) -> list[TimeRange]:
    """Fixed-width windows covering ``[0, total_duration]``.

    The last window is clipped to *total_duration*.
    """
    if total_duration < 0:
        raise ValueError(f"Negative duration: {total_duration}")
    if chunk_duration <= 0:
        raise ValueError("chunk_duration must be positive")

    count = math.ceil(total_duration / chunk_duration)
    return [
        TimeRange(
            start=i * chunk_duration,
            end=min((i + 1) * chunk_duration, total_duration),
        )
        for i in range(count)
    ]
