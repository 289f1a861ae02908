"""Recursive extraction driver.

Runs an extractor over planned chunks.  When the external service rejects a
chunk as too large, that chunk is split once into smaller sub-chunks; a
sub-chunk that is still too large is skipped with a warning.  Any other
error aborts the whole run.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

from themeforge.errors import CapacityExceededError

LOGGER = logging.getLogger("themeforge.extraction")

T = TypeVar("T")
R = TypeVar("R")

Extractor = Callable[[list[T]], list[R]]


def split_chunk(chunk: Sequence[T], divisor: int = 4, min_size: int = 5) -> list[list[T]]:
    """Re-partition *chunk* into pieces of ``ceil(len / divisor)`` items.

    Pieces hold at least *min_size* items (the last one may be shorter).
    """
    if not chunk:
        return []
    size = max(min_size, math.ceil(len(chunk) / divisor))
    return [list(chunk[i:i + size]) for i in range(0, len(chunk), size)]


def _extract_with_fallback(
    index: int,
    total: int,
    chunk: list[T],
    extractor: Extractor,
    divisor: int,
    min_size: int,
) -> list[R]:
    LOGGER.info("Processing chunk %d/%d (%d items)", index + 1, total, len(chunk))
    try:
        return list(extractor(chunk))
    except CapacityExceededError as exc:
        LOGGER.info("Chunk %d/%d too large (%s); splitting further", index + 1, total, exc)

    results: list[R] = []
    sub_chunks = split_chunk(chunk, divisor, min_size)
    for j, sub in enumerate(sub_chunks):
        try:
            results.extend(extractor(sub))
        except CapacityExceededError:
            LOGGER.warning(
                "Sub-chunk %d/%d of chunk %d could not be processed; skipping %d items",
                j + 1, len(sub_chunks), index + 1, len(sub),
            )
    return results


def extract_all(
    chunks: Sequence[Sequence[T]],
    extractor: Extractor,
    sub_chunk_divisor: int = 4,
    min_sub_chunk_size: int = 5,
    max_workers: int = 1,
    on_progress: Callable[[float], None] | None = None,
) -> list[R]:
    """Run *extractor* over every chunk and concatenate the results.

    Results are returned in chunk order.  With ``max_workers > 1`` chunks are
    extracted concurrently, but the output order is still the chunk order.
    """
    total = len(chunks)
    results: list[R] = []

    def _run(index: int) -> list[R]:
        return _extract_with_fallback(
            index, total, list(chunks[index]), extractor,
            sub_chunk_divisor, min_sub_chunk_size,
        )

    if max_workers <= 1 or total <= 1:
        for i in range(total):
            results.extend(_run(i))
            if on_progress:
                on_progress((i + 1) / total)
        return results

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        for done, chunk_results in enumerate(pool.map(_run, range(total)), 1):
            results.extend(chunk_results)
            if on_progress:
                on_progress(done / total)
    return results
