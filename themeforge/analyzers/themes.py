"""Theme analyzer — turns a subtitle transcript into consolidated theme spans."""

import json
import logging
from pathlib import Path
from typing import Callable

from themeforge import srt
from themeforge.chunking import CHARS_PER_TOKEN, estimate_tokens, plan, token_budget
from themeforge.consolidate import merge_spans
from themeforge.errors import CapacityExceededError, MalformedResponseError
from themeforge.extraction import extract_all
from themeforge.jsonrepair import loads_lenient
from themeforge.models import ThemeSpan, TimedRecord
from themeforge.project import ThemeConfig
from themeforge.providers import ThemeProvider

LOGGER = logging.getLogger("themeforge.themes")


def spans_from_response(content: str) -> list[ThemeSpan]:
    """Decode a model answer into theme spans.

    Raises MalformedResponseError if the answer is not a JSON array of
    ``{start, end, theme}`` objects, even after repair.
    """
    data = loads_lenient(content)
    if not isinstance(data, list):
        raise MalformedResponseError(f"Expected a JSON array of themes, got {type(data).__name__}")

    spans: list[ThemeSpan] = []
    for entry in data:
        if not isinstance(entry, dict):
            raise MalformedResponseError(f"Theme entry is not an object: {entry!r}")
        try:
            spans.append(ThemeSpan.from_dict(entry))
        except (KeyError, ValueError) as exc:
            raise MalformedResponseError(f"Invalid theme entry {entry!r}: {exc}") from exc
    return spans


def request_themes(provider: ThemeProvider, records: list[TimedRecord]) -> list[ThemeSpan]:
    """Extract themes from one chunk of subtitle records."""
    return spans_from_response(provider.request(srt.format_records(records)))


def extract_themes(
    srt_text: str,
    provider: ThemeProvider,
    config: ThemeConfig | None = None,
    on_progress: Callable[[float], None] | None = None,
) -> list[ThemeSpan]:
    """Extract consolidated themes from an SRT transcript.

    A transcript that fits the model's context is sent in one request; a
    larger one, or one the model rejects as too long, is split into chunks
    that are extracted one by one.  The spans are always merged at the end.
    """
    config = config or ThemeConfig()
    records = srt.parse(srt_text)
    if not records:
        LOGGER.warning("Transcript contains no subtitles; no themes to extract")
        return []

    budget = token_budget(provider.model, provider.name)
    estimated = estimate_tokens(srt_text)
    LOGGER.info(
        "Estimated %d tokens for %d subtitles (model %s allows %d)",
        estimated, len(records), provider.model, budget.capacity_units,
    )

    if estimated + budget.overhead_units <= budget.capacity_units:
        try:
            spans = spans_from_response(provider.request(srt_text))
            if on_progress:
                on_progress(1.0)
            return merge_spans(spans, config.merge)
        except CapacityExceededError as exc:
            LOGGER.info("Model reported the transcript is too long (%s); splitting", exc)
    else:
        LOGGER.info("Transcript exceeds the model budget; splitting")

    chunks = plan(
        records,
        total_size=len(srt_text) / CHARS_PER_TOKEN,
        budget=budget,
        safety_divisor=config.safety_divisor,
        min_chunk_size=config.min_chunk_size,
    )
    spans = extract_all(
        chunks,
        lambda chunk: request_themes(provider, chunk),
        sub_chunk_divisor=config.sub_chunk_divisor,
        min_sub_chunk_size=config.min_sub_chunk_size,
        max_workers=config.max_workers,
        on_progress=on_progress,
    )
    merged = merge_spans(spans, config.merge)
    LOGGER.info("Merged %d extracted spans into %d themes", len(spans), len(merged))
    return merged


def save_themes(spans: list[ThemeSpan], path: Path) -> Path:
    path.write_text(
        json.dumps([s.to_dict() for s in spans], ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return path


def load_themes(path: Path) -> list[ThemeSpan]:
    """Load a themes JSON file, possibly hand-edited by the user."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of themes")
    return [ThemeSpan.from_dict(entry) for entry in data]
