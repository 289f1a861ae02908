"""Fuzzy consolidation of extracted theme spans."""

import re
from dataclasses import dataclass, replace
from typing import Iterable

from themeforge.models import ThemeSpan

# Phrases that commonly pad Japanese theme labels ("about ...", "how to ...").
FILLER_PHRASES = ("について", "に関して", "とは", "の方法")

_FILLER_RE = re.compile("|".join(FILLER_PHRASES))
_PUNCT_RE = re.compile(r"[.,;:!?'\"()]")


@dataclass
class MergeConfig:
    """Thresholds for merging neighbouring spans."""

    max_gap: float = 10.0
    short_label_tokens: int = 3
    short_threshold: float = 0.7
    long_threshold: float = 0.5


def normalize_label(label: str) -> list[str]:
    """Lower-case, drop filler phrases and punctuation, split on whitespace."""
    text = _FILLER_RE.sub("", label.lower())
    text = _PUNCT_RE.sub("", text)
    return text.split()


def dice(tokens1: list[str], tokens2: list[str]) -> float:
    if not tokens1 or not tokens2:
        return 0.0
    other = set(tokens2)
    common = sum(1 for t in tokens1 if t in other)
    return 2 * common / (len(tokens1) + len(tokens2))


def are_similar(label1: str, label2: str, config: MergeConfig | None = None) -> bool:
    """Decide whether two theme labels describe the same topic.

    Short labels need a closer match than long ones, where partial overlap
    already says a lot.  An empty label is never similar to anything.
    """
    config = config or MergeConfig()
    tokens1 = normalize_label(label1)
    tokens2 = normalize_label(label2)
    if not tokens1 or not tokens2:
        return False

    shorter = min(len(tokens1), len(tokens2))
    threshold = (
        config.short_threshold
        if shorter <= config.short_label_tokens
        else config.long_threshold
    )
    return dice(tokens1, tokens2) >= threshold


def merge_spans(
    spans: Iterable[ThemeSpan], config: MergeConfig | None = None
) -> list[ThemeSpan]:
    """Sort spans by start and merge neighbours with similar labels.

    A span is folded into the running one when it starts within
    ``config.max_gap`` seconds of its end (or overlaps it) and the labels
    are similar.  Merging only ever extends the end; the start and label of
    the running span are kept.
    """
    config = config or MergeConfig()
    ordered = sorted(spans, key=lambda s: s.start)
    merged: list[ThemeSpan] = []
    current: ThemeSpan | None = None

    for span in ordered:
        if current is None:
            current = replace(span)
            continue

        close = span.start - current.end < config.max_gap or span.start <= current.end
        if close and are_similar(current.label, span.label, config):
            current.end = max(current.end, span.end)
        else:
            merged.append(current)
            current = replace(span)

    if current is not None:
        merged.append(current)
    return merged
