"""Silence and motion analysis — decides which parts of a video to keep."""

import logging
from pathlib import Path
from typing import Callable, Iterable

from themeforge import ffutil
from themeforge.models import SilenceInterval, TimeRange
from themeforge.project import SilenceCutConfig

LOGGER = logging.getLogger("themeforge.silence")


def plan_keep_intervals(
    silences: Iterable[SilenceInterval],
    total_duration: float,
    padding: float = 0.05,
    min_segment_duration: float = 0.3,
) -> list[TimeRange]:
    """Turn detected silences into the ordered list of intervals to keep.

    Each silence is widened by *padding* on both sides (clamped to the
    file), and the stretch between the previous silence and this one is
    kept if it lasts at least *min_segment_duration*.  Short gaps between
    silences are dropped so the render never contains slivers.
    """
    keep: list[TimeRange] = []
    last_end = 0.0

    for silence in sorted(silences, key=lambda s: s.start):
        silence_start = min(max(silence.start - padding, 0.0), total_duration)
        silence_end = min(max(silence.end + padding, 0.0), total_duration)

        length = silence_start - last_end
        if length > 0 and length >= min_segment_duration:
            keep.append(TimeRange(start=last_end, end=silence_start))

        last_end = max(last_end, silence_end)

    tail = total_duration - last_end
    if tail > 0 and tail >= min_segment_duration:
        keep.append(TimeRange(start=last_end, end=total_duration))

    return keep


def refine_with_scene_changes(
    intervals: Iterable[TimeRange],
    scene_changes: list[float],
    min_segment_duration: float = 0.3,
) -> list[TimeRange]:
    """Keep only visually active footage inside each keep interval.

    An interval with fewer than two scene changes is static: it survives only
    if it is at least twice *min_segment_duration* long.  An interval with two
    or more changes is split at every change, and pieces shorter than
    *min_segment_duration* are dropped.

    A short interval that contains exactly one scene change is dropped
    entirely, even if the change sits at its very edge.
    """
    refined: list[TimeRange] = []

    for interval in intervals:
        changes = [t for t in scene_changes if interval.start <= t <= interval.end]

        if len(changes) < 2:
            if interval.duration >= min_segment_duration * 2:
                refined.append(TimeRange(start=interval.start, end=interval.end))
            continue

        cursor = interval.start
        for t in changes + [interval.end]:
            if t - cursor > 0 and t - cursor >= min_segment_duration:
                refined.append(TimeRange(start=cursor, end=t))
            cursor = t

    return refined


def analyze_silence(
    input_path: Path,
    config: SilenceCutConfig,
    on_progress: Callable[[float], None] | None = None,
) -> tuple[list[TimeRange], float]:
    """Detect silence (and motion in ``jump`` mode) and return keep intervals.

    Returns the keep intervals together with the probed input duration.
    """
    if config.mode not in ("silent", "jump"):
        raise ValueError(f"Unknown cut mode {config.mode!r}; expected 'silent' or 'jump'")

    def _progress(frac: float) -> None:
        if on_progress:
            on_progress(frac)

    duration = ffutil.probe(input_path).duration
    _progress(0.1)

    silences = ffutil.detect_silence(
        input_path,
        threshold_db=config.threshold_db,
        min_duration=config.min_duration,
        duration=duration,
    )
    LOGGER.info("Detected %d silent intervals", len(silences))
    _progress(0.5)

    keep = plan_keep_intervals(
        silences, duration, config.padding, config.min_segment_duration
    )

    if config.mode == "jump":
        scene_changes = ffutil.detect_scene_changes(input_path, config.scene_threshold)
        LOGGER.info("Detected %d scene changes", len(scene_changes))
        keep = refine_with_scene_changes(keep, scene_changes, config.min_segment_duration)

    LOGGER.info("Keeping %d segments", len(keep))
    _progress(1.0)
    return keep, duration
