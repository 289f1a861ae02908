"""Silence-cut editor — renders only the keep intervals of a video."""

from pathlib import Path

from themeforge import ffutil
from themeforge.models import TimeRange


def apply_cuts(
    input_path: Path,
    keep: list[TimeRange],
    output_path: Path,
) -> Path:
    """Trim each keep interval and concatenate them into *output_path*."""
    if not keep:
        raise ValueError("No keep segments found — entire video would be removed")

    ffutil.concat_segments(input_path, keep, output_path)
    return output_path
