"""Timestamp parsing and formatting.

Two textual encodings are used downstream: the SRT form ``HH:MM:SS,mmm``
and the ASS form ``H:MM:SS.cc``.  Internally every timestamp is a float
number of seconds; text is always re-derived from that float, truncating
(never rounding) digits below the target resolution.
"""

import math
import re

# SRT allows more than two hour digits for very long recordings.
SRT_TIME = r"\d+:\d{2}:\d{2}[,.]\d{3}"

_HMS_RE = re.compile(r"^(\d+):(\d{1,2}):(\d{1,2})(?:[,.](\d{1,3}))?$")
_MS_RE = re.compile(r"^(\d{1,2}):(\d{1,2})(?:[,.](\d{1,3}))?$")

# Absorbs float error such as 1.001 * 1000 == 1000.9999999999999.
_EPSILON = 1e-6


def _split(seconds: float, units_per_second: int) -> tuple[int, int, int, int]:
    total = math.floor(max(seconds, 0.0) * units_per_second + _EPSILON)
    frac = total % units_per_second
    whole = total // units_per_second
    return whole // 3600, (whole % 3600) // 60, whole % 60, frac


def parse_timestamp(value: str | float | int) -> float:
    """Convert a timestamp to seconds.

    Accepts ``H:MM:SS,mmm``, ``H:MM:SS.mmm``, ``H:MM:SS``, ``MM:SS`` and plain
    numbers.  The fractional part is read as a decimal fraction, so ``.5``,
    ``.50`` and ``,500`` are all half a second.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Negative timestamp: {value!r}")
        return float(value)

    text = str(value).strip()
    m = _HMS_RE.match(text)
    if m:
        hours, minutes, secs, frac = m.groups()
    else:
        m = _MS_RE.match(text)
        if not m:
            raise ValueError(f"Not a timestamp: {value!r}")
        hours = "0"
        minutes, secs, frac = m.groups()

    if int(minutes) > 59 or int(secs) > 59:
        raise ValueError(f"Timestamp field out of range: {value!r}")

    millis = int((frac or "0").ljust(3, "0"))
    return int(hours) * 3600 + int(minutes) * 60 + int(secs) + millis / 1000


def format_srt_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS,mmm``."""
    h, m, s, ms = _split(seconds, 1000)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def format_ass_time(seconds: float) -> str:
    """Format seconds as ``H:MM:SS.cc`` (centiseconds, hours unpadded)."""
    h, m, s, cs = _split(seconds, 100)
    return f"{h}:{m:02d}:{s:02d}.{cs:02d}"


def format_clock(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS`` for progress messages."""
    h, m, s, _ = _split(seconds, 1)
    return f"{h:02d}:{m:02d}:{s:02d}"
