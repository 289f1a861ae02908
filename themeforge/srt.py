"""SRT cue parsing, formatting and re-timing.

Parsing is best-effort: anything that is not a recognisable
``start --> end`` cue is skipped rather than rejected.
"""

import re
from typing import Iterable

from themeforge.models import TimedRecord
from themeforge.timecode import SRT_TIME, format_srt_time, parse_timestamp

_CUE_RE = re.compile(rf"({SRT_TIME})\s*-->\s*({SRT_TIME})")
# Only the canonical comma form is re-timed; other timing lines pass through.
_CANONICAL_TIME = r"\d{2,}:\d{2}:\d{2},\d{3}"
_CANONICAL_CUE_RE = re.compile(rf"({_CANONICAL_TIME}) --> ({_CANONICAL_TIME})")
_INDEX_RE = re.compile(r"^\d+$")


def _is_index(line: str) -> bool:
    return bool(_INDEX_RE.match(line.strip()))


def parse(text: str) -> list[TimedRecord]:
    """Parse SRT text into records.

    A cue starts at a line containing ``start --> end``; the text lines that
    follow, up to the next blank line, index line or cue line, form its body.
    A numeric line just before the cue line supplies the record id.
    """
    lines = text.splitlines()
    records: list[TimedRecord] = []
    pending_id: int | None = None
    i = 0

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        i += 1

        if not stripped:
            continue
        if _is_index(stripped):
            pending_id = int(stripped)
            continue

        m = _CUE_RE.search(line)
        if not m:
            pending_id = None
            continue

        body: list[str] = []
        while i < len(lines):
            nxt = lines[i]
            if not nxt.strip() or _is_index(nxt) or _CUE_RE.search(nxt):
                break
            body.append(nxt.rstrip("\r"))
            i += 1

        start = parse_timestamp(m.group(1))
        end = parse_timestamp(m.group(2))
        records.append(
            TimedRecord(
                id=pending_id if pending_id is not None else len(records) + 1,
                start=start,
                end=end,
                text="\n".join(body).strip(),
            )
        )
        pending_id = None

    return records


def format_records(records: Iterable[TimedRecord]) -> str:
    """Render records as SRT, numbering cues from 1 regardless of their ids."""
    blocks: list[str] = []
    for i, rec in enumerate(records, 1):
        blocks.append(
            f"{i}\n{format_srt_time(rec.start)} --> {format_srt_time(rec.end)}\n{rec.text}\n"
        )
    return "\n".join(blocks)


def offset_timestamps(text: str, offset_seconds: float) -> str:
    """Shift every ``start --> end`` pair in *text* by *offset_seconds*.

    Only canonical ``HH:MM:SS,mmm --> HH:MM:SS,mmm`` lines are rewritten, so an
    offset of zero returns *text* unchanged.
    """

    def _shift(m: re.Match) -> str:
        start = parse_timestamp(m.group(1)) + offset_seconds
        end = parse_timestamp(m.group(2)) + offset_seconds
        return f"{format_srt_time(start)} --> {format_srt_time(end)}"

    return _CANONICAL_CUE_RE.sub(_shift, text)


def combine(texts: Iterable[str]) -> str:
    """Concatenate independently produced SRT blocks with continuous numbering.

    Blocks are kept in the given order and are not re-sorted by time; each
    block must already be offset to its position in the full recording.
    """
    records: list[TimedRecord] = []
    for text in texts:
        records.extend(parse(text))
    return format_records(records)
