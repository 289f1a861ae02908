"""Shared data types used across ThemeForge."""

from dataclasses import dataclass

from themeforge.timecode import format_srt_time, parse_timestamp


@dataclass
class TimeRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class SilenceInterval:
    """One silent stretch reported by ffmpeg's silencedetect filter."""

    start: float
    end: float
    duration: float


@dataclass
class TimedRecord:
    """A single subtitle cue.

    ``id`` is the index the cue carried in its source text (or its ordinal
    position); it is not used for ordering.
    """

    id: int
    start: float
    end: float
    text: str


@dataclass
class ThemeSpan:
    """A labeled time span produced by theme extraction."""

    start: float
    end: float
    label: str

    def to_dict(self) -> dict[str, str]:
        return {
            "start": format_srt_time(self.start),
            "end": format_srt_time(self.end),
            "theme": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ThemeSpan":
        """Build a span from a persisted ``{start, end, theme}`` object.

        Raises KeyError for missing fields and ValueError for timestamps
        that cannot be parsed.
        """
        return cls(
            start=parse_timestamp(data["start"]),
            end=parse_timestamp(data["end"]),
            label=str(data["theme"]),
        )


@dataclass
class ResourceBudget:
    """Capacity of a downstream service, in that service's own units."""

    capacity_units: int
    overhead_units: int = 0

    @property
    def usable(self) -> int:
        return self.capacity_units - self.overhead_units


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    width: int
    height: int
    fps: float
    audio_sample_rate: int
    codec_video: str
    codec_audio: str
