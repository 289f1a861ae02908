"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import re
import shutil
import subprocess
import sys
from pathlib import Path

from themeforge.models import ProbeResult, SilenceInterval, TimeRange

LOGGER = logging.getLogger("themeforge.ffutil")

_SILENCE_START_RE = re.compile(r"silence_start: (-?[\d.]+)")
_SILENCE_END_RE = re.compile(r"silence_end: (-?[\d.]+) \| silence_duration: ([\d.]+)")
_PTS_TIME_RE = re.compile(r"pts_time:(\d+\.?\d*)")

_CJK_FONTS = {
    "darwin": [
        "/System/Library/Fonts/Hiragino Sans GB.ttc",
        "/System/Library/Fonts/Supplemental/Hiragino Sans GB.ttc",
        "/System/Library/Fonts/ヒラギノ角ゴシック W3.ttc",
        "/System/Library/Fonts/ヒラギノ丸ゴ ProN W4.ttc",
        "/Library/Fonts/Arial Unicode.ttf",
    ],
    "linux": [
        "/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/google-noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/truetype/ipafont-gothic/ipag.ttf",
    ],
    "win32": [
        "C:\\Windows\\Fonts\\msgothic.ttc",
        "C:\\Windows\\Fonts\\meiryo.ttc",
        "C:\\Windows\\Fonts\\YuGothR.ttc",
        "C:\\Windows\\Fonts\\msmincho.ttc",
    ],
}


class FFmpegNotFoundError(RuntimeError):
    pass


class NoAudioStreamError(ValueError):
    """Raised when the input file has no audio stream."""
    pass


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe(input_path: Path) -> ProbeResult:
    """Extract media metadata via ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)

    video_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "video"), None
    )
    audio_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "audio"), None
    )

    if video_stream is None:
        raise ValueError(f"No video stream found in {input_path}")
    if audio_stream is None:
        raise NoAudioStreamError(
            f"No audio stream found in {input_path}; transcription and silence detection require audio"
        )

    # Parse fps from r_frame_rate (e.g. "30/1")
    num, den = video_stream["r_frame_rate"].split("/")
    fps = int(num) / int(den) if int(den) else 0.0

    return ProbeResult(
        duration=float(data["format"]["duration"]),
        width=int(video_stream["width"]),
        height=int(video_stream["height"]),
        fps=fps,
        audio_sample_rate=int(audio_stream["sample_rate"]),
        codec_video=video_stream["codec_name"],
        codec_audio=audio_stream["codec_name"],
    )


def parse_silence_intervals(stderr: str, duration: float | None = None) -> list[SilenceInterval]:
    """Parse silencedetect output from ffmpeg stderr.

    If a silence_start has no matching silence_end (silence extends to EOF),
    ``duration`` is used as the end time. If ``duration`` is also None the
    unpaired start is dropped.
    """
    starts = [max(float(m), 0.0) for m in _SILENCE_START_RE.findall(stderr)]
    ends = [(float(e), float(d)) for e, d in _SILENCE_END_RE.findall(stderr)]

    intervals: list[SilenceInterval] = []
    for i, start in enumerate(starts):
        if i < len(ends):
            end, length = ends[i]
            intervals.append(SilenceInterval(start=start, end=end, duration=length))
        elif duration is not None:
            # silence runs to EOF
            intervals.append(SilenceInterval(start=start, end=duration, duration=duration - start))
    return intervals


def detect_silence(
    input_path: Path,
    threshold_db: float,
    min_duration: float,
    duration: float | None = None,
) -> list[SilenceInterval]:
    """Run FFmpeg silencedetect and return silent intervals.

    *duration* is used to cap trailing silence that extends to EOF (an unpaired
    ``silence_start`` with no matching ``silence_end``).  When not supplied, any
    unpaired trailing silence is dropped.
    """
    cmd = [
        "ffmpeg",
        "-i", str(input_path),
        "-af", f"silencedetect=noise={threshold_db}dB:d={min_duration}",
        "-f", "null", "-",
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)

    if result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, cmd, output=result.stdout, stderr=result.stderr
        )

    return parse_silence_intervals(result.stderr, duration=duration)


def parse_scene_changes(stderr: str) -> list[float]:
    """Pull scene-change timestamps out of ffmpeg showinfo output, sorted."""
    return sorted(float(m) for m in _PTS_TIME_RE.findall(stderr))


def detect_scene_changes(input_path: Path, threshold: float = 0.1) -> list[float]:
    """Return the times (seconds) at which the picture changes noticeably."""
    cmd = [
        "ffmpeg",
        "-i", str(input_path),
        "-filter:v", f"select='gt(scene,{threshold})',showinfo",
        "-vsync", "vfr",
        "-f", "null", "-",
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)

    if result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, cmd, output=result.stdout, stderr=result.stderr
        )

    return parse_scene_changes(result.stderr)


def extract_audio(
    input_path: Path,
    output_path: Path,
    bitrate: str = "64k",
    start: float | None = None,
    duration: float | None = None,
) -> Path:
    """Extract audio as MP3 at a bounded bitrate, optionally just one window."""
    cmd = ["ffmpeg", "-y", "-i", str(input_path)]
    if start is not None:
        cmd += ["-ss", str(start)]
    if duration is not None:
        cmd += ["-t", str(duration)]
    cmd += [
        "-map", "a",
        "-b:a", bitrate,
        "-c:a", "libmp3lame",
        str(output_path),
    ]
    subprocess.run(cmd, capture_output=True, check=True)
    return output_path


def extract_wav(
    input_path: Path, output_path: Path, sample_rate: int = 16000
) -> Path:
    """Extract audio as mono WAV at the given sample rate (for local Whisper)."""
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-vn",
        "-acodec", "pcm_s16le",
        "-ar", str(sample_rate),
        "-ac", "1",
        str(output_path),
    ]
    subprocess.run(cmd, capture_output=True, check=True)
    return output_path


def build_concat_filter(segments: list[TimeRange]) -> str:
    """Build one trim/atrim pair per segment plus a final concat."""
    filter_parts: list[str] = []
    stream_labels: list[str] = []

    for i, seg in enumerate(segments):
        filter_parts.append(
            f"[0:v]trim=start={seg.start}:end={seg.end},setpts=PTS-STARTPTS[v{i}]"
        )
        filter_parts.append(
            f"[0:a]atrim=start={seg.start}:end={seg.end},asetpts=PTS-STARTPTS[a{i}]"
        )
        stream_labels.append(f"[v{i}][a{i}]")

    concat_input = "".join(stream_labels)
    filter_parts.append(f"{concat_input}concat=n={len(segments)}:v=1:a=1[outv][outa]")
    return ";\n".join(filter_parts)


def concat_segments(
    input_path: Path, segments: list[TimeRange], output_path: Path
) -> None:
    """Concatenate keep-segments using a single ffmpeg filter_complex call.

    Uses trim/atrim + concat filters so no intermediate files are needed and
    the approach works regardless of the input codec/container.
    """
    if not segments:
        raise ValueError("concat_segments called with empty segment list")

    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-filter_complex", build_concat_filter(segments),
        "-map", "[outv]",
        "-map", "[outa]",
        "-c:v", "libx264",
        "-preset", "medium",
        "-c:a", "aac",
        "-b:a", "128k",
        str(output_path),
    ]
    subprocess.run(cmd, capture_output=True, check=True)


def burn_subtitles(
    input_path: Path, subtitle_path: Path, output_path: Path
) -> None:
    """Hard-burn an ASS subtitle file into the video, copying the audio."""
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-vf", f"ass={subtitle_path}",
        "-c:a", "copy",
        "-c:v", "libx264",
        "-preset", "medium",
        "-crf", "22",
        str(output_path),
    ]
    subprocess.run(cmd, capture_output=True, check=True)


def find_cjk_font(platform: str | None = None) -> str:
    """Path of an installed font that can render Japanese, or "" if none."""
    for candidate in _CJK_FONTS.get(platform or sys.platform, []):
        if Path(candidate).exists():
            return candidate
    LOGGER.warning("No Japanese-capable font found; overlay text may not render correctly")
    return ""
