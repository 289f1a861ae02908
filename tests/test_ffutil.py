"""Unit tests for ffutil — silence parsing and subprocess wrappers."""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest

from themeforge.ffutil import (
    FFmpegNotFoundError,
    NoAudioStreamError,
    build_concat_filter,
    burn_subtitles,
    check_ffmpeg,
    concat_segments,
    detect_scene_changes,
    detect_silence,
    extract_audio,
    find_cjk_font,
    parse_scene_changes,
    parse_silence_intervals,
    probe,
)
from themeforge.models import SilenceInterval, TimeRange


# ---------------------------------------------------------------------------
# parse_silence_intervals (pure parsing, no subprocess)
# ---------------------------------------------------------------------------

SAMPLE_STDERR = """\
[silencedetect @ 0x...] silence_start: 1.5
[silencedetect @ 0x...] silence_end: 3.2 | silence_duration: 1.7
[silencedetect @ 0x...] silence_start: 7.0
[silencedetect @ 0x...] silence_end: 9.5 | silence_duration: 2.5
"""


class TestParseSilenceIntervals:
    def test_basic_paired(self):
        intervals = parse_silence_intervals(SAMPLE_STDERR)
        assert intervals == [
            SilenceInterval(start=1.5, end=3.2, duration=1.7),
            SilenceInterval(start=7.0, end=9.5, duration=2.5),
        ]

    def test_unpaired_trailing_silence_with_duration(self):
        stderr = (
            "[silencedetect @ 0x...] silence_start: 1.0\n"
            "[silencedetect @ 0x...] silence_end: 2.0 | silence_duration: 1.0\n"
            "[silencedetect @ 0x...] silence_start: 8.0\n"
        )
        intervals = parse_silence_intervals(stderr, duration=10.0)
        assert intervals[-1] == SilenceInterval(start=8.0, end=10.0, duration=2.0)

    def test_unpaired_trailing_silence_without_duration(self):
        stderr = "[silencedetect @ 0x...] silence_start: 8.0\n"
        assert parse_silence_intervals(stderr, duration=None) == []

    def test_empty_stderr(self):
        assert parse_silence_intervals("") == []

    def test_no_silence_detected(self):
        stderr = "Some other ffmpeg output\nsize=0 speed=1x\n"
        assert parse_silence_intervals(stderr) == []

    def test_negative_start_clamped(self):
        stderr = (
            "[silencedetect @ 0x...] silence_start: -0.01\n"
            "[silencedetect @ 0x...] silence_end: 2.5 | silence_duration: 2.51\n"
        )
        assert parse_silence_intervals(stderr)[0].start == 0.0


# ---------------------------------------------------------------------------
# detect_silence / detect_scene_changes (mocked subprocess)
# ---------------------------------------------------------------------------

class TestDetectSilence:
    @patch("themeforge.ffutil.subprocess.run")
    def test_returns_parsed_intervals(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stderr=SAMPLE_STDERR)
        intervals = detect_silence(Path("video.mp4"), threshold_db=-30, min_duration=0.5)
        assert len(intervals) == 2
        cmd = mock_run.call_args[0][0]
        assert "silencedetect=noise=-30dB:d=0.5" in cmd

    @patch("themeforge.ffutil.subprocess.run")
    def test_trailing_silence_with_duration(self, mock_run):
        stderr = "[silencedetect @ 0x...] silence_start: 8.0\n"
        mock_run.return_value = MagicMock(returncode=0, stderr=stderr)
        intervals = detect_silence(
            Path("video.mp4"), threshold_db=-30, min_duration=0.5, duration=10.0
        )
        assert intervals == [SilenceInterval(start=8.0, end=10.0, duration=2.0)]

    @patch("themeforge.ffutil.subprocess.run")
    def test_failure_raises(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="boom")
        with pytest.raises(subprocess.CalledProcessError) as exc_info:
            detect_silence(Path("video.mp4"), threshold_db=-30, min_duration=0.5)
        assert exc_info.value.stderr == "boom"


SHOWINFO_STDERR = """\
[Parsed_showinfo_1 @ 0x...] n:   0 pts:  15015 pts_time:12.5    pos: 1 fmt:yuv420p
[Parsed_showinfo_1 @ 0x...] n:   1 pts:   3003 pts_time:2.5     pos: 2 fmt:yuv420p
"""


class TestSceneChanges:
    def test_parse_sorted(self):
        assert parse_scene_changes(SHOWINFO_STDERR) == [2.5, 12.5]

    def test_parse_empty(self):
        assert parse_scene_changes("") == []

    @patch("themeforge.ffutil.subprocess.run")
    def test_detect(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stderr=SHOWINFO_STDERR)
        assert detect_scene_changes(Path("video.mp4"), threshold=0.3) == [2.5, 12.5]
        cmd = mock_run.call_args[0][0]
        assert "select='gt(scene,0.3)',showinfo" in cmd

    @patch("themeforge.ffutil.subprocess.run")
    def test_detect_failure(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="bad")
        with pytest.raises(subprocess.CalledProcessError):
            detect_scene_changes(Path("video.mp4"))


# ---------------------------------------------------------------------------
# probe (mocked subprocess)
# ---------------------------------------------------------------------------

VIDEO_STREAM = {
    "codec_type": "video",
    "codec_name": "h264",
    "width": 1920,
    "height": 1080,
    "r_frame_rate": "30/1",
}
AUDIO_STREAM = {"codec_type": "audio", "codec_name": "aac", "sample_rate": "44100"}


def _probe_output(streams):
    return MagicMock(
        returncode=0,
        stdout=json.dumps({"format": {"duration": "60.0"}, "streams": streams}),
    )


class TestProbe:
    @patch("themeforge.ffutil.subprocess.run")
    def test_basic(self, mock_run):
        mock_run.return_value = _probe_output([VIDEO_STREAM, AUDIO_STREAM])
        result = probe(Path("video.mp4"))
        assert result.duration == 60.0
        assert result.width == 1920
        assert result.fps == 30.0
        assert result.codec_audio == "aac"

    @patch("themeforge.ffutil.subprocess.run")
    def test_zero_frame_rate_denominator(self, mock_run):
        stream = dict(VIDEO_STREAM, r_frame_rate="0/0")
        mock_run.return_value = _probe_output([stream, AUDIO_STREAM])
        assert probe(Path("video.mp4")).fps == 0.0

    @patch("themeforge.ffutil.subprocess.run")
    def test_no_audio_stream(self, mock_run):
        mock_run.return_value = _probe_output([VIDEO_STREAM])
        with pytest.raises(NoAudioStreamError, match="No audio stream"):
            probe(Path("video.mp4"))

    @patch("themeforge.ffutil.subprocess.run")
    def test_no_video_stream(self, mock_run):
        mock_run.return_value = _probe_output([AUDIO_STREAM])
        with pytest.raises(ValueError, match="No video stream"):
            probe(Path("video.mp4"))


# ---------------------------------------------------------------------------
# encoding commands (mocked subprocess, command shape only)
# ---------------------------------------------------------------------------

class TestExtractAudio:
    @patch("themeforge.ffutil.subprocess.run")
    def test_whole_file(self, mock_run):
        out = extract_audio(Path("in.mp4"), Path("out.mp3"))
        assert out == Path("out.mp3")
        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("-b:a") + 1] == "64k"
        assert "-ss" not in cmd

    @patch("themeforge.ffutil.subprocess.run")
    def test_window(self, mock_run):
        extract_audio(Path("in.mp4"), Path("out.mp3"), bitrate="48k", start=600.0, duration=600.0)
        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("-ss") + 1] == "600.0"
        assert cmd[cmd.index("-t") + 1] == "600.0"
        assert cmd[cmd.index("-b:a") + 1] == "48k"


class TestConcatSegments:
    def test_filter_shape(self):
        fc = build_concat_filter([TimeRange(start=0, end=5), TimeRange(start=8, end=12)])
        assert "[0:v]trim=start=8:end=12,setpts=PTS-STARTPTS[v1]" in fc
        assert "[v0][a0][v1][a1]concat=n=2:v=1:a=1[outv][outa]" in fc

    @patch("themeforge.ffutil.subprocess.run")
    def test_builds_filter_complex(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0)
        segments = [TimeRange(start=0, end=5), TimeRange(start=8, end=12)]
        concat_segments(Path("in.mp4"), segments, Path("out.mp4"))

        mock_run.assert_called_once()
        cmd = mock_run.call_args[0][0]
        fc = cmd[cmd.index("-filter_complex") + 1]
        assert "concat=n=2" in fc
        assert cmd[-1] == "out.mp4"

    def test_empty_segments_raises(self):
        with pytest.raises(ValueError, match="empty segment list"):
            concat_segments(Path("in.mp4"), [], Path("out.mp4"))


class TestBurnSubtitles:
    @patch("themeforge.ffutil.subprocess.run")
    def test_command(self, mock_run):
        burn_subtitles(Path("in.mp4"), Path("themes.ass"), Path("out.mp4"))
        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("-vf") + 1] == "ass=themes.ass"
        assert cmd[cmd.index("-c:a") + 1] == "copy"


class TestEnvironment:
    @patch("themeforge.ffutil.shutil.which", return_value=None)
    def test_missing_ffmpeg(self, mock_which):
        with pytest.raises(FFmpegNotFoundError):
            check_ffmpeg()

    @patch("themeforge.ffutil.shutil.which", return_value="/usr/bin/ffmpeg")
    def test_ffmpeg_present(self, mock_which):
        check_ffmpeg()

    def test_font_found(self, tmp_path):
        font = tmp_path / "font.ttc"
        font.touch()
        with patch.dict("themeforge.ffutil._CJK_FONTS", {"testos": [str(tmp_path / "nope"), str(font)]}):
            assert find_cjk_font("testos") == str(font)

    def test_no_font(self, caplog):
        assert find_cjk_font("unknown-platform") == ""
        assert "No Japanese-capable font" in caplog.text
