"""Speech-to-text analyzer producing SRT subtitles.

Two backends are available: the OpenAI transcription API, which limits the
size of each upload, and a local OpenAI Whisper model.  Audio too large for
the API is cut into fixed-length windows that are transcribed one after the
other and stitched back together.
"""

import logging
import tempfile
from pathlib import Path
from typing import Callable

from openai import APIError, OpenAI

from themeforge import ffutil, srt
from themeforge.chunking import plan_time_windows
from themeforge.errors import CapacityExceededError, ErrorKind, raise_for_kind
from themeforge.models import TimedRecord
from themeforge.project import Credentials, TranscribeConfig
from themeforge.timecode import format_clock

LOGGER = logging.getLogger("themeforge.transcribe")


class OpenAITranscriber:
    """Transcribes audio files through the OpenAI audio API."""

    name = "openai-transcription"
    capacity_markers = (
        "maximum content size",
        "maximum allowed size",
        "too large",
        "413",
    )

    def __init__(self, api_key: str, model: str = "whisper-1"):
        self.client = OpenAI(api_key=api_key)
        self.model = model

    def classify_error(self, message: str) -> ErrorKind:
        text = message.lower()
        if any(marker in text for marker in self.capacity_markers):
            return ErrorKind.CAPACITY
        return ErrorKind.FATAL

    def transcribe(self, audio_path: Path, language: str | None) -> str:
        kwargs = {"model": self.model, "response_format": "srt"}
        if language:
            kwargs["language"] = language
        try:
            with open(audio_path, "rb") as f:
                result = self.client.audio.transcriptions.create(file=f, **kwargs)
        except APIError as exc:
            raise_for_kind(self.classify_error(str(exc)), str(exc), self.name)
        # With response_format="srt" the SDK returns the body as a string.
        return result if isinstance(result, str) else str(result)


class LocalWhisperTranscriber:
    """Runs an OpenAI Whisper model on this machine."""

    name = "whisper"

    def __init__(self, model: str = "base"):
        self.model = model

    def transcribe(self, audio_path: Path, language: str | None) -> str:
        import whisper

        model = whisper.load_model(self.model)
        result = model.transcribe(str(audio_path), language=language)

        records = [
            TimedRecord(
                id=i,
                start=float(seg["start"]),
                end=float(seg["end"]),
                text=seg["text"].strip(),
            )
            for i, seg in enumerate(result["segments"], 1)
        ]
        return srt.format_records(records)


def make_transcriber(config: TranscribeConfig, credentials: Credentials):
    if config.backend == "local":
        model = config.model if config.model != "whisper-1" else "base"
        return LocalWhisperTranscriber(model=model)
    if config.backend != "openai":
        raise ValueError(f"Unknown transcription backend {config.backend!r}")
    if not credentials.openai_api_key:
        raise ValueError(
            "An OpenAI API key is required for transcription; pass --api-key or set OPENAI_API_KEY"
        )
    return OpenAITranscriber(api_key=credentials.openai_api_key, model=config.model)


def transcribe_windows(
    input_path: Path,
    duration: float,
    config: TranscribeConfig,
    transcriber: OpenAITranscriber,
    tmpdir: Path,
    on_progress: Callable[[float], None] | None = None,
) -> str:
    """Transcribe *input_path* window by window and combine the results."""
    windows = plan_time_windows(duration, config.chunk_duration)
    LOGGER.info(
        "Splitting %s of audio into %d windows of %s",
        format_clock(duration), len(windows), format_clock(config.chunk_duration),
    )

    parts: list[str] = []
    for i, window in enumerate(windows):
        LOGGER.info(
            "[%d/%d] Transcribing %s - %s",
            i + 1, len(windows), format_clock(window.start), format_clock(window.end),
        )
        chunk_path = tmpdir / f"chunk_{i}.mp3"
        ffutil.extract_audio(
            input_path,
            chunk_path,
            bitrate=config.chunk_bitrate,
            start=window.start,
            duration=window.duration,
        )
        try:
            text = transcriber.transcribe(chunk_path, config.language)
        finally:
            chunk_path.unlink(missing_ok=True)
        parts.append(srt.offset_timestamps(text, window.start))
        if on_progress:
            on_progress((i + 1) / len(windows))

    return srt.combine(parts)


def transcribe(
    input_path: Path,
    config: TranscribeConfig,
    transcriber,
    on_progress: Callable[[float], None] | None = None,
) -> str:
    """Extract audio from *input_path* and return its transcript as SRT text."""
    with tempfile.TemporaryDirectory(prefix="themeforge_") as tmp:
        tmpdir = Path(tmp)

        if isinstance(transcriber, LocalWhisperTranscriber):
            wav_path = ffutil.extract_wav(input_path, tmpdir / "audio.wav")
            return transcriber.transcribe(wav_path, config.language)

        audio_path = ffutil.extract_audio(input_path, tmpdir / "audio.mp3", bitrate=config.bitrate)
        size = audio_path.stat().st_size
        LOGGER.info("Audio size: %.2f MB", size / (1024 * 1024))

        if size <= config.max_upload_bytes:
            try:
                text = transcriber.transcribe(audio_path, config.language)
                if on_progress:
                    on_progress(1.0)
                return text
            except CapacityExceededError as exc:
                LOGGER.info("Transcription service rejected the file (%s); splitting", exc)
        else:
            LOGGER.info(
                "Audio exceeds the %.0f MB upload limit; splitting",
                config.max_upload_bytes / (1024 * 1024),
            )

        audio_path.unlink(missing_ok=True)
        duration = ffutil.probe(input_path).duration
        return transcribe_windows(
            input_path, duration, config, transcriber, tmpdir, on_progress
        )
