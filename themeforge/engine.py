"""Orchestrator — runs the theme-overlay pipeline stage by stage.

Stages run strictly in sequence and share state only through the project
directory: the cut video, the subtitle file and the themes JSON.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

from themeforge import ffutil
from themeforge.analyzers import themes as theme_analyzer
from themeforge.analyzers.silence import analyze_silence
from themeforge.analyzers.transcribe import make_transcriber, transcribe
from themeforge.editors.cut import apply_cuts
from themeforge.editors.overlay import apply_overlay
from themeforge.errors import StageError
from themeforge.models import TimeRange
from themeforge.project import (
    Credentials,
    OverlayConfig,
    ProjectConfig,
    SilenceCutConfig,
    ThemeConfig,
    TranscribeConfig,
    init_project,
    save_project,
)
from themeforge.providers import make_provider

LOGGER = logging.getLogger("themeforge.engine")

ProgressCallback = Callable[[str, float], None]


@dataclass
class CutResult:
    output_path: Path
    keep: list[TimeRange] = field(default_factory=list)
    duration_original: float = 0.0
    duration_final: float = 0.0


@dataclass
class EngineResult:
    project: ProjectConfig
    output_path: Path | None = None
    cut: CutResult | None = None
    theme_count: int = 0


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Tag any failure inside the block with the stage it happened in."""
    LOGGER.info("Starting stage: %s", name)
    try:
        yield
    except StageError:
        raise
    except Exception as exc:
        raise StageError(name, exc) from exc


def _reporter(on_progress: ProgressCallback | None, label: str, base: float = 0.0, span: float = 1.0):
    """Return a callback that maps a stage's [0,1] to [base, base+span]."""
    def cb(frac: float) -> None:
        if on_progress:
            on_progress(label, base + frac * span)
    return cb


def silent_cut(
    input_path: Path,
    output_path: Path,
    config: SilenceCutConfig,
    on_progress: ProgressCallback | None = None,
) -> CutResult:
    """Remove silent (and, in jump mode, static) stretches from a video."""
    with stage("silent-cut"):
        ffutil.check_ffmpeg()
        keep, duration = analyze_silence(
            input_path, config, on_progress=_reporter(on_progress, "Analyzing audio", 0.0, 0.3)
        )
        report = _reporter(on_progress, f"Encoding {len(keep)} segments")
        report(0.3)
        apply_cuts(input_path, keep, output_path)
        report(1.0)

    kept = sum(r.duration for r in keep)
    LOGGER.info("Cut %s: %.1fs -> %.1fs", output_path, duration, kept)
    return CutResult(
        output_path=output_path,
        keep=keep,
        duration_original=duration,
        duration_final=kept,
    )


def cut_output_path(video_file: Path) -> Path:
    return video_file.with_stem(video_file.stem + "_cut")


def cut_project(
    project: ProjectConfig,
    config: SilenceCutConfig,
    on_progress: ProgressCallback | None = None,
) -> CutResult:
    """Cut the project's video and switch the project over to the result."""
    result = silent_cut(project.video_file, cut_output_path(project.video_file), config, on_progress)
    project.video_file = result.output_path
    save_project(project)
    return result


def extract_subtitles(
    project: ProjectConfig,
    credentials: Credentials,
    config: TranscribeConfig | None = None,
    on_progress: ProgressCallback | None = None,
) -> Path:
    """Transcribe the project's video into its SRT file."""
    config = config or TranscribeConfig(language=project.language)
    with stage("extract-subtitles"):
        ffutil.check_ffmpeg()
        transcriber = make_transcriber(config, credentials)
        text = transcribe(
            project.video_file, config, transcriber,
            on_progress=_reporter(on_progress, "Transcribing audio"),
        )
        project.srt_file.write_text(text, encoding="utf-8")
    LOGGER.info("Wrote subtitles to %s", project.srt_file)
    return project.srt_file


def extract_themes(
    project: ProjectConfig,
    credentials: Credentials,
    config: ThemeConfig | None = None,
    on_progress: ProgressCallback | None = None,
) -> Path:
    """Extract and consolidate themes from the project's subtitles."""
    config = config or ThemeConfig(provider=project.model_provider, model=project.model)
    with stage("extract-themes"):
        if not project.srt_file.exists():
            raise FileNotFoundError(f"Subtitle file not found: {project.srt_file}")
        provider = make_provider(
            config.provider, credentials.for_provider(config.provider), config.model
        )
        project.model_provider = config.provider
        project.model = provider.model
        save_project(project)

        spans = theme_analyzer.extract_themes(
            project.srt_file.read_text(encoding="utf-8"),
            provider,
            config,
            on_progress=_reporter(on_progress, "Extracting themes"),
        )
        theme_analyzer.save_themes(spans, project.themes_file)
    LOGGER.info("Saved %d themes to %s", len(spans), project.themes_file)
    return project.themes_file


def create_video(
    project: ProjectConfig,
    config: OverlayConfig | None = None,
    on_progress: ProgressCallback | None = None,
) -> Path:
    """Burn the project's (reviewed) themes onto its video."""
    config = config or OverlayConfig(font_size=project.font_size, bg_opacity=project.bg_opacity)
    report = _reporter(on_progress, "Rendering overlay")
    with stage("create-video"):
        for path in (project.themes_file, project.video_file):
            if not path.exists():
                raise FileNotFoundError(f"File not found: {path}")
        ffutil.check_ffmpeg()
        spans = theme_analyzer.load_themes(project.themes_file)
        report(0.1)
        output = apply_overlay(
            project.video_file,
            spans,
            project.output_file,
            config,
            subtitle_path=project.project_dir / "themes.ass",
        )
        project.font_size = config.font_size
        project.bg_opacity = config.bg_opacity
        project.output_file = output
        save_project(project)
        report(1.0)
    LOGGER.info("Wrote %s", output)
    return output


def run_all(
    video_path: Path,
    project_dir: Path,
    credentials: Credentials,
    language: str = "ja",
    silence: SilenceCutConfig | None = None,
    transcribe_config: TranscribeConfig | None = None,
    theme_config: ThemeConfig | None = None,
    overlay_config: OverlayConfig | None = None,
    confirm: Callable[[Path, str], None] | None = None,
    on_progress: ProgressCallback | None = None,
) -> EngineResult:
    """Run every stage, pausing for *confirm* after subtitles and after themes.

    *confirm* receives the file to review and a prompt, and returns when the
    user is done; without it the pipeline runs straight through.
    """
    project = init_project(video_path, project_dir, language)
    result = EngineResult(project=project)

    if silence is not None:
        result.cut = cut_project(project, silence, on_progress)

    extract_subtitles(project, credentials, transcribe_config, on_progress)
    if confirm:
        confirm(project.srt_file, "Review the subtitles, then press Enter to continue")

    extract_themes(project, credentials, theme_config, on_progress)
    if confirm:
        confirm(project.themes_file, "Review the themes, then press Enter to continue")

    result.output_path = create_video(project, overlay_config, on_progress)
    result.theme_count = len(theme_analyzer.load_themes(project.themes_file))
    return result
