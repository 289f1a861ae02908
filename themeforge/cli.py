"""Thin CLI entry point — resolves configuration and calls the engine."""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

from themeforge import engine
from themeforge.errors import StageError
from themeforge.project import (
    Credentials,
    OverlayConfig,
    SilenceCutConfig,
    ThemeConfig,
    TranscribeConfig,
    init_project,
    load_project,
)
from themeforge.providers import PROVIDERS


def resolve_credentials(api_key: str | None = None, provider: str | None = None) -> Credentials:
    """Build credentials from an explicit key and the environment.

    An explicit key applies to *provider* (OpenAI when not given).
    """
    creds = Credentials(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
    )
    if api_key:
        if provider == "google":
            creds.google_api_key = api_key
        else:
            creds.openai_api_key = api_key
    return creds


def open_file(path: Path) -> None:
    """Open *path* with the platform's default application."""
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if sys.platform == "win32":
        os.startfile(path)  # type: ignore[attr-defined]
    elif sys.platform == "darwin":
        subprocess.run(["open", str(path)], check=True)
    else:
        subprocess.run(["xdg-open", str(path)], check=True)


def _review(path: Path, message: str) -> None:
    """Open *path* for editing and block until the user presses Enter."""
    print(f"Opening {path}")
    open_file(path)
    input(f"{message} ")


def _silence_config(args: argparse.Namespace) -> SilenceCutConfig:
    return SilenceCutConfig(
        threshold_db=args.cut_threshold,
        min_duration=args.cut_duration,
        padding=args.padding,
        min_segment_duration=args.min_segment,
        mode=args.cut_mode,
    )


def _add_cut_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--cut-threshold", type=float, default=-30.0, help="Silence threshold in dB")
    p.add_argument("--cut-duration", type=float, default=0.5, help="Minimum silence duration (seconds)")
    p.add_argument("--padding", type=float, default=0.05, help="Extra time cut around each silence (seconds)")
    p.add_argument("--min-segment", type=float, default=0.3, help="Shortest segment worth keeping (seconds)")
    p.add_argument("--cut-mode", choices=["silent", "jump"], default="silent", help="silent: drop silence; jump: also drop static footage")


def _add_theme_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--api-key", "-k", help="API key for the chosen provider")
    p.add_argument("--model", "-m", help="Model name (provider default if omitted)")
    p.add_argument("--provider", choices=PROVIDERS, default="google", help="Theme extraction provider")
    p.add_argument("--workers", type=int, default=1, help="Chunks to extract concurrently")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="themeforge",
        description="ThemeForge — extract themes from a video and overlay them, with review steps.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    init = sub.add_parser("init", help="Create a project for a video")
    init.add_argument("--input", "-i", type=Path, required=True, help="Input video file")
    init.add_argument("--dir", "-d", type=Path, default=Path("theme-project"), help="Project directory")
    init.add_argument("--language", "-l", default="ja", help="Spoken language code")

    cut = sub.add_parser("silent-cut", help="Cut silent parts out of a video")
    cut.add_argument("video", nargs="?", type=Path, help="Video file (instead of a project)")
    cut.add_argument("--project", "-p", type=Path, help="Project directory")
    cut.add_argument("--output", "-o", type=Path, help="Output file (with a bare video)")
    _add_cut_options(cut)

    subs = sub.add_parser("extract-subtitles", help="Transcribe the project's video")
    subs.add_argument("--project", "-p", type=Path, required=True, help="Project directory")
    subs.add_argument("--api-key", "-k", help="OpenAI API key")
    subs.add_argument("--backend", choices=["openai", "local"], default="openai", help="Transcription backend")
    subs.add_argument("--whisper-model", default=None, help="Transcription model name")

    edit_subs = sub.add_parser("edit-subtitles", help="Open the subtitle file for review")
    edit_subs.add_argument("--project", "-p", type=Path, required=True, help="Project directory")

    themes = sub.add_parser("extract-themes", help="Extract themes from the subtitles")
    themes.add_argument("--project", "-p", type=Path, required=True, help="Project directory")
    _add_theme_options(themes)

    edit_themes = sub.add_parser("edit-themes", help="Open the themes JSON for review")
    edit_themes.add_argument("--project", "-p", type=Path, required=True, help="Project directory")

    video = sub.add_parser("create-video", help="Burn the reviewed themes onto the video")
    video.add_argument("--project", "-p", type=Path, required=True, help="Project directory")
    video.add_argument("--font-size", "-f", type=int, default=36, help="Font size")
    video.add_argument("--bg-opacity", "-b", type=float, default=0.5, help="Background opacity (0-1)")
    video.add_argument("--fade", type=float, default=0.5, help="Fade in/out time (seconds)")

    run = sub.add_parser("run-all", help="Run every step, pausing for review")
    run.add_argument("--input", "-i", type=Path, required=True, help="Input video file")
    run.add_argument("--dir", "-d", type=Path, default=Path("theme-project"), help="Project directory")
    run.add_argument("--language", "-l", default="ja", help="Spoken language code")
    run.add_argument("--cut", action="store_true", help="Cut silence before transcribing")
    run.add_argument("--yes", "-y", action="store_true", help="Do not pause for review")
    run.add_argument("--font-size", "-f", type=int, default=24, help="Font size")
    run.add_argument("--bg-opacity", "-b", type=float, default=0.5, help="Background opacity (0-1)")
    _add_theme_options(run)
    _add_cut_options(run)

    serve = sub.add_parser("serve", help="Launch the review web UI")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    return parser


def _on_progress(stage: str, frac: float) -> None:
    print(f"  [{frac:3.0%}] {stage}")


def dispatch(args: argparse.Namespace) -> None:
    if args.command == "init":
        project = init_project(args.input, args.dir, args.language)
        print(f"Project ready: {project.config_path}")
        print(f"Next: themeforge extract-subtitles -p {project.project_dir}")

    elif args.command == "silent-cut":
        config = _silence_config(args)
        if args.project:
            result = engine.cut_project(load_project(args.project), config, _on_progress)
        elif args.video:
            if not args.video.exists():
                raise FileNotFoundError(f"Video not found: {args.video}")
            output = args.output or args.video.with_name(args.video.stem + "_silent_cut.mp4")
            result = engine.silent_cut(args.video, output, config, _on_progress)
        else:
            raise ValueError("provide either a VIDEO argument or --project")
        print(f"Done! Output: {result.output_path}")
        print(f"  Duration: {result.duration_original:.1f}s -> {result.duration_final:.1f}s")
        print(f"  Segments kept: {len(result.keep)}")

    elif args.command == "extract-subtitles":
        project = load_project(args.project)
        config = TranscribeConfig(backend=args.backend, language=project.language)
        if args.whisper_model:
            config.model = args.whisper_model
        path = engine.extract_subtitles(
            project, resolve_credentials(args.api_key), config, _on_progress
        )
        print(f"Subtitles: {path}")
        print(f"Next: review with 'themeforge edit-subtitles -p {args.project}'")

    elif args.command in ("edit-subtitles", "edit-themes"):
        project = load_project(args.project)
        path = project.srt_file if args.command == "edit-subtitles" else project.themes_file
        print(f"Opening {path}")
        open_file(path)

    elif args.command == "extract-themes":
        project = load_project(args.project)
        config = ThemeConfig(provider=args.provider, model=args.model, max_workers=args.workers)
        path = engine.extract_themes(
            project, resolve_credentials(args.api_key, args.provider), config, _on_progress
        )
        print(f"Themes: {path}")
        print(f"Next: review with 'themeforge edit-themes -p {args.project}'")

    elif args.command == "create-video":
        project = load_project(args.project)
        config = OverlayConfig(font_size=args.font_size, bg_opacity=args.bg_opacity, fade=args.fade)
        path = engine.create_video(project, config, _on_progress)
        print(f"Done! Output: {path}")

    elif args.command == "run-all":
        result = engine.run_all(
            args.input,
            args.dir,
            resolve_credentials(args.api_key, args.provider),
            language=args.language,
            silence=_silence_config(args) if args.cut else None,
            theme_config=ThemeConfig(provider=args.provider, model=args.model, max_workers=args.workers),
            overlay_config=OverlayConfig(font_size=args.font_size, bg_opacity=args.bg_opacity),
            confirm=None if args.yes else _review,
            on_progress=_on_progress,
        )
        print()
        print(f"Done! Output: {result.output_path}")
        print(f"  Themes: {result.theme_count}")
        if result.cut:
            print(f"  Duration: {result.cut.duration_original:.1f}s -> {result.cut.duration_final:.1f}s")


def _describe(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError) and exc.stderr:
        stderr = exc.stderr if isinstance(exc.stderr, str) else exc.stderr.decode(errors="replace")
        return f"ffmpeg failed: {stderr[-500:]}"
    return str(exc)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from themeforge.web import create_app
        app = create_app(credentials=resolve_credentials())
        print(f"ThemeForge web UI: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    try:
        dispatch(args)
    except StageError as e:
        print(f"Error in {e.stage}: {_describe(e.cause)}", file=sys.stderr)
        sys.exit(1)
    except (FileNotFoundError, ValueError, subprocess.CalledProcessError) as e:
        print(f"Error: {_describe(e)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
