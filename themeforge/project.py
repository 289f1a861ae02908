"""Project configuration — the contract between CLI/web UI and engine.

A project is a directory holding ``project_config.json`` plus the artifacts
each stage produces (subtitles, themes JSON, rendered video).
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path

from themeforge.consolidate import MergeConfig

CONFIG_FILENAME = "project_config.json"


@dataclass
class SilenceCutConfig:
    """Configuration for silence (and jump) cutting."""

    threshold_db: float = -30.0
    min_duration: float = 0.5
    padding: float = 0.05
    min_segment_duration: float = 0.3
    mode: str = "silent"
    scene_threshold: float = 0.1


@dataclass
class TranscribeConfig:
    """Configuration for subtitle extraction."""

    backend: str = "openai"
    model: str = "whisper-1"
    language: str = "ja"
    max_upload_bytes: int = 25 * 1024 * 1024
    chunk_duration: float = 600.0
    bitrate: str = "64k"
    chunk_bitrate: str = "48k"


@dataclass
class ThemeConfig:
    """Configuration for theme extraction and consolidation."""

    provider: str = "google"
    model: str | None = None
    safety_divisor: float = 4
    min_chunk_size: int = 1
    sub_chunk_divisor: int = 4
    min_sub_chunk_size: int = 5
    max_workers: int = 1
    merge: MergeConfig = field(default_factory=MergeConfig)


@dataclass
class OverlayConfig:
    """Appearance of the burned-in theme overlay."""

    font_size: int = 36
    bg_opacity: float = 0.5
    fade: float = 0.5


@dataclass
class Credentials:
    """API keys, resolved once by the caller and passed down explicitly."""

    openai_api_key: str | None = None
    google_api_key: str | None = None

    def for_provider(self, provider: str) -> str | None:
        return self.google_api_key if provider == "google" else self.openai_api_key


@dataclass
class ProjectConfig:
    """Persisted state of one project."""

    project_dir: Path
    video_file: Path
    srt_file: Path
    themes_file: Path
    output_file: Path
    language: str = "ja"
    model: str | None = None
    model_provider: str = "google"
    font_size: int = 36
    bg_opacity: float = 0.5

    @property
    def config_path(self) -> Path:
        return self.project_dir / CONFIG_FILENAME

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Path):
                data[key] = str(value)
        return data


_PATH_FIELDS = ("project_dir", "video_file", "srt_file", "themes_file", "output_file")


def new_project(video_path: str | Path, project_dir: str | Path, language: str = "ja") -> ProjectConfig:
    """Default configuration for *video_path* inside *project_dir*."""
    video_path = Path(video_path)
    project_dir = Path(project_dir)
    return ProjectConfig(
        project_dir=project_dir,
        video_file=video_path,
        srt_file=project_dir / f"{video_path.name}.srt",
        themes_file=project_dir / "themes.json",
        output_file=project_dir / f"{video_path.stem}_with_themes.mp4",
        language=language,
    )


def save_project(config: ProjectConfig) -> Path:
    config.project_dir.mkdir(parents=True, exist_ok=True)
    config.config_path.write_text(
        json.dumps(config.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
    )
    return config.config_path


def load_project(project_dir: str | Path) -> ProjectConfig:
    """Load and validate a project's configuration file."""
    path = Path(project_dir) / CONFIG_FILENAME
    if not path.exists():
        raise FileNotFoundError(f"Project configuration not found: {path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    missing = [name for name in _PATH_FIELDS if name not in data]
    if missing:
        raise ValueError(f"Project configuration is missing: {', '.join(missing)}")

    for name in _PATH_FIELDS:
        data[name] = Path(data[name])
    known = ProjectConfig.__dataclass_fields__
    return ProjectConfig(**{k: v for k, v in data.items() if k in known})


def init_project(video_path: str | Path, project_dir: str | Path, language: str = "ja") -> ProjectConfig:
    """Create a project, or return the existing one unchanged."""
    project_dir = Path(project_dir)
    if (project_dir / CONFIG_FILENAME).exists():
        return load_project(project_dir)
    config = new_project(video_path, project_dir, language)
    save_project(config)
    return config
