"""Overlay editor — writes theme titles as an ASS file and burns them in."""

from datetime import datetime
from pathlib import Path

from themeforge import ffutil
from themeforge.models import ThemeSpan
from themeforge.project import OverlayConfig
from themeforge.timecode import format_ass_time

_ASS_HEADER = """\
[Script Info]
ScriptType: v4.00+
PlayResX: 1280
PlayResY: 720
ScaledBorderAndShadow: yes

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,{font},{size},&H00FFFFFF,&H000000FF,&H00000000,&H{alpha:02X}000000,0,0,0,0,100,100,0,0,1,2,0,7,20,20,15,1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
"""


def render_ass(themes: list[ThemeSpan], config: OverlayConfig, font_path: str = "") -> str:
    """Build the ASS document: one top-left, boxed dialogue line per theme."""
    font = Path(font_path).name if font_path else "Arial"
    alpha = round(min(max(config.bg_opacity, 0.0), 1.0) * 255)
    fade_ms = round(config.fade * 1000)

    events: list[str] = []
    for theme in themes:
        text = theme.label.replace("\n", "\\N")
        events.append(
            f"Dialogue: 0,{format_ass_time(theme.start)},{format_ass_time(theme.end)},"
            f"Default,,0,0,0,,{{\\fad({fade_ms},{fade_ms})}}{text}"
        )

    header = _ASS_HEADER.format(font=font, size=config.font_size, alpha=alpha)
    return header + "\n".join(events) + "\n"


def available_output_path(path: Path) -> Path:
    """Return *path*, or a timestamped sibling if it already exists."""
    if not path.exists():
        return path
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return path.with_stem(f"{path.stem}_{stamp}")


def apply_overlay(
    input_path: Path,
    themes: list[ThemeSpan],
    output_path: Path,
    config: OverlayConfig,
    subtitle_path: Path | None = None,
) -> Path:
    """Render *themes* over the video and return the path actually written."""
    subtitle_path = subtitle_path or output_path.with_suffix(".ass")
    subtitle_path.write_text(
        render_ass(themes, config, ffutil.find_cjk_font()), encoding="utf-8"
    )

    output_path = available_output_path(output_path)
    ffutil.burn_subtitles(input_path, subtitle_path, output_path)
    return output_path
