"""Tests for the command-line entry point."""

from pathlib import Path
from unittest.mock import MagicMock, call, patch

import pytest

from themeforge.cli import build_parser, main, resolve_credentials
from themeforge.errors import StageError
from themeforge.project import load_project


@pytest.fixture(autouse=True)
def no_dotenv():
    with patch("themeforge.cli.load_dotenv"):
        yield


class TestResolveCredentials:
    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("GOOGLE_API_KEY", "g-env")
        creds = resolve_credentials()
        assert creds.openai_api_key == "sk-env"
        assert creds.google_api_key == "g-env"

    def test_explicit_key_for_provider(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("GOOGLE_API_KEY", "g-env")
        creds = resolve_credentials("g-flag", "google")
        assert creds.google_api_key == "g-flag"
        assert creds.openai_api_key is None

    def test_explicit_key_defaults_to_openai(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert resolve_credentials("sk-flag").openai_api_key == "sk-flag"


class TestParser:
    def test_run_all_options(self):
        args = build_parser().parse_args(
            ["run-all", "-i", "talk.mp4", "--cut", "--cut-mode", "jump", "--provider", "openai", "-y"]
        )
        assert args.input == Path("talk.mp4")
        assert args.cut and args.yes
        assert args.cut_mode == "jump"
        assert args.padding == 0.05

    def test_rejects_unknown_provider(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["extract-themes", "-p", "proj", "--provider", "acme"])


class TestMain:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "themeforge" in capsys.readouterr().out

    def test_init(self, tmp_path, capsys):
        main(["init", "-i", str(tmp_path / "talk.mp4"), "-d", str(tmp_path / "proj")])
        project = load_project(tmp_path / "proj")
        assert project.video_file == tmp_path / "talk.mp4"
        assert "extract-subtitles" in capsys.readouterr().out

    def test_missing_project(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["extract-themes", "-p", str(tmp_path / "missing")])
        assert exc_info.value.code == 1
        assert "Error: Project configuration not found" in capsys.readouterr().err

    def test_stage_error_reported(self, tmp_path, capsys):
        main(["init", "-i", str(tmp_path / "talk.mp4"), "-d", str(tmp_path / "proj")])
        with patch(
            "themeforge.cli.engine.extract_themes",
            side_effect=StageError("extract-themes", ValueError("An API key is required for google")),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["extract-themes", "-p", str(tmp_path / "proj")])
        assert exc_info.value.code == 1
        assert "Error in extract-themes: An API key is required" in capsys.readouterr().err

    def test_silent_cut_needs_input(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["silent-cut"])
        assert exc_info.value.code == 1
        assert "VIDEO" in capsys.readouterr().err


class TestRunAllReview:
    @staticmethod
    def _fake_run_all():
        def run_all(video, project_dir, credentials, **kwargs):
            confirm = kwargs["confirm"]
            if confirm:
                confirm(project_dir / "talk.mp4.srt", "Review the subtitles")
                confirm(project_dir / "themes.json", "Review the themes")
            return MagicMock(output_path=project_dir / "out.mp4", theme_count=2, cut=None)
        return run_all

    @patch("builtins.input", return_value="")
    @patch("themeforge.cli.open_file")
    def test_opens_each_file_before_waiting(self, mock_open, mock_input, tmp_path):
        proj = tmp_path / "proj"
        with patch("themeforge.cli.engine.run_all", side_effect=self._fake_run_all()):
            main(["run-all", "-i", str(tmp_path / "talk.mp4"), "-d", str(proj)])

        assert mock_open.call_args_list == [
            call(proj / "talk.mp4.srt"),
            call(proj / "themes.json"),
        ]
        assert mock_input.call_count == 2

    @patch("builtins.input")
    @patch("themeforge.cli.open_file")
    def test_yes_skips_review(self, mock_open, mock_input, tmp_path):
        with patch("themeforge.cli.engine.run_all", side_effect=self._fake_run_all()):
            main(["run-all", "-i", str(tmp_path / "talk.mp4"), "-d", str(tmp_path / "proj"), "-y"])

        mock_open.assert_not_called()
        mock_input.assert_not_called()
