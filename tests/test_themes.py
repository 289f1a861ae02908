"""Tests for the theme analyzer."""

import json
import logging

import pytest

from themeforge import srt
from themeforge.analyzers.themes import (
    extract_themes,
    load_themes,
    save_themes,
    spans_from_response,
)
from themeforge.errors import CapacityExceededError, MalformedResponseError
from themeforge.models import ThemeSpan, TimedRecord
from themeforge.project import ThemeConfig
from themeforge.providers import ThemeProvider
from themeforge.timecode import format_srt_time


class FakeProvider(ThemeProvider):
    """Answers with one span per request covering the subtitles it was sent."""

    name = "openai"

    def __init__(self, model="gpt-4o-mini", limit=None, label=None, reply=None):
        super().__init__(model)
        self.limit = limit
        self.label = label
        self.reply = reply
        self.calls: list[int] = []

    def request(self, subtitles: str) -> str:
        records = srt.parse(subtitles)
        self.calls.append(len(records))
        if self.reply is not None:
            return self.reply
        if self.limit is not None and len(records) > self.limit:
            raise CapacityExceededError("too long")
        label = self.label or f"t{int(records[0].start)}"
        return json.dumps([{
            "start": format_srt_time(records[0].start),
            "end": format_srt_time(records[-1].end),
            "theme": label,
        }])


def _transcript(count: int, text: str = "word word word word word") -> str:
    return srt.format_records(
        TimedRecord(id=i + 1, start=i * 10.0, end=i * 10.0 + 5.0, text=text)
        for i in range(count)
    )


class TestSpansFromResponse:
    def test_with_prose(self):
        content = 'Sure!\n[{"start": "00:01:15,500", "end": "00:03:45,800", "theme": "AIの歴史"}]'
        [span] = spans_from_response(content)
        assert span.start == 75.5
        assert span.end == pytest.approx(225.8)
        assert span.label == "AIの歴史"

    def test_not_a_list(self):
        with pytest.raises(MalformedResponseError):
            spans_from_response('{"theme": "x"}')

    def test_missing_field(self):
        with pytest.raises(MalformedResponseError):
            spans_from_response('[{"start": "00:00:01,000", "theme": "x"}]')

    def test_bad_timestamp(self):
        with pytest.raises(MalformedResponseError):
            spans_from_response('[{"start": "soon", "end": "later", "theme": "x"}]')

    def test_entry_not_an_object(self):
        with pytest.raises(MalformedResponseError):
            spans_from_response('["x"]')


class TestExtractThemes:
    def test_single_request(self):
        provider = FakeProvider()
        spans = extract_themes(_transcript(5), provider)
        assert provider.calls == [5]
        assert spans == [ThemeSpan(0.0, 45.0, "t0")]

    def test_empty_transcript(self, caplog):
        provider = FakeProvider()
        with caplog.at_level(logging.WARNING, logger="themeforge.themes"):
            assert extract_themes("", provider) == []
        assert provider.calls == []
        assert "no subtitles" in caplog.text

    def test_rejected_single_request_falls_back_to_sub_chunks(self):
        provider = FakeProvider(limit=5)
        spans = extract_themes(_transcript(20), provider)
        # whole transcript, the single planned chunk, then its four pieces
        assert provider.calls == [20, 20, 5, 5, 5, 5]
        assert [s.start for s in spans] == [0.0, 50.0, 100.0, 150.0]

    def test_large_transcript_is_chunked(self):
        provider = FakeProvider(model="gpt-4")
        spans = extract_themes(_transcript(300), provider)
        assert len(provider.calls) > 1
        assert max(provider.calls) < 300
        assert sum(provider.calls) == 300
        assert spans == sorted(spans, key=lambda s: s.start)

    def test_similar_spans_merged_across_chunks(self):
        provider = FakeProvider(model="gpt-4", label="AIの歴史")
        spans = extract_themes(_transcript(300), provider)
        assert len(provider.calls) > 1
        assert spans == [ThemeSpan(0.0, 2995.0, "AIの歴史")]

    def test_malformed_answer_propagates(self):
        with pytest.raises(MalformedResponseError):
            extract_themes(_transcript(3), FakeProvider(reply="no themes here"))

    def test_progress(self):
        seen = []
        extract_themes(_transcript(3), FakeProvider(), on_progress=seen.append)
        assert seen == [1.0]

    def test_parallel_chunks(self):
        provider = FakeProvider(model="gpt-4")
        config = ThemeConfig(max_workers=4)
        parallel = extract_themes(_transcript(300), provider, config)
        sequential = extract_themes(_transcript(300), FakeProvider(model="gpt-4"))
        assert parallel == sequential


class TestThemeFiles:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / "themes.json"
        spans = [ThemeSpan(75.5, 225.8, "AIの歴史について")]
        save_themes(spans, path)
        assert "AIの歴史について" in path.read_text(encoding="utf-8")
        [loaded] = load_themes(path)
        assert loaded.start == 75.5
        assert loaded.end == pytest.approx(225.8)
        assert loaded.label == "AIの歴史について"

    def test_load_hand_edited(self, tmp_path):
        path = tmp_path / "themes.json"
        path.write_text('[{"start": "1:15", "end": "00:03:45.800", "theme": "x"}]', encoding="utf-8")
        [span] = load_themes(path)
        assert (span.start, span.label) == (75.0, "x")
        assert span.end == pytest.approx(225.8)

    def test_load_rejects_object(self, tmp_path):
        path = tmp_path / "themes.json"
        path.write_text('{"theme": "x"}', encoding="utf-8")
        with pytest.raises(ValueError):
            load_themes(path)
