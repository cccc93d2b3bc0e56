"""Tests for SRT / WebVTT export and import."""

import pytest

from lingosub.data_models import Segment
from lingosub.subtitle_formats import (
    find_sidecar_subtitles,
    format_timestamp,
    load_subtitle_file,
    parse_subtitle_content,
    save_subtitle_file,
    segments_to_srt,
    segments_to_vtt,
)

SEGMENTS = [
    Segment(id=0, start=0.0, end=2.5, text="Hello there."),
    Segment(id=1, start=3661.5, end=3663.0, text="General Kenobi!"),
]


class TestFormatting:
    """Test subtitle export."""

    def test_format_timestamp(self):
        """Test hour/minute/second/millisecond fields."""
        assert format_timestamp(3661.5) == "01:01:01,500"
        assert format_timestamp(0.0) == "00:00:00,000"
        assert format_timestamp(1.234, ".") == "00:00:01.234"

    def test_srt(self):
        """Test SubRip blocks numbered from 1."""
        assert segments_to_srt(SEGMENTS) == (
            "1\n00:00:00,000 --> 00:00:02,500\nHello there.\n\n"
            "2\n01:01:01,500 --> 01:01:03,000\nGeneral Kenobi!"
        )

    def test_vtt(self):
        """Test WebVTT header and dot separator."""
        assert segments_to_vtt(SEGMENTS) == (
            "WEBVTT\n\n"
            "00:00:00.000 --> 00:00:02.500\nHello there.\n\n"
            "01:01:01.500 --> 01:01:03.000\nGeneral Kenobi!"
        )


class TestParsing:
    """Test subtitle import."""

    def test_parse_srt(self):
        """Test SRT blocks with CRLF line endings and multi-line text."""
        content = (
            "1\r\n00:00:01,000 --> 00:00:02,500\r\nFirst line\r\nsecond line\r\n\r\n"
            "2\r\n00:00:03,000 --> 00:00:04,000\r\n<i>Italic</i>\r\n"
        )

        segments = parse_subtitle_content(content)

        assert segments == [
            Segment(id=0, start=1.0, end=2.5, text="First line second line"),
            Segment(id=1, start=3.0, end=4.0, text="Italic"),
        ]

    def test_parse_vtt(self):
        """Test WebVTT header, cue ids, settings and voice tags."""
        content = (
            "WEBVTT\n\n"
            "NOTE written by hand\n\n"
            "intro\n00:01.000 --> 00:02.000 line:90%\n<v Roger>Hi</v>\n\n"
            "00:00:05.000 --> 00:00:06.000\nBye\n"
        )

        segments = parse_subtitle_content(content)

        assert [(s.id, s.start, s.end, s.text) for s in segments] == [
            (0, 1.0, 2.0, "Hi"),
            (1, 5.0, 6.0, "Bye"),
        ]

    def test_skips_empty_cues(self):
        """Test cues whose text is only markup are dropped with dense ids."""
        content = (
            "1\n00:00:01,000 --> 00:00:02,000\n<b></b>\n\n"
            "2\n00:00:03,000 --> 00:00:04,000\nKept\n"
        )

        segments = parse_subtitle_content(content)

        assert [(s.id, s.text) for s in segments] == [(0, "Kept")]

    def test_export_then_import(self):
        """Test exported SRT parses back to the same segments."""
        assert parse_subtitle_content(segments_to_srt(SEGMENTS)) == SEGMENTS


class TestFiles:
    """Test subtitle file helpers."""

    def test_load_missing(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_subtitle_file(str(tmp_path / "none.srt"))

    def test_save_and_load(self, tmp_path):
        """Test save picks the format from the extension."""
        srt_path = save_subtitle_file(SEGMENTS, str(tmp_path / "out.srt"))
        vtt_path = save_subtitle_file(SEGMENTS, str(tmp_path / "out.vtt"))

        assert load_subtitle_file(srt_path) == SEGMENTS
        assert load_subtitle_file(vtt_path) == SEGMENTS
        with open(vtt_path, encoding="utf-8") as f:
            assert f.read().startswith("WEBVTT")

    def test_save_unknown_extension(self, tmp_path):
        """Test unsupported extensions raise ValueError."""
        with pytest.raises(ValueError, match="must end in .srt or .vtt"):
            save_subtitle_file(SEGMENTS, str(tmp_path / "out.txt"))

    def test_sidecar(self, tmp_path):
        """Test same-name subtitles next to the video are found."""
        video = tmp_path / "movie.mp4"
        video.write_bytes(b"")
        assert find_sidecar_subtitles(str(video)) is None

        (tmp_path / "movie.vtt").write_text("WEBVTT\n", encoding="utf-8")
        assert find_sidecar_subtitles(str(video)) == str(tmp_path / "movie.vtt")

        (tmp_path / "movie.srt").write_text("", encoding="utf-8")
        assert find_sidecar_subtitles(str(video)) == str(tmp_path / "movie.srt")
