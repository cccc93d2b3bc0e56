"""SRT / WebVTT export and import."""

import logging
import os
import re
from typing import List, Optional, Sequence

from .data_models import Segment
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)

SUBTITLE_EXTENSIONS = (".srt", ".vtt")

_TAG_RE = re.compile(r"<[^>]*>")
_BLOCK_SEPARATOR_RE = re.compile(r"\n\n+")


def format_timestamp(seconds: float, separator: str = ",") -> str:
    """Format seconds as HH:MM:SS,mmm (or HH:MM:SS.mmm with separator=".")."""
    total_ms = max(0, int(round(seconds * 1000)))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def segments_to_srt(segments: Sequence[Segment]) -> str:
    """Render segments as SubRip text, numbered from 1."""
    return "\n\n".join(
        f"{i}\n{format_timestamp(seg.start)} --> {format_timestamp(seg.end)}\n{seg.text}"
        for i, seg in enumerate(segments, start=1)
    )


def segments_to_vtt(segments: Sequence[Segment]) -> str:
    """Render segments as WebVTT text."""
    body = "\n\n".join(
        f"{format_timestamp(seg.start, '.')} --> {format_timestamp(seg.end, '.')}\n{seg.text}"
        for seg in segments
    )
    return "WEBVTT\n\n" + body


def parse_subtitle_content(text: str) -> List[Segment]:
    """Parse SRT or WebVTT text into segments.

    Blocks without a "-->" line or without text are skipped (this also
    drops the WEBVTT header and NOTE blocks). Markup tags such as <i> or
    <v Speaker> are removed and multi-line cues are joined with spaces.

    Returns:
        Segments in file order with ids 0..n-1
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")
    segments: List[Segment] = []

    for block in _BLOCK_SEPARATOR_RE.split(normalized):
        lines = block.strip().split("\n")
        if len(lines) < 2:
            continue

        time_index = next((i for i, line in enumerate(lines) if "-->" in line), None)
        if time_index is None:
            continue

        start_str, _, end_str = lines[time_index].partition("-->")
        # VTT cue settings follow the end time ("00:01.000 line:90%")
        end_parts = end_str.split()
        if not start_str.strip() or not end_parts:
            continue

        cue_text = " ".join(lines[time_index + 1:]).strip()
        cue_text = _TAG_RE.sub("", cue_text).strip()
        if not cue_text:
            continue

        segments.append(
            Segment(
                id=len(segments),
                start=parse_timestamp(start_str.strip()),
                end=parse_timestamp(end_parts[0]),
                text=cue_text,
            )
        )

    return segments


def load_subtitle_file(path: str) -> List[Segment]:
    """Read and parse an .srt or .vtt file.

    Raises:
        FileNotFoundError: If path does not exist
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Subtitle file not found: {path}")
    with open(path, "r", encoding="utf-8-sig", errors="replace") as f:
        segments = parse_subtitle_content(f.read())
    logger.info(f"Loaded {len(segments)} subtitle segment(s) from {path}")
    return segments


def find_sidecar_subtitles(video_path: str) -> Optional[str]:
    """Return the .srt/.vtt file sharing the video's name, if any.

    .srt wins when both exist.
    """
    stem, _ = os.path.splitext(video_path)
    for ext in SUBTITLE_EXTENSIONS:
        candidate = stem + ext
        if os.path.isfile(candidate):
            return candidate
    return None


def save_subtitle_file(segments: Sequence[Segment], path: str) -> str:
    """Write segments to path, choosing SRT or VTT from the extension.

    Raises:
        ValueError: If the extension is not .srt or .vtt
    """
    ext = os.path.splitext(path)[1].lower()
    if ext == ".srt":
        content = segments_to_srt(segments)
    elif ext == ".vtt":
        content = segments_to_vtt(segments)
    else:
        raise ValueError(f"path must end in .srt or .vtt, got '{ext}'")
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    logger.info(f"Saved {len(segments)} segment(s) to {path}")
    return path
