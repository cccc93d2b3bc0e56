"""Timestamp parsing and time-unit inference for backend output.

Backends report span boundaries relative to the chunk they transcribed,
but not always in seconds: some servers answer in centiseconds or
milliseconds, and the unit can change between responses. The scale is
therefore inferred independently for every chunk.
"""

import math
from typing import Any, Iterable, List, Optional

from .config import TIME_SCALES
from .data_models import RawSegment, Segment

MIN_AVG_DURATION = 0.1
MAX_AVG_DURATION = 60.0
MAX_END_RATIO = 1.5
TARGET_AVG_DURATION = 3.0


def _to_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        return math.nan
    return value


def parse_timestamp(value: Any) -> float:
    """Coerce a backend timestamp into a number.

    Accepts numbers, numeric strings and clock strings in HH:MM:SS(.ms)
    or MM:SS(.ms) form, with "." or "," as decimal separator. Anything
    unparseable becomes 0.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)
    if not isinstance(value, str):
        return 0.0

    text = value.strip()
    if not text:
        return 0.0
    text = text.replace(",", ".")

    if ":" in text:
        parts = text.split(":")
        if len(parts) == 3:
            seconds = (
                _to_float(parts[0]) * 3600
                + _to_float(parts[1]) * 60
                + _to_float(parts[2])
            )
        elif len(parts) == 2:
            seconds = _to_float(parts[0]) * 60 + _to_float(parts[1])
        else:
            seconds = _to_float(parts[-1])
        return 0.0 if math.isnan(seconds) else seconds

    number = _to_float(text)
    return 0.0 if math.isnan(number) else number


def _log_distance(value: float, target: float) -> float:
    return abs(math.log(max(0.0001, value)) - math.log(target))


def detect_time_scale(
    raw_segments: Iterable[RawSegment],
    chunk_duration: float,
) -> float:
    """Infer the factor that converts raw timestamps into seconds.

    A candidate scale is valid when the scaled average span duration lies
    in [0.1, 60] seconds and the scaled largest end does not exceed 1.5x
    the chunk duration. One valid candidate wins outright; among several,
    the one whose average duration is closest to 3 s in log space wins;
    with none valid, the one whose largest end lands closest to the chunk
    duration wins.

    Args:
        raw_segments: Segments of one chunk
        chunk_duration: Real duration of the chunk in seconds

    Returns:
        One of 1.0, 0.01 or 0.001
    """
    spans = []
    for segment in raw_segments:
        start = parse_timestamp(segment.start)
        end = parse_timestamp(segment.end)
        if end > start:
            spans.append((start, end))

    if not spans:
        return 1.0

    avg_duration = sum(end - start for start, end in spans) / len(spans)
    max_end = max(end for _, end in spans)

    valid = [
        scale for scale in TIME_SCALES
        if MIN_AVG_DURATION <= avg_duration * scale <= MAX_AVG_DURATION
        and max_end * scale <= chunk_duration * MAX_END_RATIO
    ]

    if len(valid) == 1:
        return valid[0]
    if valid:
        return min(
            valid,
            key=lambda scale: _log_distance(avg_duration * scale, TARGET_AVG_DURATION),
        )
    return min(TIME_SCALES, key=lambda scale: abs(max_end * scale - chunk_duration))


def resolve_time_scale(
    raw_segments: List[RawSegment],
    chunk_duration: float,
    override: Optional[float] = None,
) -> float:
    """Pick the scale for one chunk's raw segments.

    Spans a backend built itself in seconds need no scaling; otherwise a
    configured override wins over inference.
    """
    if raw_segments and all(s.in_seconds for s in raw_segments):
        return 1.0
    if override is not None:
        return override
    return detect_time_scale(raw_segments, chunk_duration)


def rebase_segments(
    raw_segments: Iterable[RawSegment],
    chunk_start: float,
    scale: float,
) -> List[Segment]:
    """Convert raw chunk-relative spans into absolute subtitle segments.

    Text is trimmed and empty spans are dropped. Ids are placeholders
    until the merger assigns list positions.
    """
    segments = []
    for raw in raw_segments:
        text = (raw.text or "").strip()
        if not text:
            continue
        segments.append(
            Segment(
                id=0,
                start=parse_timestamp(raw.start) * scale + chunk_start,
                end=parse_timestamp(raw.end) * scale + chunk_start,
                text=text,
            )
        )
    return segments
