"""Merging of per-chunk segments into one sorted subtitle list.

Chunks are merged in the order they complete. Each incoming segment is
only compared with the current last segment of the list, which catches
the two duplication patterns seen in practice: a backend repeating the
previous line verbatim, and a backend re-emitting the tail of a phrase
that the previous line already contains. A segment identical in start,
end and text to one already folded in (accepted or not) is a re-delivery
and is skipped.
"""

import logging
import re
import threading
from dataclasses import replace
from typing import Iterable, List, Set, Tuple

from .data_models import Segment

logger = logging.getLogger(__name__)

DEFAULT_MIN_SUFFIX_LENGTH = 2

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_text(text: str) -> str:
    """Lowercase text and strip punctuation for duplicate comparison."""
    return _PUNCTUATION.sub("", text.lower()).strip()


class SegmentMerger:
    """Accumulates the segments of one generation job.

    Attributes:
        min_suffix_length: Normalized incoming text must be longer than this
            for the suffix rule to drop it
    """

    def __init__(self, min_suffix_length: int = DEFAULT_MIN_SUFFIX_LENGTH):
        if min_suffix_length < 0:
            raise ValueError(
                f"min_suffix_length must be non-negative, got {min_suffix_length}"
            )
        self.min_suffix_length = min_suffix_length
        self._segments: List[Segment] = []
        self._seen: Set[Tuple[float, float, str]] = set()
        self._lock = threading.Lock()

    @property
    def segments(self) -> List[Segment]:
        """Copy of the current sorted, densely indexed list."""
        with self._lock:
            return [replace(s) for s in self._segments]

    def __len__(self) -> int:
        return len(self._segments)

    def is_duplicate(self, segment: Segment, last: Segment) -> bool:
        if segment.text == last.text:
            return True
        incoming = normalize_text(segment.text)
        return (
            len(incoming) > self.min_suffix_length
            and normalize_text(last.text).endswith(incoming)
        )

    def merge(self, batch: Iterable[Segment]) -> List[Segment]:
        """Fold one batch of absolute-time segments into the list.

        Args:
            batch: Segments of one chunk (or one partial result)

        Returns:
            Copy of the full list, sorted by start with ids equal to positions
        """
        with self._lock:
            accepted = 0
            for segment in batch:
                key = (segment.start, segment.end, segment.text)
                if key in self._seen:
                    continue
                self._seen.add(key)
                if self._segments and self.is_duplicate(segment, self._segments[-1]):
                    logger.debug(f"Dropping duplicate segment: {segment.text!r}")
                    continue
                if segment.end > segment.start:
                    self._segments.append(replace(segment))
                    accepted += 1

            self._segments.sort(key=lambda s: s.start)
            for idx, segment in enumerate(self._segments):
                segment.id = idx

            logger.debug(f"Merged {accepted} segment(s), total {len(self._segments)}")
            return [replace(s) for s in self._segments]

    def reset(self) -> None:
        with self._lock:
            self._segments = []
            self._seen = set()
