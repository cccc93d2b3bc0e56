"""Core data models for lingosub.

This module defines the data structures used throughout the lingosub
pipeline for representing chunk windows, audio chunks, raw backend output,
subtitle segments, and generation metadata.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np

SAMPLE_RATE = 16000


class SegmentationMethod(str, Enum):
    """How the full signal is split into chunk windows."""
    FIXED = "fixed"
    VAD = "vad"


class JobState(str, Enum):
    """Lifecycle states of a generation job."""
    IDLE = "idle"
    PREPARING = "preparing"
    CHUNKING = "chunking"
    DISPATCHING = "dispatching"
    MERGING = "merging"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.CANCELLED, JobState.FAILED)


@dataclass(frozen=True)
class ChunkWindow:
    """A sample-index range of the full signal.

    Attributes:
        index: Position in the chunking run (0-based, monotonic)
        start_sample: First sample of the window
        end_sample: One past the last sample of the window
    """
    index: int
    start_sample: int
    end_sample: int

    def __post_init__(self):
        if self.end_sample <= self.start_sample:
            raise ValueError(
                f"end_sample ({self.end_sample}) must be greater than "
                f"start_sample ({self.start_sample})"
            )

    @property
    def num_samples(self) -> int:
        return self.end_sample - self.start_sample

    def start_time(self, sample_rate: int = SAMPLE_RATE) -> float:
        return self.start_sample / sample_rate

    def end_time(self, sample_rate: int = SAMPLE_RATE) -> float:
        return self.end_sample / sample_rate


@dataclass
class AudioChunk:
    """Represents a chunk of audio with metadata.

    The audio is a view into the job's signal, never a copy.

    Attributes:
        audio: Audio samples as numpy array
        start_time: Start time in seconds relative to original audio
        end_time: End time in seconds relative to original audio
        chunk_index: Index in the sequence of chunks (0-based)
        sample_rate: Audio sample rate in Hz
    """
    audio: np.ndarray
    start_time: float
    end_time: float
    chunk_index: int
    sample_rate: int = SAMPLE_RATE

    @classmethod
    def from_window(
        cls,
        signal: np.ndarray,
        window: ChunkWindow,
        sample_rate: int = SAMPLE_RATE,
    ) -> "AudioChunk":
        return cls(
            audio=signal[window.start_sample:window.end_sample],
            start_time=window.start_time(sample_rate),
            end_time=window.end_time(sample_rate),
            chunk_index=window.index,
            sample_rate=sample_rate,
        )

    @property
    def duration(self) -> float:
        return len(self.audio) / self.sample_rate

    def to_wav(self) -> bytes:
        """Encode the chunk as 16-bit PCM WAV bytes."""
        from .audio import encode_wav

        return encode_wav(self.audio, self.sample_rate)


@dataclass
class RawSegment:
    """Backend output for one span, relative to its chunk start.

    start and end are in an unknown unit (seconds, centiseconds or
    milliseconds) and may still be timestamp strings, unless in_seconds
    is set by a backend that built the span itself.
    """
    start: Any
    end: Any
    text: str
    in_seconds: bool = False


@dataclass
class Segment:
    """Represents a subtitle segment on the full-file timeline.

    Attributes:
        id: Position in the sorted result list (reassigned on every merge)
        start: Start time in seconds relative to original audio
        end: End time in seconds relative to original audio
        text: Transcribed text content
    """
    id: int
    start: float
    end: float
    text: str


@dataclass
class GenerationInfo:
    """Metadata about one generation job.

    Attributes:
        duration: Total audio duration in seconds
        num_chunks: Number of chunks dispatched to the backend
        backend: Name of the backend used
        segmentation: Segmentation method used
        test_mode: Whether only the final batch was processed
        processing_time: Total wall-clock time for the job in seconds
        state: Final job state
        debug_archive: Path of the test-mode chunk archive, if written
    """
    duration: float
    num_chunks: int
    backend: str
    segmentation: SegmentationMethod
    test_mode: bool
    processing_time: float
    state: JobState
    debug_archive: Optional[str] = None
