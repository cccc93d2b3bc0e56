"""Common interface of the transcription backends."""

from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

from ..data_models import AudioChunk, RawSegment
from ..merger import DEFAULT_MIN_SUFFIX_LENGTH


class TranscriptionBackend(ABC):
    """Turns one audio chunk into raw, chunk-relative segments.

    Implementations must not raise on per-chunk failures (HTTP errors,
    malformed responses, inference errors); they log the problem and
    return an empty list so the job can continue with the next chunk.

    Attributes:
        name: Short backend identifier used in logs and job info
        max_concurrency: Chunks the orchestrator may have in flight at once
        time_scale: Fixed factor converting raw times to seconds, or None
            to infer it per chunk
        min_suffix_length: Suffix-duplicate threshold used when merging
    """

    name = "backend"
    max_concurrency = 1
    time_scale: Optional[float] = None
    min_suffix_length = DEFAULT_MIN_SUFFIX_LENGTH

    @abstractmethod
    def transcribe(self, chunk: AudioChunk) -> List[RawSegment]:
        """Transcribe one chunk."""

    def stream(self, chunk: AudioChunk) -> Iterator[List[RawSegment]]:
        """Yield the chunk's segments in one or more partial batches.

        Jobs close the returned generator when they stop consuming it early.
        """
        yield self.transcribe(chunk)

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
