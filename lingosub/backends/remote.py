"""Remote OpenAI-compatible ASR server backend.

Each chunk is uploaded as a WAV file to a transcription endpoint such as
whisper.cpp's server or any ``/v1/audio/transcriptions`` implementation.
Servers disagree on the response body, so three shapes are accepted:

* ``{"segments": [{"start": ..., "end": ..., "text": ...}, ...]}``
* a bare list of segment objects
* ``{"text": "..."}``, treated as one segment spanning the whole chunk
"""

import logging
from typing import Any, List, Optional

import requests

from ..config import RemoteASRConfig
from ..data_models import AudioChunk, RawSegment
from .base import TranscriptionBackend

logger = logging.getLogger(__name__)


def _segments_from_list(items: List[Any]) -> List[RawSegment]:
    segments = []
    for item in items:
        if not isinstance(item, dict):
            continue
        segments.append(
            RawSegment(
                start=item.get("start", 0),
                end=item.get("end", 0),
                text=str(item.get("text") or ""),
            )
        )
    return segments


def parse_response(payload: Any, chunk_duration: float) -> List[RawSegment]:
    """Resolve a server response into raw segments.

    Args:
        payload: Decoded JSON body
        chunk_duration: Duration of the chunk in seconds, used for the
            whole-chunk text fallback

    Returns:
        Raw segments; empty for unknown shapes
    """
    if isinstance(payload, dict) and isinstance(payload.get("segments"), list):
        return _segments_from_list(payload["segments"])
    if isinstance(payload, list):
        return _segments_from_list(payload)
    if isinstance(payload, dict) and payload.get("text"):
        return [
            RawSegment(
                start=0.0,
                end=chunk_duration,
                text=str(payload["text"]),
                in_seconds=True,
            )
        ]
    return []


class RemoteASRBackend(TranscriptionBackend):
    """Transcribes chunks on an OpenAI-compatible HTTP server.

    Chunks are sent one at a time. The time unit is taken from the
    configuration when set, otherwise inferred for every chunk.

    Attributes:
        config: Server settings
        session: requests session used for all uploads
    """

    name = "remote"
    min_suffix_length = 3

    def __init__(
        self,
        config: Optional[RemoteASRConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or RemoteASRConfig()
        self.session = session or requests.Session()
        self.time_scale = self.config.time_scale
        logger.info(
            f"Remote ASR backend: endpoint={self.config.endpoint}, "
            f"model={self.config.model}, time_scale={self.time_scale or 'auto'}"
        )

    def transcribe(self, chunk: AudioChunk) -> List[RawSegment]:
        files = {"file": ("chunk.wav", chunk.to_wav(), "audio/wav")}
        data = {
            "model": self.config.model or "whisper-1",
            "response_format": "verbose_json",
        }

        try:
            response = self.session.post(
                self.config.endpoint,
                data=data,
                files=files,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Chunk #{chunk.chunk_index}: request failed: {e}")
            return []

        if not response.ok:
            logger.warning(
                f"Chunk #{chunk.chunk_index}: server returned HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )
            return []

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning(f"Chunk #{chunk.chunk_index}: malformed JSON response: {e}")
            return []

        segments = parse_response(payload, chunk.duration)
        logger.debug(f"Chunk #{chunk.chunk_index}: {len(segments)} raw segment(s)")
        return segments

    def check_connection(self) -> bool:
        """Return True if the endpoint answers at all."""
        try:
            self.session.options(self.config.endpoint, timeout=self.config.timeout or 5)
            return True
        except requests.RequestException:
            pass
        try:
            self.session.get(self.config.endpoint, timeout=self.config.timeout or 5)
            return True
        except requests.RequestException:
            return False

    def close(self) -> None:
        self.session.close()
