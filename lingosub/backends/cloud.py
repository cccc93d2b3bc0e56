"""Cloud multimodal model backend (Gemini).

Each chunk is sent inline as WAV together with a verbatim-transcription
instruction and a JSON response schema, so the model answers with a list
of ``{start, end, text}`` objects. Chunks are independent, so the
orchestrator runs two of them at a time. Transient failures are retried
with exponential backoff; a chunk that keeps failing yields no segments.
"""

import json
import logging
import time
from typing import Any, Callable, List, Optional

from google import genai
from google.genai import types

from ..config import CloudConfig
from ..data_models import AudioChunk, RawSegment
from ..exceptions import AuthError
from .base import TranscriptionBackend

logger = logging.getLogger(__name__)

TRANSCRIPTION_PROMPT = (
    'Transcribe the audio exactly. Output valid JSON array: '
    '[{ "start": float, "end": float, "text": string }]. \n'
    "Timestamps must be relative to the start of this clip (0.0). \n"
    "Include every spoken word. Do not summarize. Do not skip segments. "
    "Verbatim transcription only."
)

SEGMENT_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "start": types.Schema(type=types.Type.NUMBER),
            "end": types.Schema(type=types.Type.NUMBER),
            "text": types.Schema(type=types.Type.STRING),
        },
        required=["start", "end", "text"],
    ),
)


def parse_cloud_response(text: Optional[str]) -> List[RawSegment]:
    """Decode the model's JSON answer into raw segments.

    Raises:
        ValueError: If text is not valid JSON
    """
    if not text:
        return []
    payload: Any = json.loads(text)
    if not isinstance(payload, list):
        return []
    return [
        RawSegment(
            start=item.get("start", 0),
            end=item.get("end", 0),
            text=str(item.get("text") or ""),
        )
        for item in payload
        if isinstance(item, dict)
    ]


class CloudBackend(TranscriptionBackend):
    """Transcribes chunks with a generative multimodal model.

    Attributes:
        config: Model, concurrency and retry settings
        client: google-genai client
    """

    name = "cloud"

    def __init__(
        self,
        config: Optional[CloudConfig] = None,
        client: Optional[genai.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize cloud backend.

        Args:
            config: Cloud settings (default: CloudConfig())
            client: Pre-built client; when omitted one is created from the
                configured or environment API key
            sleep: Function used to wait between retries

        Raises:
            AuthError: If no client is given and no API key is configured
        """
        self.config = config or CloudConfig()
        if client is None:
            api_key = self.config.resolve_api_key()
            if not api_key:
                raise AuthError(
                    "API key is missing. Set CloudConfig.api_key or the "
                    "GEMINI_API_KEY environment variable"
                )
            client = genai.Client(api_key=api_key)

        self.client = client
        self.max_concurrency = self.config.concurrency
        self._sleep = sleep
        self._generation_config = types.GenerateContentConfig(
            temperature=0.0,
            response_mime_type="application/json",
            response_schema=SEGMENT_SCHEMA,
        )
        logger.info(
            f"Cloud backend: model={self.config.model}, "
            f"concurrency={self.max_concurrency}, attempts={self.config.max_attempts}"
        )

    def transcribe(self, chunk: AudioChunk) -> List[RawSegment]:
        audio_part = types.Part.from_bytes(data=chunk.to_wav(), mime_type="audio/wav")
        delay = self.config.initial_retry_delay

        for attempt in range(1, self.config.max_attempts + 1):
            try:
                response = self.client.models.generate_content(
                    model=self.config.model,
                    contents=[audio_part, TRANSCRIPTION_PROMPT],
                    config=self._generation_config,
                )
                segments = parse_cloud_response(response.text)
                logger.debug(f"Chunk #{chunk.chunk_index}: {len(segments)} raw segment(s)")
                return segments
            except Exception as e:
                if attempt >= self.config.max_attempts:
                    logger.warning(
                        f"Chunk #{chunk.chunk_index}: giving up after {attempt} attempt(s): {e}"
                    )
                    return []
                logger.info(
                    f"Chunk #{chunk.chunk_index}: attempt {attempt} failed ({e}), "
                    f"retrying in {delay:.1f}s"
                )
                self._sleep(delay)
                delay *= 2

        return []
