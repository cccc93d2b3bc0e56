"""Configuration objects for chunking and transcription backends.

Every config is a plain dataclass validated on construction, so a bad
value fails where it is set rather than mid-job.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_ASR_ENDPOINT = "http://127.0.0.1:8080/v1/audio/transcriptions"
DEFAULT_CLOUD_MODEL = "gemini-2.5-flash"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")

TIME_SCALES = (1.0, 0.01, 0.001)


def _check_number(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(
            f"{name} must be numeric, got {type(value).__name__}"
        )


@dataclass
class VADSettings:
    """Silence-based segmentation parameters.

    Attributes:
        batch_size: Analysis batch length in seconds
        min_silence: Minimum silence run (seconds) that produces a split
        silence_threshold: RMS amplitude below which a window is silent
        filtering_enabled: Apply the 60 Hz - 6 kHz RC band-pass before scanning
        min_chunk_duration: Chunks this short (seconds) merge into the next
    """
    batch_size: float = 120
    min_silence: float = 0.4
    silence_threshold: float = 0.02
    filtering_enabled: bool = True
    min_chunk_duration: float = 0.2

    def __post_init__(self):
        _check_number("batch_size", self.batch_size)
        _check_number("min_silence", self.min_silence)
        _check_number("silence_threshold", self.silence_threshold)
        _check_number("min_chunk_duration", self.min_chunk_duration)
        if self.batch_size <= 0:
            raise ValueError(
                f"batch_size must be positive, got {self.batch_size}"
            )
        if self.min_silence <= 0:
            raise ValueError(
                f"min_silence must be positive, got {self.min_silence}"
            )
        if self.silence_threshold < 0:
            raise ValueError(
                f"silence_threshold must be non-negative, got {self.silence_threshold}"
            )
        if self.min_chunk_duration < 0:
            raise ValueError(
                f"min_chunk_duration must be non-negative, got {self.min_chunk_duration}"
            )


@dataclass
class RemoteASRConfig:
    """OpenAI-compatible transcription server settings.

    Attributes:
        endpoint: Full URL of the transcription route
        model: Model name sent with every request
        time_scale: Fixed unit factor (1.0, 0.01, 0.001) or None to auto-detect
        timeout: Request timeout in seconds, None for the transport default
    """
    endpoint: str = DEFAULT_ASR_ENDPOINT
    model: str = "whisper-1"
    time_scale: Optional[float] = None
    timeout: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.endpoint, str) or not self.endpoint:
            raise ValueError("endpoint must be a non-empty string")
        if self.time_scale is not None and self.time_scale not in TIME_SCALES:
            raise ValueError(
                f"time_scale must be one of {TIME_SCALES} or None, got {self.time_scale}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(
                f"timeout must be positive, got {self.timeout}"
            )


@dataclass
class CloudConfig:
    """Cloud multimodal API settings.

    Attributes:
        api_key: API key; falls back to GEMINI_API_KEY / API_KEY
        model: Generative model name
        concurrency: Simultaneous in-flight chunk requests
        max_attempts: Attempts per chunk before giving up on it
        initial_retry_delay: Delay before the second attempt, doubled after
    """
    api_key: Optional[str] = None
    model: str = DEFAULT_CLOUD_MODEL
    concurrency: int = 2
    max_attempts: int = 3
    initial_retry_delay: float = 1.0

    def __post_init__(self):
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise ValueError(
                f"concurrency must be positive integer, got {self.concurrency}"
            )
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be positive integer, got {self.max_attempts}"
            )
        if self.initial_retry_delay < 0:
            raise ValueError(
                f"initial_retry_delay must be non-negative, got {self.initial_retry_delay}"
            )

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        for var in API_KEY_ENV_VARS:
            value = os.environ.get(var)
            if value:
                return value
        return None


@dataclass
class LocalModelConfig:
    """In-process model settings.

    Attributes:
        model_name: GigaAM model version (e.g., "v3_ctc", "v3_e2e_rnnt")
        device: "cuda" or "cpu"
        compute_type: "float16" or "float32"
        batch_size: Sub-windows processed per forward pass
        window_length: Sub-window length in seconds
        download_root: Optional directory for model downloads
    """
    model_name: str = "v3_ctc"
    device: str = "cpu"
    compute_type: str = "float32"
    batch_size: int = 4
    window_length: float = 25.0
    download_root: Optional[str] = None

    def __post_init__(self):
        if self.device not in ("cuda", "cpu"):
            raise ValueError(
                f"device must be 'cuda' or 'cpu', got '{self.device}'"
            )
        if self.compute_type not in ("float16", "float32"):
            raise ValueError(
                f"compute_type must be 'float16' or 'float32', got '{self.compute_type}'"
            )
        if not isinstance(self.batch_size, int) or isinstance(self.batch_size, bool):
            raise TypeError(
                f"batch_size must be int, got {type(self.batch_size).__name__}"
            )
        if self.batch_size < 1:
            raise ValueError(
                f"batch_size must be positive integer, got {self.batch_size}"
            )
        _check_number("window_length", self.window_length)
        if self.window_length <= 0:
            raise ValueError(
                f"window_length must be positive, got {self.window_length}"
            )
