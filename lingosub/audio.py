"""Audio decoding and WAV encoding.

Any container ffmpeg understands is decoded straight to mono float32 PCM
at 16 kHz; chunks are encoded back to 16-bit WAV for backends that take
audio files.
"""

import io
import logging
import os

import ffmpeg
import numpy as np
import soundfile as sf

from .data_models import SAMPLE_RATE
from .exceptions import DecodeError

logger = logging.getLogger(__name__)


def load_audio(path: str, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Decode the audio track of a media file into mono PCM.

    Args:
        path: Audio or video file path
        sample_rate: Target sample rate in Hz (default: 16000)

    Returns:
        float32 samples in [-1, 1]

    Raises:
        FileNotFoundError: If path does not exist
        DecodeError: If ffmpeg cannot decode the file or it has no audio
    """
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Audio file '{path}' not found. Check file path and permissions"
        )

    logger.info(f"Decoding audio from '{path}' at {sample_rate} Hz")
    try:
        out, _ = (
            ffmpeg.input(str(path))
            .output("pipe:", format="f32le", acodec="pcm_f32le", ac=1, ar=sample_rate, loglevel="error")
            .run(capture_stdout=True, capture_stderr=True)
        )
    except ffmpeg.Error as e:
        detail = e.stderr.decode("utf-8", errors="ignore").strip() if e.stderr else str(e)
        raise DecodeError(
            f"Failed to decode audio from '{path}'. Details: {detail}"
        ) from e
    except FileNotFoundError as e:
        raise DecodeError(
            "ffmpeg executable not found. Install ffmpeg and make sure it is on PATH"
        ) from e

    samples = np.frombuffer(out, dtype=np.float32)
    if len(samples) == 0:
        raise DecodeError(f"No audio samples decoded from '{path}'")

    logger.info(f"Decoded {len(samples) / sample_rate:.2f}s of audio")
    return samples


def encode_wav(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Encode mono samples as 16-bit PCM WAV bytes."""
    buffer = io.BytesIO()
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    sf.write(buffer, clipped, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()
