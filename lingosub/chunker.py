"""Audio chunking for long audio support.

This module splits a full-length mono signal into chunk windows for
transcription. Two strategies are available:

* a fixed progressive schedule (short first chunk, then long strides), and
* silence-based voice-activity detection (VAD) that places chunk
  boundaries in the middle of silent runs.

Both are exposed as explicit cursor objects that yield ChunkWindow
instances lazily; a fresh cursor is created for every job.
"""

import logging
from typing import Iterator, List, Optional, Tuple

import numpy as np
from scipy.signal import lfilter

from .config import VADSettings
from .data_models import SAMPLE_RATE, AudioChunk, ChunkWindow, SegmentationMethod

logger = logging.getLogger(__name__)

ANALYSIS_WINDOW_SECONDS = 0.05
HIGHPASS_CUTOFF_HZ = 60.0
LOWPASS_CUTOFF_HZ = 6000.0
MAX_LEFTOVER_BATCHES = 3

FilterState = Tuple[np.ndarray, np.ndarray]


def calculate_rms(samples: np.ndarray) -> float:
    """Root-mean-square energy of a block of samples."""
    if len(samples) == 0:
        return 0.0
    samples = samples.astype(np.float64, copy=False)
    return float(np.sqrt(np.mean(samples * samples)))


def apply_vocal_filter(
    audio: np.ndarray,
    sample_rate: int = SAMPLE_RATE,
    state: Optional[FilterState] = None,
) -> Tuple[np.ndarray, FilterState]:
    """Attenuate energy outside the vocal band.

    A first-order RC high-pass (60 Hz) feeds a first-order RC low-pass
    (6 kHz). The returned state continues the filters on the next block,
    so filtering a signal block by block gives the same output as
    filtering it in one pass.

    Args:
        audio: Audio samples (1D)
        sample_rate: Audio sample rate in Hz
        state: Filter state returned by the previous call, or None

    Returns:
        filtered: Filtered samples as float32
        state: Filter state to pass to the next call
    """
    dt = 1.0 / sample_rate
    rc_hp = 1.0 / (2 * np.pi * HIGHPASS_CUTOFF_HZ)
    alpha_hp = rc_hp / (rc_hp + dt)
    rc_lp = 1.0 / (2 * np.pi * LOWPASS_CUTOFF_HZ)
    alpha_lp = dt / (rc_lp + dt)

    if state is None:
        state = (np.zeros(1), np.zeros(1))
    zi_hp, zi_lp = state

    highpassed, zi_hp = lfilter(
        [alpha_hp, -alpha_hp], [1.0, -alpha_hp], audio, zi=zi_hp
    )
    lowpassed, zi_lp = lfilter(
        [alpha_lp], [1.0, -(1.0 - alpha_lp)], highpassed, zi=zi_lp
    )
    return lowpassed.astype(np.float32), (zi_hp, zi_lp)


def scan_for_split_points(
    audio: np.ndarray,
    sample_rate: int,
    min_silence: float,
    threshold: float,
) -> List[int]:
    """Find split points in the middle of silent runs.

    The signal is scanned in 50 ms windows. Any contiguous run of windows
    whose RMS stays below threshold for at least min_silence seconds
    produces one split point at the run's midpoint.

    Returns:
        Sample offsets (relative to audio) in ascending order
    """
    window_size = int(sample_rate * ANALYSIS_WINDOW_SECONDS)
    if window_size <= 0 or len(audio) == 0:
        return []

    samples = audio.astype(np.float64, copy=False)
    num_full = len(samples) // window_size
    energies = []
    if num_full:
        blocks = samples[:num_full * window_size].reshape(num_full, window_size)
        energies.extend(np.sqrt(np.mean(blocks * blocks, axis=1)).tolist())
    if len(samples) > num_full * window_size:
        energies.append(calculate_rms(samples[num_full * window_size:]))

    min_silence_samples = min_silence * sample_rate
    split_points = []
    silence_samples = 0
    silence_start = -1

    for i, rms in enumerate(energies):
        start = i * window_size
        end = min(start + window_size, len(samples))
        if rms < threshold:
            if silence_samples == 0:
                silence_start = start
            silence_samples += end - start
        else:
            if silence_samples >= min_silence_samples:
                split_points.append(silence_start + silence_samples // 2)
            silence_samples = 0
            silence_start = -1

    if silence_samples >= min_silence_samples:
        split_points.append(silence_start + silence_samples // 2)

    return split_points


class FixedChunkCursor:
    """Progressive fixed-schedule chunk windows.

    The first chunks end at 20 s, 60 s and 180 s so early results arrive
    quickly; after that every chunk spans 180 s.
    """

    SCHEDULE_ENDS = (20, 60, 180)
    STANDARD_CHUNK_DURATION = 180

    def __init__(
        self,
        num_samples: int,
        sample_rate: int = SAMPLE_RATE,
        limit_seconds: Optional[float] = None,
    ):
        self.num_samples = num_samples
        self.sample_rate = sample_rate
        self.limit_seconds = limit_seconds
        self._offset = 0
        self._schedule_index = 0
        self._next_index = 0

    def __iter__(self) -> "FixedChunkCursor":
        return self

    def __next__(self) -> ChunkWindow:
        if self._offset >= self.num_samples:
            raise StopIteration
        if (
            self.limit_seconds is not None
            and self._offset / self.sample_rate >= self.limit_seconds
        ):
            raise StopIteration

        stride = self.STANDARD_CHUNK_DURATION * self.sample_rate
        if self._schedule_index < len(self.SCHEDULE_ENDS):
            end = int(self.SCHEDULE_ENDS[self._schedule_index] * self.sample_rate)
            if end <= self._offset:
                end = self._offset + stride
        else:
            end = self._offset + stride
        end = min(end, self.num_samples)

        window = ChunkWindow(
            index=self._next_index,
            start_sample=self._offset,
            end_sample=end,
        )
        self._next_index += 1
        self._schedule_index += 1
        self._offset = end
        return window


class VADChunkCursor:
    """Silence-based chunk windows with bounded memory.

    The signal is analysed batch by batch. Audio after the last split
    point of a batch ("leftover") is carried into the next batch together
    with the filter state. Leftover longer than three batches is flushed
    as its own chunk so a long passage without silence cannot grow the
    buffer forever.
    """

    def __init__(
        self,
        audio: np.ndarray,
        settings: VADSettings,
        sample_rate: int = SAMPLE_RATE,
        limit_seconds: Optional[float] = None,
    ):
        self.audio = audio
        self.settings = settings
        self.sample_rate = sample_rate
        self.limit_seconds = limit_seconds

        self.batch_samples = int(settings.batch_size * sample_rate)
        if self.batch_samples <= 0:
            raise ValueError(
                f"batch_size ({settings.batch_size}s) is shorter than one sample"
            )
        self.max_leftover_samples = self.batch_samples * MAX_LEFTOVER_BATCHES

        self._file_pointer = 0
        self._buffer_start = 0
        self._buffer = np.zeros(0, dtype=np.float32)
        self._filter_state: Optional[FilterState] = None
        self._pending: List[ChunkWindow] = []
        self._next_index = 0
        self._done = False

    @property
    def buffered_samples(self) -> int:
        """Number of leftover samples currently retained."""
        return len(self._buffer)

    def __iter__(self) -> "VADChunkCursor":
        return self

    def __next__(self) -> ChunkWindow:
        while not self._pending and not self._done:
            self._process_batch()
        if self._pending:
            return self._pending.pop(0)
        raise StopIteration

    def _emit(self, start: int, end: int) -> None:
        self._pending.append(
            ChunkWindow(index=self._next_index, start_sample=start, end_sample=end)
        )
        self._next_index += 1

    def _process_batch(self) -> None:
        total = len(self.audio)
        if self._file_pointer >= total or (
            self.limit_seconds is not None
            and self._file_pointer / self.sample_rate >= self.limit_seconds
        ):
            self._done = True
            return

        batch_end = min(self._file_pointer + self.batch_samples, total)
        batch = self.audio[self._file_pointer:batch_end]
        if self.settings.filtering_enabled:
            batch, self._filter_state = apply_vocal_filter(
                batch, self.sample_rate, self._filter_state
            )
        self._buffer = np.concatenate([self._buffer, batch.astype(np.float32, copy=False)])

        split_points = scan_for_split_points(
            self._buffer,
            self.sample_rate,
            self.settings.min_silence,
            self.settings.silence_threshold,
        )

        last_split = 0
        for split_point in split_points:
            duration = (split_point - last_split) / self.sample_rate
            # Short pieces stay attached to the following chunk
            if duration > self.settings.min_chunk_duration:
                self._emit(self._buffer_start + last_split, self._buffer_start + split_point)
                last_split = split_point

        is_eof = batch_end >= total
        limit_reached = (
            self.limit_seconds is not None
            and batch_end / self.sample_rate >= self.limit_seconds
        )
        leftover = len(self._buffer) - last_split

        if is_eof or limit_reached:
            if leftover > 0:
                self._emit(self._buffer_start + last_split, self._buffer_start + len(self._buffer))
            self._buffer = np.zeros(0, dtype=np.float32)
            self._done = True
        elif leftover > self.max_leftover_samples:
            logger.debug(
                f"No silence found in {leftover / self.sample_rate:.1f}s of audio, "
                f"flushing leftover at {batch_end / self.sample_rate:.1f}s"
            )
            self._emit(self._buffer_start + last_split, self._buffer_start + len(self._buffer))
            self._buffer = np.zeros(0, dtype=np.float32)
            self._buffer_start = batch_end
        else:
            self._buffer = self._buffer[last_split:]
            self._buffer_start += last_split

        self._file_pointer = batch_end


class AudioChunker:
    """Creates chunk window cursors for a segmentation policy.

    Attributes:
        method: Segmentation method (fixed schedule or VAD)
        vad_settings: Parameters for VAD segmentation and test mode
        sample_rate: Audio sample rate in Hz
    """

    def __init__(
        self,
        method: SegmentationMethod = SegmentationMethod.FIXED,
        vad_settings: Optional[VADSettings] = None,
        sample_rate: int = SAMPLE_RATE,
    ):
        """Initialize audio chunker.

        Args:
            method: Segmentation method (default: fixed schedule)
            vad_settings: VAD parameters (default: VADSettings())
            sample_rate: Audio sample rate in Hz (default: 16000)

        Raises:
            ValueError: If method or sample_rate is invalid
        """
        try:
            method = SegmentationMethod(method)
        except ValueError as e:
            raise ValueError(
                f"method must be 'fixed' or 'vad', got '{method}'"
            ) from e
        if sample_rate <= 0:
            raise ValueError(
                f"sample_rate must be positive, got {sample_rate}"
            )

        self.method = method
        self.vad_settings = vad_settings or VADSettings()
        self.sample_rate = sample_rate

    def windows(
        self,
        audio: np.ndarray,
        limit_seconds: Optional[float] = None,
    ) -> Iterator[ChunkWindow]:
        """Return a fresh cursor over the chunk windows of audio.

        Raises:
            ValueError: If audio is not 1-dimensional
        """
        if audio.ndim != 1:
            raise ValueError(
                f"audio must be 1-dimensional, got shape {audio.shape}"
            )
        if self.method is SegmentationMethod.VAD:
            return VADChunkCursor(
                audio,
                self.vad_settings,
                sample_rate=self.sample_rate,
                limit_seconds=limit_seconds,
            )
        return FixedChunkCursor(
            len(audio),
            sample_rate=self.sample_rate,
            limit_seconds=limit_seconds,
        )

    def last_batch_window(self, num_samples: int) -> Optional[ChunkWindow]:
        """Single window covering the final batch_size seconds (test mode)."""
        if num_samples <= 0:
            return None
        batch_samples = int(self.vad_settings.batch_size * self.sample_rate)
        start = max(0, num_samples - batch_samples)
        return ChunkWindow(index=0, start_sample=start, end_sample=num_samples)


class SubWindowChunker:
    """Splits one chunk into model-sized sub-windows.

    Acoustic models accept a bounded input length, so the in-process
    backend cuts every chunk into windows of window_length seconds
    (optionally overlapping) before inference.

    Attributes:
        window_length: Duration of each sub-window in seconds
        overlap: Overlap duration between consecutive sub-windows in seconds
        sample_rate: Audio sample rate in Hz
    """

    def __init__(
        self,
        window_length: float = 25.0,
        overlap: float = 0.0,
        sample_rate: int = SAMPLE_RATE,
    ):
        """Initialize sub-window chunker.

        Raises:
            ValueError: If window_length <= overlap or if values are non-positive
        """
        if window_length <= 0:
            raise ValueError(
                f"window_length must be positive, got {window_length}"
            )
        if overlap < 0:
            raise ValueError(
                f"overlap must be non-negative, got {overlap}"
            )
        if overlap >= window_length:
            raise ValueError(
                f"overlap ({overlap}s) must be less than window_length ({window_length}s)"
            )
        if sample_rate <= 0:
            raise ValueError(
                f"sample_rate must be positive, got {sample_rate}"
            )

        self.window_length = window_length
        self.overlap = overlap
        self.sample_rate = sample_rate

    def split(self, audio: np.ndarray) -> List[AudioChunk]:
        """Split audio into sub-windows with times relative to its start.

        Returns:
            List of AudioChunk views; empty for empty audio
        """
        if audio.ndim != 1:
            raise ValueError(
                f"audio must be 1-dimensional, got shape {audio.shape}"
            )

        window_samples = int(self.window_length * self.sample_rate)
        stride_samples = window_samples - int(self.overlap * self.sample_rate)

        pieces = []
        start_sample = 0
        while start_sample < len(audio):
            end_sample = min(start_sample + window_samples, len(audio))
            pieces.append(
                AudioChunk(
                    audio=audio[start_sample:end_sample],
                    start_time=start_sample / self.sample_rate,
                    end_time=end_sample / self.sample_rate,
                    chunk_index=len(pieces),
                    sample_rate=self.sample_rate,
                )
            )
            if end_sample >= len(audio):
                break
            start_sample += stride_samples

        return pieces
