"""Main API for subtitle generation.

This module provides SubtitleGenerator, the primary interface of
lingosub. It owns the job counter, runs each generation job on its own
thread, drives chunk windows through the selected backend, and publishes
the merged segment list after every chunk.

Cancellation is cooperative: every job remembers the counter value it
was started with, and any job whose value no longer matches the current
counter is stale. Stale jobs stop dispatching chunks and never publish
again; backend calls already in flight are left to finish and their
results are discarded.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from typing import Callable, Iterator, List, Optional

import numpy as np

from .audio import load_audio
from .backends.base import TranscriptionBackend
from .chunker import AudioChunker
from .config import VADSettings
from .data_models import (
    SAMPLE_RATE,
    AudioChunk,
    ChunkWindow,
    GenerationInfo,
    JobState,
    Segment,
    SegmentationMethod,
)
from .debug_archive import DebugArchive
from .exceptions import JobRejectedError
from .merger import SegmentMerger
from .timestamps import rebase_segments, resolve_time_scale

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[List[Segment]], None]
StatusCallback = Callable[[str], None]


class GenerationJob:
    """One subtitle-generation run for one source.

    Created by SubtitleGenerator.start(); runs on its own thread.

    Attributes:
        job_id: Counter value this job was started with
        key: Identity of the source being processed
        backend: Backend transcribing the chunks
        test_mode: Process only the final batch of audio
    """

    def __init__(
        self,
        generator: "SubtitleGenerator",
        job_id: int,
        key: str,
        backend: TranscriptionBackend,
        chunker: AudioChunker,
        source: Optional[str] = None,
        audio: Optional[np.ndarray] = None,
        test_mode: bool = False,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
        debug_dir: Optional[str] = None,
    ):
        self.job_id = job_id
        self.key = key
        self.backend = backend
        self.chunker = chunker
        self.source = source
        self.test_mode = test_mode
        self.debug_dir = debug_dir
        self.info: Optional[GenerationInfo] = None

        self._generator = generator
        self._audio = audio
        self._on_progress = on_progress
        self._on_status = on_status
        self._merger = SegmentMerger(min_suffix_length=backend.min_suffix_length)
        self._state = JobState.IDLE
        self._state_lock = threading.Lock()
        self._cursor_lock = threading.Lock()
        self._num_chunks = 0
        self._error: Optional[BaseException] = None
        self._finished = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"lingosub-job-{job_id}", daemon=True
        )

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def segments(self) -> List[Segment]:
        """Current merged list (kept after cancellation)."""
        return self._merger.segments

    @property
    def running(self) -> bool:
        return not self._finished.is_set()

    def is_live(self) -> bool:
        return self._generator.is_live(self.job_id)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        """Cancel this job if it is still the live one."""
        self._generator.cancel(self.job_id)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    def result(self, timeout: Optional[float] = None) -> List[Segment]:
        """Wait for the job and return the final segment list.

        Raises:
            TimeoutError: If the job does not finish within timeout
            DecodeError: If the audio could not be acquired
        """
        if not self._finished.wait(timeout):
            raise TimeoutError(f"Job {self.job_id} did not finish within {timeout}s")
        if self._error is not None:
            raise self._error
        return self.segments

    def _set_state(self, state: JobState) -> None:
        with self._state_lock:
            if self._state.is_terminal:
                return
            self._state = state

    def _mark_cancelled(self) -> None:
        self._set_state(JobState.CANCELLED)

    def _status(self, message: str) -> None:
        logger.debug(f"Job {self.job_id}: {message}")
        if self._on_status is not None and self.is_live():
            self._on_status(message)

    def _publish(self, segments: List[Segment]) -> None:
        if self._on_progress is None:
            return
        with self._generator._lock:
            if self.is_live():
                self._on_progress(segments)

    def _acquire_audio(self) -> np.ndarray:
        if self._audio is not None:
            audio = np.asarray(self._audio, dtype=np.float32)
        else:
            self._status("Decoding audio (full file)...")
            audio = load_audio(self.source, sample_rate=self.chunker.sample_rate)
        if audio.ndim != 1:
            raise ValueError(
                f"audio must be 1-dimensional, got shape {audio.shape}"
            )
        # Read-only for the rest of the job; chunks are views into it
        audio = audio.view()
        audio.setflags(write=False)
        return audio

    def _windows(self, audio: np.ndarray) -> Iterator[ChunkWindow]:
        if self.test_mode:
            window = self.chunker.last_batch_window(len(audio))
            logger.info(
                f"Job {self.job_id}: test mode, processing last batch only"
                + (f" ({window.start_time(self.chunker.sample_rate):.2f}s - "
                   f"{window.end_time(self.chunker.sample_rate):.2f}s)" if window else "")
            )
            return iter([window] if window else [])
        return self.chunker.windows(audio)

    def _process_chunk(
        self,
        audio: np.ndarray,
        window: ChunkWindow,
        archive: Optional[DebugArchive],
    ) -> None:
        chunk = AudioChunk.from_window(audio, window, self.chunker.sample_rate)
        self._set_state(JobState.DISPATCHING)
        logger.debug(
            f"Job {self.job_id}: dispatching chunk #{chunk.chunk_index} "
            f"({chunk.start_time:.2f}s - {chunk.end_time:.2f}s)"
        )
        if archive is not None:
            archive.add(chunk)

        with closing(self.backend.stream(chunk)) as stream:
            for raw_batch in stream:
                if not self.is_live():
                    logger.debug(f"Job {self.job_id}: discarding result of chunk #{chunk.chunk_index}")
                    return
                scale = resolve_time_scale(raw_batch, chunk.duration, self.backend.time_scale)
                batch = rebase_segments(raw_batch, chunk.start_time, scale)
                self._set_state(JobState.MERGING)
                merged = self._merger.merge(batch)
                self._publish(merged)

    def _next_window(self, windows: Iterator[ChunkWindow]) -> Optional[ChunkWindow]:
        with self._cursor_lock:
            if not self.is_live():
                return None
            window = next(windows, None)
            if window is not None:
                self._num_chunks += 1
            return window

    def _worker(
        self,
        audio: np.ndarray,
        windows: Iterator[ChunkWindow],
        archive: Optional[DebugArchive],
    ) -> None:
        while True:
            window = self._next_window(windows)
            if window is None:
                return
            self._process_chunk(audio, window, archive)

    def _dispatch(
        self,
        audio: np.ndarray,
        windows: Iterator[ChunkWindow],
        archive: Optional[DebugArchive],
    ) -> None:
        workers = max(1, self.backend.max_concurrency)
        if workers == 1:
            self._worker(audio, windows, archive)
            return
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=f"lingosub-job-{self.job_id}"
        ) as pool:
            futures = [
                pool.submit(self._worker, audio, windows, archive)
                for _ in range(workers)
            ]
            for future in futures:
                future.result()

    def _run(self) -> None:
        start_time = time.time()
        duration = 0.0
        archive_path = None
        try:
            self._set_state(JobState.PREPARING)
            audio = self._acquire_audio()
            duration = len(audio) / self.chunker.sample_rate

            if not self.is_live():
                self._set_state(JobState.CANCELLED)
                return

            self._set_state(JobState.CHUNKING)
            windows = self._windows(audio)
            archive = DebugArchive() if self.test_mode and self.debug_dir else None
            self._status(
                "Transcribing last segment..." if self.test_mode else "Transcribing segments..."
            )
            self._dispatch(audio, windows, archive)

            if archive is not None and len(archive):
                archive_path = archive.save(self.debug_dir)

            self._set_state(JobState.DONE if self.is_live() else JobState.CANCELLED)

        except Exception as e:
            logger.error(f"Job {self.job_id} failed: {e}")
            self._error = e
            self._set_state(JobState.FAILED)

        finally:
            self.info = GenerationInfo(
                duration=duration,
                num_chunks=self._num_chunks,
                backend=self.backend.name,
                segmentation=self.chunker.method,
                test_mode=self.test_mode,
                processing_time=time.time() - start_time,
                state=self._state,
                debug_archive=archive_path,
            )
            logger.info(
                f"Job {self.job_id} finished: state={self._state.value}, "
                f"chunks={self._num_chunks}, segments={len(self._merger)}, "
                f"time={self.info.processing_time:.2f}s"
            )
            self._finished.set()
            self._generator._job_finished(self)


class SubtitleGenerator:
    """Runs subtitle-generation jobs, one at a time.

    Example:
        >>> generator = SubtitleGenerator()
        >>> backend = RemoteASRBackend()
        >>> job = generator.start("movie.mp4", backend, on_progress=print)
        >>> segments = job.result()

    Attributes:
        sample_rate: Sample rate the pipeline runs at
        debug_dir: Where test-mode archives are written (None disables them)
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        debug_dir: Optional[str] = None,
    ):
        if not isinstance(sample_rate, int):
            raise TypeError(
                f"sample_rate must be int, got {type(sample_rate).__name__}"
            )
        if sample_rate <= 0:
            raise ValueError(
                f"sample_rate must be positive, got {sample_rate}"
            )

        self.sample_rate = sample_rate
        self.debug_dir = debug_dir
        self._job_counter = 0
        self._active: Optional[GenerationJob] = None
        self._lock = threading.RLock()

    @property
    def current_job_id(self) -> int:
        return self._job_counter

    @property
    def active_job(self) -> Optional[GenerationJob]:
        return self._active

    def is_live(self, job_id: int) -> bool:
        return job_id == self._job_counter

    def cancel(self, job_id: Optional[int] = None) -> None:
        """Make the running job stale.

        Args:
            job_id: Only cancel if this job is still live (default: always)
        """
        with self._lock:
            if job_id is not None and not self.is_live(job_id):
                return
            self._job_counter += 1
            job, self._active = self._active, None
            if job is not None:
                job._mark_cancelled()
                logger.info(f"Cancelled job {job.job_id}")

    def _job_finished(self, job: GenerationJob) -> None:
        with self._lock:
            if self._active is job:
                self._active = None

    def start(
        self,
        source: Optional[str],
        backend: TranscriptionBackend,
        segmentation: SegmentationMethod = SegmentationMethod.FIXED,
        vad_settings: Optional[VADSettings] = None,
        test_mode: bool = False,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
        key: Optional[str] = None,
        audio: Optional[np.ndarray] = None,
    ) -> GenerationJob:
        """Start generating subtitles, or stop the running job for the same source.

        Args:
            source: Media file path (may be None when audio is given)
            backend: Transcription backend
            segmentation: Chunking strategy (default: fixed schedule)
            vad_settings: VAD parameters; batch_size also sizes test mode
            test_mode: Only transcribe the last batch_size seconds
            on_progress: Called with the full sorted segment list after each merge
            on_status: Called with informational status messages
            key: Source identity for toggle/reject decisions (default: source)
            audio: Already-decoded mono samples at sample_rate

        Returns:
            The started job, or the cancelled job if the same key was running

        Raises:
            ValueError: If neither source nor audio is given
            JobRejectedError: If a job for a different key is running
        """
        if source is None and audio is None:
            raise ValueError("either source or audio must be given")
        if not isinstance(backend, TranscriptionBackend):
            raise TypeError(
                f"backend must be TranscriptionBackend, got {type(backend).__name__}"
            )

        key = key if key is not None else str(source)
        chunker = AudioChunker(
            method=segmentation,
            vad_settings=vad_settings,
            sample_rate=self.sample_rate,
        )

        with self._lock:
            active = self._active
            if active is not None and active.running:
                if active.key == key:
                    logger.info(f"Generation requested again for '{key}', cancelling")
                    self.cancel()
                    return active
                raise JobRejectedError(
                    f"A generation job for '{active.key}' is already running"
                )

            self._job_counter += 1
            job = GenerationJob(
                self,
                self._job_counter,
                key,
                backend,
                chunker,
                source=source,
                audio=audio,
                test_mode=test_mode,
                on_progress=on_progress,
                on_status=on_status,
                debug_dir=self.debug_dir,
            )
            self._active = job

        logger.info(
            f"Starting job {job.job_id} for '{key}': backend={backend.name}, "
            f"segmentation={chunker.method.value}, test_mode={test_mode}"
        )
        job.start()
        return job

    def generate(
        self,
        source: Optional[str],
        backend: TranscriptionBackend,
        **kwargs,
    ) -> List[Segment]:
        """Run a job to completion and return its segments.

        Accepts the same keyword arguments as start().
        """
        return self.start(source, backend, **kwargs).result()
