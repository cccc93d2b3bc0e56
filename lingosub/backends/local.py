"""In-process model backend.

Inference runs on a dedicated worker thread so that model loading and
forward passes never block the job thread. The backend and the worker
only talk through the message types below. Every request carries its own
reply queue, so a caller only ever sees the responses to its own request;
a request whose caller went away is cancelled by id and its replies are
dropped with the queue.
"""

import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Set

import numpy as np

from ..chunker import SubWindowChunker
from ..config import LocalModelConfig
from ..data_models import AudioChunk, RawSegment
from .base import TranscriptionBackend

logger = logging.getLogger(__name__)

FILLER_PHRASES = frozenset({"you", "thank you", "thanks for watching", "."})
FILLER_SUBSTRINGS = ("subtitle by",)
MIN_SEGMENT_DURATION = 0.1
MIN_SEGMENT_TEXT_LENGTH = 5


# Requests (backend -> worker)

@dataclass
class LoadRequest:
    model_name: str
    reply: "queue.Queue" = field(default_factory=queue.Queue, repr=False)


@dataclass
class TranscribeRequest:
    request_id: int
    audio: np.ndarray
    window_length: float
    reply: "queue.Queue" = field(default_factory=queue.Queue, repr=False)


@dataclass
class ShutdownRequest:
    pass


# Responses (worker -> request.reply)

@dataclass
class LoadProgress:
    status: str
    data: dict = field(default_factory=dict)


@dataclass
class ReadyResult:
    model_name: str


@dataclass
class PartialResult:
    request_id: int
    segments: List[RawSegment]


@dataclass
class CompleteResult:
    request_id: int


@dataclass
class ErrorResult:
    message: str
    request_id: Optional[int] = None


class GigaAMEngine:
    """Loads a GigaAM ASR model and transcribes batches of windows."""

    def __init__(self, config: LocalModelConfig):
        import gigaam
        import torch
        from gigaam.model import GigaAMASR

        from ..batch_processor import BatchProcessor

        if config.device == "cuda" and not torch.cuda.is_available():
            raise RuntimeError(
                "CUDA device requested but not available. "
                "Install CUDA toolkit or use device='cpu'"
            )

        fp16_encoder = config.compute_type == "float16" and config.device == "cuda"
        model = gigaam.load_model(
            model_name=config.model_name,
            fp16_encoder=fp16_encoder,
            use_flash=False,
            device=config.device,
            download_root=config.download_root,
        )
        if not isinstance(model, GigaAMASR):
            raise ValueError(
                f"Model '{config.model_name}' is not an ASR model. "
                f"Only ASR models (CTC/RNNT) can transcribe."
            )
        self.processor = BatchProcessor(model, batch_size=config.batch_size)

    def transcribe(self, windows: Sequence[np.ndarray]) -> List[str]:
        return self.processor.process_batch(windows)


def is_filler(segment: RawSegment) -> bool:
    """True for boilerplate phrases and degenerate spans the model invents."""
    text = segment.text.lower().strip()
    if not text:
        return True
    if text in FILLER_PHRASES or any(s in text for s in FILLER_SUBSTRINGS):
        return True
    duration = float(segment.end) - float(segment.start)
    return duration < MIN_SEGMENT_DURATION and len(text) > MIN_SEGMENT_TEXT_LENGTH


class InferenceWorker:
    """Owns the model and serves requests on a background thread.

    Requests are served one at a time in arrival order. Responses go to the
    reply queue of the request they answer.

    Attributes:
        config: Model settings
        requests: Queue of LoadRequest / TranscribeRequest / ShutdownRequest
    """

    def __init__(
        self,
        config: LocalModelConfig,
        engine_factory: Callable[[LocalModelConfig], object] = GigaAMEngine,
    ):
        self.config = config
        self.requests: "queue.Queue" = queue.Queue()
        self._engine_factory = engine_factory
        self._engine = None
        self._lock = threading.Lock()
        self._cancelled: Set[int] = set()
        self._last_served = 0
        self._thread = threading.Thread(
            target=self._run, name="lingosub-inference", daemon=True
        )

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._thread.is_alive():
            self.requests.put(ShutdownRequest())
            self._thread.join(timeout)

    def cancel(self, request_id: int) -> None:
        """Skip the remaining batches of a transcription request.

        Has no effect on requests that were already served.
        """
        with self._lock:
            if request_id > self._last_served:
                self._cancelled.add(request_id)

    def _is_cancelled(self, request_id: int) -> bool:
        with self._lock:
            return request_id in self._cancelled

    def _load(self, model_name: str, reply: "queue.Queue") -> None:
        if self._engine is not None:
            return
        reply.put(LoadProgress(status="loading", data={"model": model_name}))
        logger.info(f"Loading model '{model_name}' on device '{self.config.device}'")
        self._engine = self._engine_factory(self.config)
        logger.info(f"Model '{model_name}' ready")

    def _transcribe(self, request: TranscribeRequest) -> None:
        try:
            if self._is_cancelled(request.request_id):
                logger.debug(f"Request {request.request_id} cancelled before start")
                return

            self._load(self.config.model_name, request.reply)
            chunker = SubWindowChunker(window_length=request.window_length)
            windows = chunker.split(request.audio)

            for start in range(0, len(windows), self.config.batch_size):
                if self._is_cancelled(request.request_id):
                    logger.debug(
                        f"Request {request.request_id} cancelled, "
                        f"skipping {len(windows) - start} window(s)"
                    )
                    return
                batch = windows[start:start + self.config.batch_size]
                texts = self._engine.transcribe([w.audio for w in batch])
                segments = [
                    RawSegment(start=w.start_time, end=w.end_time, text=text.strip())
                    for w, text in zip(batch, texts)
                    if text and text.strip()
                ]
                request.reply.put(PartialResult(request.request_id, segments))

            request.reply.put(CompleteResult(request.request_id))
        finally:
            with self._lock:
                self._cancelled.discard(request.request_id)
                self._last_served = max(self._last_served, request.request_id)

    def _run(self) -> None:
        while True:
            request = self.requests.get()
            if isinstance(request, ShutdownRequest):
                logger.debug("Inference worker shutting down")
                return
            try:
                if isinstance(request, LoadRequest):
                    self._load(request.model_name, request.reply)
                    request.reply.put(ReadyResult(request.model_name))
                elif isinstance(request, TranscribeRequest):
                    self._transcribe(request)
                else:
                    raise TypeError(f"Unknown request type: {type(request).__name__}")
            except Exception as e:
                logger.exception("Inference worker request failed")
                reply = getattr(request, "reply", None)
                if reply is not None:
                    reply.put(ErrorResult(str(e), getattr(request, "request_id", None)))


class LocalModelBackend(TranscriptionBackend):
    """Transcribes chunks with a model running in this process.

    Chunks are processed one at a time. Each chunk produces one partial
    batch per forward pass, so long chunks show up progressively. Closing
    a stream before it is exhausted cancels the rest of its chunk.

    Attributes:
        config: Model settings
        worker: Inference worker owning the model
    """

    name = "local"
    time_scale = 1.0

    def __init__(
        self,
        config: Optional[LocalModelConfig] = None,
        engine_factory: Callable[[LocalModelConfig], object] = GigaAMEngine,
        on_load_progress: Optional[Callable[[LoadProgress], None]] = None,
    ):
        self.config = config or LocalModelConfig()
        self.worker = InferenceWorker(self.config, engine_factory=engine_factory)
        self.on_load_progress = on_load_progress
        self._request_ids = itertools.count(1)
        self.worker.start()

    def _handle_progress(self, message: LoadProgress) -> None:
        if self.on_load_progress is not None:
            self.on_load_progress(message)

    def preload(self, timeout: Optional[float] = None) -> bool:
        """Load the model ahead of the first chunk.

        Args:
            timeout: Seconds to wait for the model, None to wait indefinitely

        Returns:
            True once the model is ready, False if loading failed or did not
            finish within timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        request = LoadRequest(self.config.model_name)
        self.worker.requests.put(request)

        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                message = request.reply.get(timeout=remaining)
            except queue.Empty:
                logger.warning(f"Model load did not finish within {timeout}s")
                self._handle_progress(LoadProgress(status="error", data={"error": "timeout"}))
                return False

            if isinstance(message, LoadProgress):
                self._handle_progress(message)
            elif isinstance(message, ReadyResult):
                self._handle_progress(LoadProgress(status="ready"))
                return True
            elif isinstance(message, ErrorResult):
                logger.error(f"Model load failed: {message.message}")
                self._handle_progress(LoadProgress(status="error", data={"error": message.message}))
                return False

    def stream(self, chunk: AudioChunk) -> Iterator[List[RawSegment]]:
        request = TranscribeRequest(
            request_id=next(self._request_ids),
            audio=chunk.audio,
            window_length=self.config.window_length,
        )
        self.worker.requests.put(request)

        done = False
        try:
            while True:
                message = request.reply.get()
                if isinstance(message, LoadProgress):
                    self._handle_progress(message)
                elif isinstance(message, PartialResult):
                    kept = [s for s in message.segments if not is_filler(s)]
                    logger.debug(
                        f"Chunk #{chunk.chunk_index}: partial with {len(kept)} segment(s)"
                    )
                    yield kept
                elif isinstance(message, CompleteResult):
                    done = True
                    return
                elif isinstance(message, ErrorResult):
                    logger.warning(f"Chunk #{chunk.chunk_index}: inference failed: {message.message}")
                    done = True
                    return
        finally:
            if not done:
                logger.debug(f"Chunk #{chunk.chunk_index}: stream closed early, cancelling")
                self.worker.cancel(request.request_id)

    def transcribe(self, chunk: AudioChunk) -> List[RawSegment]:
        segments = []
        for batch in self.stream(chunk):
            segments.extend(batch)
        return segments

    def close(self) -> None:
        self.worker.stop(timeout=5.0)
