"""Zip archive of test-mode chunks for offline inspection of VAD settings."""

import logging
import os
import zipfile
from collections import deque
from datetime import datetime
from typing import Deque, Tuple

from .data_models import AudioChunk

logger = logging.getLogger(__name__)


def chunk_filename(chunk: AudioChunk) -> str:
    return (
        f"chunk_{chunk.chunk_index:03d}_"
        f"{chunk.start_time:.2f}s-{chunk.end_time:.2f}s.wav"
    )


class DebugArchive:
    """Keeps the WAVs of the most recent chunks and writes them as a zip."""

    def __init__(self, max_chunks: int = 2):
        if max_chunks < 1:
            raise ValueError(f"max_chunks must be positive, got {max_chunks}")
        self._chunks: Deque[Tuple[str, bytes]] = deque(maxlen=max_chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def add(self, chunk: AudioChunk) -> None:
        self._chunks.append((chunk_filename(chunk), chunk.to_wav()))

    def save(self, directory: str) -> str:
        """Write the archive into directory and return its path."""
        os.makedirs(directory, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
        path = os.path.join(directory, f"lingosub_vad_debug_{timestamp}.zip")
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in self._chunks:
                archive.writestr(name, data)
        logger.info(f"Debug archive saved: {path}")
        return path
