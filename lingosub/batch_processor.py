"""Batched GigaAM inference for the in-process backend.

Sub-windows of one chunk have different lengths (the last one is usually
short), so they are zero-padded into a single batch tensor and decoded
together.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import torch
from torch import Tensor
from torch.nn.utils.rnn import pad_sequence

logger = logging.getLogger(__name__)


class BatchProcessor:
    """Runs padded batches of audio windows through a GigaAM ASR model.

    Attributes:
        model: GigaAM ASR model instance (CTC or RNNT)
        batch_size: Maximum number of windows per forward pass
    """

    def __init__(self, model, batch_size: int = 1):
        """Initialize batch processor.

        Raises:
            TypeError: If batch_size is not an integer
            ValueError: If batch_size is not positive
        """
        if not isinstance(batch_size, int):
            raise TypeError(
                f"batch_size must be int, got {type(batch_size).__name__}"
            )
        if batch_size < 1:
            raise ValueError(
                f"batch_size must be positive integer, got {batch_size}"
            )

        self.model = model
        self.batch_size = batch_size
        self._device = next(model.parameters()).device

    @torch.inference_mode()
    def process_batch(self, windows: Sequence[np.ndarray]) -> List[str]:
        """Transcribe one batch of windows.

        Args:
            windows: 1D float32 sample arrays, at most batch_size of them

        Returns:
            One transcription per window, in input order

        Raises:
            ValueError: If windows is empty or contains empty/non-1D arrays
            RuntimeError: If the device runs out of memory
        """
        if not windows:
            raise ValueError("windows cannot be empty")
        for i, window in enumerate(windows):
            if window.ndim != 1:
                raise ValueError(
                    f"windows[{i}] must be 1-dimensional, got shape {window.shape}"
                )
            if len(window) == 0:
                raise ValueError(f"windows[{i}] cannot be empty")

        tensors = [torch.from_numpy(np.array(w, dtype=np.float32)) for w in windows]

        try:
            padded, lengths = self._pad_batch(tensors)
            padded = padded.to(self._device)
            lengths = lengths.to(self._device)

            if self._device.type == "cuda":
                with torch.autocast(device_type="cuda", dtype=torch.float16):
                    encoded, encoded_len = self.model.forward(padded, lengths)
            else:
                encoded, encoded_len = self.model.forward(padded, lengths)

            return self.model.decoding.decode(self.model.head, encoded, encoded_len)

        except RuntimeError as e:
            if "out of memory" not in str(e).lower():
                raise
            if self._device.type == "cuda" and torch.cuda.is_available():
                allocated = torch.cuda.memory_allocated(self._device) / 1024**3
                torch.cuda.empty_cache()
                raise RuntimeError(
                    f"GPU out of memory ({allocated:.2f}GB allocated). "
                    f"Try reducing batch_size from {self.batch_size} to "
                    f"{max(1, self.batch_size // 2)}"
                ) from e
            raise RuntimeError(
                f"Out of memory. Try reducing batch_size from "
                f"{self.batch_size} to {max(1, self.batch_size // 2)}"
            ) from e

    def _pad_batch(self, tensors: List[Tensor]) -> Tuple[Tensor, Tensor]:
        """Pad tensors to the same length.

        Returns:
            padded_tensor: Batched tensor with shape [batch, max_length]
            lengths: Original lengths of each tensor as 1D tensor

        Raises:
            ValueError: If tensors list is empty
        """
        if not tensors:
            raise ValueError("tensors cannot be empty")

        lengths = torch.tensor([len(t) for t in tensors], dtype=torch.long)
        padded = pad_sequence(tensors, batch_first=True, padding_value=0.0)
        return padded, lengths
