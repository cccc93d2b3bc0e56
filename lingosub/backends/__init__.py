"""Interchangeable transcription backends."""

from .base import TranscriptionBackend
from .cloud import CloudBackend
from .local import LocalModelBackend
from .remote import RemoteASRBackend

__all__ = [
    "CloudBackend",
    "LocalModelBackend",
    "RemoteASRBackend",
    "TranscriptionBackend",
]
