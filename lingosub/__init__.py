"""lingosub: Progressive subtitle generation for long media files.

This module decodes the audio of a media file, cuts it into chunks on a
fixed schedule or at silences, transcribes the chunks with a pluggable
backend, and publishes a merged, deduplicated subtitle list as chunks
complete.

Example:
    >>> from lingosub import RemoteASRBackend, SubtitleGenerator, segments_to_srt
    >>> generator = SubtitleGenerator()
    >>> job = generator.start("movie.mp4", RemoteASRBackend(), segmentation="vad")
    >>> print(segments_to_srt(job.result()))
"""

from .backends import (
    CloudBackend,
    LocalModelBackend,
    RemoteASRBackend,
    TranscriptionBackend,
)
from .chunker import AudioChunker, SubWindowChunker
from .config import CloudConfig, LocalModelConfig, RemoteASRConfig, VADSettings
from .data_models import (
    AudioChunk,
    ChunkWindow,
    GenerationInfo,
    JobState,
    RawSegment,
    Segment,
    SegmentationMethod,
)
from .exceptions import AuthError, DecodeError, JobRejectedError, LingoSubError
from .generator import GenerationJob, SubtitleGenerator
from .merger import SegmentMerger
from .subtitle_formats import (
    find_sidecar_subtitles,
    load_subtitle_file,
    parse_subtitle_content,
    save_subtitle_file,
    segments_to_srt,
    segments_to_vtt,
)
from .timestamps import detect_time_scale, parse_timestamp

__version__ = "0.1.0"

__all__ = [
    "AudioChunk",
    "AudioChunker",
    "AuthError",
    "ChunkWindow",
    "CloudBackend",
    "CloudConfig",
    "DecodeError",
    "GenerationInfo",
    "GenerationJob",
    "JobRejectedError",
    "JobState",
    "LingoSubError",
    "LocalModelBackend",
    "LocalModelConfig",
    "RawSegment",
    "RemoteASRBackend",
    "RemoteASRConfig",
    "Segment",
    "SegmentMerger",
    "SegmentationMethod",
    "SubWindowChunker",
    "SubtitleGenerator",
    "TranscriptionBackend",
    "VADSettings",
    "detect_time_scale",
    "find_sidecar_subtitles",
    "load_subtitle_file",
    "parse_subtitle_content",
    "parse_timestamp",
    "save_subtitle_file",
    "segments_to_srt",
    "segments_to_vtt",
]
