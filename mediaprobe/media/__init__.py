"""Media file handles and metadata records."""

from mediaprobe.media.file import (
    BOX_EXTENSIONS,
    SUPPORTED_EXTENSIONS,
    TEXT_EXTENSIONS,
    LocalMediaFile,
    MediaFile,
    MemoryMediaFile,
    discover_media_files,
    get_extension,
)
from mediaprobe.media.models import (
    UNKNOWN,
    Artifact,
    ArtifactKind,
    AudioStream,
    CodecType,
    FormatInfo,
    StreamDescriptor,
    SubtitleStream,
    VideoMetadata,
    VideoStream,
)

__all__ = [
    "BOX_EXTENSIONS",
    "SUPPORTED_EXTENSIONS",
    "TEXT_EXTENSIONS",
    "UNKNOWN",
    "Artifact",
    "ArtifactKind",
    "AudioStream",
    "CodecType",
    "FormatInfo",
    "LocalMediaFile",
    "MediaFile",
    "MemoryMediaFile",
    "StreamDescriptor",
    "SubtitleStream",
    "VideoMetadata",
    "VideoStream",
    "discover_media_files",
    "get_extension",
]
