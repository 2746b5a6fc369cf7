"""
Metadata records produced by the extraction engine.

Both backends normalise into the same shape: a `FormatInfo` summary plus an
ordered list of per-stream descriptors. Values a backend could not determine
hold the sentinel string ``"unknown"`` instead of being left out, so display
code can treat every field the same way.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union

UNKNOWN = "unknown"


class CodecType(str, Enum):
    """Kinds of stream a descriptor can describe."""

    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"


@dataclass
class FormatInfo:
    """Container level summary."""

    filename: str
    format_name: str = UNKNOWN
    duration: str = UNKNOWN  # Whole seconds
    size: str = UNKNOWN
    bit_rate: str = UNKNOWN  # Bits per second
    fps: str = UNKNOWN
    movietimems: str = UNKNOWN
    movieframes: str = UNKNOWN


@dataclass
class StreamDescriptor:
    """Fields common to every stream kind."""

    codec_type: ClassVar[CodecType]

    index: int
    codec_name: str = UNKNOWN
    profile: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["codec_type"] = self.codec_type.value
        return data


@dataclass
class VideoStream(StreamDescriptor):
    """Video stream information."""

    codec_type: ClassVar[CodecType] = CodecType.VIDEO

    width: Union[int, str] = UNKNOWN
    height: Union[int, str] = UNKNOWN
    r_frame_rate: str = UNKNOWN
    pix_fmt: str = UNKNOWN
    bit_rate: str = UNKNOWN
    nb_frames: str = UNKNOWN

    @property
    def resolution(self) -> str:
        if self.width == UNKNOWN or self.height == UNKNOWN:
            return UNKNOWN
        return f"{self.width}x{self.height}"


@dataclass
class AudioStream(StreamDescriptor):
    """Audio stream information."""

    codec_type: ClassVar[CodecType] = CodecType.AUDIO

    sample_rate: str = UNKNOWN
    channels: Union[int, str] = UNKNOWN
    channel_layout: str = UNKNOWN
    bit_rate: str = UNKNOWN


@dataclass
class SubtitleStream(StreamDescriptor):
    """Subtitle stream information."""

    codec_type: ClassVar[CodecType] = CodecType.SUBTITLE

    language: str = UNKNOWN
    forced: bool = False
    default: bool = False


AnyStream = Union[VideoStream, AudioStream, SubtitleStream]


@dataclass
class VideoMetadata:
    """
    Complete technical metadata for one media file.

    `streams` keeps backend enumeration order; that order is the default
    display and extraction index.
    """

    format: FormatInfo
    streams: list[AnyStream] = field(default_factory=list)

    @property
    def video_streams(self) -> list[VideoStream]:
        return [s for s in self.streams if isinstance(s, VideoStream)]

    @property
    def audio_streams(self) -> list[AudioStream]:
        return [s for s in self.streams if isinstance(s, AudioStream)]

    @property
    def subtitle_streams(self) -> list[SubtitleStream]:
        return [s for s in self.streams if isinstance(s, SubtitleStream)]

    @property
    def primary_video(self) -> Optional[VideoStream]:
        videos = self.video_streams
        return videos[0] if videos else None

    @property
    def primary_audio(self) -> Optional[AudioStream]:
        audios = self.audio_streams
        return audios[0] if audios else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": asdict(self.format),
            "streams": [s.to_dict() for s in self.streams],
        }


class ArtifactKind(str, Enum):
    SUBTITLE = "subtitle"
    STREAM = "stream"


@dataclass
class Artifact:
    """A produced export, consumed once by the downloader."""

    filename: str
    data: bytes
    kind: ArtifactKind
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


def format_seconds(value: float) -> str:
    """Render seconds without a trailing ``.0`` for whole values."""
    if value == int(value):
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")
