"""
Export naming and codec-family helpers.

Output names are a pure function of the source name, the stream and its
codec, so exporting the same track twice yields the same file name.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Optional

from mediaprobe.media.models import UNKNOWN


class SubtitleType(str, Enum):
    """Types of subtitle streams."""

    TEXT = "text"  # SRT, ASS, WebVTT
    IMAGE = "image"  # PGS, VobSub, DVB
    UNKNOWN = "unknown"


# Text-based subtitle codecs
TEXT_SUBTITLE_CODECS = {
    "srt", "subrip", "ass", "ssa", "webvtt", "mov_text", "text", "tx3g",
}

# Image-based subtitle codecs
IMAGE_SUBTITLE_CODECS = {
    "hdmv_pgs_subtitle", "dvd_subtitle", "dvb_subtitle", "dvb_teletext",
    "pgssub", "vobsub", "dvbsub", "dvdsub", "pgs",
}

# Native subtitle extension per codec
SUBTITLE_EXTENSIONS = {
    "subrip": "srt",
    "srt": "srt",
    "ass": "ass",
    "ssa": "ssa",
    "webvtt": "vtt",
    "mov_text": "srt",
    "tx3g": "srt",
    "text": "srt",
    "hdmv_pgs_subtitle": "sup",
    "pgssub": "sup",
    "pgs": "sup",
}

SUBTITLE_MIME_TYPES = {
    "srt": "application/x-subrip",
    "vtt": "text/vtt",
    "ass": "text/x-ssa",
    "ssa": "text/x-ssa",
}

# Plain-text format used when native extraction fails
FALLBACK_SUBTITLE_CODEC = "srt"
FALLBACK_SUBTITLE_EXTENSION = "srt"

LANGUAGE_CODES = {
    "eng": "en", "english": "en",
    "spa": "es", "spanish": "es",
    "fra": "fr", "fre": "fr", "french": "fr",
    "deu": "de", "ger": "de", "german": "de",
    "ita": "it", "italian": "it",
    "por": "pt", "portuguese": "pt",
    "nld": "nl", "dut": "nl", "dutch": "nl",
    "rus": "ru", "russian": "ru",
    "jpn": "ja", "japanese": "ja",
    "kor": "ko", "korean": "ko",
    "chi": "zh", "zho": "zh", "chinese": "zh",
    "ara": "ar", "arabic": "ar",
    "hin": "hi", "hindi": "hi",
    "swe": "sv", "swedish": "sv",
    "nor": "no", "norwegian": "no",
    "dan": "da", "danish": "da",
    "fin": "fi", "finnish": "fi",
    "pol": "pl", "polish": "pl",
    "tur": "tr", "turkish": "tr",
    "ces": "cs", "cze": "cs", "czech": "cs",
    "ell": "el", "gre": "el", "greek": "el",
    "heb": "he", "hebrew": "he",
    "hun": "hu", "hungarian": "hu",
    "ron": "ro", "rum": "ro", "romanian": "ro",
    "ukr": "uk", "ukrainian": "uk",
    "vie": "vi", "vietnamese": "vi",
    "tha": "th", "thai": "th",
}

# Stream copy container per codec
VIDEO_COPY_EXTENSIONS = {
    "h264": "mp4",
    "hevc": "mp4",
    "h265": "mp4",
    "mpeg4": "mp4",
    "av1": "mp4",
    "vp8": "webm",
    "vp9": "webm",
}

AUDIO_COPY_EXTENSIONS = {
    "aac": "aac",
    "mp3": "mp3",
    "opus": "opus",
    "vorbis": "ogg",
    "flac": "flac",
    "ac3": "ac3",
    "eac3": "eac3",
    "dts": "dts",
    "alac": "m4a",
}

MIME_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "aac": "audio/aac",
    "m4a": "audio/mp4",
    "mp3": "audio/mpeg",
    "opus": "audio/opus",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "mka": "audio/x-matroska",
}


def subtitle_type(codec: Optional[str]) -> SubtitleType:
    """Classify a subtitle codec as text or image based."""
    codec_lower = (codec or "").lower()
    if codec_lower in TEXT_SUBTITLE_CODECS:
        return SubtitleType.TEXT
    if codec_lower in IMAGE_SUBTITLE_CODECS:
        return SubtitleType.IMAGE
    return SubtitleType.UNKNOWN


def normalize_language(language: Optional[str]) -> str:
    """
    Two-letter language code for file names.

    Three-letter and long-form names are mapped; anything else is kept as
    given (lower-cased). Missing languages become ``und``.
    """
    if not language or language == UNKNOWN:
        return "und"
    lang = language.strip().lower()
    if len(lang) == 2:
        return lang
    return LANGUAGE_CODES.get(lang, lang)


def subtitle_extension(codec: Optional[str]) -> str:
    """Native file extension for a subtitle codec."""
    codec_lower = (codec or "").lower()
    if codec_lower in SUBTITLE_EXTENSIONS:
        return SUBTITLE_EXTENSIONS[codec_lower]
    if subtitle_type(codec_lower) == SubtitleType.IMAGE:
        return "mks"
    return FALLBACK_SUBTITLE_EXTENSION


def subtitle_filename(
    source_name: str,
    language: Optional[str],
    codec: Optional[str],
    forced: bool = False,
    extension: Optional[str] = None,
) -> str:
    """``<stem>.<lang>[.forced].<ext>``"""
    stem = PurePath(source_name).stem
    parts = [stem, normalize_language(language)]
    if forced:
        parts.append("forced")
    parts.append(extension or subtitle_extension(codec))
    return ".".join(parts)


def subtitle_mime_type(extension: str) -> str:
    return SUBTITLE_MIME_TYPES.get(extension, "application/octet-stream")


@dataclass(frozen=True)
class StreamTarget:
    """Output name and encoder arguments for one export attempt."""

    filename: str
    codec_args: tuple[str, ...]
    mime_type: str


def stream_copy_target(source_name: str, stream_index: int, stream_type: str, codec: Optional[str]) -> StreamTarget:
    """Lossless copy of a single stream into a container that can hold it."""
    codec_lower = (codec or "").lower()
    if stream_type == "video":
        ext = VIDEO_COPY_EXTENSIONS.get(codec_lower, "mkv")
    elif codec_lower.startswith("pcm_"):
        ext = "wav"
    else:
        ext = AUDIO_COPY_EXTENSIONS.get(codec_lower, "mka")
    stem = PurePath(source_name).stem
    return StreamTarget(
        filename=f"{stem}.stream{stream_index}.{ext}",
        codec_args=("-c", "copy"),
        mime_type=MIME_TYPES.get(ext, "application/octet-stream"),
    )


def stream_reencode_target(
    source_name: str,
    stream_index: int,
    stream_type: str,
    crf: int = 23,
    preset: str = "medium",
    audio_bitrate: str = "128k",
) -> StreamTarget:
    """Re-encode fallback: constant-quality H.264 or fixed-bitrate AAC."""
    stem = PurePath(source_name).stem
    if stream_type == "video":
        return StreamTarget(
            filename=f"{stem}.stream{stream_index}.mp4",
            codec_args=("-c:v", "libx264", "-preset", preset, "-crf", str(crf), "-pix_fmt", "yuv420p"),
            mime_type=MIME_TYPES["mp4"],
        )
    return StreamTarget(
        filename=f"{stem}.stream{stream_index}.m4a",
        codec_args=("-c:a", "aac", "-b:a", audio_bitrate),
        mime_type=MIME_TYPES["m4a"],
    )
