"""
FFmpeg diagnostic log parser.

Turns the human-readable stream listing ffmpeg prints for ``-i <file>`` into
a `VideoMetadata` record. Each extractor is independent and tolerates its
pattern being absent; missing values become ``"unknown"``.

Only the first video and first audio stream are kept as descriptors. Every
subtitle stream is kept. Streams that are not promoted are still listed by
`enumerate_streams` and can be exported by index.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Optional

from mediaprobe.extraction.errors import ParseError, ParseErrorKind
from mediaprobe.media.file import get_extension
from mediaprobe.media.models import (
    UNKNOWN,
    AudioStream,
    FormatInfo,
    SubtitleStream,
    VideoMetadata,
    VideoStream,
)

logger = logging.getLogger(__name__)

STREAM_MARKER = "Stream #"
DEFAULT_FPS = 25.0

DURATION_RE = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2})\.(\d{2})")
BITRATE_RE = re.compile(r"bitrate: (\d+) kb/s")
INPUT_RE = re.compile(r"Input #\d+, (.+?), from ")
STREAM_RE = re.compile(
    r"Stream #(\d+):(\d+)(?:\[0x[0-9a-fA-F]+\])?(?:\(([^)]*)\))?[^:]*: "
    r"(Video|Audio|Subtitle|Data|Attachment): (.*)$"
)
CODEC_RE = re.compile(r"^\s*([\w.\-]+)(?:\s*\(([^)]*)\))?")
RESOLUTION_RE = re.compile(r"\b(\d{2,5})x(\d{2,5})\b")
FPS_RE = re.compile(r"(\d+(?:\.\d+)?) fps")
TBR_RE = re.compile(r"(\d+(?:\.\d+)?) tbr")
KBPS_RE = re.compile(r"(\d+) kb/s")
SAMPLE_RATE_RE = re.compile(r"(\d+) Hz")
BPS_RE = re.compile(r"^\s*BPS(?:-\w+)?\s*:\s*(\d+)", re.MULTILINE)
FRAMES_RE = re.compile(r"^\s*NUMBER_OF_FRAMES(?:-\w+)?\s*:\s*(\d+)", re.MULTILINE)
CHANNELS_RE = re.compile(r"(\d+) channels")

# Error markers checked before parsing
CORRUPTION_MARKERS = (
    "Invalid data found when processing input",
    "No such file or directory",
    "Operation not permitted",
)

CHANNEL_LAYOUTS = {
    "mono": 1,
    "stereo": 2,
    "2.1": 3,
    "3.0": 3,
    "quad": 4,
    "4.0": 4,
    "4.1": 5,
    "5.0": 5,
    "5.1": 6,
    "6.0": 6,
    "6.1": 7,
    "7.0": 7,
    "7.1": 8,
}


@dataclass
class StreamEntry:
    """One ``Stream #`` line plus the metadata block printed under it."""

    file_index: int
    index: int
    kind: str
    body: str
    line: str
    language: Optional[str] = None
    metadata_lines: list[str] = field(default_factory=list)

    @property
    def metadata_text(self) -> str:
        return "\n".join(self.metadata_lines)


def split_top_level(body: str) -> list[str]:
    """Split a stream description on commas that are not inside parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in body:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return parts


def enumerate_streams(text: str) -> list[StreamEntry]:
    """List every stream the log announces, in the order printed."""
    entries: list[StreamEntry] = []
    current: Optional[StreamEntry] = None

    for line in text.splitlines():
        match = STREAM_RE.search(line)
        if match:
            language = match.group(3) or None
            current = StreamEntry(
                file_index=int(match.group(1)),
                index=int(match.group(2)),
                kind=match.group(4).lower(),
                body=match.group(5),
                line=line,
                language=language,
            )
            entries.append(current)
        elif current is not None and STREAM_MARKER not in line:
            if line.startswith("    ") or line.startswith("\t"):
                current.metadata_lines.append(line)
            else:
                current = None

    return entries


def classify_errors(text: str) -> Optional[ParseErrorKind]:
    """Map known failure markers in the log to a parse error kind."""
    if any(marker in text for marker in CORRUPTION_MARKERS):
        return ParseErrorKind.CORRUPTED_INPUT
    if "Decoder (codec " in text and "not found" in text:
        return ParseErrorKind.UNSUPPORTED_CODEC
    if STREAM_MARKER not in text:
        return ParseErrorKind.NO_STREAMS
    return None


def _format_number(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{value:g}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class DiagnosticTextParser:
    """
    Converts ffmpeg diagnostic output into `VideoMetadata`.

    The parser is stateless; calling `parse` twice on the same text gives
    equal results.
    """

    def parse(
        self,
        diagnostic_text: str,
        filename: str = "",
        file_size: Optional[int] = None,
    ) -> VideoMetadata:
        """
        Parse a complete diagnostic log.

        Args:
            diagnostic_text: Newline-joined log lines from the backend.
            filename: Source file name, copied into the format record.
            file_size: Source file size in bytes.

        Returns:
            Parsed metadata.

        Raises:
            ParseError: When the log carries no stream listing at all.
        """
        error_kind = classify_errors(diagnostic_text)
        if error_kind is not None:
            if STREAM_MARKER not in diagnostic_text:
                raise ParseError(error_kind)
            logger.warning(
                f"Diagnostic output for {filename or 'input'} reports {error_kind.value}; "
                f"parsing the listed streams anyway"
            )

        entries = enumerate_streams(diagnostic_text)
        first_video = next((e for e in entries if e.kind == "video"), None)
        first_audio = next((e for e in entries if e.kind == "audio"), None)

        video = self._parse_video(first_video) if first_video else None
        audio = self._parse_audio(first_audio) if first_audio else None
        subtitles = [self._parse_subtitle(e) for e in entries if e.kind == "subtitle"]

        fps = self._extract_fps(first_video) if first_video else DEFAULT_FPS
        fmt = self._parse_format(diagnostic_text, filename, file_size, fps)

        if video is not None and video.nb_frames == UNKNOWN and fmt.movieframes != UNKNOWN:
            video.nb_frames = fmt.movieframes

        streams: list = [s for s in (video, audio) if s is not None]
        streams.extend(subtitles)
        streams.sort(key=lambda s: s.index)

        logger.debug(
            f"Parsed {filename or 'input'}: duration={fmt.duration}s "
            f"bitrate={fmt.bit_rate} streams={len(streams)}/{len(entries)}"
        )
        return VideoMetadata(format=fmt, streams=streams)

    def _parse_format(
        self,
        text: str,
        filename: str,
        file_size: Optional[int],
        fps: float,
    ) -> FormatInfo:
        input_match = INPUT_RE.search(text)
        format_name = input_match.group(1) if input_match else (get_extension(filename) or UNKNOWN)

        fmt = FormatInfo(
            filename=filename,
            format_name=format_name,
            size=str(file_size) if file_size is not None else UNKNOWN,
            fps=_format_number(fps),
        )

        duration_match = DURATION_RE.search(text)
        if duration_match:
            hours, minutes, seconds, centis = (int(g) for g in duration_match.groups())
            total_seconds = hours * 3600 + minutes * 60 + seconds
            total_ms = total_seconds * 1000 + centis * 10
            fmt.duration = str(total_seconds)
            fmt.movietimems = str(total_ms)
            fmt.movieframes = str(_round_half_up(total_ms / 1000 * fps))

        bitrate_match = BITRATE_RE.search(text)
        if bitrate_match:
            fmt.bit_rate = str(int(bitrate_match.group(1)) * 1000)

        return fmt

    def _extract_fps(self, entry: StreamEntry) -> float:
        match = FPS_RE.search(entry.body) or TBR_RE.search(entry.body)
        if match:
            return float(match.group(1))
        return DEFAULT_FPS

    def _parse_codec(self, body: str) -> tuple[str, Optional[str]]:
        match = CODEC_RE.match(body)
        if not match:
            return UNKNOWN, None
        profile = match.group(2)
        # "(avc1 / 0x31637661)" is a codec tag, not a profile
        if profile and "/" in profile:
            profile = None
        return match.group(1), profile

    def _parse_video(self, entry: StreamEntry) -> VideoStream:
        codec, profile = self._parse_codec(entry.body)
        fields = split_top_level(entry.body)
        after_codec = ", ".join(fields[1:])

        stream = VideoStream(index=entry.index, codec_name=codec, profile=profile)

        resolution = RESOLUTION_RE.search(after_codec)
        if resolution:
            stream.width = int(resolution.group(1))
            stream.height = int(resolution.group(2))

        if len(fields) > 1:
            pix_match = re.match(r"^([a-z][a-z0-9_]*)", fields[1])
            if pix_match and not RESOLUTION_RE.search(fields[1]):
                stream.pix_fmt = pix_match.group(1)

        fps_match = FPS_RE.search(entry.body) or TBR_RE.search(entry.body)
        if fps_match:
            stream.r_frame_rate = f"{_format_number(float(fps_match.group(1)))}/1"

        kbps = KBPS_RE.search(after_codec)
        bps = BPS_RE.search(entry.metadata_text)
        if kbps:
            stream.bit_rate = str(int(kbps.group(1)) * 1000)
        elif bps:
            stream.bit_rate = bps.group(1)

        frames = FRAMES_RE.search(entry.metadata_text)
        if frames:
            stream.nb_frames = frames.group(1)

        return stream

    def _parse_audio(self, entry: StreamEntry) -> AudioStream:
        codec, profile = self._parse_codec(entry.body)
        fields = split_top_level(entry.body)

        stream = AudioStream(index=entry.index, codec_name=codec, profile=profile)

        for position, value in enumerate(fields):
            rate = SAMPLE_RATE_RE.search(value)
            if rate:
                stream.sample_rate = rate.group(1)
                if position + 1 < len(fields):
                    layout = fields[position + 1]
                    stream.channel_layout = layout
                    stream.channels = self._channel_count(layout)
                break

        # The header line does not reliably carry the audio bit rate
        bps = BPS_RE.search(entry.metadata_text)
        kbps = KBPS_RE.search(entry.body)
        if bps:
            stream.bit_rate = bps.group(1)
        elif kbps:
            stream.bit_rate = str(int(kbps.group(1)) * 1000)

        return stream

    def _channel_count(self, layout: str):
        count = CHANNELS_RE.search(layout)
        if count:
            return int(count.group(1))
        base = layout.split("(")[0].strip().lower()
        return CHANNEL_LAYOUTS.get(base, UNKNOWN)

    def _parse_subtitle(self, entry: StreamEntry) -> SubtitleStream:
        codec, _ = self._parse_codec(entry.body)
        return SubtitleStream(
            index=entry.index,
            codec_name=codec,
            language=entry.language or UNKNOWN,
            default="(default)" in entry.line,
            forced="(forced)" in entry.line,
        )
