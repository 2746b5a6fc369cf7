"""
Box-parser info mapping.

Converts the track/info graph produced by the structured backend into the
same `VideoMetadata` shape the diagnostic parser produces. Box timing is
exact, so frame rate and frame count come from each track's timescale and
sample count rather than from wall-clock duration.

Expected info shape::

    {
        "duration": 2000, "timescale": 1000, "bitrate": 1500000, "brand": "mp4",
        "tracks": [
            {"id": 1, "type": "video", "codec": "h264", "timescale": 1000,
             "duration": 2000, "nb_samples": 48, "track_width": 1920,
             "track_height": 1080, "bitrate": 1200000, "profile": "High"},
            {"id": 2, "type": "audio", "codec": "aac",
             "audio": {"sample_rate": 48000, "channel_count": 2}},
            {"id": 3, "type": "text", "codec": "mov_text", "language": "eng",
             "default": True, "forced": False},
        ],
    }
"""

import logging
from typing import Any, Mapping, Optional

from mediaprobe.media.models import (
    UNKNOWN,
    AudioStream,
    FormatInfo,
    SubtitleStream,
    VideoMetadata,
    VideoStream,
    format_seconds,
)

logger = logging.getLogger(__name__)


def _positive(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _str_or_unknown(value: Any) -> str:
    if value is None or value == "":
        return UNKNOWN
    return str(value)


def track_frame_rate(track: Mapping[str, Any]) -> Optional[float]:
    """Frames per second from a track's timescale, duration and sample count."""
    timescale = _positive(track.get("timescale") or track.get("movie_timescale"))
    duration = _positive(track.get("duration") or track.get("movie_duration"))
    samples = _positive(track.get("nb_samples"))
    if timescale is None or duration is None or samples is None:
        return None
    return timescale / duration * samples


def track_seconds(track: Mapping[str, Any]) -> Optional[float]:
    timescale = _positive(track.get("timescale"))
    duration = _positive(track.get("duration"))
    if timescale is None or duration is None:
        return None
    return duration / timescale


class BoxMetadataMapper:
    """Pure structural transform from box-parser info to `VideoMetadata`."""

    def map(
        self,
        info: Mapping[str, Any],
        filename: str = "",
        file_size: Optional[int] = None,
    ) -> VideoMetadata:
        """
        Map a container info graph.

        Args:
            info: Movie-level info with a ``tracks`` list.
            filename: Source file name for the format record.
            file_size: Source file size in bytes.

        Returns:
            Metadata with one descriptor per video, audio and text track.
        """
        tracks = list(info.get("tracks") or [])

        fmt = FormatInfo(
            filename=filename,
            format_name=_str_or_unknown(info.get("brand") or "mp4"),
            size=str(file_size) if file_size is not None else UNKNOWN,
            bit_rate=_str_or_unknown(info.get("bitrate")),
        )

        seconds = self._movie_seconds(info, tracks)
        if seconds is not None:
            fmt.duration = format_seconds(seconds)
            fmt.movietimems = format_seconds(round(seconds * 1000, 3))

        streams: list = []
        for position, track in enumerate(tracks):
            index = self._track_index(track, position)
            kind = track.get("type")

            if kind == "video":
                stream = self._map_video(track, index)
                if fmt.fps == UNKNOWN:
                    fps = track_frame_rate(track)
                    if fps is not None:
                        fmt.fps = f"{fps:.2f}"
                    fmt.movieframes = _str_or_unknown(track.get("nb_samples"))
                streams.append(stream)
            elif kind == "audio":
                streams.append(self._map_audio(track, index))
            elif kind in ("text", "subtitle", "subt", "sbtl"):
                streams.append(self._map_text(track, index))
            else:
                logger.debug(f"Skipping track {index} of type {kind!r}")

        return VideoMetadata(format=fmt, streams=streams)

    def _movie_seconds(self, info: Mapping[str, Any], tracks: list) -> Optional[float]:
        timescale = _positive(info.get("timescale"))
        duration = _positive(info.get("duration"))
        if timescale is not None and duration is not None:
            return duration / timescale

        # Fall back to the longest track
        lengths = [s for s in (track_seconds(t) for t in tracks) if s is not None]
        return max(lengths) if lengths else None

    def _track_index(self, track: Mapping[str, Any], position: int) -> int:
        if track.get("index") is not None:
            return int(track["index"])
        if track.get("id") is not None:
            return int(track["id"]) - 1
        return position

    def _map_video(self, track: Mapping[str, Any], index: int) -> VideoStream:
        fps = track_frame_rate(track)
        profile = track.get("profile")
        if profile is None and isinstance(track.get("avc"), Mapping):
            profile = track["avc"].get("profile_string")
        return VideoStream(
            index=index,
            codec_name=_str_or_unknown(track.get("codec")),
            profile=profile or UNKNOWN,
            width=int(track["track_width"]) if track.get("track_width") else UNKNOWN,
            height=int(track["track_height"]) if track.get("track_height") else UNKNOWN,
            r_frame_rate=f"{fps:.2f}/1" if fps is not None else UNKNOWN,
            pix_fmt=_str_or_unknown(track.get("pix_fmt")),
            bit_rate=_str_or_unknown(track.get("bitrate")),
            nb_frames=_str_or_unknown(track.get("nb_samples")),
        )

    def _map_audio(self, track: Mapping[str, Any], index: int) -> AudioStream:
        audio = track.get("audio") or {}
        channels = audio.get("channel_count")
        return AudioStream(
            index=index,
            codec_name=_str_or_unknown(track.get("codec")),
            profile=track.get("profile"),
            sample_rate=_str_or_unknown(audio.get("sample_rate")),
            channels=int(channels) if channels else UNKNOWN,
            channel_layout=_str_or_unknown(audio.get("channel_layout")),
            bit_rate=_str_or_unknown(track.get("bitrate")),
        )

    def _map_text(self, track: Mapping[str, Any], index: int) -> SubtitleStream:
        return SubtitleStream(
            index=index,
            codec_name=_str_or_unknown(track.get("codec")),
            language=_str_or_unknown(track.get("language")),
            default=bool(track.get("default", False)),
            forced=bool(track.get("forced", False)),
        )
