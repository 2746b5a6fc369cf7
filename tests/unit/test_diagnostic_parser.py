"""
Unit tests for the ffmpeg diagnostic log parser.
"""

import pytest

from mediaprobe.extraction.diagnostic_parser import (
    DiagnosticTextParser,
    classify_errors,
    enumerate_streams,
    split_top_level,
)
from mediaprobe.extraction.errors import ParseError, ParseErrorKind
from mediaprobe.media.models import UNKNOWN, AudioStream, SubtitleStream, VideoStream
from tests.fixtures import sample_ffmpeg_log


@pytest.fixture
def parser() -> DiagnosticTextParser:
    return DiagnosticTextParser()


@pytest.mark.unit
class TestFormatParsing:
    """Tests for container level fields."""

    def test_duration_and_frame_count(self, parser):
        """Test duration, movie time and frame count at 24 fps."""
        metadata = parser.parse(sample_ffmpeg_log(), filename="movie.mkv", file_size=1024)

        assert metadata.format.duration == "90"
        assert metadata.format.movietimems == "90500"
        assert metadata.format.movieframes == "2172"
        assert metadata.format.fps == "24"

    def test_container_and_bitrate(self, parser):
        """Test format name and bit rate from the input header."""
        metadata = parser.parse(sample_ffmpeg_log(), filename="movie.mkv", file_size=1024)

        assert metadata.format.format_name == "matroska,webm"
        assert metadata.format.bit_rate == "5000000"
        assert metadata.format.filename == "movie.mkv"
        assert metadata.format.size == "1024"

    def test_missing_duration_is_unknown(self, parser):
        """Test sentinel values when the duration line is absent."""
        text = "  Stream #0:0: Audio: mp3, 44100 Hz, stereo, fltp, 320 kb/s"

        metadata = parser.parse(text, filename="song.mp3")

        assert metadata.format.duration == UNKNOWN
        assert metadata.format.movietimems == UNKNOWN
        assert metadata.format.format_name == "mp3"
        assert metadata.format.size == UNKNOWN

    def test_default_frame_rate_without_video(self, parser):
        """Test that frame counts fall back to 25 fps."""
        text = (
            "  Duration: 00:00:10.00, start: 0.000000, bitrate: 128 kb/s\n"
            "  Stream #0:0: Audio: mp3, 44100 Hz, stereo, fltp, 128 kb/s"
        )

        metadata = parser.parse(text, filename="song.mp3")

        assert metadata.format.fps == "25"
        assert metadata.format.movieframes == "250"


@pytest.mark.unit
class TestStreamParsing:
    """Tests for per-stream descriptors."""

    def test_stream_order(self, parser):
        """Test that streams keep their backend index order."""
        metadata = parser.parse(sample_ffmpeg_log())

        assert [s.index for s in metadata.streams] == [0, 1, 2, 3]
        assert isinstance(metadata.streams[0], VideoStream)
        assert isinstance(metadata.streams[1], AudioStream)
        assert isinstance(metadata.streams[2], SubtitleStream)

    def test_video_stream(self, parser):
        """Test video codec, profile, geometry and rates."""
        video = parser.parse(sample_ffmpeg_log()).primary_video

        assert video.codec_name == "h264"
        assert video.profile == "High"
        assert video.width == 1920
        assert video.height == 1080
        assert video.resolution == "1920x1080"
        assert video.pix_fmt == "yuv420p"
        assert video.r_frame_rate == "24/1"
        assert video.bit_rate == "4500000"
        assert video.nb_frames == "2172"

    def test_audio_stream_prefers_bps_tag(self, parser):
        """Test that the BPS metadata tag wins for audio bit rate."""
        audio = parser.parse(sample_ffmpeg_log()).primary_audio

        assert audio.codec_name == "aac"
        assert audio.profile == "LC"
        assert audio.sample_rate == "48000"
        assert audio.channel_layout == "stereo"
        assert audio.channels == 2
        assert audio.bit_rate == "192000"

    def test_audio_header_bitrate(self, parser):
        """Test the header kb/s value when no BPS tag exists."""
        text = "  Stream #0:0: Audio: ac3, 48000 Hz, 5.1(side), fltp, 448 kb/s"

        audio = parser.parse(text).primary_audio

        assert audio.bit_rate == "448000"
        assert audio.channels == 6
        assert audio.channel_layout == "5.1(side)"

    def test_subtitle_flags(self, parser):
        """Test subtitle language, default and forced flags."""
        subtitles = parser.parse(sample_ffmpeg_log()).subtitle_streams

        assert [s.language for s in subtitles] == ["eng", "spa"]
        assert subtitles[0].default is True
        assert subtitles[0].forced is False
        assert subtitles[1].forced is True
        assert subtitles[1].codec_name == "subrip"

    def test_codec_tag_is_not_profile(self, parser):
        """Test that a codec tag in parentheses is not taken as the profile."""
        text = (
            "  Stream #0:0[0x1](und): Video: mpeg4 (mp4v / 0x7634706D), yuv420p, "
            "640x480, 800 kb/s, 29.97 fps, 29.97 tbr, 30k tbn"
        )

        video = parser.parse(text).primary_video

        assert video.codec_name == "mpeg4"
        assert video.profile is None
        assert video.r_frame_rate == "29.97/1"
        assert video.bit_rate == "800000"

    def test_only_first_video_and_audio(self, parser):
        """Test that extra video and audio streams are not promoted."""
        text = (
            "  Stream #0:0: Video: h264, yuv420p, 1280x720, 25 fps\n"
            "  Stream #0:1: Audio: aac, 48000 Hz, stereo\n"
            "  Stream #0:2: Audio: ac3, 48000 Hz, 5.1\n"
            "  Stream #0:3: Video: mjpeg, yuvj420p, 300x300, 90k tbr"
        )

        metadata = parser.parse(text)

        assert [s.index for s in metadata.streams] == [0, 1]
        assert len(enumerate_streams(text)) == 4


@pytest.mark.unit
class TestParserContract:
    """Tests for idempotence and error classification."""

    def test_idempotent(self, parser):
        """Test that parsing the same text twice gives equal results."""
        text = sample_ffmpeg_log()

        assert parser.parse(text, "a.mkv", 10) == parser.parse(text, "a.mkv", 10)

    def test_never_raises_with_stream_marker(self, parser):
        """Test that error markers do not abort parsing when streams are listed."""
        text = (
            "[mov,mp4,m4a,3gp,3g2,mj2 @ 0x1] Invalid data found when processing input\n"
            "  Stream #0:0: Video: h264, yuv420p, 640x360, 25 fps"
        )

        metadata = parser.parse(text)

        assert metadata.primary_video.width == 640

    @pytest.mark.parametrize(
        "text,kind",
        [
            ("input.avi: Invalid data found when processing input", ParseErrorKind.CORRUPTED_INPUT),
            ("Decoder (codec av1) not found for input stream", ParseErrorKind.UNSUPPORTED_CODEC),
            ("Input #0, matroska,webm, from 'input.mkv':", ParseErrorKind.NO_STREAMS),
        ],
    )
    def test_error_kinds(self, parser, text, kind):
        """Test each parse error kind and its message."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse(text)

        assert exc_info.value.kind == kind
        assert exc_info.value.user_message

    def test_classify_clean_log(self):
        """Test that a normal log has no error kind."""
        assert classify_errors(sample_ffmpeg_log()) is None

    def test_split_top_level(self):
        """Test comma splitting outside parentheses."""
        parts = split_top_level("h264 (High), yuv420p(tv, bt709, progressive), 1920x1080")

        assert parts == ["h264 (High)", "yuv420p(tv, bt709, progressive)", "1920x1080"]
