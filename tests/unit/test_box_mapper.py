"""
Unit tests for box info mapping and the ffprobe info graph.
"""

import pytest

from mediaprobe.extraction.backends.ffprobe import build_info
from mediaprobe.extraction.box_mapper import BoxMetadataMapper, track_frame_rate
from mediaprobe.media.models import UNKNOWN, AudioStream, SubtitleStream, VideoStream
from tests.fixtures import sample_box_info


@pytest.fixture
def mapper() -> BoxMetadataMapper:
    return BoxMetadataMapper()


@pytest.mark.unit
class TestBoxMetadataMapper:
    """Tests for BoxMetadataMapper."""

    def test_synthetic_video_track(self, mapper):
        """Test frame rate and duration from timescale and sample count."""
        info = {
            "tracks": [
                {"type": "video", "codec": "avc1", "timescale": 1000, "duration": 2000, "nb_samples": 48},
            ],
        }

        metadata = mapper.map(info, filename="clip.mp4")

        assert metadata.format.fps == "24.00"
        assert metadata.format.duration == "2"
        assert metadata.format.movieframes == "48"
        assert metadata.primary_video.r_frame_rate == "24.00/1"

    def test_movie_duration_preferred(self, mapper):
        """Test that the movie header duration wins over track lengths."""
        info = {
            "timescale": 600,
            "duration": 900,
            "tracks": [{"type": "video", "timescale": 1000, "duration": 2000, "nb_samples": 48}],
        }

        metadata = mapper.map(info)

        assert metadata.format.duration == "1.5"
        assert metadata.format.movietimems == "1500"

    def test_all_track_kinds(self, mapper):
        """Test mapping of video, audio and text tracks."""
        metadata = mapper.map(sample_box_info(), filename="clip.mp4", file_size=4096)

        video, audio, text = metadata.streams
        assert isinstance(video, VideoStream)
        assert (video.width, video.height) == (1280, 720)
        assert video.profile == "High"
        assert isinstance(audio, AudioStream)
        assert audio.sample_rate == "48000"
        assert audio.channels == 2
        assert isinstance(text, SubtitleStream)
        assert text.language == "eng"
        assert text.default is True
        assert text.forced is False
        assert metadata.format.format_name == "isom"
        assert metadata.format.size == "4096"
        assert metadata.format.bit_rate == "1500000"

    def test_unknown_fields(self, mapper):
        """Test sentinel values for missing track fields."""
        metadata = mapper.map({"tracks": [{"type": "video"}, {"type": "audio"}]})

        assert metadata.primary_video.width == UNKNOWN
        assert metadata.primary_video.r_frame_rate == UNKNOWN
        assert metadata.primary_audio.channels == UNKNOWN
        assert metadata.format.duration == UNKNOWN

    def test_track_index_from_id(self, mapper):
        """Test that one-based track ids become zero-based indexes."""
        metadata = mapper.map({"tracks": [{"id": 1, "type": "video"}, {"id": 2, "type": "text"}]})

        assert [s.index for s in metadata.streams] == [0, 1]

    def test_skips_other_tracks(self, mapper):
        """Test that hint and metadata tracks are ignored."""
        metadata = mapper.map({"tracks": [{"type": "hint"}, {"type": "audio"}]})

        assert len(metadata.streams) == 1

    def test_frame_rate_movie_fallback(self):
        """Test movie timescale fallback when the track has none."""
        track = {"movie_timescale": 90000, "movie_duration": 180000, "nb_samples": 50}

        assert track_frame_rate(track) == pytest.approx(25.0)


@pytest.mark.unit
class TestBuildInfo:
    """Tests for reshaping ffprobe JSON into a track graph."""

    def test_build_info(self):
        """Test movie and track fields from ffprobe output."""
        data = {
            "format": {
                "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
                "duration": "2.000000",
                "bit_rate": "1500000",
                "tags": {"major_brand": "isom"},
            },
            "streams": [
                {
                    "index": 0,
                    "codec_type": "video",
                    "codec_name": "h264",
                    "profile": "High",
                    "time_base": "1/12800",
                    "duration_ts": 25600,
                    "nb_frames": "48",
                    "width": 1920,
                    "height": 1080,
                    "pix_fmt": "yuv420p",
                    "disposition": {"default": 1, "forced": 0},
                },
                {
                    "index": 1,
                    "codec_type": "audio",
                    "codec_name": "aac",
                    "sample_rate": "48000",
                    "channels": 2,
                    "channel_layout": "stereo",
                    "tags": {"language": "eng"},
                },
                {"index": 2, "codec_type": "data", "codec_name": "bin_data"},
            ],
        }

        info = build_info(data)

        assert info["brand"] == "isom"
        assert info["timescale"] == 1000
        assert info["duration"] == 2000
        assert info["bitrate"] == 1500000
        assert len(info["tracks"]) == 2
        video, audio = info["tracks"]
        assert video["timescale"] == 12800
        assert video["nb_samples"] == 48
        assert video["default"] is True
        assert audio["audio"]["channel_count"] == 2
        assert audio["language"] == "eng"

    def test_build_info_maps_to_metadata(self, mapper):
        """Test that a built graph maps to 24 fps."""
        data = {
            "format": {"format_name": "mov,mp4", "duration": "2.0"},
            "streams": [
                {
                    "index": 0,
                    "codec_type": "video",
                    "codec_name": "h264",
                    "time_base": "1/12800",
                    "duration_ts": 25600,
                    "nb_frames": "48",
                },
            ],
        }

        metadata = mapper.map(build_info(data))

        assert metadata.format.fps == "24.00"
        assert metadata.format.format_name == "mov,mp4"
