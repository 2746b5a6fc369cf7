"""
Test Fixtures

Scripted backends and sample backend outputs.
"""

from .fake_backend import FakeBackend
from .samples import sample_box_info, sample_ffmpeg_log

__all__ = [
    "FakeBackend",
    "sample_box_info",
    "sample_ffmpeg_log",
]
