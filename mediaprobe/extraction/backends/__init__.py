"""Media engine backends."""

from mediaprobe.extraction.backends.base import BackendWorkspace, ExecResult, MediaBackend
from mediaprobe.extraction.backends.ffmpeg import FFmpegBackend
from mediaprobe.extraction.backends.ffprobe import FFprobeBoxBackend, build_info

__all__ = [
    "BackendWorkspace",
    "ExecResult",
    "FFmpegBackend",
    "FFprobeBoxBackend",
    "MediaBackend",
    "build_info",
]
