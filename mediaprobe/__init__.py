"""
MediaProbe - Local Media Metadata Extraction

Extracts technical metadata from media files without uploading them:
- Dual backend probing (ffmpeg diagnostic log, ffprobe container structure)
- Memory-aware byte-range selection per container family
- Single-flight batch processing with timeout recovery
- Subtitle and stream export with transcoding fallback
"""

__version__ = "1.0.0"
__author__ = "MediaProbe Contributors"
__license__ = "MIT"

from mediaprobe.config import get_config, load_config

__all__ = [
    "__version__",
    "get_config",
    "load_config",
]
