"""Artifact delivery."""

from mediaprobe.delivery.downloader import (
    ArtifactDownloader,
    ArtifactSink,
    ChunkWriter,
    DeliveryMode,
    DeliveryResult,
    FileSink,
    choose_delivery,
    plan_chunks,
)

__all__ = [
    "ArtifactDownloader",
    "ArtifactSink",
    "ChunkWriter",
    "DeliveryMode",
    "DeliveryResult",
    "FileSink",
    "choose_delivery",
    "plan_chunks",
]
