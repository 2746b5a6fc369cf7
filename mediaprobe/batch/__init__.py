"""Single-flight batch processing."""

from mediaprobe.batch.coordinator import (
    TIMEOUT_MESSAGE,
    BatchCoordinator,
    BatchItem,
    BatchProgress,
    ItemState,
)

__all__ = [
    "TIMEOUT_MESSAGE",
    "BatchCoordinator",
    "BatchItem",
    "BatchProgress",
    "ItemState",
]
