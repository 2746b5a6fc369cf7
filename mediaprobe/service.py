"""
Consumer-facing state and actions.

`MetadataService` is what a presentation layer talks to: it exposes the
current metadata, progress and error records and the batch item list, and
turns user actions into coordinator submissions or engine exports.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from mediaprobe.batch import BatchCoordinator, BatchItem, ItemState
from mediaprobe.config import MediaProbeConfig, get_config
from mediaprobe.delivery import ArtifactDownloader, DeliveryResult
from mediaprobe.extraction import BackendLoadError, ExtractionEngine, MediaProbeError
from mediaprobe.media.file import LocalMediaFile, MediaFile, discover_media_files
from mediaprobe.media.models import Artifact, VideoMetadata

logger = logging.getLogger(__name__)


@dataclass
class ProgressState:
    visible: bool = False
    percent: int = 0
    text: str = ""


@dataclass
class ErrorState:
    visible: bool = False
    message: str = ""


def open_paths(paths: Iterable[Path | str]) -> list[MediaFile]:
    """Expand files and directories into media file handles."""
    return [LocalMediaFile(path) for path in discover_media_files(paths)]


class MetadataService:
    """State holder for one user session."""

    def __init__(
        self,
        config: Optional[MediaProbeConfig] = None,
        engine: Optional[ExtractionEngine] = None,
        downloader: Optional[ArtifactDownloader] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or get_config()
        self.engine = engine or ExtractionEngine(self.config)
        self.downloader = downloader or ArtifactDownloader(self.config.delivery)
        self.coordinator = BatchCoordinator(self.engine, self.config.batch, sleep=sleep)
        self.coordinator.add_listener(self._on_batch_change)

        self.metadata: Optional[VideoMetadata] = None
        self.progress = ProgressState()
        self.error = ErrorState()
        self.current_method: Optional[str] = None
        self._reported: set[int] = set()

    @property
    def items(self) -> list[BatchItem]:
        return self.coordinator.items

    async def start(self) -> bool:
        """Load the engine. A load failure is shown as the error state."""
        try:
            await self.engine.load()
        except BackendLoadError as e:
            self._show_error(e.user_message)
            return False
        return True

    async def close(self) -> None:
        self.coordinator.clear()
        await self.engine.close()

    # Actions

    async def select_file(self, file: MediaFile) -> Optional[BatchItem]:
        items = await self.select_files([file])
        return items[0] if items else None

    async def select_files(self, files: Iterable[MediaFile]) -> list[BatchItem]:
        """Replace the batch with `files` and start processing."""
        self.clear_all()
        files = list(files)
        if not files:
            return []
        if not self.engine.is_ready and not await self.start():
            return []
        return self.coordinator.submit(files)

    async def export_subtitle(
        self,
        file: MediaFile,
        stream_index: int,
        language: Optional[str] = None,
        codec: Optional[str] = None,
        forced: bool = False,
    ) -> DeliveryResult:
        return await self._export(
            "subtitle",
            self.engine.export_subtitle(file, stream_index, language, codec, forced),
        )

    async def export_stream(
        self,
        file: MediaFile,
        stream_index: int,
        stream_type: str,
        codec: Optional[str] = None,
    ) -> DeliveryResult:
        return await self._export(
            f"{stream_type} stream",
            self.engine.export_stream(file, stream_index, stream_type, codec),
        )

    def clear_all(self) -> None:
        self.coordinator.clear()
        self.metadata = None
        self.progress = ProgressState()
        self.error = ErrorState()
        self.current_method = None
        self._reported.clear()

    def hide_error(self) -> None:
        self.error = ErrorState()

    def snapshot(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "progress": asdict(self.progress),
            "error": asdict(self.error),
            "current_method": self.current_method,
            "engine_ready": self.engine.is_ready,
            "items": [item.to_dict() for item in self.items],
        }

    # Internals

    async def _export(self, label: str, work: Awaitable[Artifact]) -> DeliveryResult:
        self.hide_error()
        self.progress = ProgressState(visible=True, percent=0, text=f"Extracting {label}...")
        try:
            artifact = await work
            self.progress = ProgressState(visible=True, percent=0, text=f"Saving {artifact.filename}")
            result = await self.downloader.deliver(artifact, on_progress=self._on_delivery_progress)
        except MediaProbeError as e:
            self._show_error(e.user_message)
            raise
        finally:
            self.progress = self._batch_progress()
        return result

    def _on_delivery_progress(self, fraction: float) -> None:
        self.progress.percent = int(fraction * 100 + 0.5)

    def _show_error(self, message: str) -> None:
        logger.error(message)
        self.error = ErrorState(visible=True, message=message)

    def _batch_progress(self) -> ProgressState:
        progress = self.coordinator.progress()
        return ProgressState(
            visible=progress.total > 0,
            percent=progress.percent,
            text=progress.text,
        )

    def _on_batch_change(self) -> None:
        self.progress = self._batch_progress()

        processing = self.coordinator.processing
        if processing is not None:
            self.current_method = processing.method

        for item in self.items:
            if item.id in self._reported or not item.is_terminal:
                continue
            self._reported.add(item.id)
            if item.state == ItemState.COMPLETED:
                self.metadata = item.metadata
                self.current_method = item.method
            elif len(self.items) == 1:
                self._show_error(item.error or "Unknown error")
            else:
                self._show_error(f"{item.file.name}: {item.error or 'Unknown error'}")
