"""
Artifact delivery.

Small artifacts are handed to the sink in one call. Anything at or above the
direct limit is pulled from an async generator in fixed-size chunks, and the
sink assembles the final file only when the last chunk has arrived.
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional

from mediaprobe.config import DeliveryConfig
from mediaprobe.media.models import Artifact

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class DeliveryMode(str, Enum):
    DIRECT = "direct"
    CHUNKED = "chunked"


def choose_delivery(size: int, direct_limit: int) -> DeliveryMode:
    """Direct below the limit, chunked at or above it."""
    if size < direct_limit:
        return DeliveryMode.DIRECT
    return DeliveryMode.CHUNKED


def plan_chunks(total: int, chunk_size: int) -> list[tuple[int, int]]:
    """
    Split ``total`` bytes into ``[start, end)`` spans of at most ``chunk_size``.

    The spans are contiguous and cover ``[0, total)`` exactly.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [(start, min(start + chunk_size, total)) for start in range(0, total, chunk_size)]


async def iter_chunks(
    data: bytes,
    chunk_size: int,
    on_progress: Optional[ProgressCallback] = None,
) -> AsyncIterator[bytes]:
    """Yield `data` chunk by chunk, reporting the delivered fraction after each."""
    total = len(data)
    view = memoryview(data)
    for start, end in plan_chunks(total, chunk_size):
        yield bytes(view[start:end])
        if on_progress:
            on_progress(end / total)
        # let other tasks run between chunks
        await asyncio.sleep(0)


@dataclass
class DeliveryResult:
    filename: str
    location: str
    mode: DeliveryMode
    size: int
    chunks: int = 1


class ChunkWriter(ABC):
    """One in-flight chunked delivery. Owned by a single `deliver` call."""

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Append one chunk."""

    @abstractmethod
    async def finish(self) -> str:
        """Assemble the delivered chunks. Returns the final location."""

    @abstractmethod
    async def abort(self) -> None:
        """Discard the partial delivery."""


class ArtifactSink(ABC):
    """Destination for delivered artifacts."""

    @abstractmethod
    async def write_all(self, filename: str, data: bytes) -> str:
        """Store a complete payload. Returns its location."""

    @abstractmethod
    async def open_stream(self, filename: str) -> ChunkWriter:
        """Begin a chunked delivery and return its writer."""


class FileChunkWriter(ChunkWriter):
    """Writes chunks to a private ``.part`` file and renames it on finish."""

    def __init__(self, target: Path, part: Path, handle: BinaryIO):
        self.target = target
        self.part = part
        self._handle = handle

    async def write(self, chunk: bytes) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self._handle.write, chunk)

    async def finish(self) -> str:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._handle.close)
        await loop.run_in_executor(None, os.replace, self.part, self.target)
        return str(self.target)

    async def abort(self) -> None:
        self._handle.close()
        if self.part.exists():
            self.part.unlink()


class FileSink(ArtifactSink):
    """Writes artifacts into a directory. Chunked writes go to a ``.part`` file first."""

    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)

    def _target_for(self, filename: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / Path(filename).name

    async def write_all(self, filename: str, data: bytes) -> str:
        target = self._target_for(filename)
        await asyncio.get_running_loop().run_in_executor(None, target.write_bytes, data)
        return str(target)

    async def open_stream(self, filename: str) -> FileChunkWriter:
        target = self._target_for(filename)

        def _open() -> tuple[Path, BinaryIO]:
            # unique per delivery, so concurrent streams never share a part file
            fd, part = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".part", dir=self.output_dir)
            return Path(part), os.fdopen(fd, "wb")

        part, handle = await asyncio.get_running_loop().run_in_executor(None, _open)
        return FileChunkWriter(target, part, handle)


class ArtifactDownloader:
    """Delivers each artifact once, directly or in chunks depending on size."""

    def __init__(self, config: Optional[DeliveryConfig] = None, sink: Optional[ArtifactSink] = None):
        self.config = config or DeliveryConfig()
        self.sink = sink or FileSink(self.config.output_dir)

    async def deliver(
        self,
        artifact: Artifact,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DeliveryResult:
        """
        Hand `artifact` to the sink.

        Args:
            artifact: Produced export.
            on_progress: Called with the delivered fraction (0-1).

        Returns:
            Where and how the artifact was delivered.
        """
        mode = choose_delivery(artifact.size, self.config.direct_limit)

        if mode == DeliveryMode.DIRECT:
            location = await self.sink.write_all(artifact.filename, artifact.data)
            if on_progress:
                on_progress(1.0)
            logger.info(f"Delivered {artifact.filename} ({artifact.size} bytes) directly")
            return DeliveryResult(artifact.filename, location, mode, artifact.size)

        logger.info(
            f"Delivering {artifact.filename} ({artifact.size} bytes) "
            f"in chunks of {self.config.chunk_size} bytes"
        )
        chunks = 0
        writer = await self.sink.open_stream(artifact.filename)
        try:
            async for chunk in iter_chunks(artifact.data, self.config.chunk_size, on_progress):
                await writer.write(chunk)
                chunks += 1
            location = await writer.finish()
        except BaseException:
            await writer.abort()
            raise

        logger.info(f"Delivered {artifact.filename} in {chunks} chunk(s)")
        return DeliveryResult(artifact.filename, location, mode, artifact.size, chunks)
