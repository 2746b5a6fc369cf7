"""
Media file handles.

A `MediaFile` knows its name and size and can read any contiguous byte range
without loading the whole file. The engine only ever reads through this
interface and never keeps a handle after a job completes.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

# Containers the box backend understands (ISO base media family)
BOX_EXTENSIONS = frozenset({"mp4", "mov", "m4v", "3gp", "3g2", "f4v"})

# Containers routed to the diagnostic-text backend
TEXT_EXTENSIONS = frozenset({
    "mkv", "avi", "wmv", "flv", "webm", "ogv", "mp3", "wav", "aac",
})

SUPPORTED_EXTENSIONS = BOX_EXTENSIONS | TEXT_EXTENSIONS


def get_extension(filename: str) -> str:
    """Lower-case extension without the dot ('' when there is none)."""
    _, dot, ext = filename.rpartition(".")
    if not dot:
        return ""
    return ext.lower()


class MediaFile(ABC):
    """Read-only access to a media file's bytes."""

    @property
    @abstractmethod
    def name(self) -> str:
        """File name including extension."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Total byte length."""

    @abstractmethod
    async def read_range(self, start: int, end: int) -> bytes:
        """Read bytes ``[start, end)``."""

    @property
    def extension(self) -> str:
        return get_extension(self.name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} ({self.size} bytes)>"


class LocalMediaFile(MediaFile):
    """A file on the local filesystem."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._size = self.path.stat().st_size

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size(self) -> int:
        return self._size

    async def read_range(self, start: int, end: int) -> bytes:
        start = max(0, start)
        end = min(end, self._size)
        if end <= start:
            return b""

        def _read() -> bytes:
            with open(self.path, "rb") as f:
                f.seek(start)
                return f.read(end - start)

        return await asyncio.get_running_loop().run_in_executor(None, _read)


class MemoryMediaFile(MediaFile):
    """An in-memory payload, used for uploads and tests."""

    def __init__(self, name: str, data: bytes):
        self._name = name
        self._data = data

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return len(self._data)

    async def read_range(self, start: int, end: int) -> bytes:
        return self._data[max(0, start):min(end, len(self._data))]


def is_supported_file(path: Path) -> bool:
    return get_extension(path.name) in SUPPORTED_EXTENSIONS


def discover_media_files(paths: Iterable[Path | str]) -> list[Path]:
    """
    Expand files and directories into a list of supported media files.

    Directories are walked recursively. Explicitly named files are kept even
    when their extension is unsupported so the batch can report them as
    failed instead of silently dropping them.
    """
    found: list[Path] = []
    for entry in paths:
        path = Path(entry)
        if path.is_dir():
            discovered = []
            for root, dirs, files in os.walk(path):
                dirs[:] = [d for d in dirs if not d.startswith(".")]
                for name in files:
                    candidate = Path(root) / name
                    if not name.startswith(".") and is_supported_file(candidate):
                        discovered.append(candidate)
            logger.debug(f"Discovered {len(discovered)} media files under {path}")
            found.extend(sorted(discovered))
        elif path.is_file():
            found.append(path)
        else:
            logger.warning(f"Skipping missing path: {path}")
    return found
