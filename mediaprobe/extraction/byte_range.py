"""
Byte-range selection per container family.

Probing only needs header and index atoms, so it reads a bounded window of
the file. Export needs every sample of the target stream, so it reads the
whole file, or the largest prefix that can be buffered when that is not
possible.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from mediaprobe.config import ExtractionConfig
from mediaprobe.media.file import BOX_EXTENSIONS
from mediaprobe.utils.memory import PressureProbe, available_memory_bytes, system_memory_pressure

logger = logging.getLogger(__name__)

# Box-structured containers keep the index (moov) at either end of the file
WINDOWED_EXTENSIONS = BOX_EXTENSIONS


class Operation(str, Enum):
    PROBE = "probe"
    EXPORT_SUBTITLE = "export_subtitle"
    EXPORT_STREAM = "export_stream"

    @property
    def is_export(self) -> bool:
        return self is not Operation.PROBE


@dataclass(frozen=True)
class ByteRange:
    """Half-open byte range ``[start, end)``."""

    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid byte range [{self.start}, {self.end})")

    @property
    def length(self) -> int:
        return self.end - self.start


def total_length(ranges: list[ByteRange]) -> int:
    return sum(r.length for r in ranges)


def merge_ranges(ranges: list[ByteRange]) -> list[ByteRange]:
    """Sort ranges and merge any that overlap or touch."""
    merged: list[ByteRange] = []
    for current in sorted(ranges, key=lambda r: r.start):
        if current.length == 0:
            continue
        if merged and current.start <= merged[-1].end:
            last = merged.pop()
            merged.append(ByteRange(last.start, max(last.end, current.end)))
        else:
            merged.append(current)
    return merged


class ByteRangeSelector:
    """
    Decides which byte ranges of a file are handed to a backend.

    Window sizes shrink as memory pressure rises: full size below
    ``medium_pressure``, half size up to ``high_pressure``, and the configured
    minimum above it.
    """

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        pressure_probe: PressureProbe = system_memory_pressure,
        available_memory: Callable[[], int] = available_memory_bytes,
    ):
        self.config = config or ExtractionConfig()
        self._pressure_probe = pressure_probe
        self._available_memory = available_memory

    def select_range(self, file_size: int, operation: Operation, extension: str) -> list[ByteRange]:
        """
        Choose the ranges to read for an operation.

        Args:
            file_size: Total byte length of the file.
            operation: Probe or export.
            extension: Lower-case extension without the dot.

        Returns:
            Non-overlapping ranges in file order, all within ``[0, file_size)``.
        """
        if file_size <= 0:
            return []

        if operation.is_export:
            return self._export_ranges(file_size)

        if extension.lower() in WINDOWED_EXTENSIONS:
            return self._windowed_ranges(file_size)

        return self._prefix_range(file_size)

    def _adaptive_size(self, full: int, minimum: int) -> int:
        pressure = self._pressure_probe()
        if pressure >= self.config.high_pressure:
            size = minimum
        elif pressure >= self.config.medium_pressure:
            size = max(minimum, full // 2)
        else:
            size = full
        if size != full:
            logger.debug(f"Memory pressure {pressure:.0%}: window reduced to {size} bytes")
        return size

    def _prefix_range(self, file_size: int) -> list[ByteRange]:
        chunk = self._adaptive_size(self.config.probe_chunk_size, self.config.probe_min_chunk_size)
        if file_size <= chunk:
            return [ByteRange(0, file_size)]
        return [ByteRange(0, chunk)]

    def _windowed_ranges(self, file_size: int) -> list[ByteRange]:
        if file_size <= self.config.mp4_whole_file_threshold:
            return [ByteRange(0, file_size)]

        window = self._adaptive_size(self.config.mp4_window_size, self.config.mp4_min_window_size)
        middle = min(self.config.mp4_middle_window_size, window)

        head = ByteRange(0, min(window, file_size))
        middle_start = max(0, file_size // 2 - middle // 2)
        mid = ByteRange(middle_start, min(file_size, middle_start + middle))
        tail = ByteRange(max(0, file_size - window), file_size)

        return merge_ranges([head, mid, tail])

    def _export_ranges(self, file_size: int) -> list[ByteRange]:
        limit = self.max_bufferable()
        if limit is None or file_size <= limit:
            return [ByteRange(0, file_size)]

        logger.warning(
            f"File of {file_size} bytes exceeds the bufferable limit of {limit} bytes; "
            f"exporting from the first {limit} bytes only, the result may be incomplete"
        )
        return [ByteRange(0, limit)]

    def max_bufferable(self) -> Optional[int]:
        """Largest export window that can be held safely, None for no limit."""
        cap = self.config.max_export_buffer
        if cap is None:
            return None
        available = self._available_memory()
        if available <= 0:
            return cap
        return min(cap, available // 2)
