"""
Batch coordinator.

Drives a FIFO queue of files through the extraction engine one at a time.
Every item moves Waiting -> Processing -> Completed | Failed | TimedOut and
per-file errors never stop the batch.

Timings follow a fixed rhythm per item: an admission delay before the probe
starts, a hard deadline on the probe itself, and a cooldown after it settles
so the backend can finish its teardown before the next write.
"""

import asyncio
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from mediaprobe.config import BatchConfig
from mediaprobe.extraction.engine import ExtractionEngine
from mediaprobe.extraction.errors import ExtractionTimeout, describe_failure
from mediaprobe.media.file import MediaFile
from mediaprobe.media.models import VideoMetadata

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Processing timeout - file took too long to process"

ChangeListener = Callable[[], None]


class ItemState(str, Enum):
    WAITING = "waiting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({ItemState.COMPLETED, ItemState.FAILED, ItemState.TIMED_OUT})


@dataclass
class BatchItem:
    """One file in the batch. Mutated only by the coordinator."""

    id: int
    file: MediaFile
    metadata: Optional[VideoMetadata] = None
    method: str = "Unknown"
    state: ItemState = ItemState.WAITING
    error: Optional[str] = None

    @property
    def is_processing(self) -> bool:
        return self.state == ItemState.PROCESSING

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.file.name,
            "size": self.file.size,
            "method": self.method,
            "state": self.state.value,
            "processing": self.is_processing,
            "error": self.error,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


@dataclass
class BatchProgress:
    """Aggregate progress. Only settled items count."""

    total: int = 0
    settled: int = 0
    current: Optional[str] = None
    failed: int = 0

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        # half-up, never banker's rounding
        return int(self.settled * 100 / self.total + 0.5)

    @property
    def finished(self) -> bool:
        return self.total > 0 and self.settled == self.total

    @property
    def text(self) -> str:
        if self.finished:
            return "All files processed!"
        if self.total == 0:
            return ""
        return f"Processing file {self.settled + 1} of {self.total}"


@dataclass
class _Slot:
    """The item currently holding the processing slot and its task."""

    item: BatchItem
    task: Optional[asyncio.Task] = field(default=None)


class BatchCoordinator:
    """
    Single-flight queue in front of an `ExtractionEngine`.

    `tick` admits the head of the queue only when nothing is processing and
    the engine is ready. It runs after every submission and every settlement.
    """

    def __init__(
        self,
        engine: ExtractionEngine,
        config: Optional[BatchConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.engine = engine
        self.config = config or BatchConfig()
        self._sleep = sleep

        self.items: list[BatchItem] = []
        self._queue: deque[BatchItem] = deque()
        self._slot: Optional[_Slot] = None
        self._ids = itertools.count(1)
        self._listeners: list[ChangeListener] = []
        self._idle = asyncio.Event()
        self._idle.set()

    # State

    @property
    def processing(self) -> Optional[BatchItem]:
        return self._slot.item if self._slot else None

    @property
    def queued(self) -> list[BatchItem]:
        return list(self._queue)

    @property
    def is_idle(self) -> bool:
        return self._slot is None and not self._queue

    def progress(self) -> BatchProgress:
        settled = [item for item in self.items if item.is_terminal]
        current = self.processing
        return BatchProgress(
            total=len(self.items),
            settled=len(settled),
            current=current.file.name if current else None,
            failed=sum(1 for item in settled if item.state != ItemState.COMPLETED),
        )

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Batch listener error: {e}")

    # Actions

    def submit(self, files: Iterable[MediaFile]) -> list[BatchItem]:
        """Append files to the queue and admit the head if the slot is free."""
        added = []
        for file in files:
            item = BatchItem(id=next(self._ids), file=file)
            self.items.append(item)
            self._queue.append(item)
            added.append(item)

        if added:
            self._idle.clear()
            logger.info(f"Queued {len(added)} file(s), {len(self._queue)} waiting")
            self._notify()
            self.tick()
        return added

    def clear(self) -> None:
        """Drop every item. An in-flight probe is cancelled."""
        self._queue.clear()
        self.items = []
        slot, self._slot = self._slot, None
        if slot and slot.task and not slot.task.done():
            slot.task.cancel()
        self._idle.set()
        self._notify()

    async def wait_idle(self) -> None:
        """Wait until the queue is drained and nothing is processing."""
        await self._idle.wait()

    def tick(self) -> None:
        """Admit the next waiting item if possible."""
        if not self._queue or self._slot is not None:
            return
        if not self.engine.is_ready:
            logger.debug("Engine not ready, holding queue")
            return

        item = self._queue.popleft()
        item.state = ItemState.PROCESSING
        item.method = self.engine.method_for(item.file.name).name
        slot = _Slot(item)
        self._slot = slot
        logger.info(f"Processing {item.file.name} via {item.method}")
        slot.task = asyncio.get_running_loop().create_task(self._process(slot))
        self._notify()

    # Internals

    async def _process(self, slot: _Slot) -> None:
        item = slot.item
        try:
            await self._sleep(self.config.admission_delay)
            await self._probe(item)
            self._notify()

            if item.state == ItemState.COMPLETED:
                await self._sleep(self.config.success_cooldown)
            else:
                await self._sleep(self.config.error_cooldown)
        finally:
            # clear() may have handed the slot to a newer batch already
            if self._slot is slot:
                self._slot = None
            if self._slot is None and not self._queue:
                self._idle.set()
            self._notify()
            self.tick()

    async def _probe(self, item: BatchItem) -> None:
        work = asyncio.ensure_future(self.engine.probe(item.file))
        try:
            done, _ = await asyncio.wait({work}, timeout=self.config.item_timeout)
        except asyncio.CancelledError:
            work.cancel()
            raise

        if work not in done:
            work.cancel()
            work.add_done_callback(_discard_result)
            item.state = ItemState.TIMED_OUT
            item.error = TIMEOUT_MESSAGE
            logger.warning(
                f"{item.file.name} did not settle within {self.config.item_timeout}s, "
                f"marking as timed out"
            )
            return

        try:
            item.metadata = work.result()
            item.state = ItemState.COMPLETED
            logger.info(f"Completed {item.file.name}")
        except ExtractionTimeout as e:
            item.state = ItemState.TIMED_OUT
            item.error = e.user_message
            logger.warning(f"{item.file.name} timed out: {e.message}")
        except Exception as e:
            item.state = ItemState.FAILED
            item.error = describe_failure(e)
            logger.error(f"Failed to process {item.file.name}: {item.error}")


def _discard_result(task: asyncio.Future) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Abandoned probe finished with: {task.exception()}")
