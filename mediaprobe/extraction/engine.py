"""
Extraction engine.

Owns the two backends and their shared workspace, picks a method per file
extension, and runs each probe or export inside the single extraction
session. The workspace is scratch space: it is emptied before and after
every operation.
"""

import asyncio
import itertools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Optional, TypeVar

from mediaprobe.config import MediaProbeConfig, get_config
from mediaprobe.extraction.backends import (
    BackendWorkspace,
    ExecResult,
    FFmpegBackend,
    FFprobeBoxBackend,
    MediaBackend,
)
from mediaprobe.extraction.byte_range import ByteRangeSelector, Operation
from mediaprobe.extraction.errors import (
    BackendLoadError,
    ExtractionTimeout,
    ValidationError,
    WriteError,
)
from mediaprobe.extraction.methods import (
    BoxExtractionMethod,
    ExtractionMethod,
    StagedInput,
    TextExtractionMethod,
)
from mediaprobe.extraction.retry import RetryConfig, retry_with_backoff
from mediaprobe.media.file import BOX_EXTENSIONS, SUPPORTED_EXTENSIONS, MediaFile, get_extension
from mediaprobe.media.models import Artifact, VideoMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

STREAM_TYPES = ("video", "audio")


class ExtractionSession:
    """The one active use of the backends. Issued only by `SessionPermit`."""

    def __init__(self, session_id: int, file: MediaFile, operation: Operation, method: str):
        self.session_id = session_id
        self.file = file
        self.operation = operation
        self.method = method
        self.started_at = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def __repr__(self) -> str:
        return (
            f"<ExtractionSession #{self.session_id} {self.operation.value} "
            f"{self.file.name} via {self.method}>"
        )


class SessionPermit:
    """
    Issues extraction sessions one at a time.

    A session must be released before the next is issued; later callers wait
    on the lock until then.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._active: Optional[ExtractionSession] = None
        self._ids = itertools.count(1)

    @property
    def active(self) -> Optional[ExtractionSession]:
        return self._active

    @asynccontextmanager
    async def acquire(
        self, file: MediaFile, operation: Operation, method: str
    ) -> AsyncIterator[ExtractionSession]:
        async with self._lock:
            session = ExtractionSession(next(self._ids), file, operation, method)
            self._active = session
            logger.debug(f"Opened {session}")
            try:
                yield session
            finally:
                self._active = None
                logger.debug(f"Closed {session} after {session.elapsed:.2f}s")


class ExtractionEngine:
    """
    Probe and export entry point.

    Callers see three operations and never learn which backend ran; the
    method name is available through `method_for` for display.
    """

    def __init__(
        self,
        config: Optional[MediaProbeConfig] = None,
        text_backend: Optional[MediaBackend] = None,
        box_backend: Optional[MediaBackend] = None,
        selector: Optional[ByteRangeSelector] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or get_config()
        ffmpeg_config = self.config.ffmpeg

        if text_backend is None:
            workspace = box_backend.workspace if box_backend else BackendWorkspace(ffmpeg_config.scratch_dir)
            text_backend = FFmpegBackend(workspace, ffmpeg_config.path, ffmpeg_config.load_timeout)
        if box_backend is None:
            box_backend = FFprobeBoxBackend(
                text_backend.workspace, ffmpeg_config.ffprobe_path, ffmpeg_config.load_timeout
            )

        self.text_backend = text_backend
        self.box_backend = box_backend
        self.workspace = text_backend.workspace
        self.selector = selector or ByteRangeSelector(self.config.extraction)
        self._sleep = sleep

        extraction = self.config.extraction
        self._text_method = TextExtractionMethod(text_backend, self._execute, extraction)
        self._box_method = BoxExtractionMethod(box_backend, text_backend, self._execute, extraction)

        self._permit = SessionPermit()
        self._ready = False
        self.load_error: Optional[BackendLoadError] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def active_session(self) -> Optional[ExtractionSession]:
        return self._permit.active

    async def load(self) -> None:
        """
        Start both backends.

        Raises:
            BackendLoadError: If either backend cannot be started. The engine
                stays unusable until `load` succeeds.
        """
        if self._ready:
            return
        try:
            await self.text_backend.load()
            await self.box_backend.load()
        except BackendLoadError as e:
            self.load_error = e
            logger.error(f"Media engine failed to load: {e.message}")
            raise

        self.load_error = None
        self._ready = True
        logger.info("Extraction engine ready")

    async def close(self) -> None:
        self._ready = False
        self.workspace.destroy()

    def method_for(self, filename: str) -> ExtractionMethod:
        """Backend selection by extension."""
        if get_extension(filename) in BOX_EXTENSIONS:
            return self._box_method
        return self._text_method

    # Operations

    async def probe(self, file: MediaFile) -> VideoMetadata:
        """Read technical metadata for `file`."""
        method = self.method_for(file.name)
        return await self._run(
            file, Operation.PROBE, method,
            lambda staged: method.probe(staged),
        )

    async def export_subtitle(
        self,
        file: MediaFile,
        stream_index: int,
        language: Optional[str] = None,
        codec: Optional[str] = None,
        forced: bool = False,
    ) -> Artifact:
        """
        Extract one subtitle track in its native format, falling back to SRT.

        Args:
            file: Source media file.
            stream_index: Backend stream index of the subtitle track.
            language: Track language, used for the output name.
            codec: Track codec, used to pick the native extension.
            forced: Whether the track is a forced track.

        Raises:
            ExportFallbackExhausted: If both attempts fail.
        """
        method = self.method_for(file.name)
        return await self._run(
            file, Operation.EXPORT_SUBTITLE, method,
            lambda staged: method.export_subtitle(staged, stream_index, language, codec, forced),
        )

    async def export_stream(
        self,
        file: MediaFile,
        stream_index: int,
        stream_type: str,
        codec: Optional[str] = None,
    ) -> Artifact:
        """
        Extract one audio or video stream by stream copy, re-encoding once on failure.

        Raises:
            ValidationError: If `stream_type` is not video or audio.
            ExportFallbackExhausted: If both attempts fail.
        """
        if stream_type not in STREAM_TYPES:
            raise ValidationError(f"Cannot export stream of type {stream_type!r}")
        method = self.method_for(file.name)
        return await self._run(
            file, Operation.EXPORT_STREAM, method,
            lambda staged: method.export_stream(staged, stream_index, stream_type, codec),
        )

    # Internals

    def validate(self, file: MediaFile) -> None:
        """
        Raises:
            ValidationError: For an empty file or unsupported extension.
        """
        if file.size <= 0:
            raise ValidationError("File appears to be empty")
        if file.extension not in SUPPORTED_EXTENSIONS:
            supported = ", ".join(sorted(e.upper() for e in SUPPORTED_EXTENSIONS))
            raise ValidationError(
                f"Unsupported file format: {file.name}. Please use one of: {supported}"
            )

    async def _run(
        self,
        file: MediaFile,
        operation: Operation,
        method: ExtractionMethod,
        action: Callable[[StagedInput], Awaitable[T]],
    ) -> T:
        self.validate(file)
        if not self._ready:
            await self.load()

        async with self._permit.acquire(file, operation, method.name):
            await self.cleanup()
            try:
                staged = await self._stage(file, operation, method)
                logger.info(f"{operation.value} {file.name} via {method.name}")
                return await action(staged)
            finally:
                await self.cleanup()

    async def _stage(self, file: MediaFile, operation: Operation, method: ExtractionMethod) -> StagedInput:
        ranges = self.selector.select_range(file.size, operation, file.extension)
        chunks = [await file.read_range(r.start, r.end) for r in ranges]
        data = b"".join(chunks)
        name = f"input.{file.extension}"

        extraction = self.config.extraction
        retry_config = RetryConfig(
            attempts=extraction.write_retries,
            backoff_base=extraction.write_backoff_base,
            timeout=extraction.write_timeout,
        )
        backend = self._backend_of(method)
        try:
            await retry_with_backoff(
                lambda: backend.write(name, data),
                retry_config,
                operation_name=f"Write {name}",
                retry_on=(OSError,),
            )
        except OSError as e:
            raise WriteError(
                f"Failed to load {file.name} into the media engine: {e}", original_error=e
            )

        logger.debug(
            f"Staged {len(data)} of {file.size} bytes from {file.name} "
            f"in {len(ranges)} range(s)"
        )
        return StagedInput(name=name, source_name=file.name, source_size=file.size, staged_size=len(data))

    def _backend_of(self, method: ExtractionMethod) -> MediaBackend:
        return self.box_backend if method is self._box_method else self.text_backend

    async def _execute(self, backend: MediaBackend, args: list[str]) -> ExecResult:
        timeout = self.config.extraction.execute_timeout
        try:
            return await asyncio.wait_for(backend.execute(args), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ExtractionTimeout(
                f"{backend.method_name} did not finish within {timeout}s", original_error=e
            )

    async def cleanup(self) -> None:
        """Delete every scratch file. Failures are logged, never raised."""
        extraction = self.config.extraction
        failed: list[str] = []

        for attempt in range(extraction.cleanup_retries):
            failed = []
            for name in self.text_backend.list_files():
                try:
                    await self.text_backend.delete_file(name)
                except (OSError, ValueError) as e:
                    logger.debug(f"Could not delete scratch file {name}: {e}")
                    failed.append(name)
            if not failed:
                return
            await self._sleep(extraction.cleanup_backoff * (attempt + 1))

        logger.warning(f"Leaving {len(failed)} scratch file(s) behind: {', '.join(failed)}")
