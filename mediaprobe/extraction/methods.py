"""
Extraction methods.

A method binds a backend to the three engine operations. The engine picks
one per file extension and callers never see which one ran. The box method
probes with the container parser and hands exports to the transcoder, since
a structure parser cannot write streams.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional

from mediaprobe.config import ExtractionConfig
from mediaprobe.extraction.backends.base import ExecResult, MediaBackend
from mediaprobe.extraction.box_mapper import BoxMetadataMapper
from mediaprobe.extraction.diagnostic_parser import DiagnosticTextParser
from mediaprobe.extraction.errors import BackendError, ExportFallbackExhausted
from mediaprobe.extraction.naming import (
    FALLBACK_SUBTITLE_CODEC,
    FALLBACK_SUBTITLE_EXTENSION,
    StreamTarget,
    stream_copy_target,
    stream_reencode_target,
    subtitle_extension,
    subtitle_filename,
    subtitle_mime_type,
)
from mediaprobe.media.models import Artifact, ArtifactKind, VideoMetadata

logger = logging.getLogger(__name__)

Executor = Callable[[MediaBackend, list[str]], Awaitable[ExecResult]]


@dataclass(frozen=True)
class StagedInput:
    """A file's selected bytes, written into the workspace under `name`."""

    name: str
    source_name: str
    source_size: int
    staged_size: int


class ExtractionMethod(ABC):
    """Probe and export operations for one family of containers."""

    name: str = "unknown"

    @abstractmethod
    async def probe(self, staged: StagedInput) -> VideoMetadata:
        """Read metadata from a staged input."""

    @abstractmethod
    async def export_subtitle(
        self,
        staged: StagedInput,
        stream_index: int,
        language: Optional[str] = None,
        codec: Optional[str] = None,
        forced: bool = False,
    ) -> Artifact:
        """Extract one subtitle track."""

    @abstractmethod
    async def export_stream(
        self,
        staged: StagedInput,
        stream_index: int,
        stream_type: str,
        codec: Optional[str] = None,
    ) -> Artifact:
        """Extract one audio or video stream."""


class TranscoderExports:
    """Export operations shared by every method, run through ffmpeg."""

    def __init__(self, transcoder: MediaBackend, execute: Executor, config: ExtractionConfig):
        self.transcoder = transcoder
        self._execute = execute
        self.config = config

    async def _attempt(self, staged: StagedInput, stream_index: int, codec_args: list[str], output: str) -> bool:
        args = ["-y", "-i", staged.name, "-map", f"0:{stream_index}", *codec_args, output]
        result = await self._execute(self.transcoder, args)
        produced = output in self.transcoder.list_files()
        if result.ok and produced:
            data_ok = self.transcoder.workspace.path_for(output).stat().st_size > 0
            if data_ok:
                return True

        tail = " | ".join(result.logs[-3:]) if result.logs else "no output"
        logger.warning(f"Export attempt for stream {stream_index} -> {output} failed: {tail}")
        logger.debug(f"Backend log for {output}:\n{result.log_text}")
        if produced:
            try:
                await self.transcoder.delete_file(output)
            except OSError as e:
                logger.warning(f"Failed to remove partial output {output}: {e}")
        return False

    async def export_subtitle(
        self,
        staged: StagedInput,
        stream_index: int,
        language: Optional[str],
        codec: Optional[str],
        forced: bool,
    ) -> Artifact:
        native_ext = subtitle_extension(codec)
        native_name = subtitle_filename(staged.source_name, language, codec, forced, native_ext)
        native_args = ["-c:s", "copy"]
        if native_ext == "mks":
            native_args += ["-f", "matroska"]

        attempts = [native_name]
        if await self._attempt(staged, stream_index, native_args, native_name):
            output = native_name
        else:
            fallback_name = subtitle_filename(
                staged.source_name, language, codec, forced, FALLBACK_SUBTITLE_EXTENSION
            )
            attempts.append(fallback_name)
            logger.info(f"Native subtitle extraction failed, converting stream {stream_index} to SRT")
            if not await self._attempt(staged, stream_index, ["-c:s", FALLBACK_SUBTITLE_CODEC], fallback_name):
                raise ExportFallbackExhausted(
                    f"Failed to extract subtitle stream {stream_index}: "
                    f"native and {FALLBACK_SUBTITLE_CODEC.upper()} conversion both failed",
                    attempts=attempts,
                )
            output = fallback_name

        data = await self.transcoder.read_file(output)
        ext = output.rsplit(".", 1)[-1]
        return Artifact(
            filename=output,
            data=data,
            kind=ArtifactKind.SUBTITLE,
            mime_type=subtitle_mime_type(ext),
        )

    async def export_stream(
        self,
        staged: StagedInput,
        stream_index: int,
        stream_type: str,
        codec: Optional[str],
    ) -> Artifact:
        copy = stream_copy_target(staged.source_name, stream_index, stream_type, codec)
        target: StreamTarget = copy

        if not await self._attempt(staged, stream_index, list(copy.codec_args), copy.filename):
            target = stream_reencode_target(
                staged.source_name,
                stream_index,
                stream_type,
                crf=self.config.video_crf,
                preset=self.config.video_preset,
                audio_bitrate=self.config.audio_bitrate,
            )
            logger.info(f"Stream copy failed, re-encoding stream {stream_index} to {target.filename}")
            if not await self._attempt(staged, stream_index, list(target.codec_args), target.filename):
                raise ExportFallbackExhausted(
                    f"Failed to extract {stream_type} stream {stream_index}: "
                    f"stream copy and re-encode both failed",
                    attempts=[copy.filename, target.filename],
                )

        data = await self.transcoder.read_file(target.filename)
        return Artifact(
            filename=target.filename,
            data=data,
            kind=ArtifactKind.STREAM,
            mime_type=target.mime_type,
        )


class TextExtractionMethod(ExtractionMethod):
    """Probe by mining ffmpeg's diagnostic log."""

    def __init__(
        self,
        backend: MediaBackend,
        execute: Executor,
        config: ExtractionConfig,
        parser: Optional[DiagnosticTextParser] = None,
    ):
        self.backend = backend
        self.name = backend.method_name
        self._execute = execute
        self.parser = parser or DiagnosticTextParser()
        self.exports = TranscoderExports(backend, execute, config)

    async def probe(self, staged: StagedInput) -> VideoMetadata:
        logs: list[str] = []
        self.backend.on_log(logs.append)
        try:
            # ffmpeg exits non-zero when no output is given; the log is what matters
            await self._execute(self.backend, ["-i", staged.name])
        finally:
            self.backend.off_log(logs.append)

        if not logs:
            raise BackendError(
                "FFmpeg did not produce any output. The file might be corrupted or unsupported."
            )

        return self.parser.parse("\n".join(logs), filename=staged.source_name, file_size=staged.source_size)

    async def export_subtitle(self, staged, stream_index, language=None, codec=None, forced=False) -> Artifact:
        return await self.exports.export_subtitle(staged, stream_index, language, codec, forced)

    async def export_stream(self, staged, stream_index, stream_type, codec=None) -> Artifact:
        return await self.exports.export_stream(staged, stream_index, stream_type, codec)


class BoxExtractionMethod(ExtractionMethod):
    """Probe by reading the container's box structure."""

    def __init__(
        self,
        backend: MediaBackend,
        transcoder: MediaBackend,
        execute: Executor,
        config: ExtractionConfig,
        mapper: Optional[BoxMetadataMapper] = None,
    ):
        self.backend = backend
        self.name = backend.method_name
        self._execute = execute
        self.mapper = mapper or BoxMetadataMapper()
        self.exports = TranscoderExports(transcoder, execute, config)

    async def probe(self, staged: StagedInput) -> VideoMetadata:
        result = await self._execute(self.backend, [staged.name])
        if result.info is None:
            raise BackendError("Container parser returned no info")
        return self.mapper.map(result.info, filename=staged.source_name, file_size=staged.source_size)

    async def export_subtitle(self, staged, stream_index, language=None, codec=None, forced=False) -> Artifact:
        return await self.exports.export_subtitle(staged, stream_index, language, codec, forced)

    async def export_stream(self, staged, stream_index, stream_type, codec=None) -> Artifact:
        return await self.exports.export_stream(staged, stream_index, stream_type, codec)
