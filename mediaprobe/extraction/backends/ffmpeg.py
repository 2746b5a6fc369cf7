"""
FFmpeg diagnostic-text backend.

Runs ffmpeg inside the shared workspace and publishes every stderr line to
the log subscribers while the command executes. Probing is ``-i <input>``
with no output, which makes ffmpeg print the stream listing and exit with a
non-zero status; callers judge success from the log, not the exit code.
"""

import asyncio
import logging
import shutil
from typing import Optional

from mediaprobe.extraction.backends.base import (
    BackendWorkspace,
    ExecResult,
    MediaBackend,
    terminate_process,
)
from mediaprobe.extraction.errors import BackendLoadError, classify_load_error

logger = logging.getLogger(__name__)


class FFmpegBackend(MediaBackend):
    """Text backend built on the ffmpeg binary."""

    method_name = "FFmpeg"

    def __init__(
        self,
        workspace: BackendWorkspace,
        ffmpeg_path: Optional[str] = None,
        load_timeout: float = 15.0,
    ):
        super().__init__(workspace)
        self.ffmpeg_path = ffmpeg_path or shutil.which("ffmpeg") or "ffmpeg"
        self.load_timeout = load_timeout
        self.version: Optional[str] = None

    async def load(self) -> None:
        if self._loaded:
            return

        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_path, "-hide_banner", "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.load_timeout
            )
        except asyncio.TimeoutError as e:
            raise BackendLoadError(
                f"ffmpeg did not respond within {self.load_timeout}s", original_error=e
            )
        except OSError as e:
            raise BackendLoadError(
                f"Unable to start ffmpeg at {self.ffmpeg_path}: {e}",
                cause=classify_load_error(e),
                original_error=e,
            )

        if process.returncode != 0:
            error = stderr.decode("utf-8", errors="replace").strip() or "unknown error"
            raise BackendLoadError(f"ffmpeg -version failed: {error}")

        first_line = stdout.decode("utf-8", errors="replace").split("\n")[0]
        self.version = first_line.strip()
        self.workspace.ensure()
        self._loaded = True
        logger.info(f"FFmpeg backend ready: {self.version}")

    async def execute(self, args: list[str]) -> ExecResult:
        """
        Run ffmpeg with ``args`` in the workspace.

        Cancelling the awaiting task terminates the process.
        """
        cmd = [self.ffmpeg_path, "-hide_banner", "-nostdin", *args]
        logger.debug(f"Running: {' '.join(cmd)}")

        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(self.workspace.root),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )

        logs: list[str] = []
        try:
            assert process.stderr is not None
            async for raw in process.stderr:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                logs.append(line)
                logger.debug(f"ffmpeg: {line}")
                self._emit_log(line)
            returncode = await process.wait()
        except asyncio.CancelledError:
            await terminate_process(process, "ffmpeg")
            raise

        return ExecResult(returncode=returncode, logs=logs)
