"""
Backend capability contract.

A backend is an external media engine driven through a small set of
operations: load it, write named inputs into its working area, execute a
command, read named outputs back and delete them. The working area is one
scratch directory shared by every backend the engine owns, so only one
logical operation may touch it at a time.
"""

import asyncio
import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

LogHandler = Callable[[str], None]


class BackendWorkspace:
    """
    Scratch directory acting as the backends' virtual filesystem.

    Names are bare file names; anything with a path component is rejected.
    """

    def __init__(self, parent: Optional[str] = None, prefix: str = "mediaprobe-"):
        self._parent = parent
        self._prefix = prefix
        self._root: Optional[Path] = None

    @property
    def root(self) -> Path:
        if self._root is None:
            if self._parent:
                Path(self._parent).mkdir(parents=True, exist_ok=True)
            self._root = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._parent))
            logger.debug(f"Created backend workspace {self._root}")
        return self._root

    def ensure(self) -> Path:
        """Create the scratch directory if it does not exist yet."""
        return self.root

    def path_for(self, name: str) -> Path:
        if not name or Path(name).name != name or name in (".", ".."):
            raise ValueError(f"Invalid workspace file name: {name!r}")
        return self.root / name

    async def write(self, name: str, data: bytes) -> None:
        path = self.path_for(name)
        await asyncio.get_running_loop().run_in_executor(None, path.write_bytes, data)

    async def read(self, name: str) -> bytes:
        path = self.path_for(name)
        return await asyncio.get_running_loop().run_in_executor(None, path.read_bytes)

    async def delete(self, name: str) -> None:
        path = self.path_for(name)
        await asyncio.get_running_loop().run_in_executor(None, path.unlink)

    def list_files(self) -> list[str]:
        if self._root is None or not self._root.exists():
            return []
        return sorted(p.name for p in self._root.iterdir() if p.is_file())

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def destroy(self) -> None:
        if self._root is not None:
            shutil.rmtree(self._root, ignore_errors=True)
            logger.debug(f"Removed backend workspace {self._root}")
            self._root = None


@dataclass
class ExecResult:
    """Outcome of one backend execution."""

    returncode: int
    logs: list[str] = field(default_factory=list)
    info: Optional[dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def log_text(self) -> str:
        return "\n".join(self.logs)


class MediaBackend(ABC):
    """Abstract media engine with a shared working area."""

    #: Extraction method name reported to callers
    method_name: str = "unknown"

    def __init__(self, workspace: BackendWorkspace):
        self.workspace = workspace
        self._loaded = False
        self._log_handlers: list[LogHandler] = []

    @property
    def loaded(self) -> bool:
        return self._loaded

    @abstractmethod
    async def load(self) -> None:
        """
        Initialise the engine.

        Raises:
            BackendLoadError: If the engine cannot be started.
        """

    @abstractmethod
    async def execute(self, args: list[str]) -> ExecResult:
        """Run the engine with ``args`` inside the working area."""

    async def write(self, name: str, data: bytes) -> None:
        await self.workspace.write(name, data)

    async def read_file(self, name: str) -> bytes:
        return await self.workspace.read(name)

    async def delete_file(self, name: str) -> None:
        await self.workspace.delete(name)

    def list_files(self) -> list[str]:
        return self.workspace.list_files()

    def on_log(self, handler: LogHandler) -> None:
        """Subscribe to diagnostic log lines emitted during `execute`."""
        self._log_handlers.append(handler)

    def off_log(self, handler: LogHandler) -> None:
        if handler in self._log_handlers:
            self._log_handlers.remove(handler)

    def _emit_log(self, line: str) -> None:
        for handler in list(self._log_handlers):
            try:
                handler(line)
            except Exception as e:
                logger.error(f"Log handler error: {e}")


async def terminate_process(process: asyncio.subprocess.Process, name: str) -> None:
    """Terminate a subprocess, force killing it if it does not exit."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
            logger.info(f"Terminated {name} (pid {process.pid})")
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Force killed {name} (pid {process.pid})")
    except ProcessLookupError:
        pass
