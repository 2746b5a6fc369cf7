"""
Box-structure backend built on ffprobe's JSON output.

ffprobe reads the container's own structure (``moov``/``trak`` atoms for the
ISO family) and reports exact timescales and sample counts. The JSON is
reshaped into a box-parser style info graph that `BoxMetadataMapper` maps.
"""

import asyncio
import json
import logging
import shutil
from typing import Any, Optional

from mediaprobe.extraction.backends.base import (
    BackendWorkspace,
    ExecResult,
    MediaBackend,
    terminate_process,
)
from mediaprobe.extraction.errors import BackendError, BackendLoadError, classify_load_error

logger = logging.getLogger(__name__)

TRACK_TYPES = {
    "video": "video",
    "audio": "audio",
    "subtitle": "text",
}


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _timescale(time_base: Optional[str]) -> Optional[int]:
    """``"1/12800"`` -> 12800"""
    if not time_base or "/" not in time_base:
        return None
    num, den = time_base.split("/", 1)
    if _int_or_none(num) != 1:
        return None
    return _int_or_none(den)


def build_info(data: dict[str, Any]) -> dict[str, Any]:
    """
    Reshape ffprobe ``-show_format -show_streams`` JSON into a track graph.

    Args:
        data: Parsed ffprobe JSON.

    Returns:
        Info dict with movie ``timescale``/``duration``/``bitrate`` and ``tracks``.
    """
    fmt = data.get("format", {})
    info: dict[str, Any] = {
        "brand": (fmt.get("tags") or {}).get("major_brand", "").strip() or fmt.get("format_name"),
        "bitrate": _int_or_none(fmt.get("bit_rate")),
        "tracks": [],
    }

    try:
        seconds = float(fmt["duration"])
        info["timescale"] = 1000
        info["duration"] = round(seconds * 1000)
    except (KeyError, TypeError, ValueError):
        pass

    for stream in data.get("streams", []):
        track_type = TRACK_TYPES.get(stream.get("codec_type"))
        if track_type is None:
            continue

        tags = stream.get("tags") or {}
        disposition = stream.get("disposition") or {}
        track: dict[str, Any] = {
            "index": stream.get("index"),
            "type": track_type,
            "codec": stream.get("codec_name"),
            "profile": stream.get("profile"),
            "timescale": _timescale(stream.get("time_base")),
            "duration": _int_or_none(stream.get("duration_ts")),
            "nb_samples": _int_or_none(stream.get("nb_frames")),
            "bitrate": _int_or_none(stream.get("bit_rate")),
            "language": tags.get("language"),
            "default": bool(disposition.get("default")),
            "forced": bool(disposition.get("forced")),
        }

        if track_type == "video":
            track["track_width"] = stream.get("width")
            track["track_height"] = stream.get("height")
            track["pix_fmt"] = stream.get("pix_fmt")
        elif track_type == "audio":
            track["audio"] = {
                "sample_rate": _int_or_none(stream.get("sample_rate")),
                "channel_count": stream.get("channels"),
                "channel_layout": stream.get("channel_layout"),
            }

        info["tracks"].append(track)

    return info


class FFprobeBoxBackend(MediaBackend):
    """Structured container parser. `execute` returns the info graph."""

    method_name = "FFprobe"

    def __init__(
        self,
        workspace: BackendWorkspace,
        ffprobe_path: Optional[str] = None,
        load_timeout: float = 15.0,
    ):
        super().__init__(workspace)
        self.ffprobe_path = ffprobe_path or shutil.which("ffprobe") or "ffprobe"
        self.load_timeout = load_timeout

    async def load(self) -> None:
        if self._loaded:
            return
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffprobe_path, "-hide_banner", "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            await asyncio.wait_for(process.communicate(), timeout=self.load_timeout)
        except asyncio.TimeoutError as e:
            raise BackendLoadError(
                f"ffprobe did not respond within {self.load_timeout}s", original_error=e
            )
        except OSError as e:
            raise BackendLoadError(
                f"Unable to start ffprobe at {self.ffprobe_path}: {e}",
                cause=classify_load_error(e),
                original_error=e,
            )

        if process.returncode != 0:
            raise BackendLoadError("ffprobe -version failed")

        self.workspace.ensure()
        self._loaded = True
        logger.info("FFprobe backend ready")

    async def execute(self, args: list[str]) -> ExecResult:
        """
        Parse the container named by the last argument.

        Raises:
            BackendError: If ffprobe fails or prints invalid JSON.
        """
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            *args,
        ]
        logger.debug(f"Running: {' '.join(cmd)}")

        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(self.workspace.root),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            await terminate_process(process, "ffprobe")
            raise

        logs = stderr.decode("utf-8", errors="replace").splitlines()
        for line in logs:
            self._emit_log(line)

        if process.returncode != 0:
            error = "\n".join(logs) or "Unknown error"
            raise BackendError(f"Container parsing failed: {error}")

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise BackendError(f"Container parser output parse error: {e}", original_error=e)

        return ExecResult(returncode=0, logs=logs, info=build_info(data))
