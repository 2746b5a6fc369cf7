"""Health check API endpoint for MediaProbe"""

import logging
import platform
import subprocess
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request

from mediaprobe import __version__
from mediaprobe.config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def check_binary(path: str, label: str) -> dict[str, Any]:
    """Check that a media binary runs and report its version line."""
    try:
        result = subprocess.run(
            [path, "-version"],
            check=False,
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return {
                "status": "ok",
                "version": result.stdout.split("\n")[0],
                "path": path,
            }
        return {
            "status": "error",
            "error": f"{label} returned non-zero exit code",
        }
    except FileNotFoundError:
        return {
            "status": "error",
            "error": f"{label} not found in PATH",
        }
    except subprocess.TimeoutExpired:
        return {
            "status": "error",
            "error": f"{label} check timed out",
        }
    except OSError as e:
        return {
            "status": "error",
            "error": str(e),
        }


@router.get("")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Health check with media engine status.

    Returns:
        dict: Overall status plus ffmpeg and ffprobe availability
    """
    config = getattr(request.app.state, "config", None) or get_config()
    components = {
        "ffmpeg": check_binary(config.ffmpeg.path or "ffmpeg", "FFmpeg"),
        "ffprobe": check_binary(config.ffmpeg.ffprobe_path or "ffprobe", "FFprobe"),
    }
    healthy = all(c["status"] == "ok" for c in components.values())

    service = getattr(request.app.state, "service", None)
    return {
        "status": "healthy" if healthy else "degraded",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
        "engine_ready": bool(service and service.engine.is_ready),
        "python_version": platform.python_version(),
        "components": components,
    }
