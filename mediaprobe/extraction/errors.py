"""
Error taxonomy for extraction and export.

Every per-file failure is one of these types. The batch coordinator catches
them at its boundary and records `user_message` on the affected item.
"""

import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class MediaProbeError(Exception):
    """Base class for all MediaProbe errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    @property
    def user_message(self) -> str:
        return self.message


class ValidationError(MediaProbeError):
    """Empty file or unrecognised extension. Never retried."""


class BackendLoadCause(str, Enum):
    """Why a backend failed to initialise."""

    NETWORK = "network"
    MISSING_CAPABILITY = "missing_capability"
    CROSS_ORIGIN = "cross_origin"
    UNKNOWN = "unknown"


_LOAD_HINTS = {
    BackendLoadCause.NETWORK: "Network error. Check your connection and try again.",
    BackendLoadCause.MISSING_CAPABILITY: (
        "The media engine is not available on this system. "
        "Install ffmpeg/ffprobe or set MEDIAPROBE_FFMPEG_PATH."
    ),
    BackendLoadCause.CROSS_ORIGIN: "Access to the media engine was refused. Check file permissions.",
}


class BackendLoadError(MediaProbeError):
    """The backend failed to initialise. Fatal for the whole session."""

    def __init__(
        self,
        message: str,
        cause: BackendLoadCause = BackendLoadCause.UNKNOWN,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)
        self.cause = cause

    @property
    def user_message(self) -> str:
        hint = _LOAD_HINTS.get(self.cause)
        if hint:
            return f"Failed to load media engine: {hint}"
        return f"Failed to load media engine: {self.message}"


class WriteError(MediaProbeError):
    """Loading file bytes into the backend failed after all retries."""


class ExtractionTimeout(MediaProbeError):
    """A backend write or execution exceeded its deadline."""


class BackendError(MediaProbeError):
    """The backend ran but did not produce a usable result."""


class ParseErrorKind(str, Enum):
    CORRUPTED_INPUT = "corrupted_input"
    UNSUPPORTED_CODEC = "unsupported_codec"
    NO_STREAMS = "no_streams"


_PARSE_MESSAGES = {
    ParseErrorKind.CORRUPTED_INPUT: "File appears to be corrupted or not a valid media file",
    ParseErrorKind.UNSUPPORTED_CODEC: (
        "Media file uses an unsupported codec. Try converting to a standard format like MP4."
    ),
    ParseErrorKind.NO_STREAMS: (
        "No audio or video streams found in the file. The file might be corrupted or encrypted."
    ),
}


class ParseError(MediaProbeError):
    """Diagnostic output could not be turned into metadata."""

    def __init__(self, kind: ParseErrorKind, message: Optional[str] = None):
        super().__init__(message or _PARSE_MESSAGES[kind])
        self.kind = kind


class ExportFallbackExhausted(MediaProbeError):
    """Both the native and the fallback export path failed."""

    def __init__(self, message: str, attempts: list[str], original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.attempts = attempts


def classify_load_error(error: Exception) -> BackendLoadCause:
    """
    Map a raw backend load failure to a cause.

    Args:
        error: Exception raised while starting the backend.

    Returns:
        The most specific matching cause.
    """
    if isinstance(error, FileNotFoundError):
        return BackendLoadCause.MISSING_CAPABILITY
    if isinstance(error, PermissionError):
        return BackendLoadCause.CROSS_ORIGIN

    error_str = str(error).lower()

    if any(term in error_str for term in ["network", "fetch", "connection", "dns"]):
        return BackendLoadCause.NETWORK
    if any(term in error_str for term in ["not found", "no such file", "wasm", "not supported"]):
        return BackendLoadCause.MISSING_CAPABILITY
    if any(term in error_str for term in ["cors", "cross-origin", "permission denied", "access denied"]):
        return BackendLoadCause.CROSS_ORIGIN

    return BackendLoadCause.UNKNOWN


def describe_failure(error: Exception) -> str:
    """
    User-facing text for a per-file failure.

    Known error types use their own message; anything else gets a hint
    appended for the common memory, network and timeout cases.
    """
    if isinstance(error, MediaProbeError):
        return error.user_message

    message = str(error) or "Unknown error occurred while processing the file"
    lowered = message.lower()
    if "memory" in lowered:
        message += ". Try a smaller file or free some memory."
    elif "network" in lowered or "fetch" in lowered:
        message += ". Please check your connection and try again."
    elif "timeout" in lowered or "timed out" in lowered:
        message += ". The file processing took too long. Try with a smaller file."
    return message
