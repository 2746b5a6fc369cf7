"""Shared utilities."""

from mediaprobe.utils.logging_setup import log_exception, setup_logging, setup_logging_from_config
from mediaprobe.utils.memory import available_memory_bytes, system_memory_pressure

__all__ = [
    "available_memory_bytes",
    "log_exception",
    "setup_logging",
    "setup_logging_from_config",
    "system_memory_pressure",
]
