"""Memory pressure sampling used to size read windows."""

import logging
from typing import Callable

import psutil

logger = logging.getLogger(__name__)

# Returns the fraction of system memory currently in use, 0.0 - 1.0
PressureProbe = Callable[[], float]


def system_memory_pressure() -> float:
    """Fraction of physical memory in use on this machine."""
    try:
        return psutil.virtual_memory().percent / 100.0
    except (psutil.Error, OSError) as e:
        logger.warning(f"Failed to sample memory pressure: {e}")
        return 0.0


def available_memory_bytes() -> int:
    """Bytes of physical memory available without swapping."""
    try:
        return int(psutil.virtual_memory().available)
    except (psutil.Error, OSError) as e:
        logger.warning(f"Failed to sample available memory: {e}")
        return 0
