"""Host memory pressure, adaptive chunk sizing and accelerator flushes."""

import logging
import os
from dataclasses import dataclass

import psutil

from .config import Settings
from .constants import (
    MIN_CHUNK_FRAMES,
    PRESSURE_CRITICAL,
    PRESSURE_HALVING_THRESHOLD,
    PRESSURE_WARNING,
)
from .process import run_process

logger = logging.getLogger(__name__)

# Runs inside the reasoning interpreter, where torch lives
FLUSH_SCRIPT = "\n".join([
    "import gc; gc.collect()",
    "try:",
    "    import torch",
    "    if torch.cuda.is_available(): torch.cuda.empty_cache()",
    "    if hasattr(torch, 'mps') and torch.backends.mps.is_available(): torch.mps.empty_cache()",
    "except Exception:",
    "    pass",
])


@dataclass(frozen=True)
class MemoryLabel:
    text: str
    severity: str  # "normal" | "warning" | "critical"


def get_pressure() -> int:
    """Host memory use as 0..100. Returns 0 when the probe is unavailable."""
    try:
        percent = psutil.virtual_memory().percent
    except Exception as e:
        logger.debug("Memory probe unavailable: %s", e)
        return 0
    return max(0, min(100, int(round(percent))))


def adaptive_chunk_size(base: int, pressure: int) -> int:
    """Halve the chunk (never below 8 frames) when pressure exceeds 80%."""
    if pressure > PRESSURE_HALVING_THRESHOLD:
        return max(MIN_CHUNK_FRAMES, base // 2)
    return base


def label(pressure: int) -> MemoryLabel:
    if pressure < PRESSURE_WARNING:
        return MemoryLabel(f"{pressure}% Normal", "normal")
    if pressure < PRESSURE_CRITICAL:
        return MemoryLabel(f"{pressure}% Warning", "warning")
    return MemoryLabel(f"{pressure}% Critical", "critical")


def estimate_peak_gb(pressure: int, capacity_gb: float) -> float:
    """Scale a pressure sample onto the configured memory cap."""
    return round(pressure / 100 * capacity_gb, 1)


async def flush_memory(settings: Settings) -> None:
    """Ask the model runtime to drop cached accelerator memory.

    Hygiene only: every failure is logged and swallowed.
    """
    try:
        await run_process(
            settings.python, ["-c", FLUSH_SCRIPT], os.getcwd(),
            env=settings.process_env,
            timeout=settings.flush_timeout_s,
        )
    except Exception as e:
        logger.warning("Memory flush skipped: %s", e)
