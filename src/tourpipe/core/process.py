"""Async child-process runner shared by every stage executor.

Each call owns its process and buffers, so independent runs (one per project)
can await tools concurrently. Stage tools run unbounded; ``timeout`` is meant
for short probes.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

from .constants import STDERR_TAIL_CHARS
from .errors import StageProcessError

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutput:
    """Captured result of a successful process run."""
    stdout: str
    stderr: str
    returncode: int = 0
    duration_s: float = 0.0


async def run_process(
    executable: str,
    args: list[str],
    cwd: Path,
    *,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> ProcessOutput:
    """Run ``executable args...`` in ``cwd`` and capture both streams.

    Raises StageProcessError on a non-zero exit, a spawn failure
    (``started=False``) or an expired timeout (``timed_out=True``).
    """
    proc_env = os.environ.copy()
    if env:
        proc_env.update(env)

    logger.debug("Spawning %s %s (cwd=%s)", executable, " ".join(args), cwd)
    t0 = time.time()
    try:
        proc = await asyncio.create_subprocess_exec(
            executable, *args,
            cwd=str(cwd),
            env=proc_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise StageProcessError(executable, started=False, reason=str(e)) from e

    try:
        stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise StageProcessError(
            executable, timed_out=True, reason=f"no exit after {timeout}s",
        ) from None

    stdout = stdout_b.decode("utf-8", errors="replace")
    stderr = stderr_b.decode("utf-8", errors="replace")
    duration = round(time.time() - t0, 2)

    if proc.returncode != 0:
        raise StageProcessError(
            executable,
            returncode=proc.returncode,
            stderr=stderr[-STDERR_TAIL_CHARS:].strip(),
        )

    return ProcessOutput(
        stdout=stdout, stderr=stderr,
        returncode=proc.returncode, duration_s=duration,
    )
