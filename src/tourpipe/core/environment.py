"""Environment diagnostics: is every external tool reachable?"""

import os
from pathlib import Path

from .config import Settings
from .errors import StageProcessError
from .models import EnvironmentCheck
from .process import run_process

TORCH_VERSION_SCRIPT = "import torch; print(torch.__version__)"


async def _probe(name: str, executable: str, args: list[str], settings: Settings) -> EnvironmentCheck:
    command = " ".join([executable, *args])
    try:
        out = await run_process(
            executable, args, os.getcwd(), timeout=settings.probe_timeout_s,
        )
    except StageProcessError as e:
        return EnvironmentCheck(name=name, command=command, ok=False, error=str(e).splitlines()[0])

    # `python --version` used to print to stderr
    text = (out.stdout.strip() or out.stderr.strip())
    version = text.splitlines()[0] if text else None
    return EnvironmentCheck(name=name, command=command, ok=True, version=version)


def _path_check(name: str, path: str) -> EnvironmentCheck:
    if not path:
        return EnvironmentCheck(name=name, command="", ok=False, error="Not configured")
    if not Path(path).exists():
        return EnvironmentCheck(name=name, command=path, ok=False, error=f"Not found: {path}")
    return EnvironmentCheck(name=name, command=path, ok=True)


async def check_environment(settings: Settings) -> list[EnvironmentCheck]:
    """Probe the interpreter, PyTorch, ffmpeg, ffprobe and model files."""
    return [
        await _probe("Python", settings.python, ["--version"], settings),
        await _probe("PyTorch", settings.python, ["-c", TORCH_VERSION_SCRIPT], settings),
        await _probe("FFmpeg", settings.ffmpeg, ["-version"], settings),
        await _probe("FFprobe", settings.ffprobe, ["-version"], settings),
        _path_check("Spatial checkpoint", settings.spatial_checkpoint),
        _path_check("Reasoning model", settings.reasoning_model),
    ]
