"""Abstract base class for stage executors.

Each executor:
- Takes the project record, the run Settings and a log callback
- Builds the command lines for its external tool(s)
- Writes a <stage>_debug.json with every command it ran
- Returns its output path(s) (no try/except: failures surface to the orchestrator)
"""

import json
import platform
import shutil
import sys
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from ..core.config import Settings
from ..core.events import StageLogger
from ..core.models import PipelineProject
from ..core.process import ProcessOutput, run_process

StageOutput = str | list[str]


class StageExecutor(ABC):
    """Base class for the four pipeline stages."""

    def __init__(self, project: PipelineProject, settings: Settings, log: StageLogger):
        self.project = project
        self.settings = settings
        self.log = log
        self.commands: list[list[str]] = []
        self.details: dict = {}

    @property
    @abstractmethod
    def stage_name(self) -> str:
        """Stage identity (one of STAGE_ORDER)."""

    @property
    def work_dir(self) -> Path:
        return Path(self.project.output_dir)

    @property
    def config(self):
        return self.project.config

    async def execute(self) -> StageOutput:
        """Run the stage, write debug JSON, return its output."""
        self.work_dir.mkdir(parents=True, exist_ok=True)

        started_at = datetime.now(timezone.utc).isoformat()
        t0 = time.time()

        output = await self.run()

        debug = {
            "stage": self.stage_name,
            "started_at": started_at,
            "duration_s": round(time.time() - t0, 2),
            "commands": self.commands,
            "output": output,
            "details": self.details,
            "environment": self._get_environment(),
        }
        self._write_debug_json(self.work_dir / f"{self.stage_name}_debug.json", debug)
        return output

    @abstractmethod
    async def run(self) -> StageOutput:
        """Do the stage's work. Must not catch tool failures."""

    async def call_tool(
        self,
        executable: str,
        args: list[str],
        *,
        timeout: float | None = None,
        announce: bool = True,
    ) -> ProcessOutput:
        """Run one external tool in the project directory."""
        self.commands.append([executable, *args])
        if announce:
            self.log(f"Running: {Path(executable).name} {' '.join(args)}")
        return await run_process(
            executable, args, self.work_dir,
            env=self.settings.process_env,
            timeout=timeout,
        )

    def remove_quietly(self, path: Path) -> None:
        """Best-effort delete; a failure only leaves a warning in the log."""
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            self.log(f"Could not remove {path}: {e}", severity="warning")

    def _get_environment(self) -> dict:
        return {
            "python_version": sys.version,
            "platform": platform.platform(),
            "disk_free_gb": round(shutil.disk_usage(self.work_dir).free / (1024 ** 3), 2),
        }

    def _write_debug_json(self, path: Path, data: dict) -> None:
        """Write debug JSON, converting non-serializable types."""

        def default(obj):
            if isinstance(obj, Path):
                return str(obj)
            raise TypeError(f"Not JSON serializable: {type(obj)}")

        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=default)

    @staticmethod
    def file_stats(path: Path) -> dict:
        """Basic file stats for debug output."""
        path = Path(path)
        if not path.exists():
            return {"exists": False}
        size = path.stat().st_size
        return {
            "path": str(path),
            "size_bytes": size,
            "size_mb": round(size / (1024 ** 2), 2),
        }
