"""Pipeline orchestrator: stage sequencing, state transitions, failure capture.

The orchestrator is the only writer of a project's stages and status while a
run is active. Every transition and every log line is persisted through the
ProjectStore, so the project file is the progress channel for any viewer.

Stage lifecycle: pending -> running -> done | failed. A failed stage ends the
run; nothing is retried automatically.
"""

import logging

from ..core.config import Settings
from ..core.constants import (
    STAGE_COMPOSITE,
    STAGE_DONE,
    STAGE_FAILED,
    STAGE_ORDER,
    STAGE_REASONING,
    STAGE_RUNNING,
    STAGE_SPATIAL,
    STAGE_TO_STATUS,
    STATUS_DONE,
    STATUS_FAILED,
)
from ..core.errors import MissingDependency
from ..core.events import StageEvent, StageLogger
from ..core.memory import estimate_peak_gb, flush_memory, get_pressure
from ..core.models import PipelineProject, utc_now
from ..core.project import ProjectStore
from ..stages.base import StageOutput
from ..stages.registry import get_executor

logger = logging.getLogger("tourpipe.pipeline")


class Orchestrator:
    """Drives one project through its stages."""

    def __init__(self, project: PipelineProject, store: ProjectStore, settings: Settings):
        self.project = project
        self.store = store
        self.settings = settings

    # ── Logging ───────────────────────────────────────────────────

    def append_log(self, stage: str, message: str, severity: str = "info", *, persist: bool = True) -> None:
        event = StageEvent(stage=stage, message=message, severity=severity)
        self.project.stage(stage).logs.append(event.render())
        logger.log(event.level, "[%s/%s] %s", self.project.id, stage, message)
        if persist:
            self.store.write(self.project)

    def stage_logger(self, stage: str) -> StageLogger:
        def log(message: str, severity: str = "info") -> None:
            self.append_log(stage, message, severity)
        return log

    # ── Transitions ───────────────────────────────────────────────

    def start_stage(self, name: str) -> None:
        stage = self.project.stage(name)
        stage.status = STAGE_RUNNING
        stage.started_at = utc_now()
        self.append_log(name, f"Stage {name} started", persist=False)
        self.project.status = STAGE_TO_STATUS[name]
        self.store.write(self.project)

    def complete_stage(self, name: str, output_path: str | None = None) -> None:
        stage = self.project.stage(name)
        stage.status = STAGE_DONE
        stage.finished_at = utc_now()
        stage.output_path = output_path
        stage.memory_peak_gb = estimate_peak_gb(get_pressure(), self.project.config.max_memory_gb)
        self.append_log(name, f"Stage {name} completed", persist=False)
        self.store.write(self.project)

    def fail_stage(self, name: str, message: str) -> None:
        stage = self.project.stage(name)
        stage.status = STAGE_FAILED
        stage.finished_at = utc_now()
        self.append_log(name, message, severity="error", persist=False)
        self.project.status = STATUS_FAILED
        self.project.error = message
        self.store.write(self.project)

    async def flush(self, after_stage: str) -> None:
        self.append_log(after_stage, "Flushing accelerator memory")
        await flush_memory(self.settings)

    # ── Execution ─────────────────────────────────────────────────

    async def _execute(self, name: str, **kwargs) -> StageOutput:
        executor = get_executor(name, self.project, self.settings, self.stage_logger(name), **kwargs)
        return await executor.execute()

    async def run_pipeline(self) -> PipelineProject:
        """Run all four stages in order, stopping at the first failure."""
        chunks: list[str] = []
        try:
            for index, name in enumerate(STAGE_ORDER):
                if index > 0:
                    await self.flush(STAGE_ORDER[index - 1])

                self.start_stage(name)
                kwargs = {"chunks": chunks} if name == STAGE_COMPOSITE else {}
                output = await self._execute(name, **kwargs)
                if name == STAGE_REASONING:
                    chunks = output
                    output = ",".join(chunks)
                self.complete_stage(name, output)

            self.project.status = STATUS_DONE
            self.store.write(self.project)
            logger.info("Project %s finished", self.project.id)

        except Exception as e:
            running = self.project.running_stage()
            name = running.stage if running else STAGE_SPATIAL
            self.fail_stage(name, str(e))

        return self.project

    async def run_single_stage(self, name: str) -> PipelineProject:
        """Run (or re-run) one stage.

        Composite needs the reasoning stage's recorded chunk list and raises
        MissingDependency, after starting and failing the stage, when it is empty.
        Executor failures are recorded on the stage and not raised.
        """
        if name not in STAGE_ORDER:
            raise ValueError(f"Unknown stage: {name!r}. Available: {', '.join(STAGE_ORDER)}")

        self.project.error = None
        kwargs = {}
        if name == STAGE_COMPOSITE:
            chunks = self.project.stage(STAGE_REASONING).output_paths()
            if not chunks:
                message = "No reasoning output chunks found; run the reasoning stage first"
                self.start_stage(name)
                self.fail_stage(name, message)
                raise MissingDependency(message)
            kwargs["chunks"] = chunks

        try:
            self.start_stage(name)
            output = await self._execute(name, **kwargs)
            if name == STAGE_REASONING:
                output = ",".join(output)
            self.complete_stage(name, output)
        except Exception as e:
            self.fail_stage(name, str(e))
        else:
            if all(s.status == STAGE_DONE for s in self.project.stages):
                self.project.status = STATUS_DONE
                self.store.write(self.project)

        await self.flush(name)
        return self.project
