"""Background run supervisor: fire-and-forget pipeline execution.

Each run executes in a daemon thread that owns its own asyncio event loop.
Callers never wait on it; progress is read back from the project file.

At most one run per project id is active. Starting or re-launching a project
whose run is still alive raises RunInProgress instead of letting two writers
race on the same project.json.
"""

import asyncio
import logging
import threading
import time

from ..core.config import Settings
from ..core.errors import RunInProgress
from ..core.project import ProjectStore
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)


class PipelineRun:
    """One background execution of the full pipeline or a single stage."""

    def __init__(
        self,
        project_id: str,
        store: ProjectStore,
        settings: Settings,
        stage: str | None = None,
    ):
        self.project_id = project_id
        self.stage = stage
        self._store = store
        self._settings = settings
        self._thread: threading.Thread | None = None
        self.started_at = time.monotonic()
        self.finished_at: float | None = None
        # Anything that escaped the orchestrator (unreadable project, MissingDependency, ...)
        self.error: Exception | None = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, name=f"tourpipe-{self.project_id}", daemon=True,
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            project = self._store.read(self.project_id)
            orchestrator = Orchestrator(project, self._store, self._settings)
            if self.stage:
                asyncio.run(orchestrator.run_single_stage(self.stage))
            else:
                asyncio.run(orchestrator.run_pipeline())
        except Exception as e:
            self.error = e
            logger.error("Run for %s stopped: %s", self.project_id, e)
        finally:
            self.finished_at = time.monotonic()


# ── Module-level API ──────────────────────────────────────────────

_runs: dict[str, PipelineRun] = {}
_runs_lock = threading.Lock()


def _launch(
    project_id: str,
    store: ProjectStore,
    settings: Settings,
    *,
    stage: str | None = None,
    reset: bool = False,
) -> PipelineRun:
    with _runs_lock:
        current = _runs.get(project_id)
        if current is not None and current.is_alive:
            raise RunInProgress(f"A run for {project_id} is already active")
        if reset:
            project = store.read(project_id)
            project.reset()
            store.write(project)
        run = PipelineRun(project_id, store, settings, stage=stage)
        _runs[project_id] = run
    run.start()
    logger.info("Started %s for %s", f"stage {stage}" if stage else "pipeline", project_id)
    return run


def start_run(
    project_id: str,
    store: ProjectStore,
    settings: Settings,
    stage: str | None = None,
) -> PipelineRun:
    """Start the full pipeline (or one stage) for a persisted project."""
    return _launch(project_id, store, settings, stage=stage)


def relaunch(project_id: str, store: ProjectStore, settings: Settings) -> PipelineRun:
    """Reset every stage to pending and run the whole pipeline again."""
    return _launch(project_id, store, settings, reset=True)


def get_run(project_id: str) -> PipelineRun | None:
    """The active (or most recent) run for a project, or None."""
    with _runs_lock:
        return _runs.get(project_id)


def is_running(project_id: str) -> bool:
    run = get_run(project_id)
    return run is not None and run.is_alive
