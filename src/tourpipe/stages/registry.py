"""Stage registry: maps stage names to executor classes."""

from ..core.config import Settings
from ..core.events import StageLogger
from ..core.models import PipelineProject
from .base import StageExecutor
from .composite import CompositeExecutor
from .reasoning import ReasoningExecutor
from .render import RenderExecutor
from .spatial import SpatialExecutor

EXECUTORS: dict[str, type[StageExecutor]] = {
    "spatial": SpatialExecutor,
    "render": RenderExecutor,
    "reasoning": ReasoningExecutor,
    "composite": CompositeExecutor,
}


def get_executor(
    name: str,
    project: PipelineProject,
    settings: Settings,
    log: StageLogger,
    **kwargs,
) -> StageExecutor:
    """Get an executor instance by stage name.

    Raises KeyError if the stage name is unknown.
    """
    cls = EXECUTORS.get(name)
    if cls is None:
        available = ", ".join(EXECUTORS.keys())
        raise KeyError(f"Unknown stage: {name!r}. Available: {available}")
    return cls(project, settings, log, **kwargs)


def list_stages() -> list[str]:
    return list(EXECUTORS.keys())
