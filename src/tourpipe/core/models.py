"""Project records: PipelineConfig, StageResult, PipelineProject."""

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from .constants import (
    CAMERA_TRAJECTORIES,
    PROJECT_STATUSES,
    QUANTIZATION_MODES,
    STAGE_ORDER,
    STAGE_PENDING,
    STAGE_STATUSES,
    STATUS_CONFIGURED,
)

_RESOLUTION_RE = re.compile(r"^\d+x\d+$")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def spatial_memory_cap(max_memory_gb: int) -> int:
    """Reconstruction budget: 4 GB below the overall cap, at most 20 GB."""
    return int(max(1, min(max_memory_gb - 4, 20)))


@dataclass(frozen=True)
class PipelineConfig:
    """Per-run settings chosen when the project is created."""
    num_views: int = 16
    max_spatial_memory_gb: int = 20
    render_resolution: str = "1920x1080"
    render_fps: int = 30
    camera_trajectory: str = "orbit"
    reasoning_prompt: str = ""
    chunk_frames: int = 16
    quantization: str = "8bit"
    cpu_offload: bool = True
    max_memory_gb: int = 24
    auto_chunk_reduction: bool = True

    def __post_init__(self):
        for name in ("num_views", "max_spatial_memory_gb", "render_fps", "chunk_frames"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        value = self.max_memory_gb
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError(f"max_memory_gb must be a positive number, got {value!r}")
        if self.quantization not in QUANTIZATION_MODES:
            raise ValueError(
                f"Unknown quantization: {self.quantization!r}. "
                f"Available: {', '.join(QUANTIZATION_MODES)}"
            )
        if self.camera_trajectory not in CAMERA_TRAJECTORIES:
            raise ValueError(
                f"Unknown camera trajectory: {self.camera_trajectory!r}. "
                f"Available: {', '.join(CAMERA_TRAJECTORIES)}"
            )
        if not _RESOLUTION_RE.match(self.render_resolution):
            raise ValueError(
                f"Resolution must look like 1920x1080, got {self.render_resolution!r}"
            )
        if not self.reasoning_prompt.strip():
            raise ValueError("Reasoning prompt must not be empty")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PipelineConfig":
        return cls(**data)


@dataclass
class StageResult:
    """Progress and output of one pipeline stage."""
    stage: str
    status: str = STAGE_PENDING
    started_at: str | None = None
    finished_at: str | None = None
    output_path: str | None = None
    memory_peak_gb: float | None = None
    logs: list[str] = field(default_factory=list)

    def reset(self) -> None:
        """Back to a fresh pending stage."""
        self.status = STAGE_PENDING
        self.started_at = None
        self.finished_at = None
        self.output_path = None
        self.memory_peak_gb = None
        self.logs = []

    def output_paths(self) -> list[str]:
        """Split a comma-joined output_path (reasoning chunks) into a list."""
        if not self.output_path:
            return []
        return [p for p in self.output_path.split(",") if p]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StageResult":
        if data["stage"] not in STAGE_ORDER:
            raise ValueError(f"Unknown stage: {data['stage']!r}")
        if data.get("status", STAGE_PENDING) not in STAGE_STATUSES:
            raise ValueError(f"Unknown stage status: {data['status']!r}")
        return cls(
            stage=data["stage"],
            status=data.get("status", STAGE_PENDING),
            started_at=data.get("started_at"),
            finished_at=data.get("finished_at"),
            output_path=data.get("output_path"),
            memory_peak_gb=data.get("memory_peak_gb"),
            logs=list(data.get("logs", [])),
        )


@dataclass
class PipelineProject:
    """Root durable record of one pipeline project."""
    id: str
    name: str
    input_video_path: str
    output_dir: str
    config: PipelineConfig
    status: str = STATUS_CONFIGURED
    pose_data_path: str | None = None
    stages: list[StageResult] = field(
        default_factory=lambda: [StageResult(stage=s) for s in STAGE_ORDER]
    )
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    error: str | None = None

    def stage(self, name: str) -> StageResult:
        for result in self.stages:
            if result.stage == name:
                return result
        raise KeyError(f"Stage {name} not found in project {self.id}")

    def running_stage(self) -> StageResult | None:
        for result in self.stages:
            if result.status == "running":
                return result
        return None

    def reset(self) -> None:
        """Prepare for a re-launch: every stage pending, no error, configured."""
        for result in self.stages:
            result.reset()
        self.status = STATUS_CONFIGURED
        self.error = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "input_video_path": self.input_video_path,
            "pose_data_path": self.pose_data_path,
            "output_dir": self.output_dir,
            "config": self.config.to_dict(),
            "stages": [s.to_dict() for s in self.stages],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PipelineProject":
        """Rebuild a project from its JSON form.

        Raises KeyError/TypeError/ValueError on a malformed record.
        """
        stages = [StageResult.from_dict(s) for s in data["stages"]]
        if [s.stage for s in stages] != STAGE_ORDER:
            raise ValueError(f"Project {data.get('id')!r} does not list the four stages in order")
        if data["status"] not in PROJECT_STATUSES:
            raise ValueError(f"Unknown project status: {data['status']!r}")
        return cls(
            id=data["id"],
            name=data["name"],
            status=data["status"],
            input_video_path=data["input_video_path"],
            pose_data_path=data.get("pose_data_path"),
            output_dir=data["output_dir"],
            config=PipelineConfig.from_dict(data["config"]),
            stages=stages,
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            error=data.get("error"),
        )


@dataclass
class EnvironmentCheck:
    """Result of probing one external dependency. Not persisted."""
    name: str
    command: str
    ok: bool
    version: str | None = None
    error: str | None = None
