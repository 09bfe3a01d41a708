"""Shared test fixtures."""

from pathlib import Path

import pytest

from tourpipe.core.config import Settings
from tourpipe.core.errors import StageProcessError
from tourpipe.core.models import PipelineConfig
from tourpipe.core.process import ProcessOutput
from tourpipe.core.project import ProjectStore


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary projects root and fake tool names."""
    return Settings(
        projects_root=tmp_path / "projects",
        python="python3",
        ffmpeg="ffmpeg",
        ffprobe="ffprobe",
        spatial_checkpoint="/models/tttlrm.pt",
        reasoning_model="/models/vbvr",
        device="mps",
        fallback_total_frames=300,
        process_env={"PYTORCH_MPS_HIGH_WATERMARK_RATIO": "0.0"},
    )


@pytest.fixture
def store(settings):
    return ProjectStore(settings.projects_root)


def make_config(**overrides) -> PipelineConfig:
    values = {
        "num_views": 16,
        "max_spatial_memory_gb": 20,
        "render_resolution": "1280x720",
        "render_fps": 30,
        "camera_trajectory": "orbit",
        "reasoning_prompt": "Highlight the airflow in blue",
        "chunk_frames": 16,
        "quantization": "8bit",
        "cpu_offload": True,
        "max_memory_gb": 32,
        "auto_chunk_reduction": True,
    }
    values.update(overrides)
    return PipelineConfig(**values)


@pytest.fixture(name="make_config")
def make_config_fixture():
    return make_config


@pytest.fixture
def project(store, tmp_path):
    """A freshly created project with a placeholder input video."""
    video = tmp_path / "walkthrough.mp4"
    video.write_bytes(b"fake video")
    return store.create("Via Roma 12", str(video), make_config())


class FakeTools:
    """Stand-in for run_process that records calls instead of spawning.

    - ffprobe prints ``frames``
    - ffmpeg / reasoning calls create their output file (last arg / --output)
    - ``fail_when(executable, args)`` returning True raises StageProcessError
    """

    def __init__(self, frames: str = "300\n", fail_when=None, stderr: str = "boom"):
        self.frames = frames
        self.fail_when = fail_when
        self.stderr = stderr
        self.calls: list[tuple[str, list[str]]] = []

    async def __call__(self, executable, args, cwd, *, env=None, timeout=None):
        args = list(args)
        self.calls.append((executable, args))
        if self.fail_when is not None and self.fail_when(executable, args):
            raise StageProcessError(executable, returncode=1, stderr=self.stderr)
        if executable == "ffprobe":
            return ProcessOutput(stdout=self.frames, stderr="")
        if "--output" in args:
            Path(args[args.index("--output") + 1]).write_bytes(b"out")
        elif executable == "ffmpeg":
            Path(args[-1]).write_bytes(b"out")
        return ProcessOutput(stdout="", stderr="")

    def calls_to(self, needle: str) -> list[list[str]]:
        """Argument lists of calls whose executable or args mention needle."""
        return [args for exe, args in self.calls if needle == exe or needle in args]


@pytest.fixture
def fake_tools(monkeypatch):
    tools = FakeTools()
    monkeypatch.setattr("tourpipe.stages.base.run_process", tools)
    return tools
