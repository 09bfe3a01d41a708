"""Tests for the four stage executors and the stage registry."""

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from tourpipe.core.errors import MissingDependency, StageProcessError
from tourpipe.stages.base import StageExecutor
from tourpipe.stages.composite import CompositeExecutor, manifest_line
from tourpipe.stages.reasoning import ReasoningExecutor
from tourpipe.stages.registry import get_executor, list_stages
from tourpipe.stages.render import RenderExecutor
from tourpipe.stages.spatial import SpatialExecutor


class LogRecorder:
    def __init__(self):
        self.lines: list[tuple[str, str]] = []

    def __call__(self, message, severity="info"):
        self.lines.append((severity, message))

    def messages(self, severity=None):
        return [m for s, m in self.lines if severity is None or s == severity]


@pytest.fixture
def log():
    return LogRecorder()


# ── Registry ─────────────────────────────────────────────────────


def test_list_stages():
    assert list_stages() == ["spatial", "render", "reasoning", "composite"]


def test_get_executor(project, settings, log):
    executor = get_executor("render", project, settings, log)
    assert isinstance(executor, RenderExecutor)
    assert isinstance(executor, StageExecutor)


def test_get_executor_unknown(project, settings, log):
    with pytest.raises(KeyError, match="Unknown stage"):
        get_executor("upload", project, settings, log)


# ── Spatial ──────────────────────────────────────────────────────


class TestSpatial:
    def test_args_without_poses(self, project, settings, log):
        args = SpatialExecutor(project, settings, log).build_args()
        work = Path(project.output_dir)
        assert args == [
            "-m", "tttlrm.generate",
            "--input", project.input_video_path,
            "--checkpoint", "/models/tttlrm.pt",
            "--output", str(work / "scene.ply"),
            "--device", "mps",
            "--num-views", "16",
            "--max-memory", "20",
        ]

    def test_args_with_poses(self, project, settings, log):
        project.pose_data_path = "/scans/poses.json"
        args = SpatialExecutor(project, settings, log).build_args()
        assert args[-2:] == ["--poses", "/scans/poses.json"]

    def test_run_writes_debug_json(self, project, settings, log, fake_tools):
        output = asyncio.run(SpatialExecutor(project, settings, log).execute())

        work = Path(project.output_dir)
        assert output == str(work / "scene.ply")
        assert fake_tools.calls[0][0] == "python3"
        assert any(m.startswith("Running: python3 -m tttlrm.generate") for m in log.messages())

        debug = json.loads((work / "spatial_debug.json").read_text())
        assert debug["stage"] == "spatial"
        assert debug["output"] == output
        assert debug["commands"][0][:3] == ["python3", "-m", "tttlrm.generate"]
        assert "environment" in debug

    def test_failure_propagates(self, project, settings, log, fake_tools):
        fake_tools.fail_when = lambda exe, args: True
        fake_tools.stderr = "CUDA out of memory"
        with pytest.raises(StageProcessError, match="CUDA out of memory"):
            asyncio.run(SpatialExecutor(project, settings, log).execute())
        assert not (Path(project.output_dir) / "spatial_debug.json").exists()


# ── Render ───────────────────────────────────────────────────────


class TestRender:
    def test_uses_recorded_scene(self, project, settings, log):
        project.stage("spatial").output_path = "/elsewhere/scene.ply"
        args = RenderExecutor(project, settings, log).build_args()
        assert args[args.index("--scene") + 1] == "/elsewhere/scene.ply"

    def test_defaults_to_conventional_scene(self, project, settings, log):
        args = RenderExecutor(project, settings, log).build_args()
        assert args[args.index("--scene") + 1] == str(Path(project.output_dir) / "scene.ply")

    def test_args(self, project, settings, log):
        args = RenderExecutor(project, settings, log).build_args()
        assert args[:2] == ["-m", "gaussian_splatting.render"]
        assert args[args.index("--trajectory") + 1] == "orbit"
        assert args[args.index("--resolution") + 1] == "1280x720"
        assert args[args.index("--fps") + 1] == "30"
        assert args[-2:] == ["--output", str(Path(project.output_dir) / "tour.mp4")]


# ── Reasoning ────────────────────────────────────────────────────


def _run_reasoning(executor, pressure=0):
    with patch("tourpipe.stages.reasoning.get_pressure", return_value=pressure):
        return asyncio.run(executor.execute())


class TestReasoning:
    def test_chunk_schedule(self, project, settings, log, fake_tools):
        outputs = _run_reasoning(ReasoningExecutor(project, settings, log))

        assert len(outputs) == 19  # 18 full chunks of 16 plus a 12-frame tail
        extracts = fake_tools.calls_to("-ss")
        starts = [float(a[a.index("-ss") + 1]) for a in extracts]
        assert starts == pytest.approx([i * 16 / 30 for i in range(19)], abs=1e-3)
        durations = [a[a.index("-t") + 1] for a in extracts]
        assert durations[:-1] == ["0.533"] * 18
        assert durations[-1] == "0.400"

    def test_each_chunk_conditions_on_previous_output(self, project, settings, log, fake_tools):
        outputs = _run_reasoning(ReasoningExecutor(project, settings, log))

        reasoning_calls = fake_tools.calls_to("vbvr.inference")
        assert "--condition-frame-source" not in reasoning_calls[0]
        for i, args in enumerate(reasoning_calls[1:], start=1):
            assert args[args.index("--condition-frame-source") + 1] == outputs[i - 1]

    def test_reasoning_args(self, project, settings, log):
        executor = ReasoningExecutor(project, settings, log)
        args = executor.reasoning_args(Path("/w/chunk_0.mp4"), Path("/w/reasoned_0.mp4"), None)
        assert args == [
            "-m", "vbvr.inference",
            "--model-path", "/models/vbvr",
            "--input", "/w/chunk_0.mp4",
            "--prompt", "Highlight the airflow in blue",
            "--quantize", "8bit",
            "--output", "/w/reasoned_0.mp4",
            "--cpu-offload",
        ]

    def test_no_cpu_offload_flag(self, store, settings, log, make_config):
        project = store.create("P", "/v.mp4", make_config(cpu_offload=False, quantization="4bit"))
        args = ReasoningExecutor(project, settings, log).reasoning_args(Path("a"), Path("b"), None)
        assert "--cpu-offload" not in args
        assert args[args.index("--quantize") + 1] == "4bit"

    def test_extract_args(self, project, settings, log):
        executor = ReasoningExecutor(project, settings, log)
        args = executor.extract_args("/w/tour.mp4", 32, 16, Path("/w/chunk_2.mp4"))
        assert args == [
            "-y", "-i", "/w/tour.mp4",
            "-ss", "1.067", "-t", "0.533",
            "-c", "copy", "/w/chunk_2.mp4",
        ]

    def test_halves_under_pressure(self, project, settings, log, fake_tools):
        fake_tools.frames = "64\n"
        outputs = _run_reasoning(ReasoningExecutor(project, settings, log), pressure=90)
        assert len(outputs) == 8
        assert "(size 8, pressure 90%)" in log.messages()[1]

    def test_no_halving_when_auto_reduction_off(self, store, settings, log, fake_tools, make_config):
        project = store.create("P", "/v.mp4", make_config(auto_chunk_reduction=False))
        fake_tools.frames = "64\n"
        outputs = _run_reasoning(ReasoningExecutor(project, settings, log), pressure=95)
        assert len(outputs) == 4

    def test_probe_fallback(self, project, settings, log, fake_tools):
        fake_tools.fail_when = lambda exe, args: exe == "ffprobe"
        outputs = _run_reasoning(ReasoningExecutor(project, settings, log))

        assert len(outputs) == 19
        warnings = log.messages("warning")
        assert len(warnings) == 1
        assert "using approximate estimate of 300 frames" in warnings[0]

    @pytest.mark.parametrize("stdout", ["", "N/A\n", "0\n"])
    def test_unusable_probe_output_falls_back(self, project, settings, log, fake_tools, stdout):
        fake_tools.frames = stdout
        outputs = _run_reasoning(ReasoningExecutor(project, settings, log))
        assert len(outputs) == 19
        assert log.messages("warning")

    def test_clips_removed_outputs_kept(self, project, settings, log, fake_tools):
        fake_tools.frames = "32\n"
        outputs = _run_reasoning(ReasoningExecutor(project, settings, log))

        work = Path(project.output_dir)
        assert not list(work.glob("chunk_*.mp4"))
        assert all(Path(o).exists() for o in outputs)

    def test_clip_removed_when_model_fails(self, project, settings, log, fake_tools):
        fake_tools.fail_when = lambda exe, args: "vbvr.inference" in args
        with pytest.raises(StageProcessError):
            _run_reasoning(ReasoningExecutor(project, settings, log))
        assert not list(Path(project.output_dir).glob("chunk_*.mp4"))

    def test_debug_json_lists_chunks(self, project, settings, log, fake_tools):
        fake_tools.frames = "40\n"
        _run_reasoning(ReasoningExecutor(project, settings, log))
        debug = json.loads((Path(project.output_dir) / "reasoning_debug.json").read_text())
        assert debug["details"]["total_frames"] == 40
        assert [c["frames"] for c in debug["details"]["chunks"]] == [16, 16, 8]


# ── Composite ────────────────────────────────────────────────────


def test_manifest_line_escapes_quotes():
    assert manifest_line("/w/reasoned_0.mp4") == "file '/w/reasoned_0.mp4'"
    assert manifest_line("/w/it's.mp4") == "file '/w/it'\\''s.mp4'"


class TestComposite:
    def _chunks(self, project, count=3):
        work = Path(project.output_dir)
        paths = []
        for i in range(count):
            path = work / f"reasoned_{i}.mp4"
            path.write_bytes(b"chunk")
            paths.append(str(path))
        return paths

    def test_concat_and_cleanup(self, project, settings, log, fake_tools):
        chunks = self._chunks(project)
        output = asyncio.run(CompositeExecutor(project, settings, log, chunks=chunks).execute())

        work = Path(project.output_dir)
        assert output == str(work / "final.mp4")
        args = fake_tools.calls[0][1]
        assert args == [
            "-y", "-f", "concat", "-safe", "0",
            "-i", str(work / "chunks.txt"),
            "-c", "copy", str(work / "final.mp4"),
        ]
        assert not any(Path(c).exists() for c in chunks)
        assert not (work / "chunks.txt").exists()
        assert (work / "final.mp4").exists()

    def test_manifest_contents(self, project, settings, log):
        chunks = self._chunks(project, count=2)
        manifest = CompositeExecutor(project, settings, log, chunks=chunks).write_manifest()
        assert manifest.read_text().splitlines() == [f"file '{c}'" for c in chunks]

    def test_empty_chunks(self, project, settings, log, fake_tools):
        with pytest.raises(MissingDependency):
            asyncio.run(CompositeExecutor(project, settings, log, chunks=[]).execute())
        assert fake_tools.calls == []

    def test_chunks_kept_when_concat_fails(self, project, settings, log, fake_tools):
        chunks = self._chunks(project)
        fake_tools.fail_when = lambda exe, args: True
        with pytest.raises(StageProcessError):
            asyncio.run(CompositeExecutor(project, settings, log, chunks=chunks).execute())
        assert all(Path(c).exists() for c in chunks)
