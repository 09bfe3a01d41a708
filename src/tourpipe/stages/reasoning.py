"""Reasoning stage: annotate the tour video chunk by chunk.

The reasoning model cannot take the whole tour in one accelerator pass, so
the tour is cut into consecutive frame ranges. Each range is extracted with
ffmpeg, annotated by the model, then the extracted clip is deleted.

Chunk n > 0 is conditioned on the *output* of chunk n - 1 so the overlay
stays continuous across chunk boundaries. Chunks therefore run strictly in
sequence.

Chunk size is re-evaluated before every chunk: with auto chunk reduction on,
the base size is halved while host memory pressure is above 80%.
"""

from pathlib import Path

from ..core.constants import (
    CHUNK_CLIP_TEMPLATE,
    CHUNK_OUTPUT_TEMPLATE,
    STAGE_REASONING,
    STAGE_RENDER,
    TOUR_FILE,
)
from ..core.errors import ProbeUnavailable, StageProcessError
from ..core.memory import adaptive_chunk_size, get_pressure
from .base import StageExecutor


class ReasoningExecutor(StageExecutor):
    stage_name = STAGE_REASONING

    def tour_path(self) -> str:
        recorded = self.project.stage(STAGE_RENDER).output_path
        return recorded or str(self.work_dir / TOUR_FILE)

    async def probe_total_frames(self, tour: str) -> int:
        """Count decoded frames with ffprobe. Raises ProbeUnavailable."""
        args = [
            "-v", "error",
            "-count_frames",
            "-select_streams", "v:0",
            "-show_entries", "stream=nb_read_frames",
            "-of", "csv=p=0",
            tour,
        ]
        try:
            out = await self.call_tool(
                self.settings.ffprobe, args,
                timeout=self.settings.probe_timeout_s, announce=False,
            )
        except StageProcessError as e:
            raise ProbeUnavailable(str(e)) from e

        text = out.stdout.strip().splitlines()[0].strip(",") if out.stdout.strip() else ""
        try:
            frames = int(text)
        except ValueError:
            raise ProbeUnavailable(f"Unexpected ffprobe output: {out.stdout.strip()!r}") from None
        if frames <= 0:
            raise ProbeUnavailable(f"ffprobe reported {frames} frames")
        return frames

    async def total_frames(self, tour: str) -> int:
        try:
            return await self.probe_total_frames(tour)
        except ProbeUnavailable as e:
            fallback = self.settings.fallback_total_frames
            self.log(
                f"Could not probe frame count ({e}), using approximate estimate of {fallback} frames",
                severity="warning",
            )
            return fallback

    def chunk_size(self, pressure: int) -> int:
        base = self.config.chunk_frames
        if self.config.auto_chunk_reduction:
            return adaptive_chunk_size(base, pressure)
        return base

    def extract_args(self, tour: str, offset: int, frames: int, clip: Path) -> list[str]:
        fps = self.config.render_fps
        return [
            "-y",
            "-i", tour,
            "-ss", f"{offset / fps:.3f}",
            "-t", f"{frames / fps:.3f}",
            "-c", "copy",
            str(clip),
        ]

    def reasoning_args(self, clip: Path, output: Path, previous_output: str | None) -> list[str]:
        args = [
            "-m", self.settings.reasoning_module,
            "--model-path", self.settings.reasoning_model,
            "--input", str(clip),
            "--prompt", self.config.reasoning_prompt,
            "--quantize", self.config.quantization,
            "--output", str(output),
        ]
        if self.config.cpu_offload:
            args.append("--cpu-offload")
        if previous_output is not None:
            args.extend(["--condition-frame-source", previous_output])
        return args

    async def run(self) -> list[str]:
        tour = self.tour_path()
        total = await self.total_frames(tour)
        self.log(f"Splitting tour into {self.config.chunk_frames}-frame chunks ({total} frames)")

        outputs: list[str] = []
        chunks: list[dict] = []
        offset = 0
        index = 0

        while offset < total:
            pressure = get_pressure()
            size = self.chunk_size(pressure)
            frames = min(size, total - offset)

            clip = self.work_dir / CHUNK_CLIP_TEMPLATE.format(index=index)
            output = self.work_dir / CHUNK_OUTPUT_TEMPLATE.format(index=index)
            previous = outputs[-1] if outputs else None

            self.log(
                f"Chunk {index}: frames {offset}-{offset + frames} "
                f"(size {size}, pressure {pressure}%)"
            )

            try:
                await self.call_tool(
                    self.settings.ffmpeg, self.extract_args(tour, offset, frames, clip),
                    announce=False,
                )
                await self.call_tool(
                    self.settings.python, self.reasoning_args(clip, output, previous),
                    announce=False,
                )
            finally:
                self.remove_quietly(clip)

            outputs.append(str(output))
            chunks.append({
                "index": index, "offset": offset, "size": size,
                "frames": frames, "pressure": pressure, "output": str(output),
            })
            offset += size
            index += 1

        self.details = {"total_frames": total, "chunks": chunks}
        self.log(f"Annotated {len(outputs)} chunks")
        return outputs
