"""Composite stage: stream-copy the annotated chunks into one final video.

CLI: ffmpeg -y -f concat -safe 0 -i chunks.txt -c copy final.mp4
"""

from pathlib import Path

from ..core.config import Settings
from ..core.constants import CONCAT_MANIFEST, FINAL_FILE, STAGE_COMPOSITE
from ..core.errors import MissingDependency
from ..core.events import StageLogger
from ..core.models import PipelineProject
from .base import StageExecutor


def manifest_line(path: str) -> str:
    """One concat-demuxer entry; single quotes are closed, escaped, reopened."""
    escaped = path.replace("'", "'\\''")
    return f"file '{escaped}'"


class CompositeExecutor(StageExecutor):
    stage_name = STAGE_COMPOSITE

    def __init__(
        self,
        project: PipelineProject,
        settings: Settings,
        log: StageLogger,
        *,
        chunks: list[str],
    ):
        super().__init__(project, settings, log)
        self.chunks = list(chunks)

    def write_manifest(self) -> Path:
        manifest = self.work_dir / CONCAT_MANIFEST
        manifest.write_text(
            "\n".join(manifest_line(c) for c in self.chunks) + "\n",
            encoding="utf-8",
        )
        return manifest

    async def run(self) -> str:
        if not self.chunks:
            raise MissingDependency("No reasoning output chunks to composite")

        final = self.work_dir / FINAL_FILE
        manifest = self.write_manifest()
        self.log(f"Concatenating {len(self.chunks)} chunks into {final.name}")

        await self.call_tool(self.settings.ffmpeg, [
            "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(manifest),
            "-c", "copy",
            str(final),
        ])

        for chunk in self.chunks:
            self.remove_quietly(Path(chunk))
        self.remove_quietly(manifest)

        self.details = {"chunk_count": len(self.chunks), "final": self.file_stats(final)}
        return str(final)
