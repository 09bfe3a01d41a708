"""Render stage: fly a camera through the point cloud, producing the tour video.

CLI: python -m <render_module> --scene scene.ply --trajectory T
     --resolution WxH --fps F --output tour.mp4
"""

from ..core.constants import SCENE_FILE, STAGE_RENDER, STAGE_SPATIAL, TOUR_FILE
from .base import StageExecutor


class RenderExecutor(StageExecutor):
    stage_name = STAGE_RENDER

    def scene_path(self) -> str:
        """The spatial stage's recorded output, else the conventional file."""
        recorded = self.project.stage(STAGE_SPATIAL).output_path
        return recorded or str(self.work_dir / SCENE_FILE)

    def build_args(self) -> list[str]:
        return [
            "-m", self.settings.render_module,
            "--scene", self.scene_path(),
            "--trajectory", self.config.camera_trajectory,
            "--resolution", self.config.render_resolution,
            "--fps", str(self.config.render_fps),
            "--output", str(self.work_dir / TOUR_FILE),
        ]

    async def run(self) -> str:
        await self.call_tool(self.settings.python, self.build_args())
        return str(self.work_dir / TOUR_FILE)
