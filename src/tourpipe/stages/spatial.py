"""Spatial stage: video (+ optional poses) to a point cloud.

CLI: python -m <spatial_module> --input <video> --checkpoint <ckpt>
     --output scene.ply --device <dev> --num-views N --max-memory GB [--poses <file>]
"""

from ..core.constants import SCENE_FILE, STAGE_SPATIAL
from .base import StageExecutor


class SpatialExecutor(StageExecutor):
    stage_name = STAGE_SPATIAL

    def build_args(self) -> list[str]:
        args = [
            "-m", self.settings.spatial_module,
            "--input", self.project.input_video_path,
            "--checkpoint", self.settings.spatial_checkpoint,
            "--output", str(self.work_dir / SCENE_FILE),
            "--device", self.settings.device,
            "--num-views", str(self.config.num_views),
            "--max-memory", str(self.config.max_spatial_memory_gb),
        ]
        if self.project.pose_data_path:
            args.extend(["--poses", self.project.pose_data_path])
        return args

    async def run(self) -> str:
        await self.call_tool(self.settings.python, self.build_args())
        return str(self.work_dir / SCENE_FILE)
