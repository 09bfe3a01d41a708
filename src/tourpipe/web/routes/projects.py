"""Project routes: create, list, inspect, relaunch, delete, stream progress.

Runs are started through the background supervisor and never awaited here.
Progress is whatever the orchestrator last persisted to project.json.
"""

import asyncio
import json

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from ...core.config import Settings
from ...core.constants import (
    STAGE_COMPOSITE,
    STAGE_ORDER,
    STAGE_REASONING,
    STATUS_CONFIGURED,
    STATUS_DONE,
    STATUS_FAILED,
)
from ...core.errors import NotFound, RunInProgress
from ...core.models import PipelineConfig, spatial_memory_cap
from ...core.project import ProjectStore, sanitize_input
from ...pipeline.runner import is_running, relaunch, start_run
from ..deps import app_settings, app_store

router = APIRouter(prefix="/api/projects", tags=["projects"])

TERMINAL_STATUSES = (STATUS_DONE, STATUS_FAILED)


class LaunchRequest(BaseModel):
    """Body of POST /api/projects, mirroring the creation form."""
    name: str
    input_video_path: str
    reasoning_prompt: str
    pose_data_path: str | None = None
    num_views: int = 16
    render_resolution: str = "1920x1080"
    render_fps: int = 30
    camera_trajectory: str = "orbit"
    chunk_frames: int = 16
    quantization: str = "8bit"
    cpu_offload: bool = True
    auto_chunk_reduction: bool = True
    max_memory_gb: int | None = None
    start: bool = True


def _read_or_404(store: ProjectStore, project_id: str):
    try:
        return store.read(project_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


def _project_payload(project) -> dict:
    payload = project.to_dict()
    payload["running"] = is_running(project.id)
    return payload


@router.get("")
async def list_projects(store: ProjectStore = Depends(app_store)):
    return [_project_payload(p) for p in store.scan()]


@router.post("", status_code=201)
async def create_project(
    body: LaunchRequest,
    settings: Settings = Depends(app_settings),
    store: ProjectStore = Depends(app_store),
):
    """Create a project and, unless start is false, run it in the background."""
    memory_cap = body.max_memory_gb or settings.default_max_memory_gb
    try:
        config = PipelineConfig(
            num_views=body.num_views,
            max_spatial_memory_gb=spatial_memory_cap(memory_cap),
            render_resolution=body.render_resolution,
            render_fps=body.render_fps,
            camera_trajectory=body.camera_trajectory,
            reasoning_prompt=sanitize_input(body.reasoning_prompt),
            chunk_frames=body.chunk_frames,
            quantization=body.quantization,
            cpu_offload=body.cpu_offload,
            max_memory_gb=memory_cap,
            auto_chunk_reduction=body.auto_chunk_reduction,
        )
        project = store.create(
            body.name, body.input_video_path, config,
            pose_data_path=body.pose_data_path,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if body.start:
        start_run(project.id, store, settings)
    return _project_payload(project)


@router.get("/{project_id}")
async def get_project(project_id: str, store: ProjectStore = Depends(app_store)):
    return _project_payload(_read_or_404(store, project_id))


@router.delete("/{project_id}")
async def delete_project(project_id: str, store: ProjectStore = Depends(app_store)):
    _read_or_404(store, project_id)
    if is_running(project_id):
        raise HTTPException(status_code=409, detail=f"A run for {project_id} is still active")
    store.delete(project_id)
    return {"deleted": project_id}


@router.post("/{project_id}/relaunch", status_code=202)
async def relaunch_project(
    project_id: str,
    settings: Settings = Depends(app_settings),
    store: ProjectStore = Depends(app_store),
):
    """Reset all stages and run the full pipeline again."""
    _read_or_404(store, project_id)
    try:
        relaunch(project_id, store, settings)
    except RunInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _project_payload(store.read(project_id))


@router.post("/{project_id}/stages/{stage}/run", status_code=202)
async def run_stage(
    project_id: str,
    stage: str,
    settings: Settings = Depends(app_settings),
    store: ProjectStore = Depends(app_store),
):
    """Re-run a single stage in the background."""
    if stage not in STAGE_ORDER:
        raise HTTPException(status_code=400, detail=f"Unknown stage: {stage}")
    project = _read_or_404(store, project_id)
    if stage == STAGE_COMPOSITE and not project.stage(STAGE_REASONING).output_paths():
        raise HTTPException(
            status_code=409,
            detail="No reasoning output chunks found; run the reasoning stage first",
        )
    try:
        start_run(project_id, store, settings, stage=stage)
    except RunInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"id": project_id, "stage": stage}


def _settled(project) -> bool:
    """Finished, failed, or left between stages by a single-stage run."""
    if project.status in TERMINAL_STATUSES:
        return True
    return project.status != STATUS_CONFIGURED and project.running_stage() is None


async def project_events(store: ProjectStore, project_id: str, interval: float = 1.0):
    """Yield a "project" event whenever the record changes, then "complete"."""
    last_update = None
    while True:
        try:
            project = store.read(project_id)
        except NotFound as e:
            yield {"event": "error", "data": str(e)}
            return

        if project.updated_at != last_update:
            last_update = project.updated_at
            yield {"event": "project", "data": json.dumps(_project_payload(project))}

        if _settled(project) and not is_running(project_id):
            yield {"event": "complete", "data": project.status}
            return

        await asyncio.sleep(interval)


@router.get("/{project_id}/events")
async def stream_project(project_id: str, store: ProjectStore = Depends(app_store)):
    """SSE stream of project state for live monitors."""
    _read_or_404(store, project_id)
    return EventSourceResponse(project_events(store, project_id))
