"""tourpipe init: Create a new project from a walkthrough video."""

import asyncio
from pathlib import Path

import typer
from rich.panel import Panel

from ..core.models import PipelineConfig, spatial_memory_cap
from ..core.project import sanitize_input
from ..pipeline.orchestrator import Orchestrator
from .common import console, get_settings, get_store, print_outcome


def init(
    ctx: typer.Context,
    video: Path = typer.Argument(
        ...,
        help="Walkthrough video to reconstruct",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    prompt: str = typer.Option(
        ...,
        "--prompt",
        help="Instructions for the reasoning model (what to overlay on the tour)",
    ),
    name: str = typer.Option(
        None,
        "--name", "-n",
        help="Project name (defaults to the video file name)",
    ),
    poses: Path = typer.Option(
        None,
        "--poses",
        help="Optional camera pose file (ARKit, Polycam, Scaniverse)",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    views: int = typer.Option(16, "--views", help="Reconstruction views (4, 8, 16, 32)"),
    trajectory: str = typer.Option("orbit", "--trajectory", help="orbit | flythrough | custom"),
    resolution: str = typer.Option("1920x1080", "--resolution", help="Render resolution WxH"),
    fps: int = typer.Option(30, "--fps", help="Render frame rate"),
    chunk_frames: int = typer.Option(16, "--chunk-frames", help="Frames per reasoning chunk"),
    quantization: str = typer.Option("8bit", "--quantization", help="8bit | 4bit"),
    cpu_offload: bool = typer.Option(
        True, "--cpu-offload/--no-cpu-offload",
        help="Offload model layers to CPU during inference",
    ),
    auto_chunk: bool = typer.Option(
        True, "--auto-chunk/--no-auto-chunk",
        help="Halve chunks while memory pressure is above 80%",
    ),
    max_memory: int = typer.Option(
        None, "--max-memory",
        help="Overall memory cap in GB (defaults to runtime.max_memory_gb)",
    ),
    run_now: bool = typer.Option(
        False, "--run",
        help="Run the full pipeline right away",
    ),
) -> None:
    """Create a new tourpipe project."""
    settings = get_settings(ctx)
    store = get_store(ctx)

    memory_cap = max_memory or settings.default_max_memory_gb
    try:
        config = PipelineConfig(
            num_views=views,
            max_spatial_memory_gb=spatial_memory_cap(memory_cap),
            render_resolution=resolution,
            render_fps=fps,
            camera_trajectory=trajectory,
            reasoning_prompt=sanitize_input(prompt),
            chunk_frames=chunk_frames,
            quantization=quantization,
            cpu_offload=cpu_offload,
            max_memory_gb=memory_cap,
            auto_chunk_reduction=auto_chunk,
        )
        project = store.create(
            name or video.stem,
            str(video),
            config,
            pose_data_path=str(poses) if poses else None,
        )
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(Panel(
        f"[bold]{project.name}[/bold]\n\n"
        f"Id:         {project.id}\n"
        f"Location:   {project.output_dir}\n"
        f"Video:      {project.input_video_path}\n"
        f"Poses:      {project.pose_data_path or '-'}\n"
        f"Render:     {resolution} @ {fps} fps, {trajectory}\n"
        f"Reasoning:  {chunk_frames}-frame chunks, {quantization}",
        title="Project created",
        border_style="green",
    ))

    if not run_now:
        console.print(f"\nNext: [cyan]tourpipe run {project.id}[/cyan]")
        return

    with console.status("[bold green]Running pipeline..."):
        project = asyncio.run(Orchestrator(project, store, settings).run_pipeline())
    print_outcome(project)
