"""tourpipe run / relaunch: Run a project in the foreground."""

import asyncio

import typer

from ..core.constants import STAGE_ORDER
from ..core.errors import MissingDependency, NotFound
from ..pipeline.orchestrator import Orchestrator
from .common import console, get_settings, get_store, print_outcome


def run(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id (see `tourpipe list`)"),
    stage: str = typer.Option(
        None,
        "--stage", "-s",
        help=f"Run only this stage ({', '.join(STAGE_ORDER)})",
    ),
) -> None:
    """Run the full pipeline, or re-run a single stage."""
    settings = get_settings(ctx)
    store = get_store(ctx)

    if stage is not None and stage not in STAGE_ORDER:
        console.print(f"[red]Unknown stage: {stage}. Choose from {', '.join(STAGE_ORDER)}[/red]")
        raise typer.Exit(1)

    try:
        project = store.read(project_id)
    except NotFound as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    orchestrator = Orchestrator(project, store, settings)
    label = f"stage {stage}" if stage else "pipeline"
    console.print(f"[bold]Running {label} for:[/bold] {project.name}")

    try:
        with console.status(f"[bold green]Running {label}..."):
            if stage:
                project = asyncio.run(orchestrator.run_single_stage(stage))
            else:
                project = asyncio.run(orchestrator.run_pipeline())
    except MissingDependency as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    print_outcome(project)


def relaunch(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id (see `tourpipe list`)"),
) -> None:
    """Reset every stage and run the whole pipeline again."""
    settings = get_settings(ctx)
    store = get_store(ctx)

    try:
        project = store.read(project_id)
    except NotFound as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    project.reset()
    store.write(project)
    console.print(f"[yellow]Stages reset for {project.name}, relaunching...[/yellow]")

    with console.status("[bold green]Running pipeline..."):
        project = asyncio.run(Orchestrator(project, store, settings).run_pipeline())
    print_outcome(project)
