"""tourpipe status / list: Show persisted project state."""

import typer
from rich.table import Table

from ..core.constants import STAGE_LABELS
from ..core.errors import NotFound
from ..core.memory import get_pressure, label
from ..core.models import PipelineProject
from .common import console, get_store, stage_table, styled_status

SEVERITY_STYLES = {"normal": "green", "warning": "yellow", "critical": "red"}


def status(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id (see `tourpipe list`)"),
    log_lines: int = typer.Option(5, "--logs", help="Log lines to show per stage"),
) -> None:
    """Show stage status, recent log lines and current memory pressure."""
    store = get_store(ctx)
    try:
        project = store.read(project_id)
    except NotFound as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]{project.name}[/bold]  {styled_status(project.status)}")
    console.print(f"Location: {project.output_dir}")
    console.print(f"Video:    {project.input_video_path}")
    console.print(f"Updated:  {project.updated_at}")
    mem = label(get_pressure())
    console.print(f"Memory:   [{SEVERITY_STYLES[mem.severity]}]{mem.text}[/]")
    console.print()
    console.print(stage_table(project))

    if log_lines > 0:
        for stage in project.stages:
            if not stage.logs:
                continue
            console.print(f"\n[bold cyan]{STAGE_LABELS[stage.stage]}[/bold cyan]")
            for line in stage.logs[-log_lines:]:
                console.print(f"  {line}", markup=False, highlight=False)

    if project.error:
        console.print(f"\n[bold red]Error:[/bold red] {project.error}")


def list_projects(ctx: typer.Context) -> None:
    """List all projects, most recently updated first."""
    projects = get_store(ctx).scan()
    if not projects:
        console.print("[dim]No projects yet. Create one with `tourpipe init`.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Stage")
    table.add_column("Resolution")
    table.add_column("Updated")

    for project in projects:
        table.add_row(
            project.id,
            project.name,
            styled_status(project.status),
            current_stage_name(project),
            project.config.render_resolution,
            project.updated_at[:19].replace("T", " "),
        )
    console.print(table)


def current_stage_name(project: PipelineProject) -> str:
    """The running stage, else the last finished one, else waiting."""
    running = project.running_stage()
    if running:
        return STAGE_LABELS[running.stage]
    for stage in reversed(project.stages):
        if stage.status == "done":
            return f"{STAGE_LABELS[stage.stage]} (done)"
    return "Waiting"
