"""Helpers shared by CLI commands."""

import typer
from rich.console import Console
from rich.table import Table

from ..core.config import Settings, load_settings
from ..core.constants import STAGE_LABELS
from ..core.models import PipelineProject
from ..core.project import ProjectStore

console = Console()

STATUS_STYLES = {
    "done": "[green]done[/green]",
    "failed": "[red]failed[/red]",
    "running": "[yellow]running[/yellow]",
    "pending": "[dim]pending[/dim]",
    "configured": "[dim]configured[/dim]",
}


def get_settings(ctx: typer.Context) -> Settings:
    """Settings for this invocation, loaded once in the app callback."""
    obj = ctx.ensure_object(dict)
    if "settings" not in obj:
        obj["settings"] = load_settings(obj.get("config_path"))
    return obj["settings"]


def get_store(ctx: typer.Context) -> ProjectStore:
    return ProjectStore(get_settings(ctx).projects_root)


def styled_status(status: str) -> str:
    return STATUS_STYLES.get(status, f"[yellow]{status}[/yellow]")


def stage_table(project: PipelineProject) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Peak GB", justify="right")
    table.add_column("Output")

    for stage in project.stages:
        peak = f"{stage.memory_peak_gb:.1f}" if stage.memory_peak_gb is not None else ""
        output = stage.output_path or ""
        if len(stage.output_paths()) > 1:
            output = f"{len(stage.output_paths())} chunks"
        table.add_row(STAGE_LABELS[stage.stage], styled_status(stage.status), peak, output)
    return table


def print_outcome(project: PipelineProject) -> None:
    """Final summary after a foreground run."""
    console.print(stage_table(project))
    if project.status == "failed":
        console.print(f"\n[bold red]Pipeline failed:[/bold red] {project.error}")
        raise typer.Exit(1)
    console.print(f"\n[bold green]Project {project.id}: {project.status}[/bold green]")
