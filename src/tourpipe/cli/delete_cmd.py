"""tourpipe delete: Remove a project and all of its files."""

import typer

from ..core.errors import NotFound
from .common import console, get_store


def delete(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id (see `tourpipe list`)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a project directory permanently."""
    store = get_store(ctx)
    try:
        project = store.read(project_id)
    except NotFound as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not yes:
        typer.confirm(
            f"Delete '{project.name}' and everything in {project.output_dir}?",
            abort=True,
        )

    store.delete(project_id)
    console.print(f"[green]Deleted {project_id}[/green]")
