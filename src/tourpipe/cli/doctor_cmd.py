"""tourpipe doctor: Check that every external tool is available."""

import asyncio

import typer
from rich.table import Table

from ..core.environment import check_environment
from ..core.memory import get_pressure, label
from .common import console, get_settings


def doctor(ctx: typer.Context) -> None:
    """Probe the interpreter, PyTorch, FFmpeg and model files."""
    settings = get_settings(ctx)

    with console.status("[bold green]Checking environment..."):
        checks = asyncio.run(check_environment(settings))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Check", style="cyan")
    table.add_column("OK")
    table.add_column("Details")
    for check in checks:
        detail = check.version or check.error or check.command
        table.add_row(check.name, "[green]yes[/green]" if check.ok else "[red]no[/red]", detail)
    console.print(table)

    console.print(f"\nMemory pressure: {label(get_pressure()).text}")
    console.print(f"Projects root:   {settings.projects_root}")

    if not all(c.ok for c in checks):
        raise typer.Exit(1)
