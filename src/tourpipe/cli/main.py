"""Tourpipe CLI: Typer application with subcommands."""

import logging
from pathlib import Path

import typer
from rich.logging import RichHandler

from .init_cmd import init
from .run_cmd import run, relaunch
from .status_cmd import status, list_projects
from .delete_cmd import delete
from .doctor_cmd import doctor
from .web_cmd import web

app = typer.Typer(
    name="tourpipe",
    help="Walkthrough video to annotated 3D tour pipeline.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(
        None,
        "--config", "-c",
        help="TOML file merged over config/defaults.toml",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)["config_path"] = config


app.command()(init)
app.command()(run)
app.command()(relaunch)
app.command()(status)
app.command(name="list")(list_projects)
app.command()(delete)
app.command()(doctor)
app.command()(web)


if __name__ == "__main__":
    app()
