"""tourpipe web: Start the HTTP API."""

import os

import typer

from .common import console


def web(
    ctx: typer.Context,
    port: int = typer.Option(
        8000,
        "--port",
        help="HTTP port for the API",
    ),
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        help="Host to bind to",
    ),
) -> None:
    """Start the tourpipe HTTP API (FastAPI + SSE)."""
    import uvicorn

    config_path = ctx.ensure_object(dict).get("config_path")
    if config_path:
        # The app is imported by uvicorn, so hand the override over by env var
        os.environ["TOURPIPE_CONFIG"] = str(config_path)

    console.print("[bold]Starting tourpipe API[/bold]")
    console.print(f"URL: http://{host}:{port}/api/projects")
    console.print()

    uvicorn.run(
        "tourpipe.web.app:app",
        host=host,
        port=port,
        reload=False,
    )
