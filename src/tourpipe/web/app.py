"""FastAPI app exposing projects, runs and diagnostics as JSON."""

from fastapi import FastAPI

from .routes import projects, system

app = FastAPI(title="tourpipe", docs_url=None, redoc_url=None)

app.include_router(projects.router)
app.include_router(system.router)
