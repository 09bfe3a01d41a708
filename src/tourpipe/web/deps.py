"""Request dependencies: the process-wide Settings and ProjectStore."""

import os
from functools import lru_cache

from fastapi import Depends

from ..core.config import Settings, load_settings
from ..core.project import ProjectStore


@lru_cache(maxsize=1)
def app_settings() -> Settings:
    """Loaded once per process; TOURPIPE_CONFIG names an override TOML."""
    return load_settings(os.environ.get("TOURPIPE_CONFIG") or None)


def app_store(settings: Settings = Depends(app_settings)) -> ProjectStore:
    return ProjectStore(settings.projects_root)
