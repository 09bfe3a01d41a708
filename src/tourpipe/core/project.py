"""ProjectStore: one project.json per project directory, atomic rewrites.

The orchestrator persists after every stage transition and log line, so a
write must never leave a half-written file for a polling reader.
"""

import json
import logging
import os
import re
import shutil
import tempfile
import uuid
from pathlib import Path

from .constants import PROJECT_FILE
from .errors import NotFound
from .models import PipelineConfig, PipelineProject, utc_now

logger = logging.getLogger(__name__)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def sanitize_input(value: str) -> str:
    """Strip whitespace and control characters from user text."""
    return _CONTROL_CHARS_RE.sub("", value.strip())


def to_slug(name: str) -> str:
    return _SLUG_RE.sub("-", name.lower()).strip("-")


def generate_id(name: str) -> str:
    """Stable project id: slug of the name plus a random suffix."""
    slug = to_slug(name) or "project"
    return f"{slug}-{uuid.uuid4().hex[:8]}"


class ProjectStore:
    """Reads and writes project records under a projects root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def project_dir(self, project_id: str) -> Path:
        return self.root / project_id

    def project_path(self, project_id: str) -> Path:
        return self.project_dir(project_id) / PROJECT_FILE

    def create(
        self,
        name: str,
        input_video_path: str,
        config: PipelineConfig,
        *,
        pose_data_path: str | None = None,
    ) -> PipelineProject:
        """Create and persist a new project with four pending stages."""
        name = sanitize_input(name)
        if not name:
            raise ValueError("Project name must not be empty")
        if not input_video_path:
            raise ValueError("An input video is required")

        project_id = generate_id(name)
        project = PipelineProject(
            id=project_id,
            name=name,
            input_video_path=str(input_video_path),
            pose_data_path=str(pose_data_path) if pose_data_path else None,
            output_dir=str(self.project_dir(project_id)),
            config=config,
        )
        self.write(project)
        logger.info("Created project %s", project_id)
        return project

    def write(self, project: PipelineProject) -> None:
        """Stamp updated_at and atomically replace the project's JSON file."""
        project_dir = self.project_dir(project.id)
        project_dir.mkdir(parents=True, exist_ok=True)
        project.updated_at = utc_now()

        fd, tmp_name = tempfile.mkstemp(
            prefix=".project-", suffix=".json.tmp", dir=project_dir,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(project.to_dict(), f, indent=2)
            os.replace(tmp_name, project_dir / PROJECT_FILE)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def read(self, project_id: str) -> PipelineProject:
        """Load one project. Raises NotFound if absent or malformed."""
        path = self.project_path(project_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return PipelineProject.from_dict(data)
        except FileNotFoundError:
            raise NotFound(f"Project not found: {project_id}") from None
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise NotFound(f"Project record is unreadable: {project_id} ({e})") from e

    def scan(self) -> list[PipelineProject]:
        """All valid projects, most recently updated first."""
        if not self.root.is_dir():
            return []

        projects = []
        for entry in self.root.iterdir():
            if not entry.is_dir():
                continue
            try:
                projects.append(self.read(entry.name))
            except NotFound:
                logger.debug("Skipping %s: no valid project record", entry)
        projects.sort(key=lambda p: p.updated_at, reverse=True)
        return projects

    def delete(self, project_id: str) -> None:
        """Remove a project directory and everything in it."""
        project_dir = self.project_dir(project_id)
        if not (project_dir / PROJECT_FILE).exists():
            raise NotFound(f"Project not found: {project_id}")
        shutil.rmtree(project_dir)
        logger.info("Deleted project %s", project_id)

    def __repr__(self) -> str:
        return f"ProjectStore({self.root})"
