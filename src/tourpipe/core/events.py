"""Structured stage log events."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

SEVERITY_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class StageEvent:
    """One log entry for a stage.

    The durable stage log keeps the rendered line; the structured form is
    what goes to the Python logger.
    """
    stage: str
    message: str
    severity: str = "info"  # "info" | "warning" | "error"
    timestamp: datetime = field(default_factory=datetime.now)

    def render(self) -> str:
        """Human-readable line stored in StageResult.logs."""
        prefix = f"[{self.timestamp.strftime('%H:%M:%S')}]"
        if self.severity == "info":
            return f"{prefix} {self.message}"
        return f"{prefix} {self.severity.upper()}: {self.message}"

    @property
    def level(self) -> int:
        return SEVERITY_LEVELS.get(self.severity, logging.INFO)


# Callback handed to stage executors: log(message, severity="info")
StageLogger = Callable[..., None]
