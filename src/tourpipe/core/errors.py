"""Error kinds raised by the pipeline core."""


class TourpipeError(Exception):
    """Base class for all tourpipe errors."""


class StageProcessError(TourpipeError):
    """An external tool exited non-zero, timed out, or could not be started."""

    def __init__(
        self,
        executable: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
        started: bool = True,
        timed_out: bool = False,
        reason: str = "",
    ):
        self.executable = executable
        self.returncode = returncode
        self.stderr = stderr
        self.started = started
        self.timed_out = timed_out
        if not started:
            message = f"Could not start {executable}: {reason}"
        elif timed_out:
            message = f"{executable} timed out: {reason}"
        else:
            message = f"Process exited with code {returncode}"
        if stderr:
            message = f"{message}\n{stderr}"
        super().__init__(message)


class ProbeUnavailable(TourpipeError):
    """A frame-count or memory probe failed; callers fall back to a default."""


class MissingDependency(TourpipeError):
    """A stage was requested before its prerequisite stage produced output."""


class NotFound(TourpipeError):
    """No valid project record exists for the given id."""


class RunInProgress(TourpipeError):
    """A run for this project id is already active."""
