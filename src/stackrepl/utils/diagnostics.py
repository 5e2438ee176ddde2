from typing import Optional


class StackReplError(Exception):
    """Base class for errors raised by stackrepl."""


class ConfigError(StackReplError):
    """Raised when stackrepl.yaml cannot be read or validated."""


class ProcessSpawnError(StackReplError):
    """
    Raised when an external command cannot be started at all.

    Timeouts and non-zero exits are not errors; they are reported through
    the returned ProcessResult.
    """
    def __init__(self, command_line: str, reason: str):
        self.command_line = command_line
        self.reason = reason
        super().__init__(f"Unable to start {command_line}: {reason}")


class BackgroundTaskTimeout(StackReplError):
    """
    Raised by the bootstrap coordinator when a background task does not
    finish within its join bound.
    """
    def __init__(self, task_name: str, timeout_seconds: float, cause: Optional[str] = None):
        self.task_name = task_name
        self.timeout_seconds = timeout_seconds
        detail = f" ({cause})" if cause else ""
        super().__init__(
            f"Background task '{task_name}' did not finish within {timeout_seconds:.0f}s{detail}"
        )
