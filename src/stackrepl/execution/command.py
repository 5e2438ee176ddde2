from __future__ import annotations

import shlex
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TIMEOUT_SECONDS = 3.0


class CaptureOutput(str, Enum):
    """Output policy for a command run."""

    NONE = "none"
    TO_LOG = "to_log"


class ProcessStatus(str, Enum):
    """Classification of a finished command run."""

    SUCCEEDED = "succeeded"
    FAILED_EXIT_CODE = "failed_exit_code"
    TIMED_OUT = "timed_out"


class Command(BaseModel):
    """One external command invocation. Built once and never mutated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    work_dir: str
    executable: str
    arguments: Tuple[str, ...] = ()
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    capture_output: CaptureOutput = CaptureOutput.NONE
    notify_balloon_error: bool = False
    ignore_exit_code: bool = False
    label: Optional[str] = None

    def argv(self) -> List[str]:
        return [self.executable, *self.arguments]

    def render(self) -> str:
        """Return the command line as it appears in diagnostics."""
        return shlex.join(self.argv())


class ProcessResult(BaseModel):
    """Outcome of one command run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: ProcessStatus
    exit_code: Optional[int] = None
    stdout_lines: Tuple[str, ...] = ()
    stderr_lines: Tuple[str, ...] = ()

    @property
    def timed_out(self) -> bool:
        return self.status == ProcessStatus.TIMED_OUT

    @property
    def succeeded(self) -> bool:
        return self.status == ProcessStatus.SUCCEEDED

    @property
    def stdout(self) -> str:
        return "\n".join(self.stdout_lines)

    @property
    def stderr(self) -> str:
        return "\n".join(self.stderr_lines)


def classify_exit(exit_code: Optional[int], timed_out: bool, ignore_exit_code: bool) -> ProcessStatus:
    """Map a raw exit into exactly one ProcessStatus."""
    if timed_out:
        return ProcessStatus.TIMED_OUT
    if not ignore_exit_code and exit_code != 0:
        return ProcessStatus.FAILED_EXIT_CODE
    return ProcessStatus.SUCCEEDED
