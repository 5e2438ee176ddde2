from __future__ import annotations

from typing import List, Optional, Sequence

from stackrepl.core.context import StackReplContext
from stackrepl.execution.command import CaptureOutput, ProcessResult
from stackrepl.execution.process_runner import ProcessRunner
from stackrepl.runtime.contracts import ProgressSink
from stackrepl.utils.diagnostics import ProcessSpawnError


class StackCommands:
    """
    The concrete `stack` invocations used by the load orchestrator and the
    bootstrap coordinator. Also serves as the project-build collaborator.
    """

    def __init__(self, runner: ProcessRunner, context: StackReplContext) -> None:
        self.runner = runner
        self.context = context

    @property
    def work_dir(self) -> str:
        return self.context.root_dir

    def run_command(
        self,
        arguments: Sequence[str],
        timeout_seconds: Optional[float] = None,
        capture_output: CaptureOutput = CaptureOutput.NONE,
        notify_balloon_error: bool = False,
        ignore_exit_code: bool = False,
        label: Optional[str] = None,
    ) -> ProcessResult:
        return self.runner.run_command(
            work_dir=self.work_dir,
            executable=self.context.process.stack_path,
            arguments=list(arguments),
            timeout_seconds=timeout_seconds or self.context.process.default_timeout_seconds,
            capture_output=capture_output,
            notify_balloon_error=notify_balloon_error,
            ignore_exit_code=ignore_exit_code,
            label=label,
        )

    def execute_build(self, arguments: Sequence[str], description: str, label: Optional[str] = None) -> bool:
        """Run a long build whose output streams to the log as it arrives."""
        self.runner.notifier.log_info(f"{description} is started")
        result = self.run_command(
            arguments,
            timeout_seconds=self.context.build_timeout_seconds,
            capture_output=CaptureOutput.TO_LOG,
            notify_balloon_error=True,
            label=label,
        )
        if result.succeeded:
            self.runner.notifier.log_info(f"{description} is finished")
        return result.succeeded

    def build_library(self, target: str) -> bool:
        return self.execute_build(["build", target, "--fast"], f"Build of `{target}`")

    def build_targets(self, targets: List[str], description: str, label: Optional[str] = None) -> bool:
        return self.execute_build(["build", *targets], description, label=label)

    def build_project(self, progress: Optional[ProgressSink] = None) -> Optional[bool]:
        if progress is not None:
            progress.set_text("Building project")
        result = self.run_command(
            ["build", "--fast"],
            timeout_seconds=self.context.build_timeout_seconds,
            capture_output=CaptureOutput.TO_LOG,
            notify_balloon_error=True,
        )
        if progress is not None:
            progress.set_text("Building project finished" if result.succeeded else "Building project failed")
        if result.timed_out:
            return None
        return result.succeeded

    def hoogle_version(self) -> Optional[str]:
        """Return the installed hoogle version, or None when it cannot be determined."""
        try:
            result = self.run_command(["exec", "--", "hoogle", "--numeric-version"])
        except ProcessSpawnError:
            return None
        if not result.succeeded:
            return None
        version = result.stdout.strip()
        return version or None

    def rebuild_hoogle_index(self, label: Optional[str] = None) -> ProcessResult:
        return self.run_command(
            ["hoogle", "--rebuild"],
            timeout_seconds=self.context.bootstrap.index_timeout_minutes * 60.0,
            label=label,
        )
