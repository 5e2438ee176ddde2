from __future__ import annotations

import subprocess
import threading
from typing import IO, Dict, List, Optional, Sequence

from stackrepl.execution.command import (
    DEFAULT_TIMEOUT_SECONDS,
    CaptureOutput,
    Command,
    ProcessResult,
    ProcessStatus,
    classify_exit,
)
from stackrepl.runtime.contracts import NotificationSink
from stackrepl.utils.diagnostics import ProcessSpawnError

# Reader threads get this long to drain pipes after the process is gone.
_READER_JOIN_SECONDS = 2.0


def render_log_message(command: Command, result: ProcessResult) -> str:
    """Aggregate diagnostic: command line, stdout lines, then stderr lines."""
    return f"{command.render()}:  {result.stdout} \n {result.stderr}"


class ProcessRunner:
    """
    Synchronous, timeout-bounded execution of external commands.

    Failures are never raised: a timeout or non-zero exit is carried in the
    returned ProcessResult and reported once through the notification sink.
    Only a command that cannot be started raises ProcessSpawnError.
    """

    def __init__(self, notifier: NotificationSink) -> None:
        self.notifier = notifier
        self._running: Dict[int, tuple[Optional[str], subprocess.Popen]] = {}
        self._running_lock = threading.Lock()

    def run_command(
        self,
        work_dir: str,
        executable: str,
        arguments: Sequence[str],
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        capture_output: CaptureOutput = CaptureOutput.NONE,
        notify_balloon_error: bool = False,
        ignore_exit_code: bool = False,
        label: Optional[str] = None,
    ) -> ProcessResult:
        command = Command(
            work_dir=work_dir,
            executable=executable,
            arguments=tuple(arguments),
            timeout_seconds=timeout_seconds,
            capture_output=capture_output,
            notify_balloon_error=notify_balloon_error,
            ignore_exit_code=ignore_exit_code,
            label=label,
        )
        return self.run(command)

    def run(self, command: Command) -> ProcessResult:
        """Run one command to completion or timeout and report the outcome."""
        stream_to_log = command.capture_output == CaptureOutput.TO_LOG
        process = self._spawn(command)

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        readers = [
            threading.Thread(
                target=self._pump,
                args=(process.stdout, stdout_lines, command, stream_to_log, False),
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(process.stderr, stderr_lines, command, stream_to_log, True),
                daemon=True,
            ),
        ]
        for reader in readers:
            reader.start()

        timed_out = False
        try:
            process.wait(timeout=command.timeout_seconds)
        except subprocess.TimeoutExpired:
            timed_out = True
            process.kill()
            process.wait()
        finally:
            with self._running_lock:
                self._running.pop(process.pid, None)

        for reader in readers:
            reader.join(timeout=_READER_JOIN_SECONDS)

        exit_code = None if timed_out else process.returncode
        result = ProcessResult(
            status=classify_exit(exit_code, timed_out, command.ignore_exit_code),
            exit_code=exit_code,
            stdout_lines=tuple(stdout_lines),
            stderr_lines=tuple(stderr_lines),
        )
        self._report(command, result)
        return result

    def kill_labelled(self, label: str) -> int:
        """Kill still-running processes started from commands with this label."""
        with self._running_lock:
            targets = [proc for proc_label, proc in self._running.values() if proc_label == label]

        for proc in targets:
            if proc.poll() is None:
                proc.kill()
        return len(targets)

    def _spawn(self, command: Command) -> subprocess.Popen:
        try:
            process = subprocess.Popen(
                command.argv(),
                cwd=command.work_dir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise ProcessSpawnError(command.render(), str(exc)) from exc

        with self._running_lock:
            self._running[process.pid] = (command.label, process)
        return process

    def _pump(
        self,
        stream: Optional[IO[str]],
        sink: List[str],
        command: Command,
        stream_to_log: bool,
        is_stderr: bool,
    ) -> None:
        if stream is None:
            return

        with stream:
            for raw_line in iter(stream.readline, ""):
                line = raw_line.rstrip("\r\n")
                sink.append(line)
                if stream_to_log and line.strip():
                    message = f"{command.render()}:  {line}"
                    if is_stderr:
                        self.notifier.log_error(message)
                    else:
                        self.notifier.log_info(message)

    def _report(self, command: Command, result: ProcessResult) -> None:
        if result.status == ProcessStatus.TIMED_OUT:
            self._report_error(command, f"Timeout while executing {command.render()}")
            return

        if result.status == ProcessStatus.FAILED_EXIT_CODE:
            self._report_error(
                command,
                f"Executing {command.render()} failed, see the stackrepl log for more information",
            )
            if command.capture_output == CaptureOutput.NONE:
                self.notifier.log_error(render_log_message(command, result))
            return

        if command.capture_output == CaptureOutput.NONE:
            self.notifier.log_info(render_log_message(command, result))

    def _report_error(self, command: Command, message: str) -> None:
        if command.notify_balloon_error:
            self.notifier.log_error_balloon(message)
        else:
            self.notifier.log_error(message)
