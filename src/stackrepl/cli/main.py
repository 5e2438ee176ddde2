import time
import typer
from pathlib import Path
from typing import Optional

from stackrepl.cli.formatter import ConsoleNotifier, OutputFormatter
from stackrepl.core.context import StackReplContext
from stackrepl.execution.command import CaptureOutput
from stackrepl.execution.process_runner import ProcessRunner
from stackrepl.runtime.project import ProjectServices
from stackrepl.utils.diagnostics import ConfigError, ProcessSpawnError

app = typer.Typer(name="stackrepl", help="stackrepl CLI Interface", rich_markup_mode=None)


class ConsoleProgress:
    """ProgressSink that reports progress text as system log lines."""

    def set_text(self, text: str) -> None:
        OutputFormatter.log(text, severity="info")


def _read_option_value(tokens: list[str], index: int, option_name: str) -> tuple[str, int]:
    if index + 1 >= len(tokens):
        raise typer.BadParameter(f"Option {option_name} requires a value.")
    return tokens[index + 1], index + 2


def _parse_positive_float(value: str, option_name: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise typer.BadParameter(f"Option {option_name} must be a number.")
    if parsed <= 0:
        raise typer.BadParameter(f"Option {option_name} must be greater than zero.")
    return parsed


def _load_context(root_dir: Path) -> StackReplContext:
    try:
        return StackReplContext.from_root(root_dir)
    except ConfigError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)


@app.command("exec", context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def exec_command(
    ctx: typer.Context,
):
    """Run one external command with a timeout and report its outcome."""
    root_dir = Path(".")
    timeout_seconds: Optional[float] = None
    capture_output = CaptureOutput.NONE
    ignore_exit_code = False
    notify_balloon_error = False

    tokens = list(ctx.args)
    command: list[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token == "--":
            command = tokens[index + 1:]
            break
        if token in ("--root", "-r"):
            root_value, index = _read_option_value(tokens, index, token)
            root_dir = Path(root_value)
            continue
        if token.startswith("--root="):
            root_dir = Path(token.split("=", 1)[1])
            index += 1
            continue
        if token in ("--timeout", "-t"):
            timeout_value, index = _read_option_value(tokens, index, token)
            timeout_seconds = _parse_positive_float(timeout_value, token)
            continue
        if token.startswith("--timeout="):
            timeout_seconds = _parse_positive_float(token.split("=", 1)[1], "--timeout")
            index += 1
            continue
        if token == "--capture":
            capture_output = CaptureOutput.TO_LOG
            index += 1
            continue
        if token == "--ignore-exit-code":
            ignore_exit_code = True
            index += 1
            continue
        if token == "--balloon":
            notify_balloon_error = True
            index += 1
            continue
        if token.startswith("-"):
            raise typer.BadParameter(f"Unknown option: {token}")
        command = tokens[index:]
        break

    if not command:
        raise typer.BadParameter("Missing command to execute.")

    context = _load_context(root_dir)
    runner = ProcessRunner(ConsoleNotifier(context.settings))

    try:
        result = runner.run_command(
            work_dir=str(root_dir),
            executable=command[0],
            arguments=command[1:],
            timeout_seconds=timeout_seconds or context.process.default_timeout_seconds,
            capture_output=capture_output,
            notify_balloon_error=notify_balloon_error,
            ignore_exit_code=ignore_exit_code,
        )
    except ProcessSpawnError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    OutputFormatter.print_result(result)
    if not result.succeeded:
        raise typer.Exit(code=1)


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def build(
    ctx: typer.Context,
):
    """Build the project with stack, streaming build output to the log."""
    root_dir = Path(".")

    tokens = list(ctx.args)
    extras: list[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token in ("--root", "-r"):
            root_value, index = _read_option_value(tokens, index, token)
            root_dir = Path(root_value)
            continue
        if token.startswith("--root="):
            root_dir = Path(token.split("=", 1)[1])
            index += 1
            continue
        if token.startswith("-"):
            raise typer.BadParameter(f"Unknown option: {token}")
        extras.append(token)
        index += 1

    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    context = _load_context(root_dir)
    project = ProjectServices(Path(context.root_dir).name, context, ConsoleNotifier(context.settings))
    try:
        result = project.stack.build_project(ConsoleProgress())
    except ProcessSpawnError as exc:
        OutputFormatter.log(f"Build failed: {exc}", severity="error")
        raise typer.Exit(code=1)
    finally:
        project.close()

    if result is None:
        OutputFormatter.log("Could not determine the outcome of the project build.", severity="warning")
        raise typer.Exit(code=1)
    if not result:
        OutputFormatter.log("Project build failed.", severity="error")
        raise typer.Exit(code=1)

    OutputFormatter.log("Project build succeeded.", severity="success")


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def watch(
    ctx: typer.Context,
):
    """Watch local library packages and report rebuilds they will need."""
    root_dir = Path(".")
    duration: Optional[float] = None

    tokens = list(ctx.args)
    extras: list[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token in ("--root", "-r"):
            root_value, index = _read_option_value(tokens, index, token)
            root_dir = Path(root_value)
            continue
        if token.startswith("--root="):
            root_dir = Path(token.split("=", 1)[1])
            index += 1
            continue
        if token == "--duration":
            duration_value, index = _read_option_value(tokens, index, token)
            duration = _parse_positive_float(duration_value, token)
            continue
        if token.startswith("--duration="):
            duration = _parse_positive_float(token.split("=", 1)[1], "--duration")
            index += 1
            continue
        if token.startswith("-"):
            raise typer.BadParameter(f"Unknown option: {token}")
        extras.append(token)
        index += 1

    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    context = _load_context(root_dir)
    if not context.library_watch.packages:
        OutputFormatter.log("No library packages configured under library_watch.packages.", severity="error")
        raise typer.Exit(code=1)

    project = ProjectServices(Path(context.root_dir).name, context, ConsoleNotifier(context.settings))
    watcher = project.library_watcher
    watcher.start()
    OutputFormatter.log(
        f"Watching {len(watcher.packages)} library package(s). Press Ctrl+C to stop.",
        severity="info",
    )

    interval_seconds = max(context.library_watch.interval_ms / 1000.0, 0.05)
    started_at = time.monotonic()
    try:
        while duration is None or (time.monotonic() - started_at) < duration:
            watcher.poll(now=time.monotonic())
            time.sleep(interval_seconds)
    except KeyboardInterrupt:
        pass
    finally:
        project.close()

    OutputFormatter.print_pending_rebuilds(project.tracker.snapshot())


if __name__ == "__main__":
    app()
