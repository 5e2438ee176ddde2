import json
import threading
import typer
from typing import List
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from stackrepl.core.models import FrameworkSettings
from stackrepl.execution.command import ProcessResult
from stackrepl.runtime.rebuild_tracker import PendingLibraryRebuild

# Create a stderr console for logging
error_console = Console(stderr=True)

class OutputFormatter:
    """
    Handles output formatting for the CLI and the notification sink.
    Ensures separation of concerns between System Logs (stderr) and Data (stdout).
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        style = "white"
        prefix = "[SYSTEM]"

        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        error_console.print(f"[{style}]{escape(prefix)} {escape(message)}[/{style}]")

    @staticmethod
    def balloon(message: str, severity: str = "error") -> None:
        """
        Print a transient, highlighted notification to stderr.
        """
        border_style = "bold red" if severity == "error" else "yellow"
        error_console.print(Panel(escape(message), title="stackrepl", border_style=border_style))

    @staticmethod
    def print_pending_rebuilds(pending: List[PendingLibraryRebuild]) -> None:
        """
        Prints a table of library rebuilds waiting to be claimed.
        """
        if not pending:
            return

        table = Table(title="Pending Library Rebuilds", border_style="yellow", header_style="bold yellow")
        table.add_column("Package", style="bold")
        table.add_column("Target")
        table.add_column("Reason")
        table.add_column("Changed")

        for entry in pending:
            table.add_row(
                entry.package_name,
                entry.target,
                entry.reason,
                ", ".join(entry.changed_paths),
            )

        error_console.print(table)
        error_console.print() # spacing

    @staticmethod
    def print_result(result: ProcessResult) -> None:
        """
        Print a process result to stdout as JSON.
        """
        typer.echo(json.dumps(result.model_dump(mode="json"), indent=2))


class ConsoleNotifier:
    """
    NotificationSink that writes through OutputFormatter.

    Info messages are dropped when the configured log level is above INFO.
    Writes are serialized because reader threads and background workers
    report concurrently.
    """

    def __init__(self, settings: FrameworkSettings | None = None) -> None:
        self.settings = settings or FrameworkSettings()
        self._lock = threading.Lock()

    def _info_enabled(self) -> bool:
        return self.settings.log_level_rank() <= 1

    def log_info(self, message: str) -> None:
        if not self._info_enabled():
            return
        with self._lock:
            OutputFormatter.log(message, severity="info")

    def log_error(self, message: str) -> None:
        with self._lock:
            OutputFormatter.log(message, severity="error")

    def log_error_balloon(self, message: str) -> None:
        with self._lock:
            OutputFormatter.log(message, severity="error")
            OutputFormatter.balloon(message, severity="error")

    def notify_balloon_warning(self, message: str) -> None:
        with self._lock:
            OutputFormatter.balloon(message, severity="warning")
