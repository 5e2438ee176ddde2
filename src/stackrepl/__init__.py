from __future__ import annotations

from stackrepl.core.context import StackReplContext
from stackrepl.execution.command import CaptureOutput, Command, ProcessResult, ProcessStatus
from stackrepl.execution.process_runner import ProcessRunner
from stackrepl.execution.stack_commands import StackCommands
from stackrepl.runtime.bootstrap import BackgroundTaskCoordinator, BootstrapReport
from stackrepl.runtime.contracts import IsFileLoaded, LoadResult, ReplKind, ReplState, StanzaType
from stackrepl.runtime.load_orchestrator import LoadOrchestrator
from stackrepl.runtime.project import ProjectRegistry, ProjectServices
from stackrepl.runtime.rebuild_tracker import DependencyRebuildTracker
from stackrepl.runtime.repl_session import ReplSession
from stackrepl.utils.diagnostics import (
	BackgroundTaskTimeout,
	ConfigError,
	ProcessSpawnError,
	StackReplError,
)


__all__ = [
	"BackgroundTaskCoordinator",
	"BackgroundTaskTimeout",
	"BootstrapReport",
	"CaptureOutput",
	"Command",
	"ConfigError",
	"DependencyRebuildTracker",
	"IsFileLoaded",
	"LoadOrchestrator",
	"LoadResult",
	"ProcessResult",
	"ProcessRunner",
	"ProcessSpawnError",
	"ProcessStatus",
	"ProjectRegistry",
	"ProjectServices",
	"ReplKind",
	"ReplSession",
	"ReplState",
	"StackCommands",
	"StackReplContext",
	"StackReplError",
	"StanzaType",
]
