"""Runtime orchestration contracts and components."""

from stackrepl.runtime.contracts import (
	ComponentInfo,
	IsFileLoaded,
	LoadResult,
	ReplEvent,
	ReplKind,
	ReplState,
	StanzaType,
	transition_repl_state,
)
from stackrepl.runtime.rebuild_tracker import DependencyRebuildTracker, PendingLibraryRebuild
from stackrepl.runtime.repl_manager import ReplsManager
from stackrepl.runtime.repl_session import ReplSession

__all__ = [
	"ComponentInfo",
	"DependencyRebuildTracker",
	"IsFileLoaded",
	"LoadResult",
	"PendingLibraryRebuild",
	"ReplEvent",
	"ReplKind",
	"ReplSession",
	"ReplState",
	"ReplsManager",
	"StanzaType",
	"transition_repl_state",
]
