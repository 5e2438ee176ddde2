from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict


class ReplState(str, Enum):
    """Observable lifecycle state of one REPL session."""

    STOPPED = "stopped"
    STARTING = "starting"
    AVAILABLE = "available"
    BUSY = "busy"


class ReplEvent(str, Enum):
    """Events that drive REPL session state transitions."""

    START = "start"
    READY = "ready"
    LOAD_BEGIN = "load_begin"
    LOAD_END = "load_end"
    RESTART = "restart"
    STOP = "stop"
    CRASH = "crash"


class ReplKind(str, Enum):
    """Which REPL of a project a session is."""

    PROJECT = "project"
    LIBRARY = "library"
    GLOBAL = "global"


class IsFileLoaded(str, Enum):
    """Informational answer to 'is this file loaded in its REPL'."""

    LOADED = "loaded"
    NOT_LOADED = "not_loaded"
    FAILED = "failed"


class StanzaType(str, Enum):
    """Kind of buildable unit a source file belongs to."""

    LIBRARY = "library"
    EXECUTABLE = "executable"
    TEST = "test"
    BENCHMARK = "benchmark"


class ComponentInfo(BaseModel):
    """The stanza owning a source file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    package_name: str
    stanza_type: StanzaType
    target: str


class LoadResult(BaseModel):
    """Outcome of a load the REPL actually performed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    stderr_lines: Tuple[str, ...] = ()
    failed: bool = False


def transition_repl_state(current: ReplState, event: ReplEvent) -> ReplState:
    """Compute the next REPL state for a given event.

    Invalid transitions raise ValueError.
    """

    if event in {ReplEvent.STOP, ReplEvent.CRASH}:
        return ReplState.STOPPED

    if current == ReplState.STOPPED:
        if event == ReplEvent.START:
            return ReplState.STARTING
        raise ValueError(f"Invalid REPL transition: {current} -> {event}")

    if current == ReplState.STARTING:
        if event == ReplEvent.READY:
            return ReplState.AVAILABLE
        raise ValueError(f"Invalid REPL transition: {current} -> {event}")

    if current == ReplState.AVAILABLE:
        if event == ReplEvent.LOAD_BEGIN:
            return ReplState.BUSY
        if event == ReplEvent.RESTART:
            return ReplState.STARTING
        raise ValueError(f"Invalid REPL transition: {current} -> {event}")

    if current == ReplState.BUSY:
        if event == ReplEvent.LOAD_END:
            return ReplState.AVAILABLE
        if event == ReplEvent.RESTART:
            return ReplState.STARTING
        raise ValueError(f"Invalid REPL transition: {current} -> {event}")

    raise ValueError(f"Unknown REPL state: {current}")


class NotificationSink(Protocol):
    """Log/notification port. Calls must not block the caller meaningfully."""

    def log_info(self, message: str) -> None: ...

    def log_error(self, message: str) -> None: ...

    def log_error_balloon(self, message: str) -> None: ...

    def notify_balloon_warning(self, message: str) -> None: ...


class ReplProcessDriver(Protocol):
    """Wire-level owner of one REPL process."""

    def spawn(self) -> None: ...

    def load(self, file_path: str) -> Tuple[List[str], bool]: ...

    def shutdown(self) -> None: ...


class ProgressSink(Protocol):
    def set_text(self, text: str) -> None: ...


class ProjectBuilder(Protocol):
    def build_project(self, progress: Optional[ProgressSink] = None) -> Optional[bool]: ...


class EditorState(Protocol):
    def selected_editor_contains(self, file_path: str) -> bool: ...


class Annotator(Protocol):
    def restart_analysis(self, file_path: str) -> None: ...


class ProjectMetadata(Protocol):
    def component_info(self, file_path: str) -> Optional[ComponentInfo]: ...

    def module_name(self, file_path: str) -> Optional[str]: ...

    def depends_on_library(self, file_path: str, library_name: str) -> bool: ...


class DownstreamCaches(Protocol):
    def invalidate_definition_locations(self, file_path: str) -> None: ...

    def invalidate_type_info(self, file_path: str) -> None: ...

    def invalidate_name_info(self, file_path: str) -> None: ...

    def refresh_browse_top_level(self, file_path: str) -> None: ...

    def invalidate_browse_module(self, module_name: str) -> None: ...

    def preload_types_around(self, current_context: Any) -> None: ...


class WatcherState(str, Enum):
    """States of the library file watcher."""

    STOPPED = "stopped"
    WATCHING = "watching"
    DEBOUNCING = "debouncing"


class WatcherEvent(str, Enum):
    """Events that drive library watcher state transitions."""

    START = "start"
    FILE_CHANGE = "file_change"
    DEBOUNCE_ELAPSED = "debounce_elapsed"
    STOP = "stop"


def transition_watcher_state(current: WatcherState, event: WatcherEvent) -> WatcherState:
    """Compute the next watcher state for a given event.

    Invalid transitions raise ValueError.
    """

    if event == WatcherEvent.STOP:
        return WatcherState.STOPPED

    if current == WatcherState.STOPPED:
        if event == WatcherEvent.START:
            return WatcherState.WATCHING
        raise ValueError(f"Invalid watcher transition: {current} -> {event}")

    if current in {WatcherState.WATCHING, WatcherState.DEBOUNCING}:
        if event == WatcherEvent.FILE_CHANGE:
            return WatcherState.DEBOUNCING
        if event == WatcherEvent.DEBOUNCE_ELAPSED and current == WatcherState.DEBOUNCING:
            return WatcherState.WATCHING
        raise ValueError(f"Invalid watcher transition: {current} -> {event}")

    raise ValueError(f"Unknown watcher state: {current}")
