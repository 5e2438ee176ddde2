"""Incremental load orchestration for one project.

Decides, per file load, whether a changed dependency must be rebuilt first,
whether the REPL must be built and (re)started, and which downstream caches
are stale once the REPL has loaded the file.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, List, Optional

from stackrepl.execution.stack_commands import StackCommands
from stackrepl.runtime.contracts import (
    Annotator,
    ComponentInfo,
    DownstreamCaches,
    EditorState,
    IsFileLoaded,
    LoadResult,
    NotificationSink,
    ProgressSink,
    ProjectBuilder,
    ProjectMetadata,
    ReplState,
    StanzaType,
)
from stackrepl.runtime.rebuild_tracker import DependencyRebuildTracker, PendingLibraryRebuild
from stackrepl.runtime.repl_manager import ReplsManager
from stackrepl.runtime.repl_session import ReplSession
from stackrepl.runtime.workers import BackgroundWorkers

DEFAULT_SELECTION_TIMEOUT_SECONDS = 5.0

# Stanzas whose large generated expressions benefit from warming type info.
_PRELOAD_STANZAS = {StanzaType.LIBRARY, StanzaType.TEST}


class LoadOrchestrator:
    """Loads files into their project REPL and keeps the REPL up to date."""

    def __init__(
        self,
        repls: ReplsManager,
        tracker: DependencyRebuildTracker,
        workers: BackgroundWorkers,
        stack: StackCommands,
        metadata: ProjectMetadata,
        editor_state: EditorState,
        annotator: Annotator,
        caches: DownstreamCaches,
        notifier: NotificationSink,
        project_builder: Optional[ProjectBuilder] = None,
        progress: Optional[ProgressSink] = None,
        selection_timeout_seconds: float = DEFAULT_SELECTION_TIMEOUT_SECONDS,
    ) -> None:
        self.repls = repls
        self.tracker = tracker
        self.workers = workers
        self.stack = stack
        self.metadata = metadata
        self.editor_state = editor_state
        self.annotator = annotator
        self.caches = caches
        self.notifier = notifier
        self.project_builder: ProjectBuilder = project_builder or stack
        self.progress = progress
        self.selection_timeout_seconds = selection_timeout_seconds
        # Editor queries run on their own thread so a saturated worker pool
        # cannot starve them.
        self._editor_queries = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stackrepl-editor")

    def is_loaded(self, file_path: str) -> Optional[IsFileLoaded]:
        session = self.repls.session_for(self.metadata.component_info(file_path))
        if session is None:
            return None
        return session.is_loaded(file_path)

    def is_busy(self, file_path: Optional[str] = None) -> bool:
        """Busy state of the file's REPL, or of the project when no file is given."""
        if file_path is None:
            return self.repls.is_busy()
        session = self.repls.session_for(self.metadata.component_info(file_path))
        return session is not None and session.busy

    def load(self, file_path: str, current_context: Any = None) -> Optional[LoadResult]:
        """Load a file into its REPL.

        Returns None when no session accepted the load; callers must not
        assume a load happened in that case.
        """
        component = self.metadata.component_info(file_path)
        session = self.repls.session_for(component)

        if self._is_file_of_selected_editor(file_path):
            if component is not None and component.stanza_type != StanzaType.LIBRARY:
                self._dispatch_library_rebuilds(file_path, component, session)

                # The REPL does not start if its target had compile errors at start time.
                if session is not None and session.state == ReplState.STOPPED:
                    self.workers.submit(
                        f"build project for {file_path}",
                        self._build_project_and_start,
                        file_path,
                        session,
                    )

        outcome = session.load(file_path) if session is not None else None
        if outcome is None:
            return None

        stderr_lines, failed = outcome
        self.workers.submit(
            f"invalidate caches for {file_path}",
            self._invalidate_caches,
            file_path,
            component,
            failed,
            current_context,
        )
        return LoadResult(stderr_lines=tuple(stderr_lines), failed=failed)

    def shutdown(self) -> None:
        self._editor_queries.shutdown(wait=False, cancel_futures=True)

    def _is_file_of_selected_editor(self, file_path: str) -> bool:
        future: Future = self._editor_queries.submit(self.editor_state.selected_editor_contains, file_path)
        try:
            return bool(future.result(timeout=self.selection_timeout_seconds))
        except FuturesTimeoutError:
            future.cancel()
            return False
        except Exception as exc:
            self.notifier.log_error(f"Could not determine whether {file_path} is the selected file: {exc}")
            return False

    def _libraries_to_rebuild(self, file_path: str, component: ComponentInfo) -> List[str]:
        return [
            name
            for name in self.tracker.pending_names()
            if name == component.package_name or self.metadata.depends_on_library(file_path, name)
        ]

    def _dispatch_library_rebuilds(
        self,
        file_path: str,
        component: ComponentInfo,
        session: Optional[ReplSession],
    ) -> None:
        for name in self._libraries_to_rebuild(file_path, component):
            pending = self.tracker.claim(name)
            if pending is None:
                # Another load claimed it first.
                continue
            self.workers.submit(
                f"rebuild library {name}",
                self._rebuild_library,
                pending,
                file_path,
                session,
            )

    def _rebuild_library(
        self,
        pending: PendingLibraryRebuild,
        file_path: str,
        session: Optional[ReplSession],
    ) -> None:
        self.stack.build_library(pending.target)
        self.repls.restart_project_non_library_repl()
        if session is not None and session.available:
            self.annotator.restart_analysis(file_path)

    def _build_project_and_start(self, file_path: str, session: ReplSession) -> None:
        result = self.project_builder.build_project(self.progress)
        if result is not True:
            return

        state = session.state
        if state == ReplState.AVAILABLE:
            session.restart()
        elif state == ReplState.STOPPED:
            session.start()

        if session.wait_until_available(self.selection_timeout_seconds):
            self.annotator.restart_analysis(file_path)

    def _invalidate_caches(
        self,
        file_path: str,
        component: Optional[ComponentInfo],
        failed: bool,
        current_context: Any,
    ) -> None:
        self.caches.invalidate_definition_locations(file_path)
        self.caches.invalidate_type_info(file_path)

        if failed:
            return

        self.caches.invalidate_name_info(file_path)
        self.caches.refresh_browse_top_level(file_path)
        module_name = self.metadata.module_name(file_path)
        if module_name:
            self.caches.invalidate_browse_module(module_name)

        if component is not None and component.stanza_type in _PRELOAD_STANZAS and current_context is not None:
            self.caches.preload_types_around(current_context)
