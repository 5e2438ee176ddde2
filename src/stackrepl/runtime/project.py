from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from stackrepl.core.context import StackReplContext
from stackrepl.core.registry import Registry
from stackrepl.execution.process_runner import ProcessRunner
from stackrepl.execution.stack_commands import StackCommands
from stackrepl.runtime.bootstrap import BackgroundTaskCoordinator, BootstrapReport
from stackrepl.runtime.contracts import (
    Annotator,
    DownstreamCaches,
    EditorState,
    NotificationSink,
    ProgressSink,
    ProjectBuilder,
    ProjectMetadata,
    ReplKind,
    ReplProcessDriver,
    WatcherState,
)
from stackrepl.runtime.library_watcher import LibraryWatcher
from stackrepl.runtime.load_orchestrator import LoadOrchestrator
from stackrepl.runtime.rebuild_tracker import DependencyRebuildTracker
from stackrepl.runtime.repl_manager import ReplsManager
from stackrepl.runtime.repl_session import ReplSession
from stackrepl.runtime.workers import BackgroundWorkers


class ProjectServices:
    """Everything stackrepl owns for one open project.

    Sessions, the rebuild tracker, the worker pool and the process runner are
    created here and handed to the orchestrator and the bootstrap coordinator
    explicitly.
    """

    def __init__(
        self,
        name: str,
        context: StackReplContext,
        notifier: NotificationSink,
        runner: Optional[ProcessRunner] = None,
    ) -> None:
        self.name = name
        self.context = context
        self.notifier = notifier
        self.runner = runner or ProcessRunner(notifier)
        self.stack = StackCommands(self.runner, context)
        self.repls = ReplsManager(name)
        self.tracker = DependencyRebuildTracker()
        self.workers = BackgroundWorkers(
            notifier,
            max_workers=context.load.worker_pool_size,
            name=f"stackrepl-{name}",
        )
        self.library_watcher = LibraryWatcher(
            Path(context.root_dir),
            self.tracker,
            context.library_watch,
            notifier=notifier,
        )
        self._watch_thread: Optional[threading.Thread] = None
        self._orchestrators: List[LoadOrchestrator] = []
        self._stop_event = threading.Event()

    @classmethod
    def from_root(cls, root_dir: Path, notifier: NotificationSink, name: Optional[str] = None) -> "ProjectServices":
        context = StackReplContext.from_root(root_dir)
        return cls(name or Path(context.root_dir).name, context, notifier)

    def add_repl(self, kind: ReplKind, driver: ReplProcessDriver) -> ReplSession:
        session = ReplSession(f"{self.name}:{kind.value}", kind, driver, self.notifier)
        self.repls.register(session)
        return session

    def create_orchestrator(
        self,
        metadata: ProjectMetadata,
        editor_state: EditorState,
        annotator: Annotator,
        caches: DownstreamCaches,
        project_builder: Optional[ProjectBuilder] = None,
        progress: Optional[ProgressSink] = None,
    ) -> LoadOrchestrator:
        orchestrator = LoadOrchestrator(
            repls=self.repls,
            tracker=self.tracker,
            workers=self.workers,
            stack=self.stack,
            metadata=metadata,
            editor_state=editor_state,
            annotator=annotator,
            caches=caches,
            notifier=self.notifier,
            project_builder=project_builder,
            progress=progress,
            selection_timeout_seconds=self.context.load.selection_timeout_seconds,
        )
        self._orchestrators.append(orchestrator)
        return orchestrator

    def bootstrap(self, preload_caches: Callable[[], None]) -> BootstrapReport:
        coordinator = BackgroundTaskCoordinator(
            repls=self.repls,
            workers=self.workers,
            stack=self.stack,
            runner=self.runner,
            notifier=self.notifier,
            settings=self.context.bootstrap,
            preload_caches=preload_caches,
        )
        return coordinator.run()

    def start_library_watch(self, background: bool = True) -> None:
        """Start the library watcher; polls on a daemon thread when background is set."""
        if not self.context.library_watch.enabled:
            return

        if self.library_watcher.state != WatcherState.STOPPED:
            return

        self.library_watcher.start()
        self._stop_event.clear()

        if background:
            self._watch_thread = threading.Thread(target=self._watch_loop, daemon=True)
            self._watch_thread.start()

    def stop_library_watch(self) -> None:
        self._stop_event.set()

        if self._watch_thread is not None and self._watch_thread.is_alive():
            self._watch_thread.join(timeout=1)

        self._watch_thread = None
        if self.library_watcher.state != WatcherState.STOPPED:
            self.library_watcher.stop()

    def close(self) -> None:
        self.stop_library_watch()
        for orchestrator in self._orchestrators:
            orchestrator.shutdown()
        self._orchestrators.clear()
        self.repls.stop_all()
        self.workers.shutdown(wait=False)

    def _watch_loop(self) -> None:
        interval_seconds = max(self.context.library_watch.interval_ms / 1000.0, 0.05)
        while not self._stop_event.is_set():
            self.library_watcher.poll(now=time.monotonic())
            self._stop_event.wait(interval_seconds)


class ProjectRegistry(Registry[ProjectServices]):
    """Open projects by name."""

    def close_all(self) -> None:
        for project in list(self):
            project.close()
            self.unregister(project.name)
