from __future__ import annotations

import re
from concurrent.futures import Future, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from stackrepl.core.models import BootstrapSettings
from stackrepl.execution.process_runner import ProcessRunner
from stackrepl.execution.stack_commands import StackCommands
from stackrepl.runtime.contracts import NotificationSink
from stackrepl.runtime.repl_manager import ReplsManager
from stackrepl.runtime.workers import BackgroundWorkers
from stackrepl.utils.diagnostics import BackgroundTaskTimeout

PRELOAD_TASK = "preload-cache"
BUILD_TOOLS_TASK = "build-tools"
REBUILD_INDEX_TASK = "rebuild-hoogle"

_VERSION_PART = re.compile(r"\d+")


def parse_version(text: str) -> Optional[Tuple[int, ...]]:
    """Parse a dotted numeric version; None when the text is not one."""
    parts = text.strip().split(".")
    if not parts or not all(_VERSION_PART.fullmatch(part) for part in parts):
        return None
    return tuple(int(part) for part in parts)


@dataclass(frozen=True)
class BootstrapReport:
    """What the project-open bootstrap found and triggered."""

    hoogle_version: Optional[str]
    hoogle_build_triggered: bool
    tools_built: Optional[bool]


class BackgroundTaskCoordinator:
    """Project-open bootstrap: start the REPLs, then run the background builds.

    The project and global REPLs start on the calling thread. Cache preload,
    tool builds and the hoogle index rebuild run on the worker pool while the
    hoogle version query runs here; the three background tasks are then
    joined, each with its own bound.
    """

    def __init__(
        self,
        repls: ReplsManager,
        workers: BackgroundWorkers,
        stack: StackCommands,
        runner: ProcessRunner,
        notifier: NotificationSink,
        settings: BootstrapSettings,
        preload_caches: Callable[[], None],
    ) -> None:
        self.repls = repls
        self.workers = workers
        self.stack = stack
        self.runner = runner
        self.notifier = notifier
        self.settings = settings
        self.preload_caches = preload_caches

    def run(self) -> BootstrapReport:
        self.notifier.log_info("Busy with building project and starting Stack REPLs")
        project_repl = self.repls.project_repl
        if project_repl is not None:
            project_repl.start()
        global_repl = self.repls.global_repl
        if global_repl is not None:
            global_repl.start()

        self.notifier.log_info("Busy with preloading cache, building tools and/or rebuilding Hoogle database")
        tasks: List[Tuple[str, Future]] = [
            (PRELOAD_TASK, self.workers.submit(PRELOAD_TASK, self._preload_then_restart_global)),
            (BUILD_TOOLS_TASK, self.workers.submit(BUILD_TOOLS_TASK, self._build_tools)),
            (REBUILD_INDEX_TASK, self.workers.submit(REBUILD_INDEX_TASK, self._rebuild_index)),
        ]

        hoogle_version, build_triggered = self._ensure_hoogle()

        results = self._join(tasks)
        return BootstrapReport(
            hoogle_version=hoogle_version,
            hoogle_build_triggered=build_triggered,
            tools_built=results.get(BUILD_TOOLS_TASK),
        )

    def _preload_then_restart_global(self) -> None:
        self.preload_caches()

        global_repl = self.repls.global_repl
        if global_repl is not None:
            self.notifier.log_info("Restarting global REPL to release memory")
            global_repl.restart()

    def _build_tools(self) -> bool:
        targets = self.settings.tool_targets
        if not targets:
            return True
        names = ", ".join(f"`{target}`" for target in targets)
        return self.stack.build_targets(targets, f"Build of {names}", label=BUILD_TOOLS_TASK)

    def _rebuild_index(self) -> bool:
        return self.stack.rebuild_hoogle_index(label=REBUILD_INDEX_TASK).succeeded

    def _ensure_hoogle(self) -> Tuple[Optional[str], bool]:
        version_text = self.stack.hoogle_version()
        version = parse_version(version_text) if version_text is not None else None
        minimum = parse_version(self.settings.hoogle_min_version)

        if version is None or minimum is None:
            self.notifier.notify_balloon_warning(
                "Could not determine version of (maybe already installed) Hoogle. "
                "Hoogle will not be built automatically"
            )
            return version_text, False

        if version > minimum:
            self.notifier.log_info(f"Hoogle version {version_text} is already installed")
            return version_text, False

        targets = self.settings.hoogle_build_targets
        self.stack.build_targets(targets, "Build of `hoogle`")
        return version_text, True

    def _join(self, tasks: List[Tuple[str, Future]]) -> Dict[str, Any]:
        timeout_seconds = self.settings.join_timeout_minutes * 60.0
        results: Dict[str, Any] = {}
        for name, future in tasks:
            try:
                results[name] = future.result(timeout=timeout_seconds)
            except FuturesTimeoutError as exc:
                future.cancel()
                self.runner.kill_labelled(name)
                self.notifier.log_error(f"Background task '{name}' did not finish in time")
                raise BackgroundTaskTimeout(name, timeout_seconds) from exc
            except Exception:
                # Already reported by the worker pool.
                results[name] = None
        return results
