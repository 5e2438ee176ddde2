from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional, Set

from stackrepl.core.models import LibraryWatchSettings, WatchedPackage
from stackrepl.runtime.contracts import (
    NotificationSink,
    WatcherEvent,
    WatcherState,
    transition_watcher_state,
)
from stackrepl.runtime.rebuild_tracker import DependencyRebuildTracker, PendingLibraryRebuild


@dataclass(frozen=True)
class WatcherPollResult:
    """Result from one watcher poll cycle."""

    recorded: List[PendingLibraryRebuild]


class LibraryWatcher:
    """Polling watcher over local library packages.

    When a package's sources change and the debounce window elapses, the
    package is recorded in the rebuild tracker so the next load of a
    dependent file rebuilds it first.
    """

    def __init__(
        self,
        root_dir: Path,
        tracker: DependencyRebuildTracker,
        settings: LibraryWatchSettings,
        notifier: Optional[NotificationSink] = None,
    ) -> None:
        self.root_dir = root_dir
        self.tracker = tracker
        self.settings = settings
        self.notifier = notifier

        self.state: WatcherState = WatcherState.STOPPED
        self._snapshots: Dict[str, Dict[str, int]] = {}
        self._pending_changes: Dict[str, Set[str]] = {}
        self._last_change_at: Optional[float] = None

    @property
    def packages(self) -> Dict[str, WatchedPackage]:
        return self.settings.packages

    def start(self) -> None:
        """Start watcher lifecycle and initialize per-package snapshots."""
        self.state = transition_watcher_state(self.state, WatcherEvent.START)
        self._snapshots = {name: self._build_snapshot(package) for name, package in self.packages.items()}

    def stop(self) -> None:
        """Stop watcher lifecycle."""
        self.state = transition_watcher_state(self.state, WatcherEvent.STOP)
        self._pending_changes.clear()
        self._last_change_at = None

    def poll(self, now: float) -> WatcherPollResult:
        """Execute one poll cycle; records rebuilds once the debounce window elapses."""
        if self.state == WatcherState.STOPPED:
            raise RuntimeError("LibraryWatcher is not started. Call start() before poll().")

        changed_any = False
        for name, package in self.packages.items():
            current = self._build_snapshot(package)
            changed = self._detect_changes(self._snapshots.get(name, {}), current)
            self._snapshots[name] = current
            if changed:
                self._pending_changes.setdefault(name, set()).update(changed)
                changed_any = True

        if changed_any:
            self._last_change_at = now
            self.state = transition_watcher_state(self.state, WatcherEvent.FILE_CHANGE)
            return WatcherPollResult(recorded=[])

        if self.state == WatcherState.DEBOUNCING and self._last_change_at is not None:
            debounce_seconds = self.settings.debounce_ms / 1000.0
            if (now - self._last_change_at) >= debounce_seconds:
                self.state = transition_watcher_state(self.state, WatcherEvent.DEBOUNCE_ELAPSED)
                return WatcherPollResult(recorded=self._flush())

        return WatcherPollResult(recorded=[])

    def tracked_paths(self, package_name: str) -> Set[str]:
        """Return tracked paths of one package, relative to its directory."""
        return set(self._snapshots.get(package_name, {}).keys())

    def _flush(self) -> List[PendingLibraryRebuild]:
        recorded: List[PendingLibraryRebuild] = []
        for name in sorted(self._pending_changes):
            paths = sorted(self._pending_changes[name])
            entry = self.tracker.record(
                name,
                self.packages[name].target,
                reason=f"{len(paths)} file(s) changed",
                changed_paths=paths,
            )
            recorded.append(entry)
            if self.notifier is not None:
                self.notifier.log_info(f"Library `{name}` changed; it will be rebuilt on the next load")

        self._pending_changes.clear()
        self._last_change_at = None
        return recorded

    def _package_dir(self, package: WatchedPackage) -> Path:
        path = Path(package.path)
        return path if path.is_absolute() else self.root_dir / path

    def _build_snapshot(self, package: WatchedPackage) -> Dict[str, int]:
        snapshot: Dict[str, int] = {}
        package_dir = self._package_dir(package)
        if not package_dir.exists():
            return snapshot

        for path in package_dir.rglob("*"):
            if not path.is_file():
                continue

            relative = path.relative_to(package_dir).as_posix()
            if not self._is_tracked_path(relative, path.name):
                continue

            try:
                snapshot[relative] = path.stat().st_mtime_ns
            except FileNotFoundError:
                # Replaced by an atomic save between listing and stat.
                continue

        return snapshot

    def _is_tracked_path(self, relative_path: str, filename: str) -> bool:
        included = any(
            fnmatch(relative_path, pattern) or fnmatch(filename, pattern)
            for pattern in self.settings.include_patterns
        )
        if not included:
            return False

        excluded = any(
            fnmatch(relative_path, pattern) or fnmatch(filename, pattern)
            for pattern in self.settings.exclude_patterns
        )
        return not excluded

    @staticmethod
    def _detect_changes(previous: Dict[str, int], current: Dict[str, int]) -> Set[str]:
        previous_paths = set(previous.keys())
        current_paths = set(current.keys())

        changes = (current_paths - previous_paths) | (previous_paths - current_paths)
        for existing in previous_paths & current_paths:
            if previous[existing] != current[existing]:
                changes.add(existing)

        return changes
