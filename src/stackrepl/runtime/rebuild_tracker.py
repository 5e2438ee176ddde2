from __future__ import annotations

import threading
import time
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PendingLibraryRebuild(BaseModel):
    """A library whose sources changed and which must be rebuilt before use."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    package_name: str
    target: str
    reason: str = ""
    changed_paths: Tuple[str, ...] = ()
    recorded_at: float = Field(default_factory=time.time)


class DependencyRebuildTracker:
    """Pending library rebuilds for one project, keyed by package name.

    `record` overwrites any entry for the same package. `claim` removes and
    returns the entry atomically, so for each recorded change exactly one
    claimant gets it and everybody else sees None.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, PendingLibraryRebuild] = {}
        self._lock = threading.Lock()

    def record(
        self,
        package_name: str,
        target: str,
        reason: str = "",
        changed_paths: Iterable[str] = (),
    ) -> PendingLibraryRebuild:
        entry = PendingLibraryRebuild(
            package_name=package_name,
            target=target,
            reason=reason,
            changed_paths=tuple(changed_paths),
        )
        with self._lock:
            self._pending[package_name] = entry
        return entry

    def claim(self, package_name: str) -> Optional[PendingLibraryRebuild]:
        with self._lock:
            return self._pending.pop(package_name, None)

    def pending_names(self) -> List[str]:
        with self._lock:
            return sorted(self._pending.keys())

    def snapshot(self) -> List[PendingLibraryRebuild]:
        """Return pending entries without claiming them."""
        with self._lock:
            return [self._pending[name] for name in sorted(self._pending)]

    def __contains__(self, package_name: str) -> bool:
        with self._lock:
            return package_name in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
