from __future__ import annotations

import threading
from typing import List, Optional, Tuple

from stackrepl.runtime.contracts import (
    IsFileLoaded,
    NotificationSink,
    ReplEvent,
    ReplKind,
    ReplProcessDriver,
    ReplState,
    transition_repl_state,
)


class ReplSession:
    """One external REPL process and its observable state.

    State reads never block on the process. Lifecycle operations and loads
    hold the lifecycle lock while they talk to the driver, so a restart waits
    for an in-flight load and a load never runs against a process that is
    being torn down.
    """

    def __init__(
        self,
        name: str,
        kind: ReplKind,
        driver: ReplProcessDriver,
        notifier: NotificationSink,
    ) -> None:
        self.name = name
        self.kind = kind
        self.driver = driver
        self.notifier = notifier

        self._state = ReplState.STOPPED
        self._state_lock = threading.Condition()
        self._lifecycle_lock = threading.RLock()
        self._loaded_file: Optional[str] = None
        self._loaded_failed = False

    @property
    def state(self) -> ReplState:
        with self._state_lock:
            return self._state

    @property
    def available(self) -> bool:
        return self.state == ReplState.AVAILABLE

    @property
    def starting(self) -> bool:
        return self.state == ReplState.STARTING

    @property
    def busy(self) -> bool:
        return self.state == ReplState.BUSY

    def start(self) -> None:
        """Start the process; a no-op unless the session is stopped."""
        if self.state != ReplState.STOPPED:
            return

        with self._lifecycle_lock:
            with self._state_lock:
                if self._state != ReplState.STOPPED:
                    return
                self._apply(ReplEvent.START)
            self._spawn()

    def restart(self) -> None:
        """Tear down the current process and start a new one.

        A no-op while starting; behaves as start() when stopped.
        """
        if self.state == ReplState.STARTING:
            return

        with self._lifecycle_lock:
            with self._state_lock:
                previous = self._state
                if previous == ReplState.STARTING:
                    return
                if previous == ReplState.STOPPED:
                    self._apply(ReplEvent.START)
                else:
                    self._apply(ReplEvent.RESTART)

            if previous != ReplState.STOPPED:
                self.notifier.log_info(f"Restarting {self.kind.value} REPL {self.name}")
                self._shutdown_driver()
            self._spawn()

    def stop(self) -> None:
        with self._lifecycle_lock:
            with self._state_lock:
                if self._state == ReplState.STOPPED:
                    return
                self._apply(ReplEvent.STOP)
                self._loaded_file = None
            self._shutdown_driver()

    def load(self, file_path: str) -> Optional[Tuple[List[str], bool]]:
        """Load a file into the REPL.

        Returns None when the session cannot accept a load (stopped or
        starting); otherwise the stderr lines and whether the load failed.
        Blocks while another load is in flight.
        """
        if self.state in {ReplState.STOPPED, ReplState.STARTING}:
            return None

        with self._lifecycle_lock:
            with self._state_lock:
                if self._state != ReplState.AVAILABLE:
                    return None
                self._apply(ReplEvent.LOAD_BEGIN)

            try:
                stderr_lines, failed = self.driver.load(file_path)
            except Exception as exc:
                self.notifier.log_error(f"{self.kind.value} REPL {self.name} crashed while loading {file_path}: {exc}")
                with self._state_lock:
                    self._apply(ReplEvent.CRASH)
                    self._loaded_file = None
                self._shutdown_driver()
                return None

            with self._state_lock:
                self._apply(ReplEvent.LOAD_END)
                self._loaded_file = file_path
                self._loaded_failed = failed

        return list(stderr_lines), failed

    def is_loaded(self, file_path: str) -> IsFileLoaded:
        with self._state_lock:
            if self._loaded_file != file_path:
                return IsFileLoaded.NOT_LOADED
            if self._loaded_failed:
                return IsFileLoaded.FAILED
            return IsFileLoaded.LOADED

    def wait_until_available(self, timeout_seconds: float) -> bool:
        """Block until the session is available or the timeout elapses."""
        with self._state_lock:
            return self._state_lock.wait_for(
                lambda: self._state == ReplState.AVAILABLE,
                timeout=timeout_seconds,
            )

    def _spawn(self) -> None:
        try:
            self.driver.spawn()
        except Exception as exc:
            self.notifier.log_error(f"Could not start {self.kind.value} REPL {self.name}: {exc}")
            with self._state_lock:
                self._apply(ReplEvent.CRASH)
            return

        with self._state_lock:
            self._apply(ReplEvent.READY)
            self._loaded_file = None
        self.notifier.log_info(f"{self.kind.value} REPL {self.name} is started")

    def _shutdown_driver(self) -> None:
        try:
            self.driver.shutdown()
        except Exception as exc:
            self.notifier.log_error(f"Could not stop {self.kind.value} REPL {self.name}: {exc}")

    def _apply(self, event: ReplEvent) -> None:
        # Caller holds _state_lock.
        self._state = transition_repl_state(self._state, event)
        self._state_lock.notify_all()
