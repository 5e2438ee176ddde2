from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from stackrepl.runtime.contracts import NotificationSink


class BackgroundWorkers:
    """
    Bounded pool for fire-and-forget work dispatched off the calling thread.

    A task that raises is reported through the notification sink; the
    exception stays on the returned future for callers that join it.
    """

    def __init__(self, notifier: NotificationSink, max_workers: int = 4, name: str = "stackrepl") -> None:
        self.notifier = notifier
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._closed = False

    def submit(self, description: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        if self._closed:
            raise RuntimeError("BackgroundWorkers is shut down.")

        future: Future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(lambda done: self._report_failure(description, done))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _report_failure(self, description: str, future: Future) -> None:
        if future.cancelled():
            return
        exc: Optional[BaseException] = future.exception()
        if exc is not None:
            self.notifier.log_error(f"Background task '{description}' failed: {exc}")
