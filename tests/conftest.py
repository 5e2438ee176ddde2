import pytest
import sys
import threading
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


class RecordingNotifier:
    """NotificationSink that keeps every message per channel."""

    def __init__(self):
        self._lock = threading.Lock()
        self.infos: list[str] = []
        self.errors: list[str] = []
        self.error_balloons: list[str] = []
        self.warning_balloons: list[str] = []

    def log_info(self, message: str) -> None:
        with self._lock:
            self.infos.append(message)

    def log_error(self, message: str) -> None:
        with self._lock:
            self.errors.append(message)

    def log_error_balloon(self, message: str) -> None:
        with self._lock:
            self.error_balloons.append(message)

    def notify_balloon_warning(self, message: str) -> None:
        with self._lock:
            self.warning_balloons.append(message)


@pytest.fixture
def root_dir(tmp_path):
    """
    Returns a temporary directory to act as the project root for tests.
    """
    return tmp_path


@pytest.fixture
def notifier():
    return RecordingNotifier()
