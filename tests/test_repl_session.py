import threading
import time

import pytest

from stackrepl.runtime.contracts import (
    ComponentInfo,
    IsFileLoaded,
    ReplEvent,
    ReplKind,
    ReplState,
    StanzaType,
    transition_repl_state,
)
from stackrepl.runtime.repl_manager import ReplsManager
from stackrepl.runtime.repl_session import ReplSession


class FakeDriver:
    def __init__(self, fail_spawn=False, load_error=None, failed=False):
        self.fail_spawn = fail_spawn
        self.load_error = load_error
        self.failed = failed
        self.spawns = 0
        self.shutdowns = 0
        self.loads = []
        self.release = None

    def spawn(self):
        self.spawns += 1
        if self.fail_spawn:
            raise RuntimeError("ghci exited")

    def load(self, file_path):
        self.loads.append(file_path)
        if self.release is not None:
            self.release.wait(timeout=5)
        if self.load_error is not None:
            raise self.load_error
        return ["warning: unused import"], self.failed

    def shutdown(self):
        self.shutdowns += 1


def _session(notifier, driver=None, kind=ReplKind.PROJECT):
    return ReplSession("demo", kind, driver or FakeDriver(), notifier)


def test_transition_repl_state_happy_path():
    state = ReplState.STOPPED
    state = transition_repl_state(state, ReplEvent.START)
    assert state == ReplState.STARTING
    state = transition_repl_state(state, ReplEvent.READY)
    assert state == ReplState.AVAILABLE
    state = transition_repl_state(state, ReplEvent.LOAD_BEGIN)
    assert state == ReplState.BUSY
    state = transition_repl_state(state, ReplEvent.LOAD_END)
    assert state == ReplState.AVAILABLE
    state = transition_repl_state(state, ReplEvent.CRASH)
    assert state == ReplState.STOPPED


def test_transition_repl_state_rejects_invalid_events():
    with pytest.raises(ValueError, match="Invalid REPL transition"):
        transition_repl_state(ReplState.STOPPED, ReplEvent.LOAD_BEGIN)

    with pytest.raises(ValueError, match="Invalid REPL transition"):
        transition_repl_state(ReplState.AVAILABLE, ReplEvent.READY)


def test_start_moves_session_to_available(notifier):
    driver = FakeDriver()
    session = _session(notifier, driver)

    assert session.state == ReplState.STOPPED
    session.start()

    assert session.available is True
    assert driver.spawns == 1
    assert any("is started" in message for message in notifier.infos)


def test_start_is_a_no_op_when_already_running(notifier):
    driver = FakeDriver()
    session = _session(notifier, driver)

    session.start()
    session.start()

    assert driver.spawns == 1


def test_spawn_failure_leaves_session_stopped(notifier):
    session = _session(notifier, FakeDriver(fail_spawn=True))

    session.start()

    assert session.state == ReplState.STOPPED
    assert len(notifier.errors) == 1
    assert "Could not start" in notifier.errors[0]


def test_load_on_stopped_session_returns_none(notifier):
    driver = FakeDriver()
    session = _session(notifier, driver)

    assert session.load("src/Main.hs") is None
    assert driver.loads == []


def test_load_returns_stderr_and_records_loaded_file(notifier):
    session = _session(notifier)
    session.start()

    stderr_lines, failed = session.load("src/Main.hs")

    assert stderr_lines == ["warning: unused import"]
    assert failed is False
    assert session.available is True
    assert session.is_loaded("src/Main.hs") == IsFileLoaded.LOADED
    assert session.is_loaded("src/Other.hs") == IsFileLoaded.NOT_LOADED


def test_failed_load_is_reported_as_failed(notifier):
    session = _session(notifier, FakeDriver(failed=True))
    session.start()

    _, failed = session.load("src/Broken.hs")

    assert failed is True
    assert session.is_loaded("src/Broken.hs") == IsFileLoaded.FAILED


def test_driver_crash_during_load_stops_session(notifier):
    driver = FakeDriver(load_error=EOFError("pipe closed"))
    session = _session(notifier, driver)
    session.start()

    assert session.load("src/Main.hs") is None
    assert session.state == ReplState.STOPPED
    assert driver.shutdowns == 1
    assert session.is_loaded("src/Main.hs") == IsFileLoaded.NOT_LOADED
    assert any("crashed" in message for message in notifier.errors)


def test_session_is_busy_while_loading(notifier):
    driver = FakeDriver()
    driver.release = threading.Event()
    session = _session(notifier, driver)
    session.start()

    worker = threading.Thread(target=session.load, args=("src/Slow.hs",))
    worker.start()
    try:
        for _ in range(200):
            if session.busy:
                break
            time.sleep(0.01)
        assert session.busy is True
    finally:
        driver.release.set()
        worker.join(timeout=5)

    assert session.available is True


def test_restart_from_stopped_behaves_as_start(notifier):
    driver = FakeDriver()
    session = _session(notifier, driver)

    session.restart()

    assert session.available is True
    assert driver.spawns == 1
    assert driver.shutdowns == 0


def test_restart_replaces_running_process(notifier):
    driver = FakeDriver()
    session = _session(notifier, driver)
    session.start()
    session.load("src/Main.hs")

    session.restart()

    assert session.available is True
    assert driver.spawns == 2
    assert driver.shutdowns == 1
    assert session.is_loaded("src/Main.hs") == IsFileLoaded.NOT_LOADED


def test_stop_shuts_down_driver(notifier):
    driver = FakeDriver()
    session = _session(notifier, driver)
    session.start()

    session.stop()
    session.stop()

    assert session.state == ReplState.STOPPED
    assert driver.shutdowns == 1


def test_wait_until_available_times_out_when_stopped(notifier):
    session = _session(notifier)

    assert session.wait_until_available(0.05) is False
    session.start()
    assert session.wait_until_available(0.05) is True


def test_repls_manager_routes_by_stanza(notifier):
    repls = ReplsManager("demo")
    project = _session(notifier, kind=ReplKind.PROJECT)
    library = _session(notifier, kind=ReplKind.LIBRARY)
    repls.register(project)

    test_component = ComponentInfo(package_name="demo", stanza_type=StanzaType.TEST, target="demo:test:spec")
    lib_component = ComponentInfo(package_name="demo", stanza_type=StanzaType.LIBRARY, target="demo:lib")

    assert repls.session_for(None) is None
    assert repls.session_for(lib_component) is project

    repls.register(library)
    assert repls.session_for(lib_component) is library
    assert repls.session_for(test_component) is project


def test_repls_manager_rejects_second_session_of_same_kind(notifier):
    repls = ReplsManager("demo")
    repls.register(_session(notifier))

    with pytest.raises(ValueError, match="already has a project REPL"):
        repls.register(_session(notifier))


def test_repls_manager_busy_reflects_library_repl(notifier):
    repls = ReplsManager("demo")
    assert repls.is_busy() is False

    driver = FakeDriver()
    driver.release = threading.Event()
    library = _session(notifier, driver, kind=ReplKind.LIBRARY)
    repls.register(library)
    library.start()

    worker = threading.Thread(target=library.load, args=("src/Lib.hs",))
    worker.start()
    try:
        for _ in range(200):
            if library.busy:
                break
            time.sleep(0.01)
        assert repls.is_busy() is True
    finally:
        driver.release.set()
        worker.join(timeout=5)

    assert repls.is_busy() is False
