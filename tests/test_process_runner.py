import sys
import threading
import time

import pytest

from stackrepl.execution.command import (
    CaptureOutput,
    Command,
    ProcessStatus,
    classify_exit,
)
from stackrepl.execution.process_runner import ProcessRunner
from stackrepl.utils.diagnostics import ProcessSpawnError


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def _run(runner: ProcessRunner, root_dir, argv: list[str], **kwargs):
    return runner.run_command(
        work_dir=str(root_dir),
        executable=argv[0],
        arguments=argv[1:],
        **kwargs,
    )


def test_echo_succeeds_with_one_info_diagnostic(root_dir, notifier):
    runner = ProcessRunner(notifier)

    result = _run(runner, root_dir, ["echo", "hi"], timeout_seconds=3)

    assert result.status == ProcessStatus.SUCCEEDED
    assert result.exit_code == 0
    assert result.stdout_lines == ("hi",)
    assert len(notifier.infos) == 1
    assert notifier.infos[0].startswith("echo hi:")
    assert notifier.errors == []


def test_command_exceeding_timeout_is_timed_out(root_dir, notifier):
    runner = ProcessRunner(notifier)
    argv = _python("import time; time.sleep(5)")

    started = time.monotonic()
    result = _run(runner, root_dir, argv, timeout_seconds=1)
    elapsed = time.monotonic() - started

    assert result.status == ProcessStatus.TIMED_OUT
    assert result.timed_out is True
    assert result.succeeded is False
    assert result.exit_code is None
    assert elapsed < 4.5
    assert len(notifier.errors) == 1
    assert "Timeout while executing" in notifier.errors[0]
    assert Command(work_dir=str(root_dir), executable=argv[0], arguments=tuple(argv[1:])).render() in notifier.errors[0]
    assert notifier.infos == []


def test_timeout_with_balloon_flag_goes_to_balloon(root_dir, notifier):
    runner = ProcessRunner(notifier)

    result = _run(
        runner,
        root_dir,
        _python("import time; time.sleep(5)"),
        timeout_seconds=0.5,
        notify_balloon_error=True,
    )

    assert result.status == ProcessStatus.TIMED_OUT
    assert len(notifier.error_balloons) == 1
    assert notifier.errors == []


def test_non_zero_exit_reports_full_output_once(root_dir, notifier):
    runner = ProcessRunner(notifier)
    code = "import sys; print('from-stdout'); print('from-stderr', file=sys.stderr); sys.exit(3)"

    result = _run(runner, root_dir, _python(code))

    assert result.status == ProcessStatus.FAILED_EXIT_CODE
    assert result.exit_code == 3
    assert result.stdout_lines == ("from-stdout",)
    assert result.stderr_lines == ("from-stderr",)

    aggregates = [m for m in notifier.errors if "from-stdout" in m]
    assert len(aggregates) == 1
    assert "from-stderr" in aggregates[0]
    assert any("failed" in m for m in notifier.errors)
    assert notifier.infos == []


def test_non_zero_exit_with_balloon_flag_keeps_output_in_error_log(root_dir, notifier):
    runner = ProcessRunner(notifier)

    result = _run(runner, root_dir, _python("import sys; print('detail'); sys.exit(1)"), notify_balloon_error=True)

    assert result.status == ProcessStatus.FAILED_EXIT_CODE
    assert len(notifier.error_balloons) == 1
    assert "detail" not in notifier.error_balloons[0]
    assert len(notifier.errors) == 1
    assert "detail" in notifier.errors[0]


def test_ignore_exit_code_reports_through_success_path(root_dir, notifier):
    runner = ProcessRunner(notifier)

    result = _run(runner, root_dir, _python("import sys; print('ok'); sys.exit(2)"), ignore_exit_code=True)

    assert result.status == ProcessStatus.SUCCEEDED
    assert result.exit_code == 2
    assert notifier.errors == []
    assert len(notifier.infos) == 1
    assert "ok" in notifier.infos[0]


def test_capture_to_log_streams_each_non_blank_line(root_dir, notifier):
    runner = ProcessRunner(notifier)
    code = (
        "import sys\n"
        "print('line-one', flush=True)\n"
        "print('   ', flush=True)\n"
        "print('problem', file=sys.stderr, flush=True)\n"
        "print('line-two', flush=True)\n"
    )
    argv = _python(code)

    result = _run(runner, root_dir, argv, capture_output=CaptureOutput.TO_LOG)

    assert result.status == ProcessStatus.SUCCEEDED
    assert result.stdout_lines == ("line-one", "   ", "line-two")
    rendered = Command(work_dir=str(root_dir), executable=argv[0], arguments=tuple(argv[1:])).render()
    assert notifier.infos == [f"{rendered}:  line-one", f"{rendered}:  line-two"]
    assert notifier.errors == [f"{rendered}:  problem"]


def test_capture_to_log_failure_does_not_repeat_output(root_dir, notifier):
    runner = ProcessRunner(notifier)

    result = _run(
        runner,
        root_dir,
        _python("import sys; print('partial', flush=True); sys.exit(4)"),
        capture_output=CaptureOutput.TO_LOG,
    )

    assert result.status == ProcessStatus.FAILED_EXIT_CODE
    assert len([m for m in notifier.infos if "partial" in m]) == 1
    assert not any("partial" in m for m in notifier.errors)
    assert len(notifier.errors) == 1


def test_unknown_executable_raises_spawn_error(root_dir, notifier):
    runner = ProcessRunner(notifier)

    with pytest.raises(ProcessSpawnError) as exc_info:
        _run(runner, root_dir, ["stackrepl-no-such-executable-42"])

    assert "stackrepl-no-such-executable-42" in str(exc_info.value)


def test_kill_labelled_stops_running_process(root_dir, notifier):
    runner = ProcessRunner(notifier)
    results = []

    worker = threading.Thread(
        target=lambda: results.append(
            _run(runner, root_dir, _python("import time; time.sleep(30)"), timeout_seconds=60, label="index")
        )
    )
    worker.start()

    killed = 0
    deadline = time.monotonic() + 5
    while killed == 0 and time.monotonic() < deadline:
        killed = runner.kill_labelled("index")
        time.sleep(0.05)
    worker.join(timeout=10)

    assert killed == 1
    assert results[0].status == ProcessStatus.FAILED_EXIT_CODE
    assert runner.kill_labelled("index") == 0


def test_command_is_immutable_and_renders_quoted_arguments(root_dir):
    command = Command(work_dir=str(root_dir), executable="stack", arguments=["exec", "--", "hoogle search"])

    assert command.arguments == ("exec", "--", "hoogle search")
    assert command.render() == "stack exec -- 'hoogle search'"
    assert command.timeout_seconds == 3.0
    with pytest.raises(Exception):
        command.executable = "cabal"


def test_classify_exit_is_exclusive():
    assert classify_exit(None, True, False) == ProcessStatus.TIMED_OUT
    assert classify_exit(None, True, True) == ProcessStatus.TIMED_OUT
    assert classify_exit(1, False, False) == ProcessStatus.FAILED_EXIT_CODE
    assert classify_exit(1, False, True) == ProcessStatus.SUCCEEDED
    assert classify_exit(0, False, False) == ProcessStatus.SUCCEEDED
