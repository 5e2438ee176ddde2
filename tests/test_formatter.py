from stackrepl.cli.formatter import ConsoleNotifier, OutputFormatter
from stackrepl.core.models import FrameworkSettings
from stackrepl.execution.command import ProcessResult, ProcessStatus
from stackrepl.runtime.rebuild_tracker import PendingLibraryRebuild


def test_log_writes_prefixed_message_to_stderr(capsys):
    OutputFormatter.log("Build of `hlint` is started", severity="info")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[SYSTEM] Build of `hlint` is started" in captured.err


def test_log_does_not_interpret_markup(capsys):
    OutputFormatter.log("[bold]literal[/bold]", severity="error")

    assert "[bold]literal[/bold]" in capsys.readouterr().err


def test_print_result_writes_json_to_stdout(capsys):
    result = ProcessResult(status=ProcessStatus.TIMED_OUT, stderr_lines=("slow",))

    OutputFormatter.print_result(result)

    captured = capsys.readouterr()
    assert '"status": "timed_out"' in captured.out
    assert '"exit_code": null' in captured.out


def test_print_pending_rebuilds_renders_table(capsys):
    OutputFormatter.print_pending_rebuilds(
        [PendingLibraryRebuild(package_name="foo", target="foo:lib", reason="1 file(s) changed")]
    )

    err = capsys.readouterr().err
    assert "Pending Library Rebuilds" in err
    assert "foo:lib" in err


def test_console_notifier_drops_info_above_info_level(capsys):
    notifier = ConsoleNotifier(FrameworkSettings(log_level="ERROR"))

    notifier.log_info("quiet")
    notifier.log_error("loud")

    err = capsys.readouterr().err
    assert "quiet" not in err
    assert "loud" in err


def test_console_notifier_balloons(capsys):
    notifier = ConsoleNotifier(FrameworkSettings(log_level="INFO"))

    notifier.log_error_balloon("Build of `foo:lib` failed")
    notifier.notify_balloon_warning("Hoogle will not be built automatically")

    err = capsys.readouterr().err
    assert err.count("Build of `foo:lib` failed") == 2
    assert "Hoogle will not be built automatically" in err
