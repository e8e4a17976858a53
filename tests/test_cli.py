"""Tests for argument handling and exit codes."""

import pytest

import countdown
from countdown import ErrorKind, TerminalError, main, parse_args


def test_parse_seconds():
    assert parse_args(["90"]).seconds == 90


@pytest.mark.parametrize(
    "argv",
    [[], ["1", "2"], ["abc"], ["1.5"], ["0"], ["-5"], ["--help"]],
)
def test_bad_arguments_exit_with_status_one(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 1

    out, err = capsys.readouterr()
    assert "usage: countdown" in out
    assert "error:" in out
    assert err == ""


def test_non_numeric_message(capsys):
    with pytest.raises(SystemExit):
        parse_args(["soon"])
    assert "'soon' is not a number of seconds" in capsys.readouterr().out


class FakeChime:
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return None

    def play(self):
        pass


class BrokenTerminal:
    def __enter__(self):
        raise TerminalError(ErrorKind.RAW_MODE, OSError("not a tty"))

    def __exit__(self, *exc_info):
        return None


class QuietTerminal:
    exited = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        QuietTerminal.exited = True


@pytest.fixture
def no_devices(monkeypatch):
    monkeypatch.setattr(countdown, "Chime", FakeChime)
    monkeypatch.setattr(countdown, "_configure_logging", lambda: None)


def test_terminal_setup_failure_exits_nonzero(no_devices, monkeypatch, capsys):
    monkeypatch.setattr(countdown, "Terminal", BrokenTerminal)
    assert main(["5"]) == 1
    assert "Terminal error" in capsys.readouterr().out


def test_quit_exits_zero(no_devices, monkeypatch):
    seen = []
    monkeypatch.setattr(countdown, "Terminal", QuietTerminal)
    monkeypatch.setattr(countdown, "run", lambda state, terminal: seen.append(state))
    assert main(["7"]) == 0
    assert seen[0].configured_seconds == 7
    assert QuietTerminal.exited


def test_loop_io_error_reported_after_restore(no_devices, monkeypatch, capsys):
    def failing_run(state, terminal):
        raise OSError("read failed")

    QuietTerminal.exited = False
    monkeypatch.setattr(countdown, "Terminal", QuietTerminal)
    monkeypatch.setattr(countdown, "run", failing_run)
    assert main(["7"]) == 1
    assert QuietTerminal.exited
    assert "read failed" in capsys.readouterr().out


@pytest.mark.parametrize("value", ["1_000", " 5", "5 ", "٥", "0x10"])
def test_only_plain_integers_accepted(value, capsys):
    with pytest.raises(SystemExit) as excinfo:
        parse_args([value])
    assert excinfo.value.code == 1
    assert "is not a number of seconds" in capsys.readouterr().out


def test_leading_plus_accepted():
    assert parse_args(["+5"]).seconds == 5
