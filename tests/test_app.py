"""Tests for the stealmon command-line entry point."""

import io
import logging
import re
import signal
import threading

import pytest

from stealmon import __version__
from stealmon.app import configure_logging, install_signal_handlers, main, prepare
from stealmon.config import Settings
from stealmon.counters import ProcStatCounterSource
from stealmon.errors import UnavailableError
from stealmon.logwriter import HEADER
from stealmon.monitor import StealMonitor

PROC_STAT = "cpu  100 0 0 900 0 0 0 0 0 0\ncpu0 100 0 0 900 0 0 0 0 0 0\n"


@pytest.fixture
def proc_stat(tmp_path):
    path = tmp_path / "stat"
    path.write_text(PROC_STAT)
    return path


@pytest.fixture
def env(tmp_path, proc_stat):
    return {
        "INTERVAL_SECONDS": "0.001",
        "LOG_DIR": str(tmp_path / "logs"),
        "PROC_STAT_PATH": str(proc_stat),
    }


@pytest.fixture
def installed_handlers(monkeypatch):
    """Capture signal handlers instead of installing them."""
    handlers = {}
    monkeypatch.setattr(signal, "signal", lambda sig, handler: handlers.__setitem__(sig, handler))
    return handlers


class TestHelp:
    """Tests for the help and version flags."""

    @pytest.mark.parametrize("flag", ["-h", "--help"])
    def test_help_exits_zero(self, flag, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([flag], env={})

        assert excinfo.value.code == 0
        out = capsys.readouterr().out
        assert "INTERVAL_SECONDS" in out
        assert "RETENTION_FILES" in out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"], env={})

        assert excinfo.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_unknown_argument(self):
        with pytest.raises(SystemExit) as excinfo:
            main(["extra"], env={})

        assert excinfo.value.code != 0


class TestStartupFailures:
    """Fatal startup conditions exit with status 1."""

    def test_invalid_config(self, env, capsys):
        env["RETENTION_FILES"] = "many"

        assert main([], env=env) == 1
        assert "ERROR: Invalid RETENTION_FILES" in capsys.readouterr().err

    def test_unreadable_counters(self, env, tmp_path, capsys):
        env["PROC_STAT_PATH"] = str(tmp_path / "no-such-stat")

        assert main([], env=env) == 1
        assert "ERROR:" in capsys.readouterr().err

    def test_uncreatable_log_dir(self, env, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("")
        env["LOG_DIR"] = str(blocker / "logs")

        assert main([], env=env) == 1
        assert "Failed to prepare log dir" in capsys.readouterr().err


class TestPrepare:
    """Tests for startup preparation."""

    def test_creates_dir_and_header(self, tmp_path, proc_stat):
        settings = Settings(log_dir=tmp_path / "a" / "b")

        writer = prepare(settings, ProcStatCounterSource(proc_stat))

        assert writer.path == settings.log_path
        assert settings.log_path.read_text() == HEADER + "\n"

    def test_keeps_existing_log(self, tmp_path, proc_stat):
        settings = Settings(log_dir=tmp_path)
        settings.log_path.write_text("old\n")

        prepare(settings, ProcStatCounterSource(proc_stat))

        assert settings.log_path.read_text() == "old\n"

    def test_checks_source_first(self, tmp_path):
        settings = Settings(log_dir=tmp_path / "logs")

        with pytest.raises(UnavailableError):
            prepare(settings, ProcStatCounterSource(tmp_path / "missing"))

        assert not settings.log_dir.exists()


class TestMain:
    """Tests for a full run of main()."""

    def test_runs_and_logs(self, env, tmp_path, monkeypatch, installed_handlers, capsys):
        original_run = StealMonitor.run
        monkeypatch.setattr(StealMonitor, "run", lambda self, max_iterations=None: original_run(self, 2))

        assert main([], env=env) == 0

        lines = (tmp_path / "logs" / "stealmon.log").read_text().splitlines()
        assert lines[0] == HEADER
        assert len(lines) == 3
        # The counters never move, so every sample skips and records 0.00.
        assert lines[2].endswith("| 0.00 | 0.00 | 0.00 | 2")
        assert set(installed_handlers) == {signal.SIGTERM, signal.SIGINT}
        assert "Starting stealmon: interval=0.001s" in capsys.readouterr().err


def test_signal_handler_stops_monitor(tmp_path, installed_handlers):
    monitor = StealMonitor(Settings(log_dir=tmp_path), ProcStatCounterSource(tmp_path / "stat"))

    install_signal_handlers(monitor)
    installed_handlers[signal.SIGTERM](signal.SIGTERM, None)

    assert monitor._stop_event.wait(timeout=2.0)


def test_signal_handler_returns_while_stop_lock_held(tmp_path, installed_handlers):
    """
    Test the handler does not block when the signal lands inside Event.wait().

    Event.wait() holds the event's condition lock briefly; a handler that
    set the event directly on that thread would deadlock.
    """
    monitor = StealMonitor(Settings(log_dir=tmp_path), ProcStatCounterSource(tmp_path / "stat"))
    install_signal_handlers(monitor)
    handler = installed_handlers[signal.SIGINT]

    def interrupted_wait() -> None:
        with monitor._stop_event._cond:
            handler(signal.SIGINT, None)

    thread = threading.Thread(target=interrupted_wait, daemon=True)
    thread.start()
    thread.join(timeout=2.0)

    assert not thread.is_alive(), "Signal handler blocked on the stop event lock"
    assert monitor._stop_event.wait(timeout=2.0)


def test_configure_logging_format():
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)

    logging.getLogger("stealmon.test").info("hello")
    logging.getLogger("stealmon.test").debug("hidden")

    output = stream.getvalue()
    assert re.match(r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}\] INFO: hello\n$", output)
