"""stealmon - command-line entry point."""

import argparse
import logging
import os
import signal
import sys
import threading
from collections.abc import Mapping
from datetime import datetime

from stealmon import __version__
from stealmon.config import USAGE, Settings
from stealmon.counters import CounterSource, create_counter_source
from stealmon.errors import ConfigError, UnavailableError
from stealmon.logwriter import LogWriter
from stealmon.monitor import StealMonitor

logger = logging.getLogger(__name__)


class IsoFormatter(logging.Formatter):
    """Formats record times like ``date -Is``."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="seconds")


def configure_logging(level: str = "INFO", stream=None) -> None:
    """Send stealmon diagnostics to stderr as ``[time] LEVEL: message``."""
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(IsoFormatter("[%(asctime)s] %(levelname)s: %(message)s"))

    root = logging.getLogger("stealmon")
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stealmon",
        description="Log CPU steal time percentages to a rotated file.",
        epilog=USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def prepare(settings: Settings, source: CounterSource) -> LogWriter:
    """
    Check startup preconditions and create the log file if needed.

    Raises:
        UnavailableError: If the counter source cannot be read.
        OSError: If the log directory cannot be created or written.
    """
    source.check()

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    if not os.access(settings.log_dir, os.W_OK | os.X_OK):
        raise PermissionError(f"Log dir is not writable: {settings.log_dir}")

    writer = LogWriter(settings.log_path)
    writer.ensure_header()
    return writer


def install_signal_handlers(monitor: StealMonitor) -> None:
    """
    Stop the monitor on SIGTERM and SIGINT.

    The handler runs on the main thread, possibly while it holds the stop
    event's lock inside Event.wait(), so the stop is handed to a
    short-lived thread instead of being called directly.
    """

    def shutdown(signame: str) -> None:
        logger.info("Received %s, stopping", signame)
        monitor.stop()

    def handle(signum, frame) -> None:
        threading.Thread(
            target=shutdown,
            args=(signal.Signals(signum).name,),
            daemon=True,
            name="StealmonShutdown",
        ).start()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, handle)


def main(argv: list[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    """Entry point for stealmon. Returns the process exit code."""
    build_parser().parse_args(argv)

    try:
        settings = Settings.from_env(env)
    except ConfigError as e:
        configure_logging()
        logger.error("%s", e)
        return 1

    configure_logging(settings.log_level)
    source = create_counter_source(settings.counter_source, settings.proc_stat_path)

    try:
        writer = prepare(settings, source)
    except UnavailableError as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("Failed to prepare log dir %s: %s", settings.log_dir, e)
        return 1

    logger.info(
        "Starting stealmon: interval=%gs log=%s cpu_mode=%s",
        settings.interval_seconds,
        settings.log_path,
        settings.cpu_selection,
    )

    monitor = StealMonitor(settings, source, writer=writer)
    install_signal_handlers(monitor)
    monitor.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
