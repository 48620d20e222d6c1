"""Sampling loop for stealmon."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from stealmon.config import Settings
from stealmon.counters import CounterSource
from stealmon.logwriter import LogWriter
from stealmon.models import SamplePoint
from stealmon.rotation import Rotator
from stealmon.sampler import SampleCalculator
from stealmon.stats import RunningStats

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    """Lifecycle states of the sampling loop."""

    RUNNING = "running"
    TERMINATED = "terminated"


def local_now() -> datetime:
    """Current local time with UTC offset, second precision."""
    return datetime.now().astimezone().replace(microsecond=0)


class StealMonitor:
    """
    Runs the rotate -> sample -> record -> append loop.

    Each iteration checks rotation, blocks for one interval while sampling,
    updates the running statistics and appends one log line. The monitor
    owns its RunningStats; they start from zero for every new monitor.

    stop() may be called from another thread. A stop
    during the sampling sleep abandons that iteration without writing.
    """

    def __init__(
        self,
        settings: Settings,
        source: CounterSource,
        rotator: Rotator | None = None,
        writer: LogWriter | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        """
        Initialize the StealMonitor.

        Args:
            settings: Interval, CPU selection and rotation limits.
            source: Where counter snapshots come from.
            rotator: Rotation strategy (default: real filesystem).
            writer: Log writer (default: writes to settings.log_path).
            clock: Returns the timestamp for each sample.
        """
        self._settings = settings
        self._stop_event = threading.Event()
        self._calculator = SampleCalculator(source, sleep=self._stop_event.wait)
        self._rotator = rotator if rotator is not None else Rotator()
        self._writer = writer if writer is not None else LogWriter(settings.log_path)
        self._clock = clock
        self._stats = RunningStats()
        self._state = MonitorState.RUNNING

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def stats(self) -> RunningStats:
        return self._stats

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request shutdown; takes effect within one interval."""
        self._stop_event.set()

    def run_once(self) -> SamplePoint | None:
        """
        Perform one iteration.

        Returns:
            The recorded sample, or None if shutdown interrupted it.
        """
        settings = self._settings
        self._rotator.maybe_rotate(
            self._writer.path,
            settings.max_log_size_bytes,
            settings.retention_files,
        )

        pct = self._calculator.compute(settings.cpu_selection, settings.interval_seconds)
        if self._stop_event.is_set():
            logger.debug("Shutdown during sampling, sample discarded")
            return None

        point = SamplePoint(steal_pct=pct, timestamp=self._clock())
        stats = self._stats.record(point.steal_pct)
        try:
            self._writer.write_sample(point, stats)
        except OSError as e:
            logger.warning("Failed to append to %s: %s", self._writer.path, e)
        return point

    def run(self, max_iterations: int | None = None) -> None:
        """
        Loop until stop() is called.

        Args:
            max_iterations: Stop after this many iterations (None = forever).
        """
        iterations = 0
        while not self._stop_event.is_set():
            if max_iterations is not None and iterations >= max_iterations:
                break
            self.run_once()
            iterations += 1

        self._state = MonitorState.TERMINATED
        logger.info(
            "stealmon stopped after %d samples (avg=%.2f peak=%.2f)",
            self._stats.count,
            self._stats.average,
            self._stats.peak,
        )
