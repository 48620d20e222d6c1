"""Steal percentage calculation from two counter snapshots."""

import logging
import time
from collections.abc import Callable

from stealmon.counters import CounterSource
from stealmon.errors import UnavailableError
from stealmon.models import CounterSnapshot, CpuSelection

logger = logging.getLogger(__name__)


def steal_percent(before_total: int, before_steal: int, after_total: int, after_steal: int) -> float | None:
    """
    Steal percentage between two readings of one CPU row.

    Returns None when the total did not advance (or went backward). A
    negative steal delta is not clamped and yields a negative percentage.
    """
    dt = after_total - before_total
    if dt <= 0:
        return None
    ds = after_steal - before_steal
    return round(100.0 * ds / dt, 2)


def average_steal(before: CounterSnapshot, after: CounterSnapshot) -> float:
    """
    Unweighted mean of the per-CPU steal percentages.

    Only CPUs present in both snapshots with an advancing total contribute.
    Returns 0.0 when none do.
    """
    percents: list[float] = []
    for key, first in before.items():
        second = after.get(key)
        if second is None:
            continue
        pct = steal_percent(first.total, first.steal, second.total, second.steal)
        if pct is None:
            logger.debug("Skipping CPU %s: total counter did not advance", key)
            continue
        percents.append(pct)

    if not percents:
        return 0.0
    return round(sum(percents) / len(percents), 2)


class SampleCalculator:
    """
    Computes one steal sample by reading counters twice, an interval apart.

    The sleep is injectable so tests can run without real timing and the
    monitor can cut a sample short on shutdown.
    """

    def __init__(
        self,
        source: CounterSource,
        sleep: Callable[[float], object] = time.sleep,
    ) -> None:
        self._source = source
        self._sleep = sleep

    def _snapshot(self, selection: CpuSelection) -> CounterSnapshot:
        try:
            return self._source.snapshot(selection)
        except UnavailableError as e:
            logger.warning("Counter read failed, sample degrades to 0.00: %s", e)
            return {}

    def compute(self, selection: CpuSelection, interval: float) -> float:
        """
        Sample steal time over ``interval`` seconds.

        Never raises for counter failures; a sample with no usable CPU
        rows is 0.0.
        """
        before = self._snapshot(selection)
        self._sleep(interval)
        after = self._snapshot(selection)
        return average_steal(before, after)
