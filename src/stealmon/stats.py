"""Running steal statistics."""

from stealmon.models import StatsSnapshot


class RunningStats:
    """
    Sample count, sum and peak over the life of one monitor.

    Nothing is persisted: a new instance (a process restart) starts again
    from zero. The peak starts at 0.0 rather than negative infinity, so
    negative samples never lower it.
    """

    __slots__ = ("count", "total", "peak")

    def __init__(self) -> None:
        self.count = 0
        self.total = 0.0
        self.peak = 0.0

    @property
    def average(self) -> float:
        if self.count == 0:
            return 0.0
        return round(self.total / self.count, 2)

    def record(self, pct: float) -> StatsSnapshot:
        """Add one sample and return the updated statistics."""
        self.count += 1
        self.total += pct
        self.peak = round(max(self.peak, pct), 2)
        return self.snapshot()

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(average=self.average, peak=self.peak, count=self.count)
