"""Data models for stealmon."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Union

ALL = "all"

# Key of a counter row: the aggregate selector "all" or an integer CPU id.
CpuKey = Union[str, int]


@dataclass(slots=True, frozen=True)
class CpuCounters:
    """Cumulative counters for one CPU row at one instant."""

    total: int  # Sum of all accounting fields (jiffies)
    steal: int  # Steal field (jiffies)


# Immutable by convention: sources build a fresh dict per call.
CounterSnapshot = Mapping[CpuKey, CpuCounters]


@dataclass(slots=True, frozen=True)
class CpuSelection:
    """
    Which CPU rows to sample.

    Either the aggregate row (``cpu_ids`` empty) or an ordered tuple of
    distinct CPU ids.
    """

    cpu_ids: tuple[int, ...] = ()

    @property
    def is_aggregate(self) -> bool:
        """True when the aggregate row is selected."""
        return not self.cpu_ids

    @property
    def keys(self) -> tuple[CpuKey, ...]:
        """Snapshot keys this selection produces."""
        if self.is_aggregate:
            return (ALL,)
        return self.cpu_ids

    def __str__(self) -> str:
        if self.is_aggregate:
            return ALL
        return ",".join(str(cpu_id) for cpu_id in self.cpu_ids)


@dataclass(slots=True, frozen=True)
class SamplePoint:
    """One steal measurement."""

    steal_pct: float  # Nominally 0.0 - 100.0, not clamped
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class StatsSnapshot:
    """Running statistics as of one sample."""

    average: float
    peak: float
    count: int
