"""Per-CPU cumulative counter sources."""

import os
from abc import ABC, abstractmethod
from pathlib import Path

import psutil

from stealmon.errors import UnavailableError
from stealmon.models import ALL, CounterSnapshot, CpuCounters, CpuKey, CpuSelection

# /proc/stat accounting fields after the label, in kernel order.
STAT_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)
STEAL_INDEX = STAT_FIELDS.index("steal")


def parse_stat_line(line: str) -> tuple[CpuKey, CpuCounters] | None:
    """
    Parse one ``cpu`` row of /proc/stat.

    The aggregate row (label ``cpu``) is keyed ``"all"``, per-CPU rows
    (``cpuN``) by their integer id. Fields missing on older kernels count
    as zero; fields beyond the ten known ones are ignored.

    Returns:
        ``(key, counters)``, or None if the line is not a CPU row.
    """
    parts = line.split()
    if not parts or not parts[0].startswith("cpu"):
        return None

    label = parts[0]
    if label == "cpu":
        key: CpuKey = ALL
    elif label[3:].isdigit():
        key = int(label[3:])
    else:
        return None

    try:
        values = [int(field) for field in parts[1 : 1 + len(STAT_FIELDS)]]
    except ValueError:
        return None
    values.extend([0] * (len(STAT_FIELDS) - len(values)))

    return key, CpuCounters(total=sum(values), steal=values[STEAL_INDEX])


def _select(rows: dict[CpuKey, CpuCounters], selection: CpuSelection) -> dict[CpuKey, CpuCounters]:
    """Keep the rows a selection asks for; absent rows are omitted."""
    return {key: rows[key] for key in selection.keys if key in rows}


class CounterSource(ABC):
    """
    Provides snapshots of cumulative per-CPU counters.

    Implementations raise UnavailableError when the underlying interface
    cannot be read. CPU ids without a row are left out of the snapshot.
    """

    @abstractmethod
    def snapshot(self, selection: CpuSelection) -> CounterSnapshot:
        """Capture counters for the selected CPUs."""

    def check(self) -> None:
        """
        Verify the source is readable.

        Raises:
            UnavailableError: If the counters cannot be read.
        """
        self.snapshot(CpuSelection())


class ProcStatCounterSource(CounterSource):
    """Reads jiffie counters from the kernel's /proc/stat."""

    def __init__(self, path: Path | str = "/proc/stat") -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self, selection: CpuSelection) -> CounterSnapshot:
        try:
            text = self._path.read_text()
        except OSError as e:
            raise UnavailableError(f"{self._path} is not readable: {e}") from e

        rows: dict[CpuKey, CpuCounters] = {}
        for line in text.splitlines():
            parsed = parse_stat_line(line)
            if parsed is not None:
                key, counters = parsed
                rows[key] = counters
        return _select(rows, selection)

    def check(self) -> None:
        if not os.access(self._path, os.R_OK):
            raise UnavailableError(f"{self._path} is not readable")
        super().check()


class PsutilCounterSource(CounterSource):
    """
    Reads the same counters through psutil.

    psutil reports seconds; values are converted back to clock ticks so
    snapshots stay integral. Per-CPU rows are matched to ids by their
    position in ``psutil.cpu_times(percpu=True)``.
    """

    def __init__(self, clock_ticks: int | None = None) -> None:
        if clock_ticks is None:
            clock_ticks = os.sysconf("SC_CLK_TCK")
        self._clock_ticks = clock_ticks

    def _counters(self, times) -> CpuCounters:
        if not hasattr(times, "steal"):
            raise UnavailableError("psutil does not report steal time on this platform")
        total = sum(getattr(times, name, 0.0) for name in STAT_FIELDS)
        return CpuCounters(
            total=round(total * self._clock_ticks),
            steal=round(times.steal * self._clock_ticks),
        )

    def snapshot(self, selection: CpuSelection) -> CounterSnapshot:
        try:
            if selection.is_aggregate:
                return {ALL: self._counters(psutil.cpu_times(percpu=False))}
            per_cpu = psutil.cpu_times(percpu=True)
        except (OSError, psutil.Error) as e:
            raise UnavailableError(f"psutil could not read CPU times: {e}") from e

        rows: dict[CpuKey, CpuCounters] = {}
        for cpu_id in selection.cpu_ids:
            if cpu_id < len(per_cpu):
                rows[cpu_id] = self._counters(per_cpu[cpu_id])
        return rows


def create_counter_source(kind: str, proc_stat_path: Path | str = "/proc/stat") -> CounterSource:
    """Build the counter source named by COUNTER_SOURCE."""
    if kind == "psutil":
        return PsutilCounterSource()
    return ProcStatCounterSource(proc_stat_path)
