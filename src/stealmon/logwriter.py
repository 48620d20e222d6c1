"""Append-only sample log."""

from pathlib import Path

from stealmon.models import SamplePoint, StatsSnapshot

HEADER = "# timestamp iso8601 | steal_pct | run_avg_steal_pct | run_peak_steal_pct | samples"


def format_line(point: SamplePoint, stats: StatsSnapshot) -> str:
    """Format one sample as a pipe-delimited log line (no newline)."""
    return (
        f"{point.timestamp.isoformat()} | {point.steal_pct:.2f} | "
        f"{stats.average:.2f} | {stats.peak:.2f} | {stats.count}"
    )


class LogWriter:
    """
    Writes sample lines to the active log file.

    Every line goes out as a single write on a file opened for append and
    closed before returning, so readers never see a line split across two
    samples.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def ensure_header(self) -> bool:
        """
        Create the log file with its header line if it does not exist.

        Returns:
            True if the header was written.
        """
        try:
            with open(self._path, "x") as f:
                f.write(HEADER + "\n")
        except FileExistsError:
            return False
        return True

    def append(self, line: str) -> None:
        """Append one line, recreating the file with its header if absent."""
        self.ensure_header()
        with open(self._path, "a") as f:
            f.write(line + "\n")

    def write_sample(self, point: SamplePoint, stats: StatsSnapshot) -> str:
        """Append a formatted sample line and return it."""
        line = format_line(point, stats)
        self.append(line)
        return line
