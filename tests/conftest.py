"""Shared fixtures and fakes for stealmon tests."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from stealmon.counters import CounterSource
from stealmon.errors import UnavailableError
from stealmon.models import CounterSnapshot, CpuCounters, CpuSelection
from stealmon.rotation import Filesystem


def snap(**rows: tuple[int, int]) -> dict:
    """Build a snapshot: ``snap(all=(100, 5))`` or ``snap(cpu0=(100, 5))``."""
    result = {}
    for name, (total, steal) in rows.items():
        key = "all" if name == "all" else int(name.removeprefix("cpu"))
        result[key] = CpuCounters(total=total, steal=steal)
    return result


class ScriptedCounterSource(CounterSource):
    """Returns a fixed sequence of snapshots; an exception entry is raised."""

    def __init__(self, snapshots: Iterable[CounterSnapshot | Exception]) -> None:
        self._snapshots = list(snapshots)
        self.calls: list[CpuSelection] = []

    def snapshot(self, selection: CpuSelection) -> CounterSnapshot:
        self.calls.append(selection)
        if not self._snapshots:
            raise UnavailableError("script exhausted")
        item = self._snapshots.pop(0)
        if isinstance(item, Exception):
            raise item
        wanted = set(selection.keys)
        return {key: value for key, value in item.items() if key in wanted}

    def check(self) -> None:
        pass


class FakeFilesystem(Filesystem):
    """In-memory files mapped to their sizes; ``fail`` injects OSErrors."""

    def __init__(self, files: dict[str, int] | None = None) -> None:
        self.files: dict[Path, int] = {Path(k): v for k, v in (files or {}).items()}
        self.fail: set[tuple[str, Path]] = set()
        self.ops: list[tuple] = []

    def _maybe_fail(self, op: str, path: Path) -> None:
        if (op, path) in self.fail:
            raise PermissionError(f"{op} denied: {path}")

    def exists(self, path: Path) -> bool:
        return path in self.files

    def size(self, path: Path) -> int:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def remove(self, path: Path) -> None:
        self._maybe_fail("remove", path)
        self.ops.append(("remove", path.name))
        del self.files[path]

    def rename(self, src: Path, dst: Path) -> None:
        self._maybe_fail("rename", src)
        self.ops.append(("rename", src.name, dst.name))
        self.files[dst] = self.files.pop(src)

    def truncate(self, path: Path) -> None:
        self._maybe_fail("truncate", path)
        self.ops.append(("truncate", path.name))
        self.files[path] = 0


class StepClock:
    """Clock that advances a fixed step on every call."""

    def __init__(self, start: datetime, step: timedelta) -> None:
        self._next = start
        self._step = step

    def __call__(self) -> datetime:
        self._next += self._step
        return self._next


@pytest.fixture
def clock() -> StepClock:
    """Clock starting at 2026-01-05T10:00:00+00:00, five seconds per sample."""
    return StepClock(datetime(2026, 1, 5, 10, 0, 0, tzinfo=timezone.utc), timedelta(seconds=5))


@pytest.fixture(autouse=True)
def reset_stealmon_logger():
    """Undo handlers and levels installed by configure_logging()."""
    yield
    root = logging.getLogger("stealmon")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
