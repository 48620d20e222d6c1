"""Environment-driven configuration for stealmon."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from stealmon.errors import ConfigError
from stealmon.models import ALL, CpuSelection

COUNTER_SOURCES = ("procstat", "psutil")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

USAGE = """\
stealmon - CPU steal time logger

Environment variables:

  INTERVAL_SECONDS     Sampling interval in seconds (default: 5)
  LOG_DIR              Directory for logs (default: /var/log/stealmon)
  LOG_FILE_BASENAME    Log file base name (default: stealmon)
  MAX_LOG_SIZE_BYTES   Rotate log when size reaches this (default: 10485760 = 10 MiB)
  RETENTION_FILES      Number of rotated logs to keep, 0 truncates in place (default: 5)
  CPU_MODE             "all" (aggregate) or comma-separated CPU IDs (e.g., "0,1")
  COUNTER_SOURCE       "procstat" or "psutil" (default: procstat)
  PROC_STAT_PATH       Kernel counter file for procstat (default: /proc/stat)
  LOG_LEVEL            Diagnostic level on stderr (default: INFO)

Examples:

  INTERVAL_SECONDS=1 LOG_DIR=/tmp/stealmon stealmon
  CPU_MODE=0 stealmon
"""


def parse_cpu_mode(value: str) -> CpuSelection:
    """
    Parse a CPU_MODE value.

    Args:
        value: ``"all"`` or a comma-separated list of CPU ids.

    Returns:
        The corresponding CpuSelection.

    Raises:
        ConfigError: If the value is empty, malformed or repeats an id.
    """
    value = value.strip()
    if value == ALL:
        return CpuSelection()

    cpu_ids: list[int] = []
    for part in value.split(","):
        part = part.strip()
        if not (part.isascii() and part.isdigit()):
            raise ConfigError(f"Invalid CPU_MODE {value!r}: expected 'all' or CPU ids like '0,1'")
        cpu_id = int(part)
        if cpu_id in cpu_ids:
            raise ConfigError(f"Invalid CPU_MODE {value!r}: CPU {cpu_id} listed twice")
        cpu_ids.append(cpu_id)
    return CpuSelection(tuple(cpu_ids))


def _int(env: Mapping[str, str], key: str, default: int, minimum: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"Invalid {key} {raw!r}: expected an integer") from None
    if value < minimum:
        raise ConfigError(f"Invalid {key} {raw!r}: must be >= {minimum}")
    return value


def _interval(env: Mapping[str, str]) -> float:
    raw = env.get("INTERVAL_SECONDS")
    if raw is None or raw == "":
        return 5.0
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"Invalid INTERVAL_SECONDS {raw!r}: expected a number") from None
    if not value > 0:
        raise ConfigError(f"Invalid INTERVAL_SECONDS {raw!r}: must be positive")
    return value


def _choice(env: Mapping[str, str], key: str, default: str, choices: tuple[str, ...]) -> str:
    value = env.get(key) or default
    if key == "LOG_LEVEL":
        value = value.upper()
    if value not in choices:
        raise ConfigError(f"Invalid {key} {value!r}: expected one of {', '.join(choices)}")
    return value


@dataclass(slots=True, frozen=True)
class Settings:
    """Runtime configuration, fixed for the process lifetime."""

    interval_seconds: float = 5.0
    log_dir: Path = Path("/var/log/stealmon")
    log_file_basename: str = "stealmon"
    max_log_size_bytes: int = 10 * 1024 * 1024
    retention_files: int = 5
    cpu_selection: CpuSelection = CpuSelection()
    counter_source: str = "procstat"
    proc_stat_path: Path = Path("/proc/stat")
    log_level: str = "INFO"

    @property
    def log_path(self) -> Path:
        """Path of the active log file."""
        return self.log_dir / f"{self.log_file_basename}.log"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Unset or empty keys fall back to their defaults.

        Args:
            env: Mapping to read from. Defaults to ``os.environ``.

        Raises:
            ConfigError: If any value is invalid.
        """
        if env is None:
            env = os.environ

        basename = env.get("LOG_FILE_BASENAME") or "stealmon"
        if "/" in basename:
            raise ConfigError(f"Invalid LOG_FILE_BASENAME {basename!r}: must not contain '/'")

        return cls(
            interval_seconds=_interval(env),
            log_dir=Path(env.get("LOG_DIR") or "/var/log/stealmon"),
            log_file_basename=basename,
            max_log_size_bytes=_int(env, "MAX_LOG_SIZE_BYTES", 10 * 1024 * 1024, 1),
            retention_files=_int(env, "RETENTION_FILES", 5, 0),
            cpu_selection=parse_cpu_mode(env.get("CPU_MODE") or ALL),
            counter_source=_choice(env, "COUNTER_SOURCE", "procstat", COUNTER_SOURCES),
            proc_stat_path=Path(env.get("PROC_STAT_PATH") or "/proc/stat"),
            log_level=_choice(env, "LOG_LEVEL", "INFO", LOG_LEVELS),
        )
