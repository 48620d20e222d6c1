"""Size-based rotation of the log file family."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class Filesystem:
    """
    Filesystem operations used by rotation.

    In production: acts on the real filesystem
    In tests: can be replaced with an in-memory fake
    """

    def exists(self, path: Path) -> bool:
        """Check if a regular file exists."""
        return path.is_file()

    def size(self, path: Path) -> int:
        """Size of a file in bytes."""
        return path.stat().st_size

    def remove(self, path: Path) -> None:
        """Delete a file."""
        path.unlink()

    def rename(self, src: Path, dst: Path) -> None:
        """Rename a file, replacing any existing destination."""
        os.replace(src, dst)

    def truncate(self, path: Path) -> None:
        """Empty a file in place, keeping its inode."""
        os.truncate(path, 0)


def rotated_path(path: Path, index: int) -> Path:
    """Path of the ``index``-th rotated sibling (``stealmon.log.1`` ...)."""
    return path.with_name(f"{path.name}.{index}")


class Rotator:
    """
    Rotates the log when it reaches a size threshold.

    With ``retention > 0`` the family is shifted by renames, higher suffix
    meaning older, and the oldest sibling is deleted. With ``retention == 0``
    the active file is truncated in place.

    Rotation is best-effort: the first failing step is logged as a warning
    and the rest of that rotation is abandoned, leaving the active file to
    grow until the next check.
    """

    def __init__(self, fs: Filesystem | None = None) -> None:
        self._fs = fs if fs is not None else Filesystem()

    def maybe_rotate(self, path: Path, max_size_bytes: int, retention: int) -> bool:
        """
        Rotate ``path`` if it exists and is at least ``max_size_bytes``.

        Returns:
            True if a rotation was performed.
        """
        fs = self._fs
        try:
            if not fs.exists(path):
                return False
            size = fs.size(path)
        except OSError as e:
            logger.warning("Cannot stat log %s, skipping rotation: %s", path, e)
            return False

        if size < max_size_bytes:
            return False

        logger.info("Rotating log %s (size=%dB >= %dB)", path, size, max_size_bytes)

        if retention <= 0:
            return self._step("truncate", fs.truncate, path)

        oldest = rotated_path(path, retention)
        if fs.exists(oldest) and not self._step("remove", fs.remove, oldest):
            return False

        for i in range(retention - 1, 0, -1):
            src = rotated_path(path, i)
            if fs.exists(src) and not self._step("rename", fs.rename, src, rotated_path(path, i + 1)):
                return False

        return self._step("rename", fs.rename, path, rotated_path(path, 1))

    @staticmethod
    def _step(name: str, operation, *paths: Path) -> bool:
        try:
            operation(*paths)
        except OSError as e:
            logger.warning(
                "Log rotation %s of %s failed, rotation skipped: %s",
                name,
                " -> ".join(str(p) for p in paths),
                e,
            )
            return False
        return True
