"""Plain-text application log with size-based rotation."""

from __future__ import annotations

import shutil
import threading
from datetime import datetime
from pathlib import Path

LOG_FILE_NAME = "logsfile.txt"
OLD_LOGS_DIR_NAME = "old_logs"
DEFAULT_ROTATE_LIMIT = 100


class AppLog:
    """Writes timestamped lines to ``<directory>/logsfile.txt``.

    The file is rotated into ``<directory>/old_logs`` once it holds
    ``limit`` lines or more; this check also runs on construction.
    """

    def __init__(self, directory: str | Path = "logs") -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path = self.directory / LOG_FILE_NAME
        self.old_logs_dir = self.directory / OLD_LOGS_DIR_NAME
        self._lock = threading.Lock()
        self.path.touch(exist_ok=True)
        self.rotate()

    def _write(self, prefix: str, text: str) -> None:
        stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S")
        line = f"{prefix}{stamp} |-| {text}"
        if not line.endswith("\n"):
            line += "\n"
        with self._lock, self.path.open("a", encoding="utf-8") as fh:
            fh.write(line)

    def error(self, err: BaseException | str) -> None:
        """Record an error line, prefixed with ``ERROR: ``."""
        self._write("ERROR: ", str(err))

    def message(self, text: str) -> None:
        """Record an informational line."""
        self._write("", text)

    def rotate(self, limit: int = DEFAULT_ROTATE_LIMIT) -> Path | None:
        """Move the log into ``old_logs`` if it has at least ``limit`` lines.

        Returns the path of the backup file, or None when nothing was moved.
        """
        with self._lock, self.path.open("r+b") as fh:
            line_count = sum(1 for _ in fh)
            if line_count < limit:
                return None
            self.old_logs_dir.mkdir(exist_ok=True)
            stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            backup = self.old_logs_dir / f"{stamp}_logs.txt"
            fh.seek(0)
            with backup.open("wb") as out:
                shutil.copyfileobj(fh, out)
            fh.truncate(0)
        return backup

    def clear_old_logs(self) -> None:
        """Delete every rotated log file."""
        shutil.rmtree(self.old_logs_dir, ignore_errors=True)