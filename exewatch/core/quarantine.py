"""
ExeWatch - Quarantine.

Best-effort relocation of flagged files out of their execution-eligible
location. A failed move is logged and the file stays where it is; the
enforcement layer, not this module, decides what may run.

Handles PermissionError, files in use, and missing quarantine roots
without raising.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from exewatch.core.models import ExecutableRecord, QuarantineRecord

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class QuarantineManager:
    """
    Moves flagged files into quarantine_dir as <timestamp>_<name>.

    The timestamp is fixed when the manager is created, so every file moved
    during one invocation shares it.
    """

    def __init__(
        self,
        quarantine_dir: Path,
        *,
        dry_run: bool = False,
        timestamp: Optional[str] = None,
    ) -> None:
        self.quarantine_dir = Path(quarantine_dir)
        self.dry_run = dry_run
        self.timestamp = timestamp or time.strftime(TIMESTAMP_FORMAT, time.localtime())
        self._claimed: set[str] = set()

    def destination_for(self, record: ExecutableRecord) -> Path:
        """Destination path; never reuses a name already taken in this run."""
        base = f"{self.timestamp}_{record.name}"
        candidate = self.quarantine_dir / base
        counter = 1
        while candidate.name in self._claimed or candidate.exists():
            candidate = self.quarantine_dir / f"{base}.{counter}"
            counter += 1
        self._claimed.add(candidate.name)
        return candidate

    def quarantine(self, record: ExecutableRecord) -> QuarantineRecord:
        """Move one flagged file. Never raises for filesystem errors."""
        source = Path(record.path)
        try:
            destination = self.destination_for(record)
        except OSError as e:
            destination = self.quarantine_dir / f"{self.timestamp}_{record.name}"
            return self._failed(source, destination, e)

        if self.dry_run:
            logger.info("Dry run: would quarantine %s -> %s", source, destination)
            return QuarantineRecord(source=source, destination=destination, moved=False, error="dry run")

        try:
            self.quarantine_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(destination))
        except OSError as e:
            return self._failed(source, destination, e)

        result = QuarantineRecord(source=source, destination=destination, moved=True)
        logger.warning("[QUARANTINE] %s", result.format_log())
        return result

    @staticmethod
    def _failed(source: Path, destination: Path, error: OSError) -> QuarantineRecord:
        result = QuarantineRecord(
            source=source,
            destination=destination,
            moved=False,
            error=str(error),
        )
        logger.warning("[QUARANTINE] Failed to move %s: %s", source, error)
        return result
