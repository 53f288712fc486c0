"""
ExeWatch - Directory scanner module.

Recursively scans whitelisted directories and fingerprints every file whose
extension marks it as executable or script-like.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from exewatch.core.hashing import HashEngine
from exewatch.core.models import ExecutableRecord

logger = logging.getLogger(__name__)

MONITORED_EXTENSIONS: frozenset[str] = frozenset({
    # Native executables and libraries
    ".exe", ".dll", ".sys", ".com", ".scr", ".cpl", ".ocx", ".so",
    # Installers and packages
    ".msi", ".msp", ".mst", ".appx", ".msix",
    # Scripts
    ".bat", ".cmd", ".ps1", ".psm1", ".psd1", ".vbs", ".vbe", ".js", ".jse",
    ".wsf", ".wsh", ".hta", ".sh", ".py",
    # Indirect execution
    ".lnk", ".jar", ".reg", ".application",
})


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lower-case extensions and make sure each has a leading dot."""
    result = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        result.add(ext if ext.startswith(".") else "." + ext)
    return frozenset(result)


class ExecutableScanner:
    """
    Walks directory trees and produces an ExecutableRecord per monitored
    file. Never modifies anything on disk.
    """

    def __init__(
        self,
        hash_engine: Optional[HashEngine] = None,
        extensions: Optional[Iterable[str]] = None,
    ) -> None:
        self.hash_engine = hash_engine or HashEngine()
        self.extensions = (
            normalize_extensions(extensions) if extensions is not None else MONITORED_EXTENSIONS
        )

    def is_monitored(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def fingerprint(self, path: Path) -> Optional[ExecutableRecord]:
        """Build a record for one file, or None if it cannot be read."""
        try:
            stat = path.stat()
        except OSError as e:
            logger.warning("Skipping %s: %s", path, e)
            return None
        hashes = self.hash_engine.compute_hashes(path)
        if hashes is None:
            return None
        # st_birthtime only exists on some platforms; ctime is the fallback.
        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return ExecutableRecord(
            path=str(path),
            name=path.name,
            size=stat.st_size,
            primary_hash=hashes[0],
            secondary_hash=hashes[1],
            created=_to_datetime(created),
            modified=_to_datetime(stat.st_mtime),
        )

    def scan_directory(
        self,
        directory: Path,
        modified_since: Optional[datetime] = None,
    ) -> list[ExecutableRecord]:
        """
        Recursively scan a directory.

        Args:
            directory: Root of the tree to walk.
            modified_since: Only files modified strictly after this moment
                are hashed; None scans everything.

        Returns:
            Records for every readable monitored file, in path order.
        """
        directory = Path(directory).resolve()
        if not directory.is_dir():
            logger.warning("Not a directory: %s", directory)
            return []

        records: list[ExecutableRecord] = []
        for path in sorted(directory.rglob("*")):
            if not self.is_monitored(path):
                continue
            try:
                if not path.is_file():
                    continue
                # Compared at datetime precision, the same as last_write_time.
                if modified_since is not None and _to_datetime(path.stat().st_mtime) <= modified_since:
                    continue
            except OSError as e:
                logger.warning("Skipping %s: %s", path, e)
                continue
            record = self.fingerprint(path)
            if record is not None:
                records.append(record)
        logger.debug("Scanned %s: %d record(s)", directory, len(records))
        return records

    def scan_directories(
        self,
        directories: Iterable[Path],
        modified_since: Optional[datetime] = None,
    ) -> list[ExecutableRecord]:
        """
        Scan several directories and concatenate their records.

        Nested whitelist entries would otherwise report the same file twice.
        """
        records: list[ExecutableRecord] = []
        seen: set[str] = set()
        for directory in directories:
            for record in self.scan_directory(directory, modified_since):
                if record.path in seen:
                    continue
                seen.add(record.path)
                records.append(record)
        return records
