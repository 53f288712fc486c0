"""
ExeWatch - Baseline export.

Writes the baseline as a key:value list (one quoted path per line) for bulk
import into an external detection backend.
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from exewatch.core.alerts import AlertLog
from exewatch.core.baseline import Baseline
from exewatch.core.models import ExportResult

logger = logging.getLogger(__name__)


def format_entry(path: str, value: str = "") -> str:
    """
    Format one list entry as "<path>":<value>.

    Quoting keeps drive-letter colons inside the key.
    """
    key = path.replace('"', '\\"')
    return f'"{key}":{value}'


class BaselineExporter:
    """Serializes a Baseline to the export file and logs a sync event."""

    def __init__(
        self,
        output_path: Path,
        alert_log: Optional[AlertLog] = None,
        include_hash: bool = True,
    ) -> None:
        self.output_path = Path(output_path)
        self.alert_log = alert_log
        self.include_hash = include_hash

    def render(self, baseline: Baseline) -> str:
        lines = [
            format_entry(r.path, r.primary_hash if self.include_hash else "")
            for r in baseline
        ]
        return "".join(line + "\n" for line in lines)

    def export(self, baseline: Baseline) -> ExportResult:
        """
        Overwrite the export file with the current baseline.

        Raises:
            OSError: the export file cannot be written.
        """
        content = self.render(baseline).encode("utf-8")
        path = self.output_path.resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".export-", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error("Failed to write export %s: %s", path, e)
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

        result = ExportResult(entries=len(baseline), output_path=path)
        logger.info("Exported %d baseline entries to %s", result.entries, path)
        if self.alert_log is not None:
            self.alert_log.record_sync(result.entries, path)
        return result
