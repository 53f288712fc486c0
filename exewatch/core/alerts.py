"""
ExeWatch - Alert log.

Append-only text log of every classification decision, quarantine outcome
and export sync. Uses colorama for cross-platform colored console alerts.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import colorama
from colorama import Fore, Style

from exewatch.core.models import Classification, ExecutableRecord, QuarantineRecord, Severity

logger = logging.getLogger(__name__)

_SEVERITY_ORDER = (Severity.INFO, Severity.WARNING, Severity.ALERT)

CLASSIFICATION_SEVERITY = {
    Classification.KNOWN: Severity.INFO,
    Classification.NEW: Severity.WARNING,
    Classification.MODIFIED: Severity.ALERT,
}

# Lazy init of colorama (once per process). Only fixes the Windows console;
# sys.stderr is not wrapped.
_colorama_init_done = False


def _ensure_colorama() -> None:
    global _colorama_init_done
    if not _colorama_init_done:
        colorama.just_fix_windows_console()
        _colorama_init_done = True


def colored_alert(message: str, severity: Severity) -> None:
    """
    Print an alert message in color to stderr. Safe on Linux and Windows.

    ALERT is red, WARNING yellow, INFO green.
    """
    _ensure_colorama()
    if severity is Severity.ALERT:
        prefix = Fore.RED
    elif severity is Severity.WARNING:
        prefix = Fore.YELLOW
    else:
        prefix = Fore.GREEN
    print(f"{prefix}{message}{Style.RESET_ALL}", file=sys.stderr)


class AlertLog:
    """
    Writes one timestamped, leveled line per event to the alert log file and
    optionally echoes it to the console.
    """

    def __init__(
        self,
        log_path: Path,
        console_alerts: bool = True,
        min_severity: Severity = Severity.INFO,
        enabled: bool = True,
    ) -> None:
        self.log_path = Path(log_path)
        self.console_alerts = console_alerts
        self._min_severity = min_severity
        self.enabled = enabled

    def _should_log(self, severity: Severity) -> bool:
        return _SEVERITY_ORDER.index(severity) >= _SEVERITY_ORDER.index(self._min_severity)

    @staticmethod
    def format_line(severity: Severity, event: str, subject: str, detail: Optional[str] = None) -> str:
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        line = f"{timestamp} [{severity.value}] {event} {subject}"
        if detail:
            line += f" - {detail}"
        return line

    def emit(self, severity: Severity, event: str, subject: str, detail: Optional[str] = None) -> None:
        """
        Append one line to the alert log.

        Raises:
            OSError: the log cannot be written at all.
        """
        if not self.enabled or not self._should_log(severity):
            return
        line = self.format_line(severity, event, subject, detail)
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error("Failed to write alert to %s: %s", self.log_path, e)
            raise
        if self.console_alerts:
            detail_str = f" ({detail})" if detail else ""
            colored_alert(f"[{severity.value}] {event}: {subject}{detail_str}", severity)

    def record_classification(self, record: ExecutableRecord, classification: Classification) -> None:
        self.emit(
            CLASSIFICATION_SEVERITY[classification],
            classification.value,
            record.path,
            record.reason,
        )

    def record_quarantine(self, result: QuarantineRecord) -> None:
        if result.moved:
            self.emit(Severity.ALERT, "QUARANTINED", str(result.source), f"moved to {result.destination}")
        else:
            self.emit(
                Severity.WARNING,
                "QUARANTINE_FAILED",
                str(result.source),
                result.error or "not moved",
            )

    def record_sync(self, entries: int, output_path: Path) -> None:
        self.emit(Severity.INFO, "SYNC", str(output_path), f"exported {entries} baseline entries")
