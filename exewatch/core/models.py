"""
ExeWatch - Shared data models (records, outcomes, etc.).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class Classification(str, Enum):
    """Result of comparing a scanned file against the baseline."""

    KNOWN = "KNOWN"
    NEW = "NEW"
    MODIFIED = "MODIFIED"


class Severity(str, Enum):
    """Alert log levels."""

    INFO = "INFO"
    WARNING = "WARNING"
    ALERT = "ALERT"


@dataclass(frozen=True)
class ExecutableRecord:
    """Fingerprint of one observed file."""

    path: str
    name: str
    size: int
    primary_hash: str
    secondary_hash: str
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    reason: Optional[str] = None

    def with_reason(self, reason: str) -> "ExecutableRecord":
        return replace(self, reason=reason)


@dataclass
class ScanOutcome:
    """Per-invocation scan result. Never persisted."""

    known: int = 0
    new: int = 0
    modified: int = 0
    flagged: list[ExecutableRecord] = field(default_factory=list)
    quarantined: list["QuarantineRecord"] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.known + self.new + self.modified

    @property
    def flagged_count(self) -> int:
        return len(self.flagged)

    @property
    def clean(self) -> bool:
        return not self.flagged


@dataclass
class QuarantineRecord:
    """Outcome of one quarantine attempt."""

    source: Path
    destination: Path
    moved: bool
    error: Optional[str] = None

    def format_log(self) -> str:
        if self.moved:
            return "%s -> %s" % (self.source, self.destination)
        return "%s left in place: %s" % (self.source, self.error or "not moved")


@dataclass
class MergeResult:
    """Counts from an incremental baseline merge."""

    added: int = 0
    updated: int = 0

    @property
    def total(self) -> int:
        return self.added + self.updated


@dataclass
class UpdateResult:
    """Outcome of an update-baseline run."""

    mode: str  # "full" or "incremental"
    scanned: int
    added: int
    updated: int
    total_entries: int
    written: bool


@dataclass
class EnrichResult:
    """Outcome of one log enrichment pass."""

    processed: int = 0
    enriched: int = 0
    missing: int = 0
    sink_path: Optional[Path] = None


@dataclass
class ExportResult:
    """Outcome of a baseline export."""

    entries: int
    output_path: Path
