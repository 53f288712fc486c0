"""
ExeWatch - Executable Integrity Monitoring Core Module.

Provides path resolution, scanning, hashing, baseline persistence,
comparison, alerting, quarantine, log enrichment and baseline export.
"""

from exewatch.core.alerts import AlertLog
from exewatch.core.baseline import Baseline, BaselineStore
from exewatch.core.comparator import BaselineComparator
from exewatch.core.enricher import LogEnricher
from exewatch.core.exporter import BaselineExporter
from exewatch.core.hashing import HashEngine
from exewatch.core.monitor import IntegrityMonitor
from exewatch.core.paths import PathResolver
from exewatch.core.quarantine import QuarantineManager
from exewatch.core.scanner import ExecutableScanner

__all__ = [
    "AlertLog",
    "Baseline",
    "BaselineComparator",
    "BaselineExporter",
    "BaselineStore",
    "ExecutableScanner",
    "HashEngine",
    "IntegrityMonitor",
    "LogEnricher",
    "PathResolver",
    "QuarantineManager",
]
