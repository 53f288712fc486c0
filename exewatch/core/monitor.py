"""
ExeWatch - Integrity monitor.

Pipeline:  policy → path resolver → scanner → comparator (baseline)
           → alert log / quarantine / baseline update

Each operation runs to completion within one invocation; there is no
background work and no locking between concurrent invocations.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from exewatch.core.alerts import AlertLog
from exewatch.core.baseline import Baseline, BaselineStore
from exewatch.core.comparator import BaselineComparator
from exewatch.core.config_loader import Settings
from exewatch.core.enricher import LogEnricher
from exewatch.core.errors import ExeWatchError
from exewatch.core.exporter import BaselineExporter
from exewatch.core.models import EnrichResult, ExportResult, ScanOutcome, UpdateResult
from exewatch.core.paths import PathResolver
from exewatch.core.policy import PolicySource, load_whitelist_patterns, policy_source_from_settings
from exewatch.core.quarantine import QuarantineManager
from exewatch.core.scanner import ExecutableScanner

logger = logging.getLogger(__name__)


class IntegrityMonitor:
    """
    Runs scans, baseline updates, log enrichment and exports against the
    whitelisted directories described by Settings.
    """

    def __init__(
        self,
        settings: Settings,
        dry_run: bool = False,
        policy_source: Optional[PolicySource] = None,
    ) -> None:
        self.settings = settings
        self.dry_run = dry_run
        self._policy_source = policy_source
        self.resolver = PathResolver(env=settings.env)
        self.scanner = ExecutableScanner(extensions=settings.extensions)
        self.comparator = BaselineComparator()
        self.store = BaselineStore(settings.baseline_path)
        self.alert_log = AlertLog(
            log_path=settings.alert_log_path,
            console_alerts=settings.console_alerts,
            min_severity=settings.min_severity,
            enabled=not dry_run,
        )

    @property
    def policy_source(self) -> PolicySource:
        if self._policy_source is None:
            self._policy_source = policy_source_from_settings(
                self.settings.policy_file, self.settings.whitelist
            )
        return self._policy_source

    def resolve_directories(self) -> list[Path]:
        """
        Whitelisted directories that exist right now.

        Raises:
            PolicyNotConfiguredError: no whitelist policy is available.
        """
        patterns = load_whitelist_patterns(self.policy_source)
        directories = self.resolver.resolve(patterns)
        if not directories:
            logger.warning("None of the %d whitelist pattern(s) resolve to a directory", len(patterns))
        else:
            logger.info("Monitoring %d whitelisted director%s", len(directories),
                        "y" if len(directories) == 1 else "ies")
        return directories

    def scan(self, quarantine: bool = False) -> ScanOutcome:
        """
        Scan all whitelisted directories and classify every file.

        The baseline is never modified by a scan.
        """
        directories = self.resolve_directories()
        baseline = self.store.load()
        if not baseline:
            logger.warning("Empty or missing baseline; run 'exewatch update-baseline' to create one.")
        records = self.scanner.scan_directories(directories)
        outcome = self.comparator.compare(
            baseline, records, on_classified=self.alert_log.record_classification
        )
        logger.info(
            "Scan complete: %d known, %d new, %d modified",
            outcome.known, outcome.new, outcome.modified,
        )
        if quarantine and outcome.flagged:
            manager = QuarantineManager(self.settings.quarantine_dir, dry_run=self.dry_run)
            for record in outcome.flagged:
                result = manager.quarantine(record)
                outcome.quarantined.append(result)
                self.alert_log.record_quarantine(result)
        return outcome

    def update_baseline(self, full: bool = False) -> UpdateResult:
        """
        Refresh the baseline.

        Full mode (or no usable baseline) rescans everything and replaces the
        baseline; otherwise only files modified since the baseline's last
        write are scanned and merged in.
        """
        directories = self.resolve_directories()
        existing = self.store.load()
        started = datetime.now(timezone.utc)

        if full or not self.store.exists() or not existing:
            records = self.scanner.scan_directories(directories)
            if self.dry_run:
                logger.info("Dry run: would write %d entries to %s", len(records), self.store.path)
                return UpdateResult("full", len(records), len(records), 0, len(records), False)
            baseline = self.store.replace_all(records, stamp=started)
            return UpdateResult("full", len(records), len(baseline), 0, len(baseline), True)

        cutoff = self.store.last_write_time()
        records = self.scanner.scan_directories(directories, modified_since=cutoff)
        logger.info("Incremental scan since %s: %d changed file(s)", cutoff, len(records))
        if self.dry_run:
            added = sum(1 for r in records if r.path not in existing)
            logger.info("Dry run: would merge %d entries into %s", len(records), self.store.path)
            return UpdateResult("incremental", len(records), added, len(records) - added,
                                len(existing) + added, False)
        merge = self.store.merge(records, stamp=started)
        return UpdateResult(
            "incremental",
            len(records),
            merge.added,
            merge.updated,
            len(existing) + merge.added,
            merge.total > 0,
        )

    def show_baseline(self) -> Baseline:
        return self.store.load()

    def enrich_log(self) -> EnrichResult:
        if self.settings.enrich_source_log is None or self.settings.enrich_sink_log is None:
            raise ExeWatchError("enrichment.source_log and enrichment.sink_log must be configured")
        enricher = LogEnricher(
            self.settings.enrich_source_log,
            self.settings.enrich_sink_log,
            source_encoding=self.settings.enrich_source_encoding,
            path_pattern=self.settings.enrich_path_pattern,
            env=self.settings.env,
        )
        if self.dry_run:
            logger.info("Dry run: would enrich %s into %s", enricher.source_log, enricher.sink_log)
            return EnrichResult(sink_path=enricher.sink_log)
        return enricher.run()

    def export_baseline(self) -> ExportResult:
        """
        Export the baseline for the analysis backend.

        Raises:
            PolicyNotConfiguredError: no whitelist policy is available.
        """
        load_whitelist_patterns(self.policy_source)
        baseline = self.store.load()
        exporter = BaselineExporter(
            self.settings.export_path,
            alert_log=self.alert_log,
            include_hash=self.settings.export_include_hash,
        )
        if self.dry_run:
            logger.info("Dry run: would export %d entries to %s", len(baseline), exporter.output_path)
            return ExportResult(entries=len(baseline), output_path=exporter.output_path)
        return exporter.export(baseline)
