"""
ExeWatch - Baseline comparison module.

Classifies freshly scanned records as KNOWN, NEW or MODIFIED against the
accepted baseline. Hash identity wins over path identity, so an unchanged
binary that an updater moved is still trusted.
"""

import logging
from collections.abc import Iterable
from typing import Callable, Optional

from exewatch.core.baseline import Baseline
from exewatch.core.models import Classification, ExecutableRecord, ScanOutcome

logger = logging.getLogger(__name__)


def _short(digest: str) -> str:
    return digest[:16] if digest else "<none>"


class BaselineComparator:
    """Compares scan records against a Baseline and builds a ScanOutcome."""

    def classify(
        self,
        baseline: Baseline,
        record: ExecutableRecord,
    ) -> tuple[Classification, str]:
        """
        Classify one record.

        Order:
        1. primary hash present anywhere in the baseline -> KNOWN
        2. path present in the baseline -> KNOWN if hashes match, else MODIFIED
        3. otherwise -> NEW
        """
        match = baseline.find_by_hash(record.primary_hash)
        if match is not None:
            if Baseline.key(match.path) == Baseline.key(record.path):
                return Classification.KNOWN, "hash matches baseline"
            return Classification.KNOWN, "hash matches baseline entry %s" % match.path

        previous = baseline.get(record.path)
        if previous is not None:
            if previous.primary_hash and previous.primary_hash == record.primary_hash:
                return Classification.KNOWN, "hash matches baseline"
            return (
                Classification.MODIFIED,
                "content changed at trusted path (baseline %s, now %s)"
                % (_short(previous.primary_hash), _short(record.primary_hash)),
            )

        return Classification.NEW, "not present in baseline"

    def compare(
        self,
        baseline: Baseline,
        records: Iterable[ExecutableRecord],
        on_classified: Optional[Callable[[ExecutableRecord, Classification], None]] = None,
    ) -> ScanOutcome:
        """
        Classify every record; flagged records carry their reason.

        on_classified, when given, is called once per record (KNOWN included)
        with the record annotated by its reason.
        """
        outcome = ScanOutcome()
        for record in records:
            classification, reason = self.classify(baseline, record)
            record = record.with_reason(reason)
            if on_classified is not None:
                on_classified(record, classification)
            if classification is Classification.KNOWN:
                outcome.known += 1
                continue
            if classification is Classification.MODIFIED:
                outcome.modified += 1
            else:
                outcome.new += 1
            outcome.flagged.append(record)
        logger.debug(
            "Compared %d record(s): %d known, %d new, %d modified",
            outcome.total, outcome.known, outcome.new, outcome.modified,
        )
        return outcome
