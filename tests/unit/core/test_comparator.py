"""Unit tests for BaselineComparator classification."""

from pathlib import PureWindowsPath

import pytest
from exewatch.core.baseline import Baseline
from exewatch.core.comparator import BaselineComparator
from exewatch.core.models import Classification, ExecutableRecord


def _record(path: str, digest: str) -> ExecutableRecord:
    return ExecutableRecord(
        path=path,
        name=PureWindowsPath(path).name,
        size=1,
        primary_hash=digest,
        secondary_hash="",
    )


@pytest.fixture
def comparator() -> BaselineComparator:
    return BaselineComparator()


@pytest.fixture
def baseline() -> Baseline:
    return Baseline([_record("/games/g.exe", "hashA"), _record("/tools/t.exe", "hashT")])


class TestClassify:
    """Tests for BaselineComparator.classify."""

    def test_known_same_path(self, comparator: BaselineComparator, baseline: Baseline) -> None:
        """Unchanged file at a trusted path is KNOWN."""
        result, _ = comparator.classify(baseline, _record("/games/g.exe", "hashA"))
        assert result is Classification.KNOWN

    def test_known_after_rename(self, comparator: BaselineComparator, baseline: Baseline) -> None:
        """Identical content at a new path is KNOWN by hash."""
        result, reason = comparator.classify(baseline, _record("/games/moved/g2.exe", "hashA"))
        assert result is Classification.KNOWN
        assert "/games/g.exe" in reason

    def test_modified(self, comparator: BaselineComparator, baseline: Baseline) -> None:
        """Different content at a trusted path is MODIFIED, not NEW."""
        result, reason = comparator.classify(baseline, _record("/games/g.exe", "hashZ"))
        assert result is Classification.MODIFIED
        assert "content changed" in reason

    def test_hash_wins_over_path(self, comparator: BaselineComparator, baseline: Baseline) -> None:
        """A trusted path now holding another trusted binary's content is KNOWN."""
        result, _ = comparator.classify(baseline, _record("/games/g.exe", "hashT"))
        assert result is Classification.KNOWN

    def test_new(self, comparator: BaselineComparator, baseline: Baseline) -> None:
        """Unknown path and unknown hash is NEW."""
        result, reason = comparator.classify(baseline, _record("/games/h.exe", "hashB"))
        assert result is Classification.NEW
        assert reason == "not present in baseline"

    def test_empty_baseline_hash_is_modified(self, comparator: BaselineComparator) -> None:
        """A baseline row without a hash never vouches for content."""
        baseline = Baseline([_record("/games/g.exe", "")])
        result, _ = comparator.classify(baseline, _record("/games/g.exe", "hashA"))
        assert result is Classification.MODIFIED


class TestCompare:
    """Tests for BaselineComparator.compare."""

    def test_scenario_known_and_new(self, comparator: BaselineComparator) -> None:
        """g.exe with hashA is known; h.exe with hashB is new and flagged."""
        baseline = Baseline([_record("C:\\Games\\g.exe", "hashA")])
        outcome = comparator.compare(
            baseline,
            [_record("C:\\Games\\g.exe", "hashA"), _record("C:\\Games\\h.exe", "hashB")],
        )
        assert (outcome.known, outcome.new, outcome.modified) == (1, 1, 0)
        assert [r.name for r in outcome.flagged] == ["h.exe"]
        assert outcome.flagged[0].reason == "not present in baseline"
        assert outcome.flagged_count == 1
        assert not outcome.clean

    def test_callback_sees_every_decision(
        self, comparator: BaselineComparator, baseline: Baseline
    ) -> None:
        """on_classified is called for KNOWN records too."""
        seen: list[tuple[str, Classification]] = []
        comparator.compare(
            baseline,
            [_record("/games/g.exe", "hashA"), _record("/games/g.exe", "x"), _record("/n.exe", "y")],
            on_classified=lambda r, c: seen.append((r.path, c)),
        )
        assert [c for _, c in seen] == [
            Classification.KNOWN,
            Classification.MODIFIED,
            Classification.NEW,
        ]

    def test_empty_scan_is_clean(self, comparator: BaselineComparator, baseline: Baseline) -> None:
        """No records means nothing flagged."""
        outcome = comparator.compare(baseline, [])
        assert outcome.total == 0
        assert outcome.clean
