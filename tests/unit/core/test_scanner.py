"""Unit tests for ExecutableScanner and HashEngine."""

import hashlib
import os
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest
from exewatch.core.hashing import HashEngine
from exewatch.core.scanner import MONITORED_EXTENSIONS, ExecutableScanner, normalize_extensions


class TestHashEngine:
    """Tests for HashEngine."""

    def test_compute_hashes(self, tmp_path: Path) -> None:
        """Both digests match hashlib."""
        target = tmp_path / "a.exe"
        target.write_bytes(b"payload" * 10000)
        primary, secondary = HashEngine(chunk_size=1024).compute_hashes(target)
        assert primary == hashlib.sha256(b"payload" * 10000).hexdigest()
        assert secondary == hashlib.md5(b"payload" * 10000).hexdigest()

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file gives None rather than raising."""
        assert HashEngine().compute_hashes(tmp_path / "gone.exe") is None

class TestExecutableScanner:
    """Tests for ExecutableScanner.scan_directory."""

    def test_only_monitored_extensions(self, apps_dir: Path) -> None:
        """Non-executable files are ignored."""
        records = ExecutableScanner().scan_directory(apps_dir)
        assert [r.name for r in records] == ["g.exe"]

    def test_record_fields(self, apps_dir: Path) -> None:
        """Records carry path, size, both hashes and timestamps."""
        (record,) = ExecutableScanner().scan_directory(apps_dir)
        assert record.path == str((apps_dir / "g.exe").resolve())
        assert record.size == len(b"game binary A")
        assert record.primary_hash == hashlib.sha256(b"game binary A").hexdigest()
        assert record.secondary_hash == hashlib.md5(b"game binary A").hexdigest()
        assert record.modified is not None and record.modified.tzinfo is not None
        assert record.created is not None
        assert record.reason is None

    def test_recursive_and_case_insensitive(
        self, apps_dir: Path, write_file: Callable[..., Path]
    ) -> None:
        """Subdirectories are walked and extensions match regardless of case."""
        write_file(apps_dir / "sub" / "deep" / "SETUP.EXE", b"installer")
        write_file(apps_dir / "sub" / "run.ps1", b"Write-Host hi")
        names = sorted(r.name for r in ExecutableScanner().scan_directory(apps_dir))
        assert names == ["SETUP.EXE", "g.exe", "run.ps1"]

    def test_modified_since_cutoff(self, apps_dir: Path, write_file: Callable[..., Path]) -> None:
        """Only files modified strictly after the cutoff are returned."""
        fresh = write_file(apps_dir / "new.dll", b"fresh", age=0)
        cutoff = datetime.fromtimestamp(time.time() - 60, tz=timezone.utc)
        records = ExecutableScanner().scan_directory(apps_dir, modified_since=cutoff)
        assert [r.path for r in records] == [str(fresh.resolve())]

    def test_cutoff_is_exclusive(self, apps_dir: Path) -> None:
        """A file modified exactly at the cutoff is not rescanned."""
        mtime = (apps_dir / "g.exe").stat().st_mtime
        cutoff = datetime.fromtimestamp(mtime, tz=timezone.utc)
        assert ExecutableScanner().scan_directory(apps_dir, modified_since=cutoff) == []

    def test_cutoff_with_sub_microsecond_mtime(self, apps_dir: Path) -> None:
        """Nanosecond mtimes at the cutoff are not rescanned; later ones are."""
        at_cutoff = apps_dir / "g.exe"
        later = apps_dir / "later.exe"
        later.write_bytes(b"later")
        stamp_ns = 1_700_000_000_123_456_789
        os.utime(at_cutoff, ns=(stamp_ns, stamp_ns))
        os.utime(later, ns=(stamp_ns + 1_000_000, stamp_ns + 1_000_000))
        cutoff = datetime.fromtimestamp(at_cutoff.stat().st_mtime, tz=timezone.utc)

        for _ in range(5):
            records = ExecutableScanner().scan_directory(apps_dir, modified_since=cutoff)
            assert [r.name for r in records] == ["later.exe"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        """A directory that vanished gives no records."""
        assert ExecutableScanner().scan_directory(tmp_path / "gone") == []

    def test_unreadable_file_skipped(
        self, apps_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Files that cannot be hashed are skipped, not errors."""
        monkeypatch.setattr(HashEngine, "compute_hashes", lambda self, path: None)
        assert ExecutableScanner().scan_directory(apps_dir) == []

    def test_custom_extensions(self, apps_dir: Path) -> None:
        """An extension override replaces the built-in set."""
        records = ExecutableScanner(extensions=["TXT"]).scan_directory(apps_dir)
        assert [r.name for r in records] == ["readme.txt"]

    def test_scan_directories_deduplicates_nested(
        self, apps_dir: Path, write_file: Callable[..., Path]
    ) -> None:
        """A file under two nested whitelist entries is reported once."""
        write_file(apps_dir / "sub" / "x.bat", b"@echo off")
        records = ExecutableScanner().scan_directories([apps_dir, apps_dir / "sub"])
        assert sorted(r.name for r in records) == ["g.exe", "x.bat"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_broken_symlink_skipped(self, apps_dir: Path) -> None:
        """Dangling links are not regular files."""
        os.symlink(apps_dir / "nowhere.exe", apps_dir / "link.exe")
        assert [r.name for r in ExecutableScanner().scan_directory(apps_dir)] == ["g.exe"]


class TestExtensions:
    """Tests for the monitored extension set."""

    @pytest.mark.parametrize("ext", [".exe", ".dll", ".ps1", ".bat", ".msi", ".lnk", ".jar", ".sh"])
    def test_defaults_cover_executables_and_scripts(self, ext: str) -> None:
        """Native, script and indirect-execution formats are monitored."""
        assert ext in MONITORED_EXTENSIONS

    def test_normalize(self) -> None:
        """Extensions are lower-cased and dotted."""
        assert normalize_extensions(["EXE", ".Dll", " "]) == frozenset({".exe", ".dll"})
