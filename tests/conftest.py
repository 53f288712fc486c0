"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import os
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from exewatch.core.config_loader import Settings


def make_file(path: Path, content: bytes, age: float = 3600.0) -> Path:
    """Write a file and backdate its mtime by `age` seconds."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    stamp = time.time() - age
    os.utime(path, (stamp, stamp))
    return path


@pytest.fixture
def write_file() -> Callable[..., Path]:
    """Expose make_file to tests."""
    return make_file


@pytest.fixture
def apps_dir(tmp_path: Path) -> Path:
    """A whitelisted directory containing one executable and one non-monitored file."""
    directory = tmp_path / "Games"
    make_file(directory / "g.exe", b"game binary A")
    make_file(directory / "readme.txt", b"not monitored")
    return directory


@pytest.fixture
def make_settings(tmp_path: Path, apps_dir: Path) -> Callable[..., Settings]:
    """Factory for Settings pointing at temporary locations."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "project_root": tmp_path,
            "baseline_path": tmp_path / "data" / "baseline.csv",
            "quarantine_dir": tmp_path / "data" / "quarantine",
            "export_path": tmp_path / "data" / "export" / "whitelist.cdb",
            "alert_log_path": tmp_path / "logs" / "alerts.log",
            "whitelist": (str(apps_dir / "*"),),
            "console_alerts": False,
        }
        values.update(overrides)
        return Settings(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    """Default Settings for a single whitelisted directory."""
    return make_settings()
