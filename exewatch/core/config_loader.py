"""
ExeWatch - Configuration loader.

Loads config.yaml into an immutable Settings object; resolves paths relative
to the project root. Components receive Settings (or the values they need)
explicitly instead of reading globals.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from exewatch.core.models import Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Resolved runtime configuration."""

    project_root: Path
    baseline_path: Path
    quarantine_dir: Path
    export_path: Path
    alert_log_path: Path
    policy_file: Optional[Path] = None
    whitelist: tuple[str, ...] = ()
    extensions: Optional[tuple[str, ...]] = None
    console_alerts: bool = True
    min_severity: Severity = Severity.INFO
    enrich_source_log: Optional[Path] = None
    enrich_sink_log: Optional[Path] = None
    enrich_source_encoding: str = "utf-16"
    enrich_path_pattern: Optional[str] = None
    export_include_hash: bool = True
    env: Optional[dict[str, str]] = field(default=None, compare=False)


def _severity(value: Any) -> Severity:
    name = str(value or "INFO").upper()
    try:
        return Severity(name)
    except ValueError:
        logger.warning("Unknown min_severity %r, using INFO", value)
        return Severity.INFO


def load_config(config_path: Path, project_root: Optional[Path] = None) -> Settings:
    """
    Load YAML config and resolve paths relative to project_root.

    Args:
        config_path: Path to config.yaml.
        project_root: Base for relative paths; defaults to config_path parent's parent.

    Returns:
        Settings with resolved paths and defaults applied.
    """
    path = config_path.resolve()
    if not path.is_file():
        raise FileNotFoundError(f"Config not found: {path}")

    root = project_root or path.parent.parent
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return settings_from_dict(raw, root)


def settings_from_dict(raw: dict[str, Any], root: Path) -> Settings:
    """Build Settings from an already-parsed config mapping."""

    def resolve(p: str) -> Path:
        path_obj = Path(p).expanduser()
        return (root / path_obj).resolve() if not path_obj.is_absolute() else path_obj.resolve()

    def optional_path(p: Optional[str]) -> Optional[Path]:
        return resolve(p) if p else None

    policy_raw = raw.get("policy") or {}
    whitelist_raw = policy_raw.get("whitelist") or []
    if not isinstance(whitelist_raw, list):
        raise ValueError(
            f"policy.whitelist must be a list of patterns, got {type(whitelist_raw).__name__}"
        )
    whitelist = tuple(str(p) for p in whitelist_raw)

    scanner_raw = raw.get("scanner") or {}
    extensions_raw = scanner_raw.get("extensions")
    extensions = tuple(str(e) for e in extensions_raw) if extensions_raw else None

    paths_raw = raw.get("paths") or {}
    alerts_raw = raw.get("alerts") or {}
    enrich_raw = raw.get("enrichment") or {}
    export_raw = raw.get("export") or {}

    return Settings(
        project_root=Path(root),
        baseline_path=resolve(paths_raw.get("baseline_file", "./data/baseline.csv")),
        quarantine_dir=resolve(paths_raw.get("quarantine_dir", "./data/quarantine")),
        export_path=resolve(paths_raw.get("export_file", "./data/export/whitelist.cdb")),
        alert_log_path=resolve(alerts_raw.get("log_path", "./logs/alerts.log")),
        policy_file=optional_path(policy_raw.get("policy_file")),
        whitelist=whitelist,
        extensions=extensions,
        console_alerts=bool(alerts_raw.get("console_alerts", True)),
        min_severity=_severity(alerts_raw.get("min_severity", "INFO")),
        enrich_source_log=optional_path(enrich_raw.get("source_log")),
        enrich_sink_log=optional_path(enrich_raw.get("sink_log")),
        enrich_source_encoding=str(enrich_raw.get("source_encoding", "utf-16")),
        enrich_path_pattern=enrich_raw.get("path_pattern") or None,
        export_include_hash=bool(export_raw.get("include_hash", True)),
    )
