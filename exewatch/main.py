#!/usr/bin/env python3
"""
ExeWatch - CLI entry point.

Exposed as the 'exewatch' console command via pyproject.toml.

Exit status: for 'scan', the number of flagged files (0 = clean, capped at
MAX_FLAGGED_EXIT); 0 for other successful commands; FATAL_EXIT on hard
failures such as a missing whitelist policy or an unwritable baseline.
"""

import argparse
import logging
import sys
from pathlib import Path

FATAL_EXIT = 255
MAX_FLAGGED_EXIT = 254


def setup_logging(verbose: bool = False) -> None:
    """Configure logging to stderr (no print-based logging)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def get_config(args: argparse.Namespace):
    """Load config from file; config path may be overridden by args."""
    from exewatch.core.config_loader import load_config

    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    config_path = config_path.resolve()
    project_root = Path.cwd().resolve()
    return load_config(config_path, project_root)


def cmd_scan(monitor, quarantine: bool) -> int:
    """Classify whitelisted files against the baseline; optionally quarantine flagged ones."""
    outcome = monitor.scan(quarantine=quarantine)
    log = logging.getLogger(__name__)
    for record in outcome.flagged:
        log.warning("Flagged %s: %s", record.path, record.reason)
    for result in outcome.quarantined:
        if not result.moved:
            log.warning("Not quarantined: %s", result.format_log())
    log.info(
        "Known: %d  New: %d  Modified: %d  Flagged: %d",
        outcome.known, outcome.new, outcome.modified, outcome.flagged_count,
    )
    return min(outcome.flagged_count, MAX_FLAGGED_EXIT)


def cmd_update_baseline(monitor, full: bool) -> int:
    """Create or refresh the baseline (full or incremental)."""
    result = monitor.update_baseline(full=full)
    logging.getLogger(__name__).info(
        "Baseline update (%s): scanned %d, added %d, updated %d, %d entries total",
        result.mode, result.scanned, result.added, result.updated, result.total_entries,
    )
    return 0


def cmd_show_baseline(monitor) -> int:
    """Print the baseline as a table."""
    from rich.console import Console
    from rich.table import Table

    baseline = monitor.show_baseline()
    table = Table(title="Baseline (%d entries)" % len(baseline))
    table.add_column("Path", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("SHA256", style="cyan")
    table.add_column("Modified")
    for record in baseline:
        table.add_row(
            record.path,
            str(record.size),
            record.primary_hash[:16],
            record.modified.strftime("%Y-%m-%d %H:%M:%S") if record.modified else "-",
        )
    Console().print(table)
    return 0


def cmd_enrich_log(monitor) -> int:
    """Convert and enrich new lines of the execution allow log."""
    result = monitor.enrich_log()
    logging.getLogger(__name__).info(
        "Enrichment: %d new line(s), %d enriched, %d missing file(s)",
        result.processed, result.enriched, result.missing,
    )
    return 0


def cmd_export_baseline(monitor) -> int:
    """Export baseline paths for the analysis backend."""
    result = monitor.export_baseline()
    logging.getLogger(__name__).info("Exported %d entries to %s", result.entries, result.output_path)
    return 0


def _add_common_args(parser: argparse.ArgumentParser, default_config: str) -> None:
    """Add --config and --dry-run so they work after subcommand (e.g. exewatch scan --dry-run)."""
    parser.add_argument(
        "--config",
        type=str,
        default=argparse.SUPPRESS,
        help="Path to config.yaml (default: %s)" % default_config,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        default=argparse.SUPPRESS,
        help="Scan and classify only; do not write baseline, alerts, or move files.",
    )


def build_parser() -> argparse.ArgumentParser:
    _default_config = Path(__file__).resolve().parent / "config" / "config.yaml"
    _default_config_str = str(_default_config)
    parser = argparse.ArgumentParser(
        prog="exewatch",
        description="Baseline-driven integrity monitor for whitelisted executable directories.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=_default_config_str,
        help="Path to config.yaml (default: package config; use CWD-relative or absolute)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="Scan and classify only; do not write baseline, alerts, or move files.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_scan = sub.add_parser("scan", help="Classify whitelisted files against the baseline")
    p_scan.add_argument("--quarantine", action="store_true", help="Move flagged files to quarantine")
    _add_common_args(p_scan, _default_config_str)

    p_update = sub.add_parser("update-baseline", help="Create or refresh the baseline")
    p_update.add_argument("--full", action="store_true", help="Rescan everything and replace the baseline")
    _add_common_args(p_update, _default_config_str)

    p_show = sub.add_parser("show-baseline", help="Print the current baseline")
    _add_common_args(p_show, _default_config_str)

    p_enrich = sub.add_parser("enrich-log", help="Convert and enrich the execution allow log")
    _add_common_args(p_enrich, _default_config_str)

    p_export = sub.add_parser("export-baseline", help="Export baseline paths for the analysis backend")
    _add_common_args(p_export, _default_config_str)
    return parser


def main(argv=None) -> int:
    """CLI logic."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)
    log = logging.getLogger(__name__)

    try:
        settings = get_config(args)
    except FileNotFoundError as e:
        log.error("%s", e)
        return FATAL_EXIT
    except Exception as e:
        log.exception("Failed to load config: %s", e)
        return FATAL_EXIT

    from exewatch.core.errors import ExeWatchError
    from exewatch.core.monitor import IntegrityMonitor

    monitor = IntegrityMonitor(settings, dry_run=args.dry_run)
    try:
        if args.command == "scan":
            return cmd_scan(monitor, args.quarantine)
        if args.command == "update-baseline":
            return cmd_update_baseline(monitor, args.full)
        if args.command == "show-baseline":
            return cmd_show_baseline(monitor)
        if args.command == "enrich-log":
            return cmd_enrich_log(monitor)
        if args.command == "export-baseline":
            return cmd_export_baseline(monitor)
    except ExeWatchError as e:
        log.error("%s", e)
        return FATAL_EXIT
    except OSError as e:
        log.error("I/O failure during %s: %s", args.command, e)
        return FATAL_EXIT
    parser.print_help()
    return 0


def cli() -> None:
    """Entry point for the exewatch console command."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
