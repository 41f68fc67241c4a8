#!/usr/bin/env python3
"""
LMS data export runner.

Usage:
  python scripts/run_export.py                      # resolve everything, export, sync
  python scripts/run_export.py --dry-run -v         # probe only, simulated sync
  python scripts/run_export.py --lms-host campus.example.com --report-bucket b1 \
      --log-bucket b2 --mysql-user read_only --mysql-password ... --exclude-logs
  python scripts/run_export.py --steps tables sync --tables auth_user auth_userprofile
"""

from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

# --- ensure repo root on sys.path ---
THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from logging_setup import setup_logging, get_logger
from models import ExportConfig, RunOptions, StepResult
from utils.settings import Settings
from utils.shell import CommandRunner
from export.resolve_config import ConfigResolutionError, require_complete, resolve_config
from export.table_specs import TABLE_NAMES, select_specs
from export.export_tables import export_tables
from export.export_course_structures import export_course_structures
from export.sync_reports import sync_reports, sync_tracking_logs


ALL_STEPS = [
    "tables",
    "structures",
    "sync",
    "logs",
]

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_STEP_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Export LMS tables and course structures and sync them to S3")
    p.add_argument("--lms-host", help="Deployment identity (bare host.domain); default: LMS_BASE from config")
    p.add_argument("--report-bucket", help="Raw-data bucket; default: discovered from the bucket listing")
    p.add_argument("--mysql-user", help="MySQL user (default: read_only)")
    p.add_argument("--mysql-password", help="MySQL password; default: scraped from LMS config")
    p.add_argument("--log-bucket", help="Raw-logs bucket; default: discovered from the bucket listing")
    p.add_argument("--mysql-host", help="MySQL host; default: from LMS config, else localhost")
    p.add_argument("--dry-run", action="store_true", help="Count rows and simulate syncs; write nothing")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv)")
    p.add_argument("--exclude-logs", action="store_true", help="Do not sync tracking logs")
    p.add_argument("--report-root", type=Path, help="Local report tree (default: LMS_EXPORT_REPORT_ROOT)")
    p.add_argument("--log-dir", type=Path, help="Tracking log directory (default: LMS_EXPORT_LOG_DIR)")
    p.add_argument("--steps", nargs="+", choices=ALL_STEPS, default=ALL_STEPS, help="Subset of steps to run (default: all)")
    p.add_argument("--tables", nargs="+", choices=TABLE_NAMES, help="Subset of tables to export (default: all)")
    p.add_argument(
        "--halt-on-error",
        action="store_true",
        help="Stop at the first failed table or step (default: continue best-effort)",
    )
    return p


def options_from_args(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        lms_host=args.lms_host,
        report_bucket=args.report_bucket,
        log_bucket=args.log_bucket,
        mysql_user=args.mysql_user,
        mysql_password=args.mysql_password,
        mysql_host=args.mysql_host,
        report_root=args.report_root,
        log_dir=args.log_dir,
        dry_run=args.dry_run,
        verbose=args.verbose > 0,
        exclude_logs=args.exclude_logs,
        halt_on_error=args.halt_on_error,
    )


def run_pipeline(
    config: ExportConfig,
    runner: CommandRunner,
    steps: Sequence[str] = ALL_STEPS,
    tables: Optional[Sequence[str]] = None,
) -> Dict[str, List[StepResult]]:
    """
    Run the steps in fixed order (tables, structures, sync, logs).
    After each step the halt policy decides: 'continue' runs everything, 'abort' stops at
    the first failed result.
    """
    log = get_logger(step="runner", deployment=config.deployment)
    results: Dict[str, List[StepResult]] = {}

    for name in ALL_STEPS:
        if name not in steps:
            continue
        if name == "tables":
            results[name] = export_tables(config, runner, select_specs(tables))
        elif name == "structures":
            results[name] = [export_course_structures(config, runner)]
        elif name == "sync":
            results[name] = [sync_reports(config, runner)]
        elif name == "logs":
            if config.exclude_logs:
                continue
            results[name] = [sync_tracking_logs(config, runner)]
        else:
            raise ValueError(f"unknown step: {name}")

        failed = [r for r in results[name] if not r.ok]
        if failed:
            log.error("✗ step failed: %s", name, extra={"step_name": name, "failures": [r.step for r in failed]})
            if config.halt_policy == "abort":
                log.warning("halting pipeline", extra={"after": name})
                break
        else:
            log.info("✓ step complete: %s", name, extra={"step_name": name, "count": sum(r.count for r in results[name])})

    return results


def main(argv: Optional[Sequence[str]] = None, *, runner: Optional[CommandRunner] = None,
         settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)

    # Setup logging (0=WARNING, 1=INFO, 2+=DEBUG); a dry run always reports at INFO
    verbosity = min(args.verbose, 2)
    if args.dry_run:
        verbosity = max(verbosity, 1)
    setup_logging(verbosity=verbosity)
    log = get_logger(step="runner")

    settings = settings or Settings.from_env()
    runner = runner or CommandRunner(sudo_bin=settings.sudo_bin)
    options = options_from_args(args)

    try:
        resolution = resolve_config(options, settings, runner)
        config = require_complete(resolution) if resolution.config.diagnostic else resolution.config
    except ConfigResolutionError as e:
        log.error("configuration error: %s", e, extra={"unresolved": e.unresolved})
        return EXIT_CONFIG

    results = run_pipeline(config, runner, steps=args.steps, tables=args.tables)

    counts = {name: sum(r.count for r in rs) for name, rs in results.items()}
    errors = [r for rs in results.values() for r in rs if not r.ok]
    log.info(
        "export pipeline complete",
        extra={"lms": config.deployment, "counts": counts, "errors": len(errors)},
    )
    for r in errors:
        log.error("failed: %s: %s", r.step, r.reason)
    return EXIT_OK if not errors else EXIT_STEP_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
