# export/sync_reports.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from logging_setup import get_logger
from models import ExportConfig, StepResult
from utils.shell import CommandError, CommandRunner

TRACKING_LOGS_PREFIX = "tracking_logs"


def s3_sync_command(
    source: Path,
    destination: str,
    *,
    aws_bin: str = "aws",
    dry_run: bool = False,
) -> List[str]:
    """`aws s3 sync` is additive: new/changed files go up, nothing remote is deleted."""
    cmd = [aws_bin, "s3", "sync", str(source), destination]
    if dry_run:
        cmd.append("--dryrun")
    return cmd


def _sync(
    step: str,
    config: ExportConfig,
    runner: CommandRunner,
    source: Path,
    destination: str,
    as_user: Optional[str] = None,
) -> StepResult:
    log = get_logger(step=step, deployment=config.deployment)
    if config.dry_run and not source.exists():
        log.info("dry run: nothing to sync, %s does not exist", source, extra={"source": str(source)})
        return StepResult.success(step, skipped=True)
    cmd = s3_sync_command(source, destination, aws_bin=config.aws_bin, dry_run=config.dry_run)
    log.info("syncing %s -> %s", source, destination, extra={"source": str(source), "destination": destination, "dry_run": config.dry_run})
    try:
        out = runner.run(cmd, as_user=as_user)
    except (CommandError, OSError) as e:
        log.error("sync to %s failed: %s", destination, e)
        return StepResult.failure(step, str(e))

    transfers = [ln for ln in out.splitlines() if ln.strip()]
    for line in transfers:
        log.debug("%s", line)
    log.info("sync complete", extra={"destination": destination, "transfers": len(transfers)})
    return StepResult.success(step, count=len(transfers))


def sync_reports(config: ExportConfig, runner: CommandRunner) -> StepResult:
    """Report tree -> s3://<report_bucket>/"""
    if not config.report_bucket:
        get_logger(step="sync", deployment=config.deployment).error("report bucket unresolved")
        return StepResult.failure("sync", "report bucket unresolved")
    return _sync("sync", config, runner, config.report_root, f"s3://{config.report_bucket}/")


def sync_tracking_logs(config: ExportConfig, runner: CommandRunner) -> StepResult:
    """Log dir -> s3://<log_bucket>/tracking_logs/<deployment>/, run as the log owner."""
    log = get_logger(step="logs", deployment=config.deployment)
    if config.exclude_logs:
        log.info("tracking log sync excluded")
        return StepResult.success("logs", skipped=True)
    if not config.log_bucket or not config.deployment:
        log.error("log bucket or deployment unresolved")
        return StepResult.failure("logs", "log bucket or deployment unresolved")

    destination = f"s3://{config.log_bucket}/{TRACKING_LOGS_PREFIX}/{config.deployment}/"
    return _sync("logs", config, runner, config.log_dir, destination, as_user=config.log_user)
