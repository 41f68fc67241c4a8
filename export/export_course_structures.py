# export/export_course_structures.py
from __future__ import annotations

import shutil
from pathlib import Path

from logging_setup import get_logger
from models import ExportConfig, StepResult
from export.table_specs import STRUCTURES_SPEC
from utils.fs import atomic_open, file_hashes, safe_relpath
from utils.settings import BUNDLED_HOOK
from utils.shell import CommandError, CommandRunner

STEP = "structures"


def hook_path(config: ExportConfig) -> Path:
    return config.edx_platform_dir / config.hook_relpath


def ensure_hook(config: ExportConfig, runner: CommandRunner) -> bool:
    """
    Make sure the LMS can find the dump_course_structures management command.
    A missing hook is linked to the bundled copy (as the LMS user, which owns the tree).
    Returns True when the link was created.
    """
    log = get_logger(step=STEP, deployment=config.deployment)
    target = hook_path(config)
    if target.exists() or target.is_symlink():
        log.debug("management command hook present", extra={"path": str(target)})
        return False

    source = config.bundled_hook or BUNDLED_HOOK
    runner.run(["ln", "-s", str(source), str(target)], as_user=config.lms_user)
    log.info("linked management command hook", extra={"path": str(target), "source": str(source)})
    return True


def export_course_structures(config: ExportConfig, runner: CommandRunner) -> StepResult:
    """
    Run the LMS manage command and store its stdout, byte for byte, at
    <report_root>/course_structures/lms=<deployment>/course_structures.csv.
    Skipped in dry run.
    """
    log = get_logger(step=STEP, deployment=config.deployment)

    if config.dry_run:
        log.info("dry run: skipping course structure export")
        return StepResult.success(STEP, skipped=True)

    if not config.deployment:
        log.error("deployment identity unresolved; not exporting")
        return StepResult.failure(STEP, "deployment identity unresolved")

    if not config.manage_command:
        return StepResult.failure(STEP, "no manage command configured")

    out_path = STRUCTURES_SPEC.output_path(config.report_root, config.deployment)
    try:
        ensure_hook(config, runner)
        with atomic_open(out_path, "wb", owner=config.output_owner) as fh:
            with runner.stream(
                config.manage_command,
                as_user=config.lms_user,
                cwd=config.edx_platform_dir,
                binary=True,
            ) as dump:
                shutil.copyfileobj(dump, fh)
    except (CommandError, OSError) as e:
        log.error("course structure export failed: %s", e)
        return StepResult.failure(STEP, str(e))

    size = out_path.stat().st_size
    log.info(
        "exported course structures",
        extra={
            "path": safe_relpath(out_path, config.report_root),
            "bytes": size,
            "sha256": file_hashes(out_path)["sha256"],
        },
    )
    return StepResult.success(STEP, outputs=(out_path,), count=size)
