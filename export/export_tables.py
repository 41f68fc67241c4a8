# export/export_tables.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from logging_setup import get_logger
from models import ExportConfig, ExportSpec, MySQLCredentials, StepResult
from export.table_specs import TABLE_SPECS
from utils.fs import atomic_open, file_hashes, safe_relpath
from utils.shell import CommandError, CommandRunner
from utils.tsv import tsv_to_csv


def mysql_command(
    creds: MySQLCredentials,
    query: str,
    *,
    mysql_bin: str = "mysql",
    header: bool = True,
) -> Tuple[List[str], Dict[str, str]]:
    """
    Build a `mysql --batch` invocation plus the child-only environment.
    The password travels as MYSQL_PWD in the child env, never on the command line.
    """
    cmd = [mysql_bin, "--batch"]
    if not header:
        cmd.append("--skip-column-names")
    if creds.host:
        cmd.append(f"--host={creds.host}")
    if creds.user:
        cmd.append(f"--user={creds.user}")
    if creds.database:
        cmd.append(f"--database={creds.database}")
    cmd += ["--execute", query]
    env = {"MYSQL_PWD": creds.password} if creds.password else {}
    return cmd, env


def count_rows(spec: ExportSpec, config: ExportConfig, runner: CommandRunner) -> int:
    cmd, env = mysql_command(config.credentials, spec.count_query, mysql_bin=config.mysql_bin, header=False)
    out = runner.run(cmd, env=env).strip()
    return int(out.splitlines()[0]) if out else 0


def export_table(spec: ExportSpec, config: ExportConfig, runner: CommandRunner) -> StepResult:
    """
    Export one table to <report_root>/<table>/lms=<deployment>/<table>.csv.

    - dry run: only the row-count probe runs; nothing is written
    - otherwise: full query streamed through the TSV->CSV conversion into an atomic temp file,
      so a failed query leaves the previous run's file in place
    """
    step = f"tables:{spec.name}"
    log = get_logger(step=step, deployment=config.deployment)

    if not config.deployment:
        log.error("deployment identity unresolved; not exporting")
        return StepResult.failure(step, "deployment identity unresolved")

    out_path = spec.output_path(config.report_root, config.deployment)
    rel = safe_relpath(out_path, config.report_root)

    try:
        if config.dry_run:
            count = count_rows(spec, config, runner)
            log.info("dry run: would export %s (%d rows) to %s", spec.name, count, rel, extra={"table": spec.name, "rows": count, "path": rel})
            return StepResult.success(step, count=count, skipped=True)

        cmd, env = mysql_command(config.credentials, spec.query, mysql_bin=config.mysql_bin)
        log.debug("querying table", extra={"table": spec.name, "query": spec.query})
        with atomic_open(out_path, "w", owner=config.output_owner, errors="surrogateescape") as fh:
            with runner.stream(cmd, env=env) as rows_in:
                rows = tsv_to_csv(rows_in, fh)
    except (CommandError, OSError, ValueError) as e:
        log.error("table export failed: %s", e, extra={"table": spec.name})
        return StepResult.failure(step, str(e))

    digest = file_hashes(out_path)["sha256"]
    log.info("exported table %s (%d rows)", spec.name, rows, extra={"table": spec.name, "rows": rows, "path": rel, "sha256": digest})
    return StepResult.success(step, outputs=(out_path,), count=rows)


def export_tables(
    config: ExportConfig,
    runner: CommandRunner,
    specs: Optional[Sequence[ExportSpec]] = None,
) -> List[StepResult]:
    """Export every spec in order; with halt_policy 'abort' stop after the first failure."""
    log = get_logger(step="tables", deployment=config.deployment)
    results: List[StepResult] = []
    for spec in specs if specs is not None else TABLE_SPECS:
        result = export_table(spec, config, runner)
        results.append(result)
        if not result.ok and config.halt_policy == "abort":
            log.warning("halting table exports after failure", extra={"table": spec.name})
            break
    return results
