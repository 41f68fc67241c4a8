# export/resolve_config.py
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import yaml

from logging_setup import get_logger
from models import ExportConfig, MySQLCredentials, Resolution, RunOptions
from utils.settings import Settings
from utils.shell import CommandError, CommandRunner
from utils.strings import bare_hostname, strip_decoration

LMS_BASE_KEY = "LMS_BASE"
DATABASES_KEY = "DATABASES"
YAML_SUFFIXES = (".yml", ".yaml")

_lms_base_line_re = re.compile(r"""^\s*["']?LMS_BASE["']?\s*[:=]\s*(?P<value>.*)$""")
_db_field_re = re.compile(r"""^\s*["']?(?P<key>PASSWORD|HOST|NAME)["']?\s*[:=]\s*(?P<value>.*)$""")


class ConfigResolutionError(RuntimeError):
    def __init__(self, message: str, unresolved: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.unresolved = list(unresolved or [])


class AmbiguousBucketError(ConfigResolutionError):
    def __init__(self, kind: str, candidates: List[str]) -> None:
        super().__init__(
            f"{len(candidates)} buckets match the raw{kind} pattern: {', '.join(candidates)}; "
            f"pass the bucket explicitly",
            unresolved=["report_bucket" if kind == "data" else "log_bucket"],
        )
        self.kind = kind
        self.candidates = candidates


# ---- config file scraping ---------------------------------------------------

class ConfigFile:
    """One LMS config file: parsed as YAML/JSON when possible, always kept as raw lines too."""

    def __init__(self, path: Path, text: str) -> None:
        self.path = path
        self.lines = text.splitlines()
        self.data = self._parse(path, text)

    @staticmethod
    def _parse(path: Path, text: str) -> Optional[Dict[str, Any]]:
        try:
            if path.suffix == ".json":
                data = json.loads(text)
            elif path.suffix in YAML_SUFFIXES:
                data = yaml.safe_load(text)
            else:
                return None
        except (ValueError, yaml.YAMLError):
            return None
        return data if isinstance(data, dict) else None

    @classmethod
    def read(cls, path: Path) -> Optional["ConfigFile"]:
        try:
            return cls(path, path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except PermissionError as e:
            get_logger(step="config").warning("cannot read config file: %s", e, extra={"path": str(path)})
            return None

    # -- LMS base

    def lms_base(self) -> str:
        if self.data is not None:
            value = _find_key(self.data, LMS_BASE_KEY)
            return str(value) if value is not None else ""
        for line in self.lines:
            m = _lms_base_line_re.match(line)
            if m:
                return strip_decoration(m.group("value"))
        return ""

    # -- database settings for one MySQL user

    def database_settings(self, user: str) -> Dict[str, str]:
        """PASSWORD/HOST/NAME of the DATABASES entry belonging to `user` ({} when absent)."""
        if self.data is not None:
            return _structured_db_settings(self.data, user)
        return _line_db_settings(self.lines, user)


def _find_key(data: Any, key: str) -> Any:
    """Depth-first lookup of the first mapping value stored under `key`."""
    if isinstance(data, dict):
        if key in data:
            return data[key]
        for value in data.values():
            found = _find_key(value, key)
            if found is not None:
                return found
    elif isinstance(data, list):
        for value in data:
            found = _find_key(value, key)
            if found is not None:
                return found
    return None


def _structured_db_settings(data: Dict[str, Any], user: str) -> Dict[str, str]:
    databases = _find_key(data, DATABASES_KEY)
    if not isinstance(databases, dict):
        return {}
    for alias, entry in databases.items():
        if not isinstance(entry, dict):
            continue
        if alias == user or entry.get("USER") == user:
            return {
                k: str(entry[k])
                for k in ("PASSWORD", "HOST", "NAME")
                if entry.get(k) not in (None, "")
            }
    return {}


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def _line_db_settings(lines: List[str], user: str) -> Dict[str, str]:
    """
    Line-oriented fallback for files no parser accepts.
    Two shapes are recognised:
      <user>: / "<user>": {     -> the indented block under the key
      USER: <user>              -> the sibling lines at the same indent
    """
    key_re = re.compile(rf"""^\s*["']?{re.escape(user)}["']?\s*[:=]\s*\{{?\s*$""")
    user_re = re.compile(rf"""^\s*["']?USER["']?\s*[:=]\s*["']?{re.escape(user)}["']?\s*,?\s*$""")

    for i, line in enumerate(lines):
        if key_re.match(line):
            block = _block_below(lines, i)
        elif user_re.match(line):
            block = _siblings(lines, i)
        else:
            continue
        found: Dict[str, str] = {}
        for candidate in block:
            m = _db_field_re.match(candidate)
            if m and m.group("key") not in found:
                found[m.group("key")] = strip_decoration(m.group("value"))
        if found.get("PASSWORD"):
            return found
    return {}


def _block_below(lines: List[str], i: int) -> Iterator[str]:
    base = _indent(lines[i])
    for line in lines[i + 1:]:
        if not line.strip():
            continue
        if _indent(line) <= base:
            return
        yield line


def _siblings(lines: List[str], i: int) -> List[str]:
    base = _indent(lines[i])
    start = i
    while start > 0 and (not lines[start - 1].strip() or _indent(lines[start - 1]) >= base):
        start -= 1
    end = i
    while end + 1 < len(lines) and (not lines[end + 1].strip() or _indent(lines[end + 1]) >= base):
        end += 1
    return [ln for ln in lines[start:end + 1] if ln.strip() and _indent(ln) == base]


# ---- bucket discovery -------------------------------------------------------

def bucket_pattern(prefix: str, kind: str) -> re.Pattern[str]:
    """<prefix>-<8 char token>-raw<kind>-<token>-<timestamp>, kind in {data, logs}."""
    return re.compile(rf"^{re.escape(prefix)}-[a-z0-9]{{8}}-raw{kind}-[a-z0-9]+-\d+$")


def list_buckets(runner: CommandRunner, aws_bin: str = "aws") -> List[str]:
    """Bucket names from `aws s3 ls` ("<date> <time> <name>" per line)."""
    out = runner.run([aws_bin, "s3", "ls"])
    names: List[str] = []
    for line in out.splitlines():
        parts = line.split()
        if parts:
            names.append(parts[-1])
    return names


def match_bucket(names: List[str], prefix: str, kind: str) -> str:
    """The single bucket matching the `kind` pattern; "" when none; AmbiguousBucketError when several."""
    pattern = bucket_pattern(prefix, kind)
    hits = [n for n in names if pattern.match(n)]
    if len(hits) > 1:
        raise AmbiguousBucketError(kind, hits)
    return hits[0] if hits else ""


# ---- resolver ----------------------------------------------------------------

def _iter_config_files(settings: Settings) -> Iterator[ConfigFile]:
    for path in settings.config_files:
        cfg = ConfigFile.read(path)
        if cfg is not None:
            yield cfg


def resolve_config(options: RunOptions, settings: Settings, runner: CommandRunner) -> Resolution:
    """
    Resolve deployment identity, both buckets and MySQL credentials.

    Priority per value: explicit option > local config files > bucket listing.
    Config files are only opened when the deployment or password is missing;
    the bucket listing only runs when a needed bucket is missing.
    Read-only: nothing is written back.
    """
    log = get_logger(step="config")

    deployment = bare_hostname(options.lms_host) if options.lms_host else ""
    if options.lms_host and not deployment:
        log.warning("ignoring malformed --lms-host %r", options.lms_host, extra={"value": options.lms_host})

    user = options.mysql_user or settings.mysql_user
    password = options.mysql_password or ""
    host = options.mysql_host or ""
    database = ""

    if not deployment or not password:
        for cfg in _iter_config_files(settings):
            log.debug("probing config file", extra={"path": str(cfg.path)})
            if not deployment:
                deployment = bare_hostname(cfg.lms_base())
                if deployment:
                    log.info("deployment from config", extra={"path": str(cfg.path), "lms": deployment})
            if not password:
                db = cfg.database_settings(user)
                if db.get("PASSWORD"):
                    password = db["PASSWORD"]
                    host = host or db.get("HOST", "")
                    database = database or db.get("NAME", "")
                    log.info("mysql credentials from config", extra={"path": str(cfg.path), "user": user})
            if deployment and password:
                break

    report_bucket = options.report_bucket or ""
    log_bucket = options.log_bucket or ""
    need_log_bucket = not options.exclude_logs

    if not report_bucket or (need_log_bucket and not log_bucket):
        try:
            names = list_buckets(runner, settings.aws_bin)
        except (CommandError, OSError) as e:
            log.warning("bucket listing failed: %s", e)
            names = []
        log.debug("listed buckets", extra={"count": len(names)})
        if not report_bucket:
            report_bucket = match_bucket(names, settings.bucket_prefix, "data")
        if need_log_bucket and not log_bucket:
            log_bucket = match_bucket(names, settings.bucket_prefix, "logs")

    required = {
        "deployment": deployment,
        "report_bucket": report_bucket,
        "mysql_password": password,
    }
    if need_log_bucket:
        required["log_bucket"] = log_bucket

    unresolved = [name for name, value in required.items() if not value]
    for name in unresolved:
        log.warning("could not resolve %s", name, extra={"value_name": name})

    credentials = MySQLCredentials(
        host=host or settings.mysql_host,
        user=user,
        password=password,
        database=database or settings.database,
    )

    config = ExportConfig(
        deployment=deployment,
        report_bucket=report_bucket,
        log_bucket=log_bucket,
        credentials=credentials,
        report_root=options.report_root or settings.report_root,
        log_dir=options.log_dir or settings.log_dir,
        dry_run=options.dry_run,
        verbose=options.verbose,
        exclude_logs=options.exclude_logs,
        halt_policy="abort" if options.halt_on_error else "continue",
        output_owner=settings.output_owner,
        lms_user=settings.lms_user,
        log_user=settings.log_user,
        manage_command=settings.manage_command,
        edx_platform_dir=settings.edx_platform_dir,
        hook_relpath=settings.hook_relpath,
        bundled_hook=settings.bundled_hook,
        mysql_bin=settings.mysql_bin,
        aws_bin=settings.aws_bin,
    )

    log.info(
        "configuration resolved",
        extra={
            "lms": deployment or "?",
            "report_bucket": report_bucket or "?",
            "log_bucket": log_bucket or ("-" if not need_log_bucket else "?"),
            "mysql": credentials.masked(),
            "unresolved": unresolved,
        },
    )
    return Resolution(config=config, unresolved=unresolved)


def require_complete(resolution: Resolution) -> ExportConfig:
    """Diagnostic-mode gate: raise when anything is unresolved."""
    if resolution.unresolved:
        raise ConfigResolutionError(
            f"unresolved configuration: {', '.join(resolution.unresolved)}",
            unresolved=resolution.unresolved,
        )
    return resolution.config


__all__ = [
    "AmbiguousBucketError",
    "ConfigFile",
    "ConfigResolutionError",
    "bucket_pattern",
    "list_buckets",
    "match_bucket",
    "require_complete",
    "resolve_config",
]
