# utils/settings.py
from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]


def _load_env_if_opted_in() -> None:
    """
    only load .env files when explicitly opted in
    - Set PYTHON_DOTENV_LOAD=1 to enable
    - PYTHON_DOTENV_DISABLE=1 always disables
    """
    if os.getenv("PYTHON_DOTENV_DISABLE") == "1":
        return
    if os.getenv("PYTHON_DOTENV_LOAD") != "1":
        return
    # Load env files (repo defaults, then local overrides)
    load_dotenv(str(REPO_ROOT / ".env"))
    load_dotenv(str(REPO_ROOT / ".env.local"), override=True)


# Do NOT load by default; tests control the environment.
_load_env_if_opted_in()

# --- Defaults ---------------------------------------------------------------
ENV_PREFIX = "LMS_EXPORT_"

DEFAULT_CONFIG_FILES: Tuple[str, ...] = (
    "/edx/etc/lms.yml",
    "/edx/app/edxapp/lms.auth.json",
    "/edx/app/edxapp/lms.env.json",
)
DEFAULT_MANAGE_COMMAND = (
    "/edx/bin/python.edxapp /edx/bin/manage.edxapp lms --settings=production dump_course_structures"
)
DEFAULT_HOOK_RELPATH = "lms/djangoapps/courseware/management/commands/dump_course_structures.py"
BUNDLED_HOOK = REPO_ROOT / "export" / "hooks" / "dump_course_structures.py"


def _env(name: str, default: str = "") -> str:
    return os.getenv(ENV_PREFIX + name, default)


@dataclass(frozen=True)
class Settings:
    """Site tunables; every field can be overridden with an LMS_EXPORT_* variable."""
    report_root: Path = Path("/edx/var/lms-export/reports")
    log_dir: Path = Path("/edx/var/log/tracking")
    config_files: Tuple[Path, ...] = tuple(Path(p) for p in DEFAULT_CONFIG_FILES)
    mysql_host: str = "localhost"
    mysql_user: str = "read_only"
    database: str = "edxapp"
    bucket_prefix: str = "lms"
    output_owner: Optional[str] = None
    lms_user: str = "edxapp"
    log_user: str = "syslog"
    edx_platform_dir: Path = Path("/edx/app/edxapp/edx-platform")
    hook_relpath: str = DEFAULT_HOOK_RELPATH
    bundled_hook: Path = BUNDLED_HOOK
    manage_command: Tuple[str, ...] = field(default_factory=lambda: tuple(shlex.split(DEFAULT_MANAGE_COMMAND)))
    mysql_bin: str = "mysql"
    aws_bin: str = "aws"
    sudo_bin: str = "sudo"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        config_files = _env("CONFIG_FILES")
        manage = _env("MANAGE_COMMAND")
        return cls(
            report_root=Path(_env("REPORT_ROOT", str(defaults.report_root))),
            log_dir=Path(_env("LOG_DIR", str(defaults.log_dir))),
            config_files=(
                tuple(Path(p) for p in config_files.split(os.pathsep) if p)
                if config_files else defaults.config_files
            ),
            mysql_host=_env("MYSQL_HOST", defaults.mysql_host),
            mysql_user=_env("MYSQL_USER", defaults.mysql_user),
            database=_env("DATABASE", defaults.database),
            bucket_prefix=_env("BUCKET_PREFIX", defaults.bucket_prefix),
            output_owner=_env("OUTPUT_OWNER") or None,
            lms_user=_env("LMS_USER", defaults.lms_user),
            log_user=_env("LOG_USER", defaults.log_user),
            edx_platform_dir=Path(_env("EDX_PLATFORM_DIR", str(defaults.edx_platform_dir))),
            hook_relpath=_env("HOOK_RELPATH", defaults.hook_relpath),
            manage_command=tuple(shlex.split(manage)) if manage else defaults.manage_command,
            mysql_bin=_env("MYSQL_BIN", defaults.mysql_bin),
            aws_bin=_env("AWS_BIN", defaults.aws_bin),
            sudo_bin=_env("SUDO_BIN", defaults.sudo_bin),
        )


__all__ = [
    "BUNDLED_HOOK",
    "DEFAULT_CONFIG_FILES",
    "ENV_PREFIX",
    "REPO_ROOT",
    "Settings",
]
