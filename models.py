#models.py
from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Tuple, Literal

HaltPolicy = Literal["continue", "abort"]

DEFAULT_PATH_TEMPLATE = "{name}/lms={deployment}/{name}.csv"


@dataclass(frozen=True, slots=True)
class MySQLCredentials:
    host: str = ""
    user: str = ""
    password: str = field(default="", repr=False)  # only ever handed to the mysql child env
    database: str = ""

    def masked(self) -> str:
        return f"{self.user or '?'}:{'***' if self.password else ''}@{self.host or '?'}/{self.database or '?'}"


@dataclass(frozen=True, slots=True)
class ExportSpec:
    """One table export: what to query and where the rows land in the report tree."""
    name: str
    query: str = ""
    path_template: str = DEFAULT_PATH_TEMPLATE

    def __post_init__(self):
        if not self.query:
            object.__setattr__(self, "query", f"SELECT * FROM {self.name}")

    @property
    def count_query(self) -> str:
        return f"SELECT COUNT(*) FROM {self.name}"

    def output_path(self, report_root: Path, deployment: str) -> Path:
        return report_root / self.path_template.format(name=self.name, deployment=deployment)


@dataclass(frozen=True, slots=True)
class RunOptions:
    """What the operator asked for on the command line; None means 'resolve it'."""
    lms_host: Optional[str] = None
    report_bucket: Optional[str] = None
    log_bucket: Optional[str] = None
    mysql_user: Optional[str] = None
    mysql_password: Optional[str] = field(default=None, repr=False)
    mysql_host: Optional[str] = None
    report_root: Optional[Path] = None
    log_dir: Optional[Path] = None
    dry_run: bool = False
    verbose: bool = False
    exclude_logs: bool = False
    halt_on_error: bool = False


@dataclass(frozen=True, slots=True)
class ExportConfig:
    deployment: str
    report_bucket: str
    log_bucket: str
    credentials: MySQLCredentials
    report_root: Path
    log_dir: Path
    dry_run: bool = False
    verbose: bool = False
    exclude_logs: bool = False
    halt_policy: HaltPolicy = "continue"
    output_owner: Optional[str] = None  # chown target for new report dirs
    lms_user: str = "edxapp"            # identity for the manage command
    log_user: str = "syslog"            # identity for the tracking log sync
    manage_command: Tuple[str, ...] = ()
    edx_platform_dir: Path = Path("/edx/app/edxapp/edx-platform")
    hook_relpath: str = ""
    bundled_hook: Optional[Path] = None
    mysql_bin: str = "mysql"
    aws_bin: str = "aws"

    @property
    def diagnostic(self) -> bool:
        return self.dry_run or self.verbose

    def with_(self, **changes) -> "ExportConfig":
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class Resolution:
    config: ExportConfig
    unresolved: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.unresolved


@dataclass(frozen=True, slots=True)
class StepResult:
    step: str
    ok: bool
    reason: Optional[str] = None
    outputs: Tuple[Path, ...] = ()
    count: int = 0
    skipped: bool = False

    @classmethod
    def success(cls, step: str, *, outputs: Tuple[Path, ...] = (), count: int = 0, skipped: bool = False) -> "StepResult":
        return cls(step=step, ok=True, outputs=tuple(outputs), count=count, skipped=skipped)

    @classmethod
    def failure(cls, step: str, reason: str) -> "StepResult":
        return cls(step=step, ok=False, reason=reason)
