# tests/conftest.py
from __future__ import annotations

import io
import shlex
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

# ---------- import helpers ----------
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from models import ExportConfig, MySQLCredentials  # noqa: E402
from utils.settings import Settings  # noqa: E402
from utils.shell import CommandError  # noqa: E402


# ---------- the subprocess test double ----------
class FakeRunner:
    """
    Record-only stand-in for utils.shell.CommandRunner.

    - Every run()/stream() call is RECORDED in `calls` (argv list, as_user, env, cwd).
    - Output is canned per command: the first registered key that is a substring of the
      joined command line wins. Unmatched commands return "".
    - fail_on(key) makes matching commands raise CommandError.
    """

    def __init__(self) -> None:
        self.calls: List[Dict[str, object]] = []
        self._outputs: List[tuple[str, object]] = []
        self._failures: List[str] = []

    # ----- configuration -----
    def on(self, key: str, output: str | bytes) -> "FakeRunner":
        self._outputs.append((key, output))
        return self

    def fail_on(self, key: str) -> "FakeRunner":
        self._failures.append(key)
        return self

    # ----- helpers -----
    def _record(self, kind: str, cmd: Sequence[str], as_user, env, cwd) -> str:
        line = shlex.join(cmd)
        self.calls.append({"kind": kind, "cmd": list(cmd), "line": line, "as_user": as_user, "env": env, "cwd": cwd})
        return line

    def _output_for(self, line: str):
        for key in self._failures:
            if key in line:
                raise CommandError(shlex.split(line), 1, f"simulated failure: {key}")
        for key, output in self._outputs:
            if key in line:
                return output
        return ""

    def lines(self, needle: str = "") -> List[str]:
        return [c["line"] for c in self.calls if needle in c["line"]]

    # ----- CommandRunner surface -----
    def run(self, cmd: Sequence[str], *, as_user: Optional[str] = None, env=None, cwd=None) -> str:
        line = self._record("run", cmd, as_user, env, cwd)
        out = self._output_for(line)
        return out.decode("utf-8") if isinstance(out, bytes) else out

    @contextmanager
    def stream(self, cmd: Sequence[str], *, as_user: Optional[str] = None, env=None, cwd=None, binary: bool = False):
        line = self._record("stream", cmd, as_user, env, cwd)
        out = self._output_for(line)
        if binary:
            yield io.BytesIO(out if isinstance(out, bytes) else out.encode("utf-8"))
        else:
            yield io.StringIO(out.decode("utf-8") if isinstance(out, bytes) else out)


# ---------- common data ----------
DEPLOYMENT = "campus.example.com"
DATA_BUCKET = "lms-a1b2c3d4-rawdata-x9y8z7-1690000000"
LOGS_BUCKET = "lms-e5f6g7h8-rawlogs-q1w2e3-1690000000"

AUTH_USER_TSV = (
    "id\tusername\temail\tfirst_name\r\n"
    "1\tstaff\tstaff@example.com\tNULL\r\n"
    "2\tverified\tverified@example.com\tJo, \"JJ\"\r\n"
)

BUCKET_LISTING = (
    "2023-07-22 10:00:00 some-other-bucket\n"
    f"2023-07-22 10:00:00 {DATA_BUCKET}\n"
    f"2023-07-22 10:00:00 {LOGS_BUCKET}\n"
)


# ---------- common fixtures ----------
@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    platform = tmp_path / "edx-platform"
    (platform / "lms" / "djangoapps" / "courseware" / "management" / "commands").mkdir(parents=True)
    return Settings(
        report_root=tmp_path / "reports",
        log_dir=tmp_path / "tracking",
        config_files=(tmp_path / "lms.yml", tmp_path / "lms.auth.json"),
        edx_platform_dir=platform,
    )


@pytest.fixture
def export_config(tmp_path: Path, settings: Settings) -> ExportConfig:
    return ExportConfig(
        deployment=DEPLOYMENT,
        report_bucket=DATA_BUCKET,
        log_bucket=LOGS_BUCKET,
        credentials=MySQLCredentials(host="db.internal", user="read_only", password="s3cr3t", database="edxapp"),
        report_root=settings.report_root,
        log_dir=settings.log_dir,
        manage_command=settings.manage_command,
        edx_platform_dir=settings.edx_platform_dir,
        hook_relpath=settings.hook_relpath,
        bundled_hook=settings.bundled_hook,
    )
