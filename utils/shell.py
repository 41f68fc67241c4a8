# utils/shell.py
from __future__ import annotations

import getpass
import logging
import os
import shlex
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Dict, Iterator, List, Optional, Sequence

log = logging.getLogger("lms_export.shell")

STDERR_TAIL = 2000  # chars of stderr kept on CommandError


class CommandError(RuntimeError):
    """A collaborator command (mysql, aws, manage.py, ...) exited non-zero."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "")[-STDERR_TAIL:]
        detail = f": {self.stderr.strip()}" if self.stderr.strip() else ""
        super().__init__(f"{shlex.join(self.cmd)} exited {returncode}{detail}")


class CommandRunner:
    """
    Thin subprocess wrapper used by every step.

    - `as_user` runs the command through sudo unless we already are that user
    - `env` is merged over os.environ for the child only; this process's
      environment is never modified
    - no timeouts, no retries: the caller decides what a failure means
    """

    def __init__(self, *, sudo_bin: str = "sudo", current_user: Optional[str] = None) -> None:
        self.sudo_bin = sudo_bin
        self.current_user = current_user or getpass.getuser()

    def wrap(self, cmd: Sequence[str], as_user: Optional[str] = None) -> List[str]:
        if as_user and as_user != self.current_user:
            return [self.sudo_bin, "-u", as_user, *cmd]
        return list(cmd)

    @staticmethod
    def _child_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not env:
            return None
        return {**os.environ, **env}

    def run(
        self,
        cmd: Sequence[str],
        *,
        as_user: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> str:
        """Run to completion and return stdout as text. Raises CommandError on non-zero exit."""
        full = self.wrap(cmd, as_user)
        log.debug("run: %s", shlex.join(full))
        proc = subprocess.run(
            full,
            capture_output=True,
            text=True,
            env=self._child_env(env),
            cwd=cwd,
        )
        if proc.returncode != 0:
            raise CommandError(full, proc.returncode, proc.stderr)
        return proc.stdout

    @contextmanager
    def stream(
        self,
        cmd: Sequence[str],
        *,
        as_user: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Path] = None,
        binary: bool = False,
    ) -> Iterator[IO]:
        """
        Yield the child's stdout as a file object for line-by-line consumption.
        On exit, wait for the child and raise CommandError if it failed.
        stderr is spooled to a temp file so a chatty child cannot block on a full pipe.
        """
        full = self.wrap(cmd, as_user)
        log.debug("stream: %s", shlex.join(full))
        with tempfile.TemporaryFile() as err:
            proc = subprocess.Popen(
                full,
                stdout=subprocess.PIPE,
                stderr=err,
                env=self._child_env(env),
                cwd=cwd,
                text=not binary,
                encoding=None if binary else "utf-8",
                errors=None if binary else "surrogateescape",
            )
            try:
                yield proc.stdout
            except BaseException:
                proc.kill()
                proc.wait()
                raise
            finally:
                if proc.stdout is not None:
                    proc.stdout.close()
            returncode = proc.wait()
            if returncode != 0:
                err.seek(0)
                raise CommandError(full, returncode, err.read().decode("utf-8", "replace"))


__all__ = ["CommandError", "CommandRunner"]
