# tests/test_shell.py
import os
import sys

import pytest

from utils.shell import CommandError, CommandRunner

PY = sys.executable


def test_wrap_uses_sudo_only_for_other_users():
    r = CommandRunner(current_user="exporter")
    assert r.wrap(["aws", "s3", "ls"]) == ["aws", "s3", "ls"]
    assert r.wrap(["aws", "s3", "ls"], as_user="exporter") == ["aws", "s3", "ls"]
    assert r.wrap(["aws", "s3", "ls"], as_user="syslog") == ["sudo", "-u", "syslog", "aws", "s3", "ls"]


def test_run_returns_stdout():
    assert CommandRunner().run([PY, "-c", "print('hi')"]) == "hi\n"


def test_run_raises_with_stderr_tail():
    with pytest.raises(CommandError) as exc:
        CommandRunner().run([PY, "-c", "import sys; sys.stderr.write('access denied'); sys.exit(3)"])
    assert exc.value.returncode == 3
    assert exc.value.stderr == "access denied"


def test_env_reaches_child_only(monkeypatch):
    monkeypatch.delenv("MYSQL_PWD", raising=False)
    out = CommandRunner().run([PY, "-c", "import os; print(os.environ['MYSQL_PWD'])"], env={"MYSQL_PWD": "s3cr3t"})
    assert out == "s3cr3t\n"
    assert "MYSQL_PWD" not in os.environ


def test_stream_yields_lines():
    r = CommandRunner()
    with r.stream([PY, "-c", "print('a\\tb'); print('1\\t2')"]) as out:
        lines = list(out)
    assert lines == ["a\tb\n", "1\t2\n"]


def test_stream_binary_and_failure():
    r = CommandRunner()
    with pytest.raises(CommandError):
        with r.stream([PY, "-c", "import sys; sys.stdout.write('partial'); sys.exit(1)"], binary=True) as out:
            assert out.read() == b"partial"
