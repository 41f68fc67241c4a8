# tests/test_fs_helpers.py
import getpass
from pathlib import Path

import pytest

from utils.fs import atomic_open, ensure_dir, file_hashes, safe_relpath


def test_safe_relpath_portable(tmp_path):
    root = tmp_path
    f = root / "auth_user" / "lms=campus.example.com" / "auth_user.csv"
    f.parent.mkdir(parents=True)
    f.write_text("x")

    rel = safe_relpath(f, root)
    assert rel == "auth_user/lms=campus.example.com/auth_user.csv"  # POSIX-style (forward slashes only)
    assert not rel.startswith("/")   # relative, not absolute


def test_file_hashes_known_values(tmp_path):
    f = tmp_path / "sample.txt"
    f.write_text("hello world\n", encoding="utf-8")

    hashes = file_hashes(f)
    # Known values for "hello world\n"
    assert hashes["sha256"] == "a948904f2f0f479b8f8197694b30184b0d2ed1c1cd2a1ec0fb85d299a192a447"
    assert hashes["md5"] == "6f5902ac237024bdd0c176cb93063dc4"


def test_ensure_dir_chowns_to_current_user(tmp_path):
    # chown to ourselves needs no privileges, and exercises the owner branch
    target = tmp_path / "a" / "b"
    ensure_dir(target, owner=getpass.getuser())
    assert target.is_dir()
    assert (tmp_path / "a").is_dir()


def test_atomic_open_keeps_previous_file_on_error(tmp_path):
    p = tmp_path / "table.csv"
    p.write_text("old\n", encoding="utf-8")

    with pytest.raises(RuntimeError):
        with atomic_open(p) as fh:
            fh.write("half written")
            raise RuntimeError("query died")

    assert p.read_text(encoding="utf-8") == "old\n"
    assert sorted(x.name for x in tmp_path.iterdir()) == ["table.csv"]
