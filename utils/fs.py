# utils/fs.py

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Optional


def ensure_dir(path: Path, owner: Optional[str] = None) -> None:
    """
    Create directory (and parents) if missing.
    When `owner` is given, every directory created by this call is chowned to it
    (needs privileges; PermissionError propagates).
    """
    missing: list[Path] = []
    probe = path
    while not probe.exists() and probe != probe.parent:
        missing.append(probe)
        probe = probe.parent

    path.mkdir(parents=True, exist_ok=True)

    if owner:
        for created in reversed(missing):
            shutil.chown(created, user=owner)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


@contextmanager
def atomic_open(
    path: Path,
    mode: str = "w",
    owner: Optional[str] = None,
    errors: Optional[str] = None,
) -> Iterator[IO]:
    """
    Yield a handle on a temp file in the same dir; atomic-rename on clean exit.
    On error the temp file is removed and any previous `path` is left untouched.
    The finished file gets the usual umask-derived mode, not mkstemp's 0600.
    Text mode takes an `errors` handler (e.g. "surrogateescape" to pass undecodable bytes through).
    """
    ensure_dir(path.parent, owner=owner)
    encoding = None if "b" in mode else "utf-8"
    newline = None if "b" in mode else ""
    errors = None if "b" in mode else errors

    # Create tmp in same directory so os.replace is atomic on the filesystem
    tmp_fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(tmp_fd, mode, encoding=encoding, errors=errors, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, 0o666 & ~_current_umask())
        os.replace(tmp_path, path)
        if owner:
            shutil.chown(path, user=owner)
    finally:
        tmp_path.unlink(missing_ok=True)


def safe_relpath(path: Path, start: Path) -> str:
    """Return a POSIX-style relative path (forward slashes) for portability."""
    rel = Path(os.path.relpath(path, start))
    return rel.as_posix()


def file_hashes(path: Path, chunk_size: int = 1024 * 1024) -> dict[str, str]:
    """Compute sha256 and md5 for a file (streamed)."""
    sha256 = hashlib.sha256()
    md5 = hashlib.md5()
    with path.open("rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)
            md5.update(chunk)
    return {"sha256": sha256.hexdigest(), "md5": md5.hexdigest()}
