"""
nextcloud-installer — filesystem utilities

File: src/nextcloud_installer/utils/fs.py
Last updated: 2026-10-18

Purpose
- Atomic writes for generated configuration files.
- Guarded recursive removal of an existing install directory.

Functional requirements
- Atomic writes use a temp file in the destination directory and replace in one step.
- Removal refuses the filesystem root and never follows a symlinked target.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "remove_tree",
    "same_path",
]


def atomic_write(
    path: PathLike,
    data: str,
    *,
    encoding: str = "utf-8",
    mode: int | None = None,
) -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. apply ``mode`` when given,
    4. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding) as file_handle:
            file_handle.write(data)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        if mode is not None:
            os.chmod(temp_path, mode)
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def remove_tree(path: PathLike) -> None:
    """Recursively delete ``path``; a symlink is unlinked, not traversed."""

    target = Path(path)
    if not target.is_absolute():
        raise ValueError(f"refusing to delete relative path: {target!s}")
    if target.is_symlink():
        target.unlink()
        return
    resolved = target.resolve(strict=True)
    if resolved == Path(resolved.anchor):
        raise ValueError(f"refusing to delete filesystem root: {target!s}")
    if resolved.is_dir():
        shutil.rmtree(resolved)
        return
    resolved.unlink()


def same_path(first: PathLike, second: PathLike) -> bool:
    """Compare two paths after normalization, whether or not they exist."""

    return Path(os.path.realpath(first)) == Path(os.path.realpath(second))
