from __future__ import annotations

import posixpath
from pathlib import Path, PurePosixPath

from labflow.exceptions import PathEscapeError


def resolve_safe_child_path(base: Path | str, child: str) -> Path:
    """Resolve *child* under *base*, refusing anything that lands outside it.

    Symlinks are resolved before the check, so a link pointing out of the
    workspace is rejected the same way as ``../``.
    """
    base_path = Path(base).resolve()
    target = (base_path / child).resolve()
    if target != base_path and base_path not in target.parents:
        raise PathEscapeError(
            f"Relative path is not allowed to refer to a directory outside its parent: {child}"
        )
    return target


def normalize_repo_path(path: str | None) -> str:
    """Normalize a repository subpath to bare posix form ("" for the repo root)."""
    if not path:
        return ""
    value = path.replace("\\", "/").strip().strip("/")
    if not value:
        return ""
    normalized = posixpath.normpath(value)
    if normalized == ".":
        return ""
    if normalized == ".." or normalized.startswith("../"):
        raise PathEscapeError(f"Repository path escapes the repository root: {path}")
    return normalized


def join_repo_path(target_path: str | None, relative_path: str) -> str:
    relative = PurePosixPath(relative_path.replace("\\", "/")).as_posix()
    prefix = normalize_repo_path(target_path)
    if not prefix:
        return relative
    return posixpath.join(prefix, relative)
