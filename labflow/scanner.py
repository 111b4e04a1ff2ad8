from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from labflow.config import CONFIG_FILENAME
from labflow.filters import GitignoreStack, PathFilter
from labflow.models import LocalFile


logger = logging.getLogger(__name__)

EXCLUDED_DIRNAMES = {".git"}
EXCLUDED_FILENAMES = {CONFIG_FILENAME}


def _is_executable(mode: int) -> bool:
    return bool(mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


def _discover_candidates(
    root: Path,
    path_filter: PathFilter,
    *,
    gitignore: bool,
) -> list[tuple[Path, str]]:
    ignores = GitignoreStack() if gitignore else None
    candidates: list[tuple[Path, str]] = []

    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir
        if ignores is not None:
            ignores.enter_directory(current, rel_dir)

        kept_dirs: list[str] = []
        for name in sorted(dirnames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if name in EXCLUDED_DIRNAMES:
                continue
            if (current / name).is_symlink():
                logger.debug("Skipping symlinked directory %s", rel_path)
                continue
            if path_filter.excludes_directory(rel_path):
                continue
            if ignores is not None and ignores.is_ignored(rel_path, is_dir=True):
                continue
            kept_dirs.append(name)
        # os.walk only descends into what is left in dirnames.
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            file_path = current / name
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if name in EXCLUDED_FILENAMES and not rel_dir:
                continue
            if file_path.is_symlink():
                logger.debug("Skipping symlink %s", rel_path)
                continue
            if not file_path.is_file():
                continue
            if ignores is not None and ignores.is_ignored(rel_path):
                continue
            if not path_filter.matches(rel_path):
                continue
            candidates.append((file_path, rel_path))

    candidates.sort(key=lambda item: item[1])
    return candidates


def _record_from_candidate(candidate: tuple[Path, str]) -> LocalFile:
    file_path, relative_path = candidate
    mode = file_path.stat().st_mode
    return LocalFile(
        path=relative_path,
        content=file_path.read_bytes(),
        executable=_is_executable(mode),
    )


def serialize_directory_contents(
    root: Path,
    *,
    gitignore: bool = True,
    path_filter: PathFilter | None = None,
) -> list[LocalFile]:
    """Read every selected file under *root* into memory, sorted by posix path."""
    root = Path(root).resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Directory to commit does not exist: {root}")
    path_filter = path_filter or PathFilter()
    candidates = _discover_candidates(root, path_filter, gitignore=gitignore)
    return [_record_from_candidate(candidate) for candidate in candidates]
