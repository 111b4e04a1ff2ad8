from __future__ import annotations

from pathlib import Path
from typing import Iterable

from dulwich.ignore import IgnoreFilter


def _normalize_pattern(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _compile(patterns: Iterable[str]) -> IgnoreFilter | None:
    lines = [pattern.encode("utf-8") for pattern in patterns]
    return IgnoreFilter(lines) if lines else None


class PathFilter:
    """Include/exclude patterns applied to posix paths relative to the scan root."""

    def __init__(
        self,
        include_patterns: tuple[str, ...] = (),
        exclude_patterns: tuple[str, ...] = (),
    ) -> None:
        self.include_patterns = include_patterns
        self.exclude_patterns = exclude_patterns
        self._include = _compile(include_patterns)
        self._exclude = _compile(exclude_patterns)

    def matches(self, path: str) -> bool:
        if self._include is not None and self._include.is_ignored(path) is not True:
            return False
        if self._exclude is not None and self._exclude.is_ignored(path) is True:
            return False
        return True

    def excludes_directory(self, path: str) -> bool:
        # Include patterns name files, so only excludes may prune a whole directory.
        return self._exclude is not None and self._exclude.is_ignored(path + "/") is True


def build_path_filter(
    include_patterns: list[str] | tuple[str, ...] | None = None,
    exclude_patterns: list[str] | tuple[str, ...] | None = None,
) -> PathFilter:
    include = tuple(p for p in map(_normalize_pattern, include_patterns or ()) if p)
    exclude = tuple(p for p in map(_normalize_pattern, exclude_patterns or ()) if p)
    return PathFilter(include_patterns=include, exclude_patterns=exclude)


class GitignoreStack:
    """Per-directory ``.gitignore`` rules collected during a top-down walk.

    ``enter_directory`` must be called for a directory before any of its
    entries are checked. Deeper ``.gitignore`` files take precedence, and an
    explicit negation (``!pattern``) stops the search.
    """

    def __init__(self) -> None:
        self._filters: dict[str, IgnoreFilter | None] = {}

    def enter_directory(self, abs_dir: Path, rel_dir: str) -> None:
        if rel_dir in self._filters:
            return
        gitignore = abs_dir / ".gitignore"
        self._filters[rel_dir] = (
            IgnoreFilter.from_path(str(gitignore)) if gitignore.is_file() else None
        )

    def is_ignored(self, rel_path: str, *, is_dir: bool = False) -> bool:
        parts = rel_path.split("/")
        for depth in range(len(parts) - 1, -1, -1):
            rules = self._filters.get("/".join(parts[:depth]))
            if rules is None:
                continue
            sub = "/".join(parts[depth:])
            result = rules.is_ignored(sub + "/" if is_dir else sub)
            if result is not None:
                return result
        return False
