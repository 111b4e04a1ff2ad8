from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, TypeVar

from labflow.config import DEFAULT_MAX_WORKERS
from labflow.filters import PathFilter
from labflow.gitlab_api import RepositoryApi
from labflow.models import (
    AUTO,
    CommitAction,
    CommitMode,
    Explicit,
    FileTarget,
    LocalFile,
    WireCommitAction,
)
from labflow.paths import join_repo_path, normalize_repo_path, resolve_safe_child_path
from labflow.reconcile import resolve_file_action
from labflow.scanner import serialize_directory_contents


logger = logging.getLogger(__name__)
T = TypeVar("T")


def _run_jobs(jobs: list[Callable[[], T]], *, max_workers: int) -> list[T]:
    """Run *jobs* on a bounded pool and return their results in submission order."""
    if not jobs:
        return []
    if max_workers <= 1 or len(jobs) == 1:
        return [job() for job in jobs]

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="labflow-diff") as executor:
        futures: list[Future[T]] = [executor.submit(job) for job in jobs]
        try:
            return [future.result() for future in futures]
        except Exception:
            for future in futures:
                future.cancel()
            raise


def resolve_scan_root(
    workspace_path: Path,
    source_path: str | None = None,
    target_path: str | None = None,
) -> Path:
    # Without a source path the target path doubles as the local subdirectory.
    subpath = source_path or target_path
    if subpath:
        return resolve_safe_child_path(workspace_path, subpath)
    return Path(workspace_path).resolve()


def get_commit_actions(
    api: RepositoryApi,
    repo_id: str,
    workspace_path: Path,
    *,
    target_branch: str,
    source_path: str | None = None,
    target_path: str | None = None,
    mode: CommitMode = AUTO,
    max_workers: int = DEFAULT_MAX_WORKERS,
    gitignore: bool = True,
    path_filter: PathFilter | None = None,
    on_file_resolved: Callable[[LocalFile, CommitAction], None] | None = None,
) -> list[WireCommitAction]:
    """Build the commit actions that bring *target_branch* in line with the workspace.

    Output follows the local enumeration order and never contains skipped
    files. Any failure while listing, scanning or comparing propagates.
    """
    file_root = resolve_scan_root(workspace_path, source_path, target_path)
    target_prefix = normalize_repo_path(target_path)

    if isinstance(mode, Explicit) and mode.action is CommitAction.SKIP:
        return []

    remote_paths: frozenset[str] = frozenset()
    if not isinstance(mode, Explicit):
        remote_paths = frozenset(
            api.list_tree_paths(repo_id, ref=target_branch, path=target_prefix or None)
        )

    files = serialize_directory_contents(file_root, gitignore=gitignore, path_filter=path_filter)
    logger.debug("Serialized %d local file(s) from %s", len(files), file_root)
    target = FileTarget(repo_id=repo_id, branch=target_branch)

    def make_job(file: LocalFile) -> Callable[[], tuple[LocalFile, CommitAction]]:
        def _job() -> tuple[LocalFile, CommitAction]:
            action = resolve_file_action(
                file,
                target,
                api,
                remote_paths,
                mode,
                target_path=target_prefix,
            )
            if on_file_resolved is not None:
                on_file_resolved(file, action)
            return file, action

        return _job

    decisions = _run_jobs([make_job(file) for file in files], max_workers=max(1, max_workers))

    return [
        WireCommitAction.from_local_file(file, action, join_repo_path(target_prefix, file.path))
        for file, action in decisions
        if action is not CommitAction.SKIP
    ]
