from __future__ import annotations

import logging
from collections.abc import Collection

from labflow.gitlab_api import RepositoryApi
from labflow.models import (
    AUTO,
    CommitAction,
    CommitMode,
    Explicit,
    FileTarget,
    LocalFile,
)
from labflow.paths import join_repo_path


logger = logging.getLogger(__name__)


def resolve_file_action(
    file: LocalFile,
    target: FileTarget,
    api: RepositoryApi,
    remote_paths: Collection[str],
    mode: CommitMode = AUTO,
    *,
    target_path: str | None = None,
) -> CommitAction:
    """Decide what the commit should do with one local file.

    An explicit mode is returned as is. In auto mode a file missing from
    *remote_paths* is created; otherwise the remote content hash is fetched
    and compared, giving ``skip`` when equal and ``update`` when not. Errors
    from the metadata fetch are not caught.
    """
    if isinstance(mode, Explicit):
        return mode.action

    file_path = join_repo_path(target_path, file.path)
    if file_path not in remote_paths:
        logger.debug("%s: not on %s, create", file_path, target.branch)
        return CommitAction.CREATE

    remote = api.get_file_meta(target.repo_id, file_path, ref=target.branch)
    if file.sha256 == remote.content_sha256:
        logger.debug("%s: unchanged, skip", file_path)
        return CommitAction.SKIP
    logger.debug("%s: content differs, update", file_path)
    return CommitAction.UPDATE
