from __future__ import annotations

import logging
import threading
from pathlib import Path

from rich.console import Console

from labflow.auth import create_gitlab_api, default_token
from labflow.commit_actions import get_commit_actions
from labflow.config import LabFlowConfig, parse_repo_url
from labflow.filters import build_path_filter
from labflow.gitlab_api import RepositoryApi
from labflow.models import (
    CommitAction,
    CommitMode,
    LocalFile,
    PushResult,
    WireCommitAction,
    commit_mode_name,
    parse_commit_mode,
)


logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Sync files with LabFlow"


def default_commit_message(actions: list[WireCommitAction]) -> str:
    counts = {action: 0 for action in CommitAction if action is not CommitAction.SKIP}
    for item in actions:
        counts[item.action] += 1
    summary = ", ".join(f"{count} {action.value}" for action, count in counts.items() if count)
    return f"{DEFAULT_COMMIT_MESSAGE} ({summary})" if summary else DEFAULT_COMMIT_MESSAGE


def plan_commit(
    config: LabFlowConfig,
    api: RepositoryApi,
    *,
    mode: CommitMode | None = None,
    include_patterns: tuple[str, ...] = (),
    exclude_patterns: tuple[str, ...] = (),
    console: Console | None = None,
) -> list[WireCommitAction]:
    location = parse_repo_url(config.repo_url)
    resolved_mode = mode if mode is not None else parse_commit_mode(config.commit_action)
    local_root: Path = config.local_root_path
    if not local_root.exists():
        raise FileNotFoundError(f"Configured local_root does not exist: {local_root}")

    path_filter = build_path_filter(include_patterns, exclude_patterns)
    lock = threading.Lock()
    resolved = 0

    def _build(on_file_resolved=None) -> list[WireCommitAction]:
        return get_commit_actions(
            api,
            location.project,
            local_root,
            target_branch=config.branch,
            source_path=config.source_path or None,
            target_path=config.target_path or None,
            mode=resolved_mode,
            max_workers=config.max_workers,
            path_filter=path_filter,
            on_file_resolved=on_file_resolved,
        )

    if console is None:
        return _build()

    with console.status(
        f"Comparing local files with {location.project}@{config.branch} "
        f"({commit_mode_name(resolved_mode)})..."
    ) as status:

        def _on_file_resolved(file: LocalFile, action: CommitAction) -> None:
            nonlocal resolved
            with lock:
                resolved += 1
                status.update(f"Compared {resolved} file(s), last: {file.path} -> {action.value}")

        return _build(_on_file_resolved)


def push_to_gitlab(
    config: LabFlowConfig,
    *,
    token: str | None = None,
    mode: CommitMode | None = None,
    commit_message: str | None = None,
    include_patterns: tuple[str, ...] = (),
    exclude_patterns: tuple[str, ...] = (),
    dry_run: bool = False,
    console: Console | None = None,
    api: RepositoryApi | None = None,
) -> PushResult:
    """Plan the commit for the configured workspace and submit it.

    Configuration problems (unknown host, no token) are raised before any
    request is made. Nothing is committed when the plan is empty or when
    *dry_run* is set.
    """
    location = parse_repo_url(config.repo_url)
    client = None
    if api is None:
        client = create_gitlab_api(
            config.registry,
            config.repo_url,
            token=token,
            fallback_token=default_token(),
        )
        api = client

    try:
        actions = plan_commit(
            config,
            api,
            mode=mode,
            include_patterns=include_patterns,
            exclude_patterns=exclude_patterns,
            console=console,
        )
        result = PushResult(repo_id=location.project, branch=config.branch, actions=actions)
        if dry_run or not actions:
            return result

        message = commit_message or default_commit_message(actions)
        commit = api.create_commit(
            location.project,
            branch=config.branch,
            message=message,
            actions=actions,
        )
        result.commit_id = commit.get("id")
        result.web_url = commit.get("web_url")
        logger.info(
            "Committed %d action(s) to %s@%s as %s",
            len(actions),
            location.project,
            config.branch,
            result.commit_id,
        )
        return result
    finally:
        if client is not None:
            client.close()
