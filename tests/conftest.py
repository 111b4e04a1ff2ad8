"""Shared fixtures: an in-memory GitLab repository and a scratch workspace."""

from __future__ import annotations

import hashlib
import threading

import pytest

from labflow.models import RemoteFileMeta


class FakeRepositoryApi:
    """In-memory stand-in for GitLabClient keyed by repository path."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files = dict(files or {})
        self.tree_calls: list[tuple[str, str, str | None]] = []
        self.meta_calls: list[tuple[str, str, str]] = []
        self.commits: list[dict] = []
        self.hash_overrides: dict[str, str] = {}
        self._lock = threading.Lock()

    def list_tree_paths(self, repo_id, *, ref, path=None):
        with self._lock:
            self.tree_calls.append((repo_id, ref, path))
        prefix = f"{path}/" if path else ""
        return sorted(p for p in self.files if p.startswith(prefix))

    def get_file_meta(self, repo_id, file_path, *, ref):
        with self._lock:
            self.meta_calls.append((repo_id, file_path, ref))
        if file_path not in self.files:
            raise KeyError(file_path)
        digest = self.hash_overrides.get(file_path) or hashlib.sha256(self.files[file_path]).hexdigest()
        return RemoteFileMeta(path=file_path, content_sha256=digest, ref=ref)

    def create_commit(self, repo_id, *, branch, message, actions):
        commit = {
            "id": f"c{len(self.commits) + 1:07d}",
            "web_url": f"https://gitlab.example.com/{repo_id}/-/commit/c{len(self.commits) + 1:07d}",
            "repo_id": repo_id,
            "branch": branch,
            "message": message,
            "actions": [action.to_payload() for action in actions],
        }
        self.commits.append(commit)
        return commit


@pytest.fixture
def fake_api():
    return FakeRepositoryApi()


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def write_files():
    def _write(root, files: dict[str, bytes | str]) -> None:
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                content = content.encode("utf-8")
            path.write_bytes(content)

    return _write
