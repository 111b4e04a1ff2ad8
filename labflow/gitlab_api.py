from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol, TypeVar
from urllib.parse import quote

import httpx

from labflow.exceptions import LabFlowError
from labflow.models import RemoteFileMeta, WireCommitAction


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_PER_PAGE = 100
T = TypeVar("T")


class RepositoryApi(Protocol):
    def list_tree_paths(self, repo_id: str, *, ref: str, path: str | None = None) -> list[str]:
        ...

    def get_file_meta(self, repo_id: str, file_path: str, *, ref: str) -> RemoteFileMeta:
        ...

    def create_commit(
        self,
        repo_id: str,
        *,
        branch: str,
        message: str,
        actions: list[WireCommitAction],
    ) -> dict[str, Any]:
        ...


def _is_transient_error(exc: BaseException) -> bool:
    # HTTPStatusError is not a RequestError, so check it on its own.
    if isinstance(exc, httpx.HTTPStatusError):
        return 500 <= exc.response.status_code < 600
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError))


def _encode(value: str) -> str:
    return quote(str(value), safe="")


class GitLabClient:
    def __init__(
        self,
        api_base_url: str,
        *,
        token: str | None = None,
        oauth_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if oauth_token:
            headers["Authorization"] = f"Bearer {oauth_token}"
        elif token:
            headers["PRIVATE-TOKEN"] = token
        self.api_base_url = api_base_url.rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._client = httpx.Client(
            base_url=self.api_base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "GitLabClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _retry_transient(self, func: Callable[[], T], *, operation: str) -> T:
        attempt = 1
        while True:
            try:
                return func()
            except httpx.HTTPError as exc:
                if attempt >= self.max_attempts or not _is_transient_error(exc):
                    raise
                sleep_seconds = self.retry_delay_seconds * (2 ** (attempt - 1))
                logger.debug(
                    "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    operation,
                    exc,
                    sleep_seconds,
                    attempt + 1,
                    self.max_attempts,
                )
                time.sleep(sleep_seconds)
                attempt += 1

    def _request(self, method: str, url: str, *, operation: str, **kwargs: Any) -> httpx.Response:
        def _call() -> httpx.Response:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response

        logger.debug("%s %s", method, url)
        return self._retry_transient(_call, operation=operation)

    def list_tree_paths(self, repo_id: str, *, ref: str, path: str | None = None) -> list[str]:
        """Return the path of every blob below *path* on *ref*, recursively."""
        url = f"/projects/{_encode(repo_id)}/repository/tree"
        params: dict[str, Any] = {
            "ref": ref,
            "recursive": "true",
            "per_page": DEFAULT_PER_PAGE,
        }
        if path:
            params["path"] = path

        paths: list[str] = []
        page: str | None = "1"
        while page:
            response = self._request(
                "GET",
                url,
                params={**params, "page": page},
                operation=f"tree:{repo_id}@{ref}",
            )
            for entry in response.json():
                if entry.get("type", "blob") == "blob" and entry.get("path"):
                    paths.append(str(entry["path"]))
            page = response.headers.get("X-Next-Page") or None

        logger.debug("Listed %d remote file(s) in %s@%s", len(paths), repo_id, ref)
        return paths

    def get_file_meta(self, repo_id: str, file_path: str, *, ref: str) -> RemoteFileMeta:
        url = f"/projects/{_encode(repo_id)}/repository/files/{_encode(file_path)}"
        response = self._request(
            "HEAD",
            url,
            params={"ref": ref},
            operation=f"file:{file_path}",
        )
        headers = response.headers
        sha256 = headers.get("X-Gitlab-Content-Sha256")
        if not sha256:
            raise LabFlowError(f"GitLab did not report a content hash for {file_path}")
        size = headers.get("X-Gitlab-Size")
        return RemoteFileMeta(
            path=headers.get("X-Gitlab-File-Path", file_path),
            content_sha256=sha256,
            blob_id=headers.get("X-Gitlab-Blob-Id"),
            size=int(size) if size else None,
            ref=headers.get("X-Gitlab-Ref", ref),
        )

    def create_commit(
        self,
        repo_id: str,
        *,
        branch: str,
        message: str,
        actions: list[WireCommitAction],
    ) -> dict[str, Any]:
        url = f"/projects/{_encode(repo_id)}/repository/commits"
        payload = {
            "branch": branch,
            "commit_message": message,
            "actions": [action.to_payload() for action in actions],
        }
        # A commit is not idempotent, so it is sent exactly once.
        logger.debug("POST %s (%d action(s))", url, len(actions))
        response = self._client.post(url, json=payload)
        response.raise_for_status()
        return response.json()
