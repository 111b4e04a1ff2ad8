from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from labflow.exceptions import InputError


CONFIG_FILENAME = ".labflow.json"
DEFAULT_BRANCH = "main"
DEFAULT_HOST = "gitlab.com"
DEFAULT_MAX_WORKERS = 6


@dataclass(slots=True)
class GitLabIntegration:
    host: str
    base_url: str | None = None
    token: str | None = None

    @property
    def resolved_base_url(self) -> str:
        return (self.base_url or f"https://{self.host}").rstrip("/")

    @property
    def api_base_url(self) -> str:
        return f"{self.resolved_base_url}/api/v4"


class IntegrationRegistry:
    """GitLab integrations keyed by host name."""

    def __init__(self, integrations: list[GitLabIntegration] | None = None) -> None:
        self._by_host: dict[str, GitLabIntegration] = {}
        for integration in integrations or []:
            self._by_host[integration.host.lower()] = integration
        if DEFAULT_HOST not in self._by_host:
            self._by_host[DEFAULT_HOST] = GitLabIntegration(host=DEFAULT_HOST)

    def by_host(self, host: str) -> GitLabIntegration | None:
        return self._by_host.get(host.lower())

    def list(self) -> list[GitLabIntegration]:
        return sorted(self._by_host.values(), key=lambda item: item.host)


@dataclass(slots=True)
class LabFlowConfig:
    repo_url: str
    local_root: str
    branch: str = DEFAULT_BRANCH
    source_path: str = ""
    target_path: str = ""
    commit_action: str = "auto"
    max_workers: int = DEFAULT_MAX_WORKERS
    integrations: list[GitLabIntegration] = field(default_factory=list)

    @property
    def local_root_path(self) -> Path:
        return Path(self.local_root).resolve()

    @property
    def registry(self) -> IntegrationRegistry:
        return IntegrationRegistry(self.integrations)


@dataclass(frozen=True, slots=True)
class RepoLocation:
    host: str
    project: str


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def load_config(base_dir: Path | None = None) -> LabFlowConfig:
    path = config_path(base_dir)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}. Run `lf init <repo_url>` first."
        )

    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)

    return LabFlowConfig(
        repo_url=data["repo_url"],
        local_root=data["local_root"],
        branch=data.get("branch") or DEFAULT_BRANCH,
        source_path=data.get("source_path", ""),
        target_path=data.get("target_path", ""),
        commit_action=data.get("commit_action", "auto"),
        max_workers=int(data.get("max_workers", DEFAULT_MAX_WORKERS)),
        integrations=[
            GitLabIntegration(
                host=item["host"],
                base_url=item.get("base_url"),
                token=item.get("token"),
            )
            for item in data.get("integrations", [])
        ],
    )


def save_config(config: LabFlowConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    payload = asdict(config)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")
    return path


def parse_repo_url(repo_url: str) -> RepoLocation:
    """Parse a repository reference into host and project path.

    Accepted forms:
    - ``gitlab.com?owner=group/sub&repo=project``
    - ``https://gitlab.example.com/group/sub/project(.git)``
    - ``ssh://git@gitlab.example.com/group/project.git``
    - ``git@gitlab.example.com:group/project.git``
    """
    value = (repo_url or "").strip()
    if not value:
        raise InputError("Repository URL must not be empty")

    # scp-like SSH form
    if "://" not in value and value.startswith("git@") and ":" in value:
        host_part, path = value[len("git@"):].split(":", 1)
        return _location(repo_url, host_part, path)

    if "://" not in value:
        if "?" in value:
            host_part, query = value.split("?", 1)
            params = parse_qs(query)
            owner = (params.get("owner") or [""])[0]
            repo = (params.get("repo") or [""])[0]
            if not repo:
                raise InputError(f"Invalid repo URL passed to publisher, missing repo: {repo_url}")
            return _location(repo_url, host_part, f"{owner}/{repo}" if owner else repo)
        value = f"https://{value}"

    parsed = urlparse(value)
    return _location(repo_url, parsed.hostname or "", parsed.path)


def _location(original: str, host: str, path: str) -> RepoLocation:
    host = host.strip().strip("/").lower()
    project = path.strip().strip("/")
    if project.endswith(".git"):
        project = project[:-4]
    # Web URLs may point below the project, e.g. /group/project/-/tree/main
    if "/-/" in f"/{project}/":
        project = f"/{project}/".split("/-/", 1)[0].strip("/")
    if not host:
        raise InputError(f"Invalid repo URL passed to publisher, missing host: {original}")
    if not project:
        raise InputError(f"Invalid repo URL passed to publisher, missing project: {original}")
    return RepoLocation(host=host, project=project)
