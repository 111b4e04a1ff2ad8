"""Tests for workspace config, repo URL parsing and integration lookup."""

import json

import pytest

from labflow.auth import create_gitlab_api, default_token, mask_token
from labflow.config import (
    CONFIG_FILENAME,
    GitLabIntegration,
    IntegrationRegistry,
    LabFlowConfig,
    RepoLocation,
    load_config,
    parse_repo_url,
    save_config,
)
from labflow.exceptions import InputError


class TestParseRepoUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("gitlab.com?owner=group&repo=project", RepoLocation("gitlab.com", "group/project")),
            ("gitlab.com?owner=group/sub&repo=project", RepoLocation("gitlab.com", "group/sub/project")),
            ("https://gitlab.example.com/group/project.git", RepoLocation("gitlab.example.com", "group/project")),
            ("https://GitLab.example.com/group/project/-/tree/main", RepoLocation("gitlab.example.com", "group/project")),
            ("git@gitlab.example.com:group/project.git", RepoLocation("gitlab.example.com", "group/project")),
            ("ssh://git@gitlab.example.com/a/b/c.git", RepoLocation("gitlab.example.com", "a/b/c")),
            ("gitlab.com/group/project", RepoLocation("gitlab.com", "group/project")),
        ],
    )
    def test_forms(self, url, expected) -> None:
        assert parse_repo_url(url) == expected

    @pytest.mark.parametrize("url", ["", "gitlab.com?owner=group", "https://gitlab.com/"])
    def test_invalid(self, url) -> None:
        with pytest.raises(InputError):
            parse_repo_url(url)


class TestConfigFile:
    def test_round_trip(self, tmp_path) -> None:
        config = LabFlowConfig(
            repo_url="gitlab.com?owner=g&repo=p",
            local_root=str(tmp_path),
            branch="develop",
            target_path="docs",
            integrations=[GitLabIntegration(host="git.internal", base_url="https://git.internal/", token="t")],
        )
        path = save_config(config, tmp_path)

        assert path.name == CONFIG_FILENAME
        assert load_config(tmp_path) == config

    def test_defaults_for_minimal_file(self, tmp_path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text(
            json.dumps({"repo_url": "gitlab.com?owner=g&repo=p", "local_root": str(tmp_path)})
        )

        config = load_config(tmp_path)

        assert config.branch == "main"
        assert config.commit_action == "auto"
        assert config.max_workers == 6
        assert config.integrations == []

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError, match="lf init"):
            load_config(tmp_path)


class TestIntegrations:
    def test_gitlab_com_is_always_known(self) -> None:
        integration = IntegrationRegistry().by_host("GITLAB.COM")
        assert integration is not None
        assert integration.api_base_url == "https://gitlab.com/api/v4"

    def test_configured_base_url(self) -> None:
        registry = IntegrationRegistry([GitLabIntegration(host="git.internal", base_url="https://git.internal/gl/")])
        assert registry.by_host("git.internal").api_base_url == "https://git.internal/gl/api/v4"

    def test_unknown_host(self) -> None:
        with pytest.raises(InputError, match="No matching integration configuration for host git.nowhere"):
            create_gitlab_api(IntegrationRegistry(), "git.nowhere?owner=g&repo=p", token="t")

    def test_no_token(self) -> None:
        with pytest.raises(InputError, match="No token available for host gitlab.com"):
            create_gitlab_api(IntegrationRegistry(), "gitlab.com?owner=g&repo=p")

    def test_provided_token_is_oauth(self) -> None:
        registry = IntegrationRegistry([GitLabIntegration(host="gitlab.com", token="configured")])
        with create_gitlab_api(registry, "gitlab.com?owner=g&repo=p", token="provided") as client:
            assert client._client.headers["Authorization"] == "Bearer provided"
            assert "PRIVATE-TOKEN" not in client._client.headers

    def test_configured_token_is_private_token(self) -> None:
        registry = IntegrationRegistry([GitLabIntegration(host="gitlab.com", token="configured")])
        with create_gitlab_api(registry, "gitlab.com?owner=g&repo=p") as client:
            assert client._client.headers["PRIVATE-TOKEN"] == "configured"
            assert client.api_base_url == "https://gitlab.com/api/v4"


class TestTokenResolution:
    def test_only_gitlab_token_is_read(self, monkeypatch) -> None:
        monkeypatch.delenv("GITLAB_TOKEN", raising=False)
        monkeypatch.setenv("CI_JOB_TOKEN", "job")
        assert default_token() is None
        monkeypatch.setenv("GITLAB_TOKEN", " env ")
        assert default_token() == "env"

    def test_configured_token_beats_environment(self) -> None:
        registry = IntegrationRegistry([GitLabIntegration(host="git.internal", token="configured")])
        with create_gitlab_api(registry, "git.internal?owner=g&repo=p", fallback_token="env") as client:
            assert client._client.headers["PRIVATE-TOKEN"] == "configured"
            assert "Authorization" not in client._client.headers

    def test_environment_fills_missing_integration_token(self) -> None:
        with create_gitlab_api(IntegrationRegistry(), "gitlab.com?owner=g&repo=p", fallback_token="env") as client:
            assert client._client.headers["PRIVATE-TOKEN"] == "env"
            assert "Authorization" not in client._client.headers

    def test_explicit_token_beats_both(self) -> None:
        registry = IntegrationRegistry([GitLabIntegration(host="gitlab.com", token="configured")])
        with create_gitlab_api(
            registry, "gitlab.com?owner=g&repo=p", token=" cli ", fallback_token="env"
        ) as client:
            assert client._client.headers["Authorization"] == "Bearer cli"

    def test_blank_explicit_token_is_ignored(self) -> None:
        with pytest.raises(InputError, match="No token available"):
            create_gitlab_api(IntegrationRegistry(), "gitlab.com?owner=g&repo=p", token="  ")

    def test_mask(self) -> None:
        assert mask_token(None) == "-"
        assert mask_token("short") == "*****"
        assert mask_token("glpat-1234567890") == "glpa********7890"
