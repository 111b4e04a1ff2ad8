from __future__ import annotations

import os

from labflow.config import IntegrationRegistry, parse_repo_url
from labflow.exceptions import InputError
from labflow.gitlab_api import GitLabClient


TOKEN_ENV_NAME = "GITLAB_TOKEN"


def default_token() -> str | None:
    """Personal access token from ``GITLAB_TOKEN``, used only for integrations without one."""
    return os.getenv(TOKEN_ENV_NAME, "").strip() or None


def create_gitlab_api(
    integrations: IntegrationRegistry,
    repo_url: str,
    token: str | None = None,
    *,
    fallback_token: str | None = None,
) -> GitLabClient:
    location = parse_repo_url(repo_url)
    integration = integrations.by_host(location.host)

    if integration is None:
        raise InputError(
            f"No matching integration configuration for host {location.host}, "
            "please check your integrations config"
        )

    token = (token or "").strip() or None
    if not integration.token and not token and not fallback_token:
        raise InputError(f"No token available for host {location.host}")

    # Only an explicit caller token overrides the integration's own token.
    if token:
        return GitLabClient(integration.api_base_url, oauth_token=token)
    return GitLabClient(integration.api_base_url, token=integration.token or fallback_token)


def mask_token(token: str | None) -> str:
    if not token:
        return "-"
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}{'*' * (len(token) - 8)}{token[-4:]}"
