"""GitHub API client for wrapper repository provisioning.

Provides a lightweight REST client for looking up, and creating, the
repositories that generated wrapper packages are pushed to.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from constants import Constants
from common.http_client import get_json, safe_post
from errors import RepositoryError

logger = logging.getLogger(__name__)


class GitHubClient:
    """Lightweight REST client for GitHub API operations.

    Supports authentication via GITHUB_TOKEN environment variable; creating
    repositories requires it.
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None):
        """Initialize GitHub client.

        Args:
            base_url: Base URL for GitHub API (defaults to Constants.GITHUB_API_BASE)
            token: GitHub personal access token (defaults to GITHUB_TOKEN env var)
        """
        self.base_url = (base_url or Constants.GITHUB_API_BASE).rstrip("/")
        self.token = token or os.environ.get(Constants.ENV_GITHUB_TOKEN)

    def _get_headers(self) -> Dict[str, str]:
        """Get request headers including authorization if token is available."""
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def get_repo(self, full_name: str) -> Optional[Dict[str, Any]]:
        """Fetch repository metadata.

        Args:
            full_name: ``owner/repo``

        Returns:
            Repository payload, or None when the repository does not exist.

        Raises:
            RepositoryError: On transport failures or unexpected statuses.
        """
        status, data = get_json(
            f"{self.base_url}/repos/{full_name}",
            context="github",
            error_cls=RepositoryError,
            headers=self._get_headers(),
        )
        if status == 200 and data:
            return data
        if status == 404:
            return None
        raise RepositoryError(f"Unable to query repository {full_name}: HTTP {status}")

    def get_owner(self, login: str) -> Dict[str, Any]:
        """Fetch a user or organization by login.

        Raises:
            RepositoryError: If the owner does not exist or cannot be fetched.
        """
        status, data = get_json(
            f"{self.base_url}/users/{login}",
            context="github",
            error_cls=RepositoryError,
            headers=self._get_headers(),
        )
        if status == 200 and data:
            return data
        raise RepositoryError(f"Unable to look up GitHub owner {login}: HTTP {status}")

    def get_authenticated_login(self) -> str:
        """Login of the user the token belongs to."""
        if not self.token:
            raise RepositoryError(f"{Constants.ENV_GITHUB_TOKEN} is not set")
        status, data = get_json(
            f"{self.base_url}/user",
            context="github",
            error_cls=RepositoryError,
            headers=self._get_headers(),
        )
        if status == 200 and data and data.get("login"):
            return data["login"]
        raise RepositoryError(f"Unable to identify the authenticated GitHub user: HTTP {status}")

    def create_repo(self, full_name: str) -> Dict[str, Any]:
        """Create ``owner/repo`` with an MIT license and issues disabled.

        Organization owners get the repository under the organization,
        anything else under the authenticated user.

        Raises:
            RepositoryError: If GitHub refuses the creation.
        """
        if not self.token:
            raise RepositoryError(f"{Constants.ENV_GITHUB_TOKEN} is required to create {full_name}")
        owner, name = full_name.split("/", 1)
        if self.get_owner(owner).get("type") == "Organization":
            url = f"{self.base_url}/orgs/{owner}/repos"
        else:
            url = f"{self.base_url}/user/repos"
        payload = {
            "name": name,
            "license_template": "mit",
            "has_issues": False,
        }
        res = safe_post(url, context="github", error_cls=RepositoryError, headers=self._get_headers(), json=payload)
        if res.status_code != 201:
            raise RepositoryError(f"Unable to create repository {full_name}: HTTP {res.status_code} {res.text[:200]}")
        logger.info("Created repository %s", full_name)
        return res.json()
