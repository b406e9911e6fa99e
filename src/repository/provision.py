"""Make a local checkout of a wrapper package's deploy repository."""
from __future__ import annotations

import base64
import logging
import os
import subprocess
from typing import List, Optional

from constants import Constants
from common.logging_utils import redact
from errors import RepositoryError
from repository.github import GitHubClient

logger = logging.getLogger(__name__)


def _git(args: List[str], cwd: Optional[str] = None, secret: Optional[str] = None) -> str:
    cmd = ["git", *args]
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise RepositoryError(f"Unable to run git: {exc}") from exc
    if result.returncode != 0:
        shown = " ".join(cmd)
        stderr = result.stderr.strip()
        if secret:
            shown = shown.replace(secret, redact(secret))
            stderr = stderr.replace(secret, redact(secret))
        raise RepositoryError(f"`{shown}` failed ({result.returncode}): {stderr}")
    return result.stdout.strip()


def _auth_args(client: GitHubClient, gh_username: str) -> List[str]:
    if not client.token:
        return []
    credentials = base64.b64encode(f"{gh_username}:{client.token}".encode()).decode()
    return ["-c", f"http.extraHeader=Authorization: Basic {credentials}"]


def ensure_repo(client: GitHubClient, deploy_repo: str) -> None:
    """Create ``deploy_repo`` on GitHub unless it already exists."""
    if client.get_repo(deploy_repo) is not None:
        return
    try:
        client.create_repo(deploy_repo)
    except RepositoryError:
        # Someone else may have created it in the meantime
        if client.get_repo(deploy_repo) is None:
            raise
        logger.info("Repository %s was created concurrently", deploy_repo)


def init_jll_package(
    name: str,
    code_dir: str,
    deploy_repo: str,
    client: Optional[GitHubClient] = None,
    gh_username: Optional[str] = None,
) -> None:
    """Ensure ``deploy_repo`` exists and ``code_dir`` holds its latest state.

    A missing ``code_dir`` is cloned; an existing one is fetched and hard
    reset to ``origin/<default branch>``, discarding local changes.

    Raises:
        RepositoryError: If GitHub or git fail.
    """
    client = client or GitHubClient()
    ensure_repo(client, deploy_repo)
    if gh_username is None and client.token:
        gh_username = client.get_authenticated_login()
    auth = _auth_args(client, gh_username or "")
    secret = auth[1].split("Basic ", 1)[1] if auth else None

    url = f"{Constants.GITHUB_WEB_BASE}/{deploy_repo}.git"
    if not os.path.isdir(code_dir):
        logger.info("Cloning wrapper code from %s into %s", url, code_dir)
        _git([*auth, "clone", url, code_dir], secret=secret)
        return

    logger.info("Updating %s_jll in %s", name, code_dir)
    repo_info = client.get_repo(deploy_repo) or {}
    branch = repo_info.get("default_branch") or Constants.DEFAULT_BRANCH
    _git([*auth, "fetch", "origin"], cwd=code_dir, secret=secret)
    _git(["reset", "--hard", f"origin/{branch}"], cwd=code_dir)
    current = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=code_dir)
    if current != branch:
        _git(["checkout", "-B", branch, f"origin/{branch}"], cwd=code_dir)
