"""Tests for GitHub repository lookup, creation and checkout provisioning."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from errors import RepositoryError
from repository.github import GitHubClient
from repository.provision import ensure_repo, init_jll_package


def _completed(stdout=""):
    return subprocess.CompletedProcess([], 0, stdout=stdout, stderr="")


class TestGitHubClient:
    """REST calls."""

    @patch("repository.github.get_json", return_value=(404, None))
    def test_missing_repo(self, _get_json):
        assert GitHubClient(token="t").get_repo("JuliaBinaryWrappers/Foo_jll.jl") is None

    @patch("repository.github.get_json", return_value=(200, {"full_name": "o/r", "default_branch": "main"}))
    def test_existing_repo(self, mock_get_json):
        repo = GitHubClient(token="t").get_repo("o/r")
        assert repo["default_branch"] == "main"
        args, kwargs = mock_get_json.call_args
        assert args[0] == "https://api.github.com/repos/o/r"
        assert kwargs["headers"]["Authorization"] == "token t"

    @patch("repository.github.get_json", return_value=(500, None))
    def test_server_error(self, _get_json):
        with pytest.raises(RepositoryError):
            GitHubClient().get_repo("o/r")

    @patch("repository.github.safe_post")
    @patch("repository.github.get_json", return_value=(200, {"login": "org", "type": "Organization"}))
    def test_create_in_organization(self, _get_json, mock_post):
        mock_post.return_value = MagicMock(status_code=201, json=lambda: {"full_name": "org/Foo_jll.jl"})
        GitHubClient(token="t").create_repo("org/Foo_jll.jl")
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.github.com/orgs/org/repos"
        assert kwargs["json"] == {"name": "Foo_jll.jl", "license_template": "mit", "has_issues": False}

    @patch("repository.github.safe_post")
    @patch("repository.github.get_json", return_value=(200, {"login": "me", "type": "User"}))
    def test_create_for_user(self, _get_json, mock_post):
        mock_post.return_value = MagicMock(status_code=201, json=lambda: {})
        GitHubClient(token="t").create_repo("me/Foo_jll.jl")
        assert mock_post.call_args[0][0] == "https://api.github.com/user/repos"

    @patch("repository.github.safe_post")
    @patch("repository.github.get_json", return_value=(200, {"login": "me", "type": "User"}))
    def test_create_refused(self, _get_json, mock_post):
        mock_post.return_value = MagicMock(status_code=422, text="name already exists")
        with pytest.raises(RepositoryError):
            GitHubClient(token="t").create_repo("me/Foo_jll.jl")

    def test_create_requires_token(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with pytest.raises(RepositoryError):
            GitHubClient().create_repo("me/Foo_jll.jl")

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "envtoken")
        assert GitHubClient().token == "envtoken"


class TestEnsureRepo:
    """Repository creation, tolerating concurrent creation."""

    def test_existing_repo_not_created(self):
        client = MagicMock()
        client.get_repo.return_value = {"full_name": "o/r"}
        ensure_repo(client, "o/r")
        client.create_repo.assert_not_called()

    def test_missing_repo_created(self):
        client = MagicMock()
        client.get_repo.return_value = None
        ensure_repo(client, "o/r")
        client.create_repo.assert_called_once_with("o/r")

    def test_concurrent_creation_tolerated(self):
        client = MagicMock()
        client.get_repo.side_effect = [None, {"full_name": "o/r"}]
        client.create_repo.side_effect = RepositoryError("already exists")
        ensure_repo(client, "o/r")

    def test_creation_failure_reraised(self):
        client = MagicMock()
        client.get_repo.return_value = None
        client.create_repo.side_effect = RepositoryError("forbidden")
        with pytest.raises(RepositoryError, match="forbidden"):
            ensure_repo(client, "o/r")


class TestInitJllPackage:
    """Local checkout provisioning."""

    def _client(self):
        client = MagicMock()
        client.token = "secret-token"
        client.get_repo.return_value = {"full_name": "o/Foo_jll.jl", "default_branch": "main"}
        return client

    @patch("repository.provision.subprocess.run", return_value=_completed())
    def test_clone_when_missing(self, mock_run, tmp_path):
        code_dir = tmp_path / "Foo_jll"
        init_jll_package("Foo", str(code_dir), "o/Foo_jll.jl", client=self._client(), gh_username="me")
        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "git"
        assert "clone" in cmd
        assert cmd[-2:] == ["https://github.com/o/Foo_jll.jl.git", str(code_dir)]
        assert any(arg.startswith("http.extraHeader=Authorization: Basic ") for arg in cmd)
        assert not any("secret-token" in arg for arg in cmd)

    @patch("repository.provision.subprocess.run")
    def test_update_existing_checkout(self, mock_run, tmp_path):
        def fake_run(cmd, **kwargs):
            return _completed("feature\n" if "rev-parse" in cmd else "")

        mock_run.side_effect = fake_run
        init_jll_package("Foo", str(tmp_path), "o/Foo_jll.jl", client=self._client(), gh_username="me")
        commands = [call[0][0] for call in mock_run.call_args_list]
        assert "fetch" in commands[0]
        assert commands[1] == ["git", "reset", "--hard", "origin/main"]
        assert commands[-1] == ["git", "checkout", "-B", "main", "origin/main"]

    @patch("repository.provision.subprocess.run")
    def test_no_checkout_when_on_default_branch(self, mock_run, tmp_path):
        mock_run.side_effect = lambda cmd, **kwargs: _completed("main\n" if "rev-parse" in cmd else "")
        init_jll_package("Foo", str(tmp_path), "o/Foo_jll.jl", client=self._client(), gh_username="me")
        assert not any("checkout" in call[0][0] for call in mock_run.call_args_list)

    @patch("repository.provision.subprocess.run")
    def test_git_failure_raises(self, mock_run, tmp_path):
        mock_run.return_value = subprocess.CompletedProcess([], 128, stdout="", stderr="fatal: boom")
        with pytest.raises(RepositoryError, match="boom"):
            init_jll_package("Foo", str(tmp_path / "new"), "o/Foo_jll.jl", client=self._client(), gh_username="me")

    @patch("repository.provision.subprocess.run", return_value=_completed())
    def test_username_defaults_to_token_owner(self, _run, tmp_path):
        client = self._client()
        client.get_authenticated_login.return_value = "bot"
        init_jll_package("Foo", str(tmp_path / "new"), "o/Foo_jll.jl", client=client)
        client.get_authenticated_login.assert_called_once()
