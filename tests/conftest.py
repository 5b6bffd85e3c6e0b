"""Test fixtures for git-brief tests."""
import os
import shutil
import subprocess
from datetime import datetime, timezone

import pytest

from git_brief.repository import Commit

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def mock_repo_root():
    """Provide a mock repository root path."""
    return "/home/user/test-repo"


@pytest.fixture
def make_commit():
    """Factory for Commit records."""
    def _make(
        commit_hash="a" * 40,
        message="Fix bug\n\nLonger body\n",
        author="Jane Doe",
        authored_at=BASE_TIME,
        parents=(),
    ):
        return Commit(
            hash=commit_hash,
            tree="f" * 40,
            parents=tuple(parents),
            author_name=author,
            authored_at=authored_at,
            message=message,
        )
    return _make


@pytest.fixture
def sample_log_output():
    """Provide ``git log`` output in the commit record format."""
    return (
        "c" * 40 + "\x1f" + "1" * 40 + "\x1f" + "b" * 40 + "\x1fJane Doe\x1f1704067200\x1f"
        "Add feature\n\nWith a body\n\x1e\n"
        + "b" * 40 + "\x1f" + "2" * 40 + "\x1f\x1fJohn Roe\x1f1703980800\x1fInitial commit\n\x1e\n"
    )


class GitRepo:
    """A throwaway repository driven through the git executable."""

    def __init__(self, path):
        self.path = str(path)
        self._tick = 0

    def git(self, *args, env=None):
        result = subprocess.run(
            ["git", *args], cwd=self.path, check=True, capture_output=True, text=True, env=env
        )
        return result.stdout.strip()

    def write(self, name, content):
        full = os.path.join(self.path, name)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "w") as f:
            f.write(content)

    def commit(self, message, files=None):
        for name, content in (files or {}).items():
            self.write(name, content)
        self.git("add", "-A")
        self._tick += 1
        date = f"{1704067200 + self._tick * 3600} +0000"
        env = dict(os.environ, GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date)
        self.git("commit", "--allow-empty", "-m", message, env=env)
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path, monkeypatch):
    """Provide an empty repository whose initial branch is ``main``."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Jane Doe")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "jane@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Jane Doe")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "jane@example.com")

    path = tmp_path / "repo"
    path.mkdir()
    repo = GitRepo(path)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    repo.git("config", "commit.gpgsign", "false")
    return repo
