import subprocess
from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from repo_synth.operations import (
    ConflictStateTracker,
    GitExecutor,
    RepositoryHandle,
    StashMergeEngine,
)

from helpers import git


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with a main branch."""
    subprocess.run(["git", "init"], cwd=tmp_path, check=True)
    subprocess.run(
        ["git", "config", "user.name", "Test User"], cwd=tmp_path, check=True
    )
    subprocess.run(
        ["git", "config", "user.email", "test@example.com"], cwd=tmp_path, check=True
    )
    subprocess.run(
        ["git", "config", "rerere.enabled", "false"], cwd=tmp_path, check=True
    )
    subprocess.run(
        ["git", "config", "commit.gpgsign", "false"], cwd=tmp_path, check=True
    )

    (tmp_path / "README.md").write_text("# Test Repo\n")
    subprocess.run(["git", "add", "."], cwd=tmp_path, check=True)
    subprocess.run(["git", "commit", "-m", "Initial commit"], cwd=tmp_path, check=True)

    cur = subprocess.run(
        ["git", "symbolic-ref", "--short", "HEAD"],
        cwd=tmp_path,
        capture_output=True,
        text=True,
        check=True,
    ).stdout.strip()
    if cur != "main":
        subprocess.run(["git", "branch", "-m", cur, "main"], cwd=tmp_path, check=True)

    yield tmp_path


@pytest.fixture
def temp_git_repo_with_remotes(temp_git_repo: Path) -> Path:
    """A repo with an ``origin`` on GitHub and an ``upstream`` on Azure DevOps.

    Remote-tracking refs are written directly, nothing is fetched.
    """
    head = git(temp_git_repo, "rev-parse", "HEAD")
    git(temp_git_repo, "remote", "add", "origin", "https://github.com/acme/widgets.git")
    git(
        temp_git_repo,
        "remote",
        "add",
        "upstream",
        "https://dev.azure.com/acme/widgets/_git/widgets",
    )
    git(temp_git_repo, "update-ref", "refs/remotes/origin/main", head)
    git(temp_git_repo, "update-ref", "refs/remotes/upstream/main", head)
    return temp_git_repo


@pytest.fixture
def handle(temp_git_repo: Path) -> Generator[RepositoryHandle, None, None]:
    with RepositoryHandle.open(temp_git_repo) as repository:
        yield repository


@pytest.fixture
def executor(temp_git_repo: Path) -> GitExecutor:
    return GitExecutor(temp_git_repo)


@pytest.fixture
def tracker(executor: GitExecutor, handle: RepositoryHandle) -> ConflictStateTracker:
    return ConflictStateTracker(executor, handle)


@pytest.fixture
def engine(executor: GitExecutor, tracker: ConflictStateTracker) -> StashMergeEngine:
    return StashMergeEngine(executor, tracker)


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()
