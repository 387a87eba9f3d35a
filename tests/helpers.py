import shutil
import subprocess
from pathlib import Path

import pytest

requires_patch = pytest.mark.skipif(
    shutil.which("patch") is None, reason="the patch program is not installed"
)


def git(repo: Path, *args: str) -> str:
    """Run git in ``repo`` and return its stripped stdout."""
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> str:
    """Write ``name``, commit it and return the new commit's sha."""
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message or f"Update {name}")
    return git(repo, "rev-parse", "HEAD")
