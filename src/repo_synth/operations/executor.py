"""Run git and helper programs against a working directory."""

import logging
import os
import subprocess
from pathlib import Path

from repo_synth.error_mapper import classify_error, map_error
from repo_synth.errors import BackendFailure

logger = logging.getLogger(__name__)

# Forced on every child process so error text is always the untranslated
# git wording and nothing blocks on a credential prompt.
STABLE_ENV = {
    "LC_ALL": "C",
    "LANGUAGE": "C",
    "GIT_TERMINAL_PROMPT": "0",
    "GCM_INTERACTIVE": "never",
}

MISSING_PROGRAM_EXIT_CODE = 127


class GitExecutor:
    """Execute git commands with a stable locale and proper error handling."""

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(STABLE_ENV)
        return env

    def execute(
        self,
        argv: list[str],
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run any program, always capturing output.

        A program that cannot be found yields exit code 127 and a
        descriptive stderr rather than an exception.
        """
        logger.debug("Running %s in %s", " ".join(argv), self.cwd or os.getcwd())
        try:
            return subprocess.run(
                argv,
                cwd=self.cwd,
                input=input,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._env(),
            )
        except FileNotFoundError:
            return subprocess.CompletedProcess(
                argv,
                MISSING_PROGRAM_EXIT_CODE,
                stdout="",
                stderr=f"Could not find the '{argv[0]}' program. Is it installed?",
            )

    def run(
        self,
        args: list[str],
        check: bool = True,
        capture: bool = True,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command and always return a CompletedProcess.

        With ``check`` a non-zero exit raises ``BackendFailure`` carrying
        the classified error kind.
        """
        cmd = ["git"] + args
        logger.debug("Running %s", " ".join(cmd))
        result = subprocess.run(
            cmd,
            cwd=self.cwd,
            input=input,
            capture_output=capture,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=self._env(),
        )

        if check and result.returncode != 0:
            stderr = (result.stderr or result.stdout or "").strip()
            raise BackendFailure(
                map_error(stderr, f"git {args[0]}" if args else "git"),
                kind=classify_error(stderr),
                stderr=stderr,
                returncode=result.returncode,
            )
        return result

    def get_current_branch(self) -> str:
        """Get current branch name, ``HEAD`` when detached."""
        result = self.run(["rev-parse", "--abbrev-ref", "HEAD"])
        return result.stdout.strip()

    def has_uncommitted_changes(self, include_untracked: bool = True) -> bool:
        """Check if the working tree or index differ from HEAD."""
        args = ["status", "--porcelain"]
        if not include_untracked:
            args.append("--untracked-files=no")
        result = self.run(args, check=False)
        return bool(result.stdout.strip())

    def branch_exists(self, branch: str) -> bool:
        """Check if a local branch exists."""
        result = self.run(
            ["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"],
            check=False,
        )
        return result.returncode == 0

    def rev_parse(self, ref: str) -> str | None:
        """Resolve a ref to a full object id, ``None`` if it does not exist."""
        result = self.run(["rev-parse", "--verify", "--quiet", ref], check=False)
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return result.stdout.strip()

    def git_dir(self) -> Path:
        """Absolute path of the repository's git directory."""
        result = self.run(["rev-parse", "--absolute-git-dir"])
        return Path(result.stdout.strip())

    def get_config(self, key: str) -> str | None:
        """Get a git config value, ``None`` when unset."""
        result = self.run(["config", "--get", key], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()
