import pytest
from pytest_check import check

from repo_synth.error_mapper import ErrorKind
from repo_synth.errors import BackendFailure
from repo_synth.operations import GitExecutor
from repo_synth.operations.executor import MISSING_PROGRAM_EXIT_CODE


def test_run_success(fake_process):
    fake_process.register_subprocess(["git", "status"], stdout="On branch main\n")

    result = GitExecutor().run(["status"])

    check.equal(result.returncode, 0)
    check.is_in("On branch main", result.stdout)


def test_run_failure_is_classified(fake_process):
    fake_process.register_subprocess(
        ["git", "push"],
        returncode=128,
        stderr="fatal: Authentication failed for 'https://github.com/a/b.git/'\n",
    )

    with pytest.raises(BackendFailure) as excinfo:
        GitExecutor().run(["push"])

    error = excinfo.value
    check.equal(error.kind, ErrorKind.AUTHENTICATION)
    check.equal(error.returncode, 128)
    check.is_in("Authentication failed for", error.stderr)
    check.equal(str(error), "Authentication failed. Check your credentials.")
    check.equal(error.exit_code, 4)


def test_run_failure_with_unknown_text(fake_process):
    fake_process.register_subprocess(
        ["git", "frobnicate"], returncode=1, stderr="git: 'frobnicate' is not a git command.\n"
    )

    with pytest.raises(BackendFailure) as excinfo:
        GitExecutor().run(["frobnicate"])

    check.is_none(excinfo.value.kind)
    check.equal(str(excinfo.value), "git: 'frobnicate' is not a git command.")


def test_run_without_check_returns_result(fake_process):
    fake_process.register_subprocess(["git", "merge", "x"], returncode=1, stderr="boom\n")

    result = GitExecutor().run(["merge", "x"], check=False)

    check.equal(result.returncode, 1)
    check.equal(result.stderr, "boom\n")


def test_get_current_branch(fake_process):
    fake_process.register_subprocess(
        ["git", "rev-parse", "--abbrev-ref", "HEAD"], stdout="main\n"
    )
    assert GitExecutor().get_current_branch() == "main"


def test_has_uncommitted_changes(fake_process):
    fake_process.register_subprocess(["git", "status", "--porcelain"], stdout="?? new.txt\n")
    fake_process.register_subprocess(
        ["git", "status", "--porcelain", "--untracked-files=no"], stdout=""
    )

    executor = GitExecutor()
    check.is_true(executor.has_uncommitted_changes())
    check.is_false(executor.has_uncommitted_changes(include_untracked=False))


def test_branch_exists(fake_process):
    fake_process.register_subprocess(
        ["git", "rev-parse", "--verify", "--quiet", "refs/heads/main"], stdout="abc\n"
    )
    fake_process.register_subprocess(
        ["git", "rev-parse", "--verify", "--quiet", "refs/heads/gone"], returncode=1
    )

    executor = GitExecutor()
    check.is_true(executor.branch_exists("main"))
    check.is_false(executor.branch_exists("gone"))


def test_rev_parse(fake_process):
    sha = "a" * 40
    fake_process.register_subprocess(
        ["git", "rev-parse", "--verify", "--quiet", "HEAD"], stdout=f"{sha}\n"
    )
    fake_process.register_subprocess(
        ["git", "rev-parse", "--verify", "--quiet", "stash@{0}^3"], returncode=1
    )

    executor = GitExecutor()
    check.equal(executor.rev_parse("HEAD"), sha)
    check.is_none(executor.rev_parse("stash@{0}^3"))


def test_get_config(fake_process):
    fake_process.register_subprocess(
        ["git", "config", "--get", "synth.pageSize"], stdout="20\n"
    )
    fake_process.register_subprocess(
        ["git", "config", "--get", "synth.patchFuzz"], returncode=1
    )

    executor = GitExecutor()
    check.equal(executor.get_config("synth.pageSize"), "20")
    check.is_none(executor.get_config("synth.patchFuzz"))


def test_git_dir(temp_git_repo):
    assert GitExecutor(temp_git_repo).git_dir() == (temp_git_repo / ".git").resolve()


def test_execute_missing_program(tmp_path):
    result = GitExecutor(tmp_path).execute(["no-such-program-anywhere", "--version"])

    check.equal(result.returncode, MISSING_PROGRAM_EXIT_CODE)
    check.is_in("no-such-program-anywhere", result.stderr)
    check.equal(result.stdout, "")


def test_execute_pipes_stdin(tmp_path):
    result = GitExecutor(tmp_path).execute(["cat"], input="hello\n")
    assert result.stdout == "hello\n"


def test_locale_is_forced(tmp_path, monkeypatch):
    monkeypatch.setenv("LC_ALL", "de_DE.UTF-8")

    result = GitExecutor(tmp_path).execute(
        ["sh", "-c", 'printf "%s %s" "$LC_ALL" "$GIT_TERMINAL_PROMPT"']
    )

    assert result.stdout == "C 0"
