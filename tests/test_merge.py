from pathlib import Path

import pytest
from pytest_check import check

from repo_synth.operations import MergeOperations, OutcomeKind, StateKind

from helpers import commit_file, git


@pytest.fixture
def operations(executor, tracker) -> MergeOperations:
    return MergeOperations(executor, tracker)


@pytest.fixture
def diverged(temp_git_repo: Path) -> Path:
    """feature and main both change a.txt; feature also adds f.txt."""
    commit_file(temp_git_repo, "a.txt", "base\n")
    git(temp_git_repo, "checkout", "-q", "-b", "feature")
    commit_file(temp_git_repo, "a.txt", "feature\n")
    commit_file(temp_git_repo, "f.txt", "feature only\n")
    git(temp_git_repo, "checkout", "-q", "main")
    commit_file(temp_git_repo, "a.txt", "main\n")
    return temp_git_repo


@pytest.fixture
def ahead(temp_git_repo: Path) -> Path:
    """feature is two commits ahead of main, nothing overlaps."""
    git(temp_git_repo, "checkout", "-q", "-b", "feature")
    commit_file(temp_git_repo, "f1.txt", "one\n")
    commit_file(temp_git_repo, "f2.txt", "two\n")
    git(temp_git_repo, "checkout", "-q", "main")
    return temp_git_repo


def parents(repo: Path) -> list[str]:
    return git(repo, "rev-list", "--parents", "-n", "1", "HEAD").split()[1:]


def test_merge_always_creates_merge_commit(ahead, operations):
    outcome = operations.merge_branch("feature")

    check.is_true(outcome.ok)
    check.equal(len(parents(ahead)), 2)
    check.is_true((ahead / "f2.txt").exists())


def test_merge_conflicts(diverged, operations, tracker):
    outcome = operations.merge_branch("feature")

    check.equal(outcome.kind, OutcomeKind.CONFLICTS)
    check.equal(outcome.conflicts, ("a.txt",))
    check.equal(tracker.state().kind, StateKind.MERGE_IN_PROGRESS)


def test_merge_refused_while_merge_in_progress(diverged, operations):
    operations.merge_branch("feature")

    for outcome in (
        operations.merge_branch("feature"),
        operations.squash_merge("feature"),
        operations.cherry_pick("feature"),
        operations.rebase("feature"),
        operations.fast_forward("feature"),
    ):
        check.equal(outcome.kind, OutcomeKind.FAILURE)
        check.is_in("merge of feature is in progress", outcome.message)


def test_merge_unknown_branch_fails(temp_git_repo, operations):
    outcome = operations.merge_branch("nope")
    check.equal(outcome.kind, OutcomeKind.FAILURE)
    check.is_true(outcome.message)


def test_unrelated_histories(temp_git_repo, operations):
    git(temp_git_repo, "checkout", "-q", "--orphan", "other")
    git(temp_git_repo, "rm", "-rfq", ".")
    commit_file(temp_git_repo, "other.txt", "unrelated\n")
    git(temp_git_repo, "checkout", "-q", "main")

    refused = operations.merge_branch("other")
    check.equal(refused.kind, OutcomeKind.UNRELATED_HISTORIES)

    allowed = operations.merge_branch("other", allow_unrelated_histories=True)
    check.is_true(allowed.ok)
    check.is_true((temp_git_repo / "other.txt").exists())


def test_abort_merge(diverged, operations, tracker):
    check.equal(operations.abort_merge().kind, OutcomeKind.FAILURE)

    operations.merge_branch("feature")
    check.is_true(operations.abort_merge().ok)
    check.equal(tracker.state().kind, StateKind.CLEAN)
    check.equal((diverged / "a.txt").read_text(), "main\n")


def test_complete_merge(diverged, operations, tracker):
    operations.merge_branch("feature")
    check.equal(operations.complete_merge().kind, OutcomeKind.CONFLICTS)

    tracker.resolve_with_theirs("a.txt")
    check.is_true(operations.complete_merge("Merge feature").ok)
    check.equal(len(parents(diverged)), 2)
    check.equal(tracker.state().kind, StateKind.CLEAN)


def test_fast_forward(ahead, operations):
    outcome = operations.fast_forward("feature")

    check.is_true(outcome.ok)
    check.equal(git(ahead, "rev-parse", "main"), git(ahead, "rev-parse", "feature"))


def test_fast_forward_diverged(diverged, operations):
    outcome = operations.fast_forward("feature")

    check.equal(outcome.kind, OutcomeKind.FAILURE)
    check.is_in("diverged", outcome.message)


def test_squash_merge(ahead, operations, tracker):
    head = git(ahead, "rev-parse", "HEAD")

    outcome = operations.squash_merge("feature")

    check.is_true(outcome.ok)
    check.equal(git(ahead, "rev-parse", "HEAD"), head)
    check.equal(
        sorted(git(ahead, "diff", "--cached", "--name-only").split()),
        ["f1.txt", "f2.txt"],
    )
    check.is_false(tracker.is_merge_in_progress())


def test_squash_merge_conflicts(diverged, operations):
    outcome = operations.squash_merge("feature")
    check.equal(outcome.kind, OutcomeKind.CONFLICTS)
    check.equal(outcome.conflicts, ("a.txt",))


def test_cherry_pick(diverged, operations):
    f_commit = git(diverged, "rev-parse", "feature")

    outcome = operations.cherry_pick(f_commit)

    check.is_true(outcome.ok)
    check.equal((diverged / "f.txt").read_text(), "feature only\n")


def test_cherry_pick_conflict(diverged, operations):
    outcome = operations.cherry_pick(git(diverged, "rev-parse", "feature~1"))

    check.equal(outcome.kind, OutcomeKind.CONFLICTS)
    check.equal(outcome.conflicts, ("a.txt",))


def test_rebase_without_conflicts(ahead, operations):
    git(ahead, "checkout", "-q", "main")
    commit_file(ahead, "m.txt", "main\n")
    git(ahead, "checkout", "-q", "feature")

    outcome = operations.rebase("main")

    check.is_true(outcome.ok)
    check.equal(git(ahead, "merge-base", "main", "feature"), git(ahead, "rev-parse", "main"))


def test_rebase_unknown_branch(temp_git_repo, operations):
    outcome = operations.rebase("nope")
    check.equal(outcome.kind, OutcomeKind.FAILURE)
    check.is_in("not found", outcome.message)


def test_rebase_conflict_then_continue(diverged, operations, tracker):
    git(diverged, "checkout", "-q", "feature")

    outcome = operations.rebase("main")
    check.equal(outcome.kind, OutcomeKind.CONFLICTS)
    check.equal(outcome.conflicts, ("a.txt",))
    check.equal(tracker.state().kind, StateKind.REBASE_IN_PROGRESS)

    (diverged / "a.txt").write_text("both\n")
    tracker.mark_resolved("a.txt")
    check.is_true(operations.continue_rebase().ok)
    check.equal(tracker.state().kind, StateKind.CLEAN)
    check.equal((diverged / "a.txt").read_text(), "both\n")


def test_skip_rebase_commit(diverged, operations, tracker):
    git(diverged, "checkout", "-q", "feature")
    operations.rebase("main")

    check.is_true(operations.skip_rebase_commit().ok)
    check.equal(tracker.state().kind, StateKind.CLEAN)
    check.equal((diverged / "a.txt").read_text(), "main\n")
    check.is_true((diverged / "f.txt").exists())


def test_abort_rebase(diverged, operations, tracker):
    check.equal(operations.abort_rebase().kind, OutcomeKind.FAILURE)
    check.equal(operations.continue_rebase().kind, OutcomeKind.FAILURE)
    check.equal(operations.skip_rebase_commit().kind, OutcomeKind.FAILURE)

    git(diverged, "checkout", "-q", "feature")
    operations.rebase("main")
    check.is_true(operations.abort_rebase().ok)
    check.equal(tracker.state().kind, StateKind.CLEAN)
    check.equal(git(diverged, "rev-parse", "--abbrev-ref", "HEAD"), "feature")
