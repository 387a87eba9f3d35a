"""Merge-like operations, all reporting a ``MergeOutcome``."""

import logging
import subprocess

from repo_synth.error_mapper import (
    is_conflict_error,
    is_fast_forward_not_possible,
    is_unrelated_histories_error,
    map_error,
)
from repo_synth.operations.conflicts import ConflictStateTracker
from repo_synth.operations.executor import GitExecutor
from repo_synth.operations.models import MergeOutcome, StateKind

logger = logging.getLogger(__name__)

# keeps ``rebase --continue`` from opening an editor for the message
_NO_EDITOR = ["-c", "core.editor=true"]


def _message(result: subprocess.CompletedProcess[str]) -> str:
    return ((result.stderr or "").strip() or (result.stdout or "").strip())


class MergeOperations:
    """Merge, fast-forward, squash, cherry-pick and rebase the current branch."""

    def __init__(self, executor: GitExecutor, tracker: ConflictStateTracker):
        self.executor = executor
        self.tracker = tracker

    def _blocked(self, operation: str) -> MergeOutcome | None:
        """A failure outcome when another merge or rebase is unfinished."""
        state = self.tracker.state()
        if state.kind is StateKind.MERGE_IN_PROGRESS:
            return MergeOutcome.failure(
                f"Cannot {operation}: a merge of {state.incoming_branch} is in progress. "
                "Complete or abort it first."
            )
        if state.kind is StateKind.REBASE_IN_PROGRESS:
            return MergeOutcome.failure(
                f"Cannot {operation}: a rebase is in progress. Continue or abort it first."
            )
        return None

    def _conflict_outcome(self, message: str) -> MergeOutcome:
        return MergeOutcome.conflicted(self.tracker.conflict_paths(), message)

    def merge_branch(self, branch: str, allow_unrelated_histories: bool = False) -> MergeOutcome:
        """Merge ``branch`` into the current branch, always with a merge commit."""
        blocked = self._blocked("merge")
        if blocked:
            return blocked

        args = ["merge", "--no-ff", "--no-edit", branch]
        if allow_unrelated_histories:
            args.append("--allow-unrelated-histories")

        logger.info("Merging %s (allow_unrelated_histories=%s)", branch, allow_unrelated_histories)
        result = self.executor.run(args, check=False)
        logger.debug("merge exited %d: %s %s", result.returncode, result.stdout, result.stderr)
        if result.returncode == 0:
            return MergeOutcome.success()

        if is_unrelated_histories_error(result.stderr):
            return MergeOutcome.unrelated_histories()
        if is_conflict_error(result.stdout, result.stderr):
            return self._conflict_outcome("Merge resulted in conflicts that need to be resolved.")
        return MergeOutcome.failure(map_error(result.stderr, "git merge"))

    def fast_forward(self, target: str) -> MergeOutcome:
        """Move the current branch up to ``target`` without a merge commit."""
        blocked = self._blocked("fast-forward")
        if blocked:
            return blocked

        logger.info("Fast-forwarding to %s", target)
        result = self.executor.run(["merge", "--ff-only", target], check=False)
        if result.returncode == 0:
            return MergeOutcome.success()

        if is_fast_forward_not_possible(result.stdout, result.stderr):
            return MergeOutcome.failure(
                "Cannot fast-forward: branches have diverged. Use merge instead."
            )
        return MergeOutcome.failure(map_error(_message(result), "git merge --ff-only"))

    def squash_merge(self, branch: str) -> MergeOutcome:
        """Stage the combined changes of ``branch`` without committing."""
        blocked = self._blocked("squash merge")
        if blocked:
            return blocked

        result = self.executor.run(["merge", "--squash", branch], check=False)
        if result.returncode == 0:
            return MergeOutcome.success()
        if is_conflict_error(result.stdout, result.stderr):
            return self._conflict_outcome("Squash merge resulted in conflicts.")
        return MergeOutcome.failure(map_error(_message(result), "git merge --squash"))

    def complete_merge(self, message: str | None = None) -> MergeOutcome:
        """Commit a merge whose conflicts are resolved."""
        conflicts = self.tracker.conflict_paths()
        if conflicts:
            return MergeOutcome.conflicted(conflicts, "Resolve all conflicts before committing.")

        args = ["commit", "--no-edit"] if message is None else ["commit", "-m", message]
        result = self.executor.run(args, check=False)
        if result.returncode != 0:
            return MergeOutcome.failure(map_error(_message(result), "git commit"))
        return MergeOutcome.success()

    def cherry_pick(self, sha: str) -> MergeOutcome:
        blocked = self._blocked("cherry-pick")
        if blocked:
            return blocked

        result = self.executor.run(["cherry-pick", sha], check=False)
        if result.returncode == 0:
            return MergeOutcome.success()

        conflicts = self.tracker.conflict_paths()
        if conflicts:
            return MergeOutcome.conflicted(conflicts, _message(result) or None)
        return MergeOutcome.failure(map_error(_message(result), "git cherry-pick"))

    def rebase(self, onto: str) -> MergeOutcome:
        """Replay the current branch onto the branch ``onto``."""
        blocked = self._blocked("rebase")
        if blocked:
            return blocked
        if self.executor.rev_parse(onto) is None:
            return MergeOutcome.failure(f"Branch '{onto}' not found.")

        logger.info("Rebasing onto %s", onto)
        return self._rebase_step(["rebase", onto], "git rebase")

    def continue_rebase(self) -> MergeOutcome:
        if not self.tracker.is_rebase_in_progress():
            return MergeOutcome.failure("No rebase in progress.")
        return self._rebase_step(_NO_EDITOR + ["rebase", "--continue"], "git rebase --continue")

    def skip_rebase_commit(self) -> MergeOutcome:
        if not self.tracker.is_rebase_in_progress():
            return MergeOutcome.failure("No rebase in progress.")
        return self._rebase_step(["rebase", "--skip"], "git rebase --skip")

    def _rebase_step(self, args: list[str], operation: str) -> MergeOutcome:
        result = self.executor.run(args, check=False)
        if result.returncode == 0:
            return MergeOutcome.success()

        conflicts = self.tracker.conflict_paths()
        if conflicts or (
            self.tracker.is_rebase_in_progress()
            and is_conflict_error(result.stdout, result.stderr)
        ):
            return MergeOutcome.conflicted(conflicts, "Rebase stopped on conflicts.")
        return MergeOutcome.failure(map_error(_message(result), operation))

    def abort_merge(self) -> MergeOutcome:
        if not self.tracker.is_merge_in_progress():
            return MergeOutcome.failure("No merge in progress.")
        result = self.executor.run(["merge", "--abort"], check=False)
        if result.returncode != 0:
            return MergeOutcome.failure(map_error(_message(result), "git merge --abort"))
        return MergeOutcome.success()

    def abort_rebase(self) -> MergeOutcome:
        if not self.tracker.is_rebase_in_progress():
            return MergeOutcome.failure("No rebase in progress.")
        result = self.executor.run(["rebase", "--abort"], check=False)
        if result.returncode != 0:
            return MergeOutcome.failure(map_error(_message(result), "git rebase --abort"))
        return MergeOutcome.success()
