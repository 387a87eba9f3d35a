"""Reapply stash entries onto a working tree that may have its own changes.

A pop escalates through up to three phases:

``DIRECT``
    Clean working tree: plain ``git stash pop``.
``PATCH_ATTEMPT``
    Local changes present: render the stash as a patch and apply it with
    the fuzzy ``patch`` tool. Reject files are always removed afterwards.
``COMMIT_RECONCILE``
    Hunks were rejected: set local changes aside in a temporary stash,
    apply the target onto the clean tree, stage it, then apply the
    temporary stash on top so git produces real conflict markers.
``RESTORED``
    The reconcile step failed without conflicts: the tree is reset and
    the local changes come back out of the temporary stash.

A stash entry is only dropped once its content is in the working tree, and
the temporary entry survives until conflicts are resolved.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from repo_synth.error_mapper import map_error
from repo_synth.errors import DataLossRiskError, NotFoundError, SynthError
from repo_synth.operations.config import SynthConfig
from repo_synth.operations.conflicts import ConflictStateTracker
from repo_synth.operations.executor import MISSING_PROGRAM_EXIT_CODE, GitExecutor
from repo_synth.operations.models import (
    MergeOutcome,
    OutcomeKind,
    StashEntry,
    TempStashHandle,
)
from repo_synth.operations.parsers import (
    collect_reject_files,
    extract_branch_from_stash_message,
    has_patch_rejections,
)

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_LIST_FORMAT = "%H%x1f%gs%x1f%an%x1f%at"


class StashPhase(Enum):
    DIRECT = "direct"
    PATCH_ATTEMPT = "patch-attempt"
    COMMIT_RECONCILE = "commit-reconcile"
    RESTORED = "restored"


@dataclass(frozen=True, slots=True)
class PatchReport:
    """What the ``patch`` tool made of a stash patch."""

    exit_code: int
    rejected: bool
    output: str

    @property
    def applied_cleanly(self) -> bool:
        return self.exit_code == 0 and not self.rejected


def entry_phase(has_local_changes: bool) -> StashPhase:
    return StashPhase.PATCH_ATTEMPT if has_local_changes else StashPhase.DIRECT


def phase_after_patch(report: PatchReport) -> StashPhase | None:
    """``COMMIT_RECONCILE`` on rejected hunks, ``None`` when the pop ends here."""
    if report.rejected:
        return StashPhase.COMMIT_RECONCILE
    return None


def phase_after_reconcile(temp_applied: bool, conflicts: list[str]) -> StashPhase | None:
    """``RESTORED`` when the local changes failed to apply without conflicts."""
    if conflicts or temp_applied:
        return None
    return StashPhase.RESTORED


def extra_entries(phase: StashPhase) -> int:
    """Stash entries the engine has pushed on top of the list while in ``phase``."""
    return 1 if phase is StashPhase.COMMIT_RECONCILE else 0


def target_position(original_index: int, phase: StashPhase) -> int:
    """Where the target entry sits while in ``phase``."""
    return original_index + extra_entries(phase)


def stash_ref(index: int) -> str:
    return f"stash@{{{index}}}"


class StashMergeEngine:
    """List, push, drop and pop stash entries of one repository.

    ``observer`` is told about every phase entered during a pop.
    """

    def __init__(
        self,
        executor: GitExecutor,
        tracker: ConflictStateTracker,
        config: SynthConfig | None = None,
        observer: Callable[[StashPhase], None] | None = None,
    ):
        self.executor = executor
        self.tracker = tracker
        self.config = config or SynthConfig()
        self.observer = observer

    @property
    def working_dir(self) -> Path:
        return self.tracker.repository.working_dir

    def list_stashes(self) -> list[StashEntry]:
        result = self.executor.run(["stash", "list", f"--format={_LIST_FORMAT}"], check=False)
        if result.returncode != 0:
            return []

        entries = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            sha, message, author, timestamp = (line.split(_FIELD_SEP) + ["", "", ""])[:4]
            entries.append(
                StashEntry(
                    index=len(entries),
                    sha=sha,
                    message=message,
                    branch_name=extract_branch_from_stash_message(message),
                    author=author,
                    created_at=datetime.fromtimestamp(int(timestamp or 0), tz=timezone.utc),
                )
            )
        return entries

    def stash_push(self, message: str | None = None, staged_only: bool = False) -> bool:
        """Stash local changes. Returns True if an entry was created."""
        before = self._top_sha()
        args = ["stash", "push"]
        if staged_only:
            args.append("--staged")
        if message:
            args += ["-m", message]
        result = self.executor.run(args)
        if "no local changes" in (result.stdout or "").lower():
            return False
        return self._top_sha() != before

    def drop_stash(self, index: int) -> None:
        if not 0 <= index < len(self.list_stashes()):
            raise NotFoundError(f"No stash entry at index {index}")
        self.executor.run(["stash", "drop", stash_ref(index)])

    def cleanup_temp_stash(self, handle: TempStashHandle) -> bool:
        """Drop the temporary entry of a conflicting pop. False if it is gone."""
        index = self._index_of(handle.sha)
        if index is None:
            return False
        try:
            self.executor.run(["stash", "drop", stash_ref(index)])
        except SynthError as e:
            logger.warning("Failed to drop temporary stash %s: %s", handle.sha[:7], e)
            return False
        return True

    def pop(self, index: int = 0) -> MergeOutcome:
        """Reapply stash entry ``index`` onto the working tree and drop it."""
        entries = self.list_stashes()
        if not 0 <= index < len(entries):
            return MergeOutcome.failure(f"No stash entry at index {index}")
        target = entries[index]

        phase = entry_phase(self.executor.has_uncommitted_changes(include_untracked=False))
        self._enter(phase, target)
        if phase is StashPhase.DIRECT:
            return self._pop_direct(target)
        return self._pop_with_patch(target)

    def _enter(self, phase: StashPhase, target: StashEntry) -> None:
        logger.info("Stash pop of %s: %s", target.reference, phase.value)
        if self.observer is not None:
            self.observer(phase)

    def _pop_direct(self, target: StashEntry) -> MergeOutcome:
        # git keeps the entry itself when the pop conflicts
        result = self.executor.run(["stash", "pop", target.reference], check=False)
        conflicts = self.tracker.conflict_paths()

        if result.returncode == 0 and not conflicts:
            return MergeOutcome.success()
        if conflicts:
            return MergeOutcome.conflicted(conflicts, "Stash pop resulted in merge conflicts")

        message = (result.stderr or result.stdout or "").strip()
        return MergeOutcome.failure(
            message or f"git stash pop failed with exit code {result.returncode}"
        )

    def _render_patch(self, target: StashEntry) -> str | None:
        args = [
            "stash",
            "show",
            "-p",
            "--no-color",
            "--no-ext-diff",
            "--src-prefix=a/",
            "--dst-prefix=b/",
        ]
        # the third parent holds untracked files stashed with -u
        if self.executor.rev_parse(f"{target.reference}^3") is not None:
            args.append("--include-untracked")
        args.append(target.reference)

        result = self.executor.run(args, check=False)
        if result.returncode != 0 or not result.stdout.strip():
            logger.warning("Failed to render %s as a patch: %s", target.reference, result.stderr)
            return None
        return result.stdout

    def _apply_patch(self, patch: str, dry_run: bool = False) -> PatchReport:
        argv = [
            self.config.patch_program,
            "-p1",
            f"--fuzz={self.config.patch_fuzz}",
            "--forward",
            "--batch",
            "--no-backup-if-mismatch",
        ]
        if dry_run:
            argv.append("--dry-run")

        result = self.executor.execute(argv, input=patch)
        output = "\n".join(part for part in (result.stdout, result.stderr) if part)
        logger.debug("patch%s exited %d: %s", " --dry-run" if dry_run else "", result.returncode, output)
        return PatchReport(
            exit_code=result.returncode,
            rejected=has_patch_rejections(output),
            output=output.strip(),
        )

    def _reject_files(self) -> set[Path]:
        root = self.working_dir
        return {
            path
            for path in root.rglob("*.rej")
            if ".git" not in path.relative_to(root).parts
        }

    def _remove_new_reject_files(self, before: set[Path], report: PatchReport) -> None:
        leftovers = self._reject_files() - before
        leftovers.update(
            self.working_dir / name
            for name in collect_reject_files(report.output)
            if (self.working_dir / name) not in before
        )
        for path in leftovers:
            try:
                path.unlink(missing_ok=True)
                logger.debug("Removed reject file %s", path)
            except OSError as e:
                logger.warning("Failed to remove reject file %s: %s", path, e)

    def _pop_with_patch(self, target: StashEntry) -> MergeOutcome:
        patch = self._render_patch(target)
        if patch is None:
            return MergeOutcome.failure(f"Failed to get a patch for {target.reference}")

        before = self._reject_files()
        report = self._apply_patch(patch, dry_run=True)
        if report.exit_code == MISSING_PROGRAM_EXIT_CODE:
            return MergeOutcome.failure(report.output)
        if report.applied_cleanly:
            report = self._apply_patch(patch)
        self._remove_new_reject_files(before, report)

        next_phase = phase_after_patch(report)
        if next_phase is StashPhase.COMMIT_RECONCILE:
            self._enter(next_phase, target)
            return self._reconcile(target)

        if not report.applied_cleanly:
            return MergeOutcome.failure(
                f"Could not apply {target.reference} as a patch: {report.output}"
            )

        # content is in the working tree now; a stale entry is harmless
        try:
            self._drop_verified(target.sha, target.index)
        except SynthError as e:
            logger.warning("Stash applied but %s could not be dropped: %s", target.reference, e)
        return MergeOutcome.success()

    def _reconcile(self, target: StashEntry) -> MergeOutcome:
        message = self.config.temp_stash_message
        top_before = self._top_sha()

        push = self.executor.run(["stash", "push", "-m", message], check=False)
        temp_sha = self._top_sha()
        if push.returncode != 0 or temp_sha is None or temp_sha == top_before:
            return MergeOutcome.failure(
                "Stash conflicts with your local changes and they could not be set aside: "
                + map_error(push.stderr, "git stash push")
            )
        handle = TempStashHandle(sha=temp_sha, message=message)
        logger.info("Local changes held in temporary stash %s", temp_sha[:7])

        try:
            target_index = self._locate(
                target.sha, target_position(target.index, StashPhase.COMMIT_RECONCILE)
            )
            applied = self.executor.run(["stash", "apply", stash_ref(target_index)], check=False)
            if applied.returncode != 0:
                return self._restore(
                    handle, target, map_error(applied.stderr, f"git stash apply {target.reference}")
                )
            # tracked paths only: untracked files of the user must survive a reset --hard
            self.executor.run(["add", "-u"])

            temp_index = self._locate(handle.sha, 0)
            temp_applied = self.executor.run(["stash", "apply", stash_ref(temp_index)], check=False)
            conflicts = self.tracker.conflict_paths()
        except SynthError as e:
            logger.error("Commit-based stash merge failed: %s", e)
            return self._restore(handle, target, str(e))

        next_phase = phase_after_reconcile(temp_applied.returncode == 0, conflicts)
        if next_phase is StashPhase.RESTORED:
            return self._restore(
                handle,
                target,
                map_error(temp_applied.stderr or temp_applied.stdout, "git stash apply"),
            )

        if conflicts:
            # target content is in the tree; the temporary entry stays until resolved
            self._drop_best_effort(target.sha, target_index)
            return MergeOutcome.conflicted(
                conflicts,
                "Merge conflicts detected - resolve to complete",
                temp_stash=handle,
            )

        self._drop_best_effort(target.sha, target_index)
        if not self._drop_best_effort(handle.sha, 0):
            return MergeOutcome(OutcomeKind.SUCCESS, temp_stash=handle)
        return MergeOutcome.success()

    def _restore(self, handle: TempStashHandle, target: StashEntry, reason: str) -> MergeOutcome:
        """Throw away the half-applied target and bring the local changes back."""
        self._enter(StashPhase.RESTORED, target)
        try:
            self.executor.run(["reset", "--hard", "-q", "HEAD"])
            index = self._index_of(handle.sha)
            if index is None:
                raise DataLossRiskError(f"Temporary stash {handle.sha[:7]} is missing")
            self._pop_temp(index)
        except SynthError as e:
            logger.error("Failed to restore local changes: %s", e)
            return MergeOutcome(
                OutcomeKind.FAILURE,
                message=(
                    f"{reason}. Your local changes are kept in stash entry "
                    f"{handle.sha[:7]} ({handle.message})."
                ),
                temp_stash=handle,
            )
        return MergeOutcome.failure(
            f"Stash conflicts with your local changes and could not be merged: {reason}"
        )

    def _pop_temp(self, index: int) -> None:
        result = self.executor.run(["stash", "pop", "--index", stash_ref(index)], check=False)
        if result.returncode == 0:
            return
        self.executor.run(["stash", "pop", stash_ref(index)])

    def _top_sha(self) -> str | None:
        return self.executor.rev_parse("refs/stash")

    def _index_of(self, sha: str) -> int | None:
        result = self.executor.run(["stash", "list", "--format=%H"], check=False)
        for index, line in enumerate(result.stdout.splitlines()):
            if line.strip() == sha:
                return index
        return None

    def _locate(self, sha: str, expected_index: int) -> int:
        """Current index of entry ``sha``, which should be ``expected_index``."""
        index = self._index_of(sha)
        if index is None:
            raise DataLossRiskError(f"Stash entry {sha[:7]} is no longer in the stash list")
        if index != expected_index:
            logger.warning(
                "Stash entry %s moved from %d to %d", sha[:7], expected_index, index
            )
        return index

    def _drop_verified(self, sha: str, expected_index: int) -> None:
        """Drop the entry whose identity is ``sha``, wherever it now sits."""
        index = self._locate(sha, expected_index)
        self.executor.run(["stash", "drop", stash_ref(index)])

    def _drop_best_effort(self, sha: str, expected_index: int) -> bool:
        try:
            self._drop_verified(sha, expected_index)
        except SynthError as e:
            logger.warning("Failed to drop stash entry %s: %s", sha[:7], e)
            return False
        return True
