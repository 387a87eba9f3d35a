"""Detect in-progress merges and rebases and list conflicting files."""

import logging
from pathlib import Path

from repo_synth.errors import BackendFailure
from repo_synth.operations.executor import GitExecutor
from repo_synth.operations.models import ConflictRecord, RepositoryState, StateKind
from repo_synth.operations.parsers import (
    parse_conflict_files_from_porcelain,
    parse_conflicts_section,
    parse_merging_branch,
    parse_nul_paths,
)
from repo_synth.operations.repository import RepositoryHandle

logger = logging.getLogger(__name__)

BASE_STAGE = 1
OURS_STAGE = 2
THEIRS_STAGE = 3


class ConflictStateTracker:
    """Classify repository state and inspect its conflicts.

    Conflicting paths surface differently mid-merge, mid-rebase and in an
    orphaned state, so several sources are tried in turn: unmerged diff,
    porcelain status, then the index's own conflict stages.
    """

    def __init__(self, executor: GitExecutor, repository: RepositoryHandle):
        self.executor = executor
        self.repository = repository

    @property
    def git_dir(self) -> Path:
        return self.repository.git_dir

    def is_merge_in_progress(self) -> bool:
        return (self.git_dir / "MERGE_HEAD").exists()

    def is_rebase_in_progress(self) -> bool:
        return (self.git_dir / "rebase-apply").is_dir() or (
            self.git_dir / "rebase-merge"
        ).is_dir()

    def merging_branch(self) -> str:
        """Name of the branch being merged in, "Incoming" when unknown."""
        merge_msg = self.git_dir / "MERGE_MSG"
        if not merge_msg.exists():
            return "Incoming"
        return parse_merging_branch(merge_msg.read_text(errors="replace"))

    def state(self) -> RepositoryState:
        if self.is_merge_in_progress():
            return RepositoryState(StateKind.MERGE_IN_PROGRESS, self.merging_branch())
        if self.is_rebase_in_progress():
            return RepositoryState(StateKind.REBASE_IN_PROGRESS)
        if self.conflict_paths():
            return RepositoryState(StateKind.ORPHANED_CONFLICT)
        return RepositoryState(StateKind.CLEAN)

    def is_orphaned_conflict_state(self) -> bool:
        """Unmerged index entries with no merge in progress."""
        return self.state().kind is StateKind.ORPHANED_CONFLICT

    def conflict_paths(self) -> list[str]:
        result = self.executor.run(
            ["diff", "--name-only", "-z", "--diff-filter=U"], check=False
        )
        paths = parse_nul_paths(result.stdout) if result.returncode == 0 else []
        logger.debug("diff --diff-filter=U found %d conflicts", len(paths))

        if not paths:
            result = self.executor.run(["status", "--porcelain", "-z"], check=False)
            if result.returncode == 0:
                paths = parse_conflict_files_from_porcelain(result.stdout)
            logger.debug("status --porcelain found %d conflicts", len(paths))

        if not paths:
            paths = self.repository.unmerged_paths()
            logger.debug("index stages found %d conflicts", len(paths))

        return list(dict.fromkeys(paths))

    def conflict_count(self) -> int:
        return len(self.conflict_paths())

    def read_stage(self, path: str, stage: int) -> str | None:
        """Content of one conflict stage, ``None`` when that side has no file."""
        result = self.executor.run(["show", f":{stage}:{path}"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout

    def conflicts(self) -> list[ConflictRecord]:
        records = []
        for path in self.conflict_paths():
            record = ConflictRecord(
                path=path,
                base_content=self.read_stage(path, BASE_STAGE),
                ours_content=self.read_stage(path, OURS_STAGE),
                theirs_content=self.read_stage(path, THEIRS_STAGE),
            )

            if (
                record.base_content is None
                and record.ours_content is None
                and record.theirs_content is None
            ):
                # no stages in the index: fall back to the marked-up file
                full_path = self.repository.working_dir / path
                if full_path.is_file():
                    record.merged_content = full_path.read_text(errors="replace")
                record.ours_content = self.repository.head_file_text(path)

            records.append(record)
        return records

    def resolve_with_ours(self, path: str) -> None:
        self.executor.run(["checkout", "--ours", "--", path])
        self.mark_resolved(path)

    def resolve_with_theirs(self, path: str) -> None:
        self.executor.run(["checkout", "--theirs", "--", path])
        self.mark_resolved(path)

    def mark_resolved(self, path: str) -> None:
        self.executor.run(["add", "--", path])

    def reopen_conflict(
        self,
        path: str,
        base_content: str | None,
        ours_content: str | None,
        theirs_content: str | None,
    ) -> bool:
        """Put ``path`` back into a conflicted state with the given sides.

        Returns False, leaving the index untouched, when the blobs or the
        index entries could not be written.
        """
        entries = []
        for stage, content in (
            (BASE_STAGE, base_content),
            (OURS_STAGE, ours_content),
            (THEIRS_STAGE, theirs_content),
        ):
            if content is None:
                continue
            result = self.executor.run(
                ["hash-object", "-w", "--stdin"], check=False, input=content
            )
            if result.returncode != 0:
                logger.warning("Failed to write stage %d of %s: %s", stage, path, result.stderr)
                return False
            entries.append(f"100644 {result.stdout.strip()} {stage}\t{path}\n")

        if not entries:
            return False

        # a stage-0 entry has to go before higher stages can be added
        index_info = f"0 {'0' * 40}\t{path}\n" + "".join(entries)
        result = self.executor.run(
            ["update-index", "--index-info"], check=False, input=index_info
        )
        if result.returncode != 0:
            logger.warning("Failed to restore conflict index for %s: %s", path, result.stderr)
            return False

        self.executor.run(["checkout", "--conflict=merge", "--", path], check=False)
        return True

    def resolved_merge_files(self) -> list[ConflictRecord]:
        """Files of the current merge that had conflicts and are now resolved."""
        unresolved = set(self.conflict_paths())

        merge_msg = self.git_dir / "MERGE_MSG"
        listed = (
            parse_conflicts_section(merge_msg.read_text(errors="replace"))
            if merge_msg.exists()
            else []
        )
        staged = parse_nul_paths(
            self.executor.run(
                ["diff", "--name-only", "-z", "--cached"], check=False
            ).stdout
        )

        merge_base = None
        if self.is_merge_in_progress():
            result = self.executor.run(["merge-base", "HEAD", "MERGE_HEAD"], check=False)
            if result.returncode == 0:
                merge_base = result.stdout.strip() or None

        records = []
        for path in dict.fromkeys([*listed, *staged]):
            if path in unresolved:
                continue
            records.append(
                ConflictRecord(
                    path=path,
                    base_content=self._ref_file(merge_base, path) if merge_base else None,
                    ours_content=self._ref_file("HEAD", path),
                    theirs_content=self._ref_file("MERGE_HEAD", path),
                    is_resolved=True,
                )
            )
        return records

    def reset_orphaned_conflicts(self, discard_working_changes: bool = False) -> None:
        """Clear unmerged index entries left behind without a merge."""
        try:
            self.executor.run(["reset", "-q", "HEAD"])
        except BackendFailure as e:
            # "Unstaged changes after reset" is informational
            if "Unstaged changes" not in e.stderr:
                raise
        if discard_working_changes:
            self.executor.run(["checkout", "--", "."])

    def _ref_file(self, ref: str, path: str) -> str | None:
        result = self.executor.run(["show", f"{ref}:{path}"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout
