"""Value objects produced by graph builds and merge-like operations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class RemoteKind(Enum):
    """Hosting service a remote points at."""

    OTHER = "other"
    GITHUB = "github"
    AZURE_DEVOPS = "azure-devops"


@dataclass(frozen=True, slots=True)
class RemoteBranchRef:
    """One remote's copy of a branch."""

    name: str
    remote_name: str
    kind: RemoteKind = RemoteKind.OTHER
    tip_sha: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.remote_name}/{self.name}"


@dataclass(slots=True)
class BranchLabel:
    """A branch name drawn on a commit of the graph.

    A label with no ``remotes`` is local-only. ``is_local=False`` marks a
    branch that exists only on remotes. The same short name tracked by
    several remotes is one label with several ``remotes``.
    """

    name: str
    is_local: bool
    is_current: bool = False
    tip_sha: str | None = None
    remotes: list[RemoteBranchRef] = field(default_factory=list)

    @property
    def is_remote(self) -> bool:
        return bool(self.remotes)

    @property
    def is_synced(self) -> bool:
        return self.is_local and self.is_remote

    @property
    def remote_name(self) -> str | None:
        return self.remotes[0].remote_name if self.remotes else None

    @property
    def full_name(self) -> str:
        if not self.is_local and self.remotes:
            return self.remotes[0].full_name
        return self.name


@dataclass(slots=True)
class Commit:
    """A commit of the displayed window with its labels.

    Only the label lists change after construction, when labels of
    paged-out refs are back-filled.
    """

    sha: str
    message_short: str
    message: str
    author_name: str
    author_email: str
    authored_at: datetime
    parent_shas: tuple[str, ...] = ()
    is_head: bool = False
    branch_names: list[str] = field(default_factory=list)
    branch_labels: list[BranchLabel] = field(default_factory=list)
    tag_names: list[str] = field(default_factory=list)

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def is_merge(self) -> bool:
        return len(self.parent_shas) > 1


@dataclass(frozen=True, slots=True)
class StashEntry:
    """A stash list entry.

    ``index`` is only valid until the stash list changes; ``sha`` is the
    stable identity.
    """

    index: int
    sha: str
    message: str
    branch_name: str
    author: str
    created_at: datetime

    @property
    def reference(self) -> str:
        return f"stash@{{{self.index}}}"

    @property
    def message_short(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass(slots=True)
class ConflictRecord:
    """One conflicting file and the content of each side.

    Each side is ``None`` when that side has no file. ``merged_content``
    holds the file with conflict markers when no index stages exist.
    """

    path: str
    base_content: str | None = None
    ours_content: str | None = None
    theirs_content: str | None = None
    is_resolved: bool = False
    merged_content: str | None = None

    @property
    def file_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True, slots=True)
class TempStashHandle:
    """The temporary stash entry left behind by a conflicting stash pop.

    Found again by ``sha``, never by its message.
    """

    sha: str
    message: str


class OutcomeKind(Enum):
    SUCCESS = "success"
    CONFLICTS = "conflicts"
    UNRELATED_HISTORIES = "unrelated-histories"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class MergeOutcome:
    """Result of every merge-like operation."""

    kind: OutcomeKind
    conflicts: tuple[str, ...] = ()
    message: str | None = None
    temp_stash: TempStashHandle | None = None

    @classmethod
    def success(cls) -> "MergeOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def conflicted(
        cls,
        paths: list[str] | tuple[str, ...],
        message: str | None = None,
        temp_stash: TempStashHandle | None = None,
    ) -> "MergeOutcome":
        return cls(
            OutcomeKind.CONFLICTS,
            conflicts=tuple(paths),
            message=message,
            temp_stash=temp_stash,
        )

    @classmethod
    def unrelated_histories(cls) -> "MergeOutcome":
        return cls(OutcomeKind.UNRELATED_HISTORIES, message="Unrelated histories detected.")

    @classmethod
    def failure(cls, message: str) -> "MergeOutcome":
        return cls(OutcomeKind.FAILURE, message=message)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def has_conflicts(self) -> bool:
        return self.kind is OutcomeKind.CONFLICTS


class StateKind(Enum):
    CLEAN = "clean"
    MERGE_IN_PROGRESS = "merge-in-progress"
    REBASE_IN_PROGRESS = "rebase-in-progress"
    ORPHANED_CONFLICT = "orphaned-conflict"


@dataclass(frozen=True, slots=True)
class RepositoryState:
    """What the repository is in the middle of, if anything."""

    kind: StateKind
    incoming_branch: str | None = None

    @property
    def is_clean(self) -> bool:
        return self.kind is StateKind.CLEAN
