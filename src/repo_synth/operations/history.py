"""Build the labeled commit window shown by the graph."""

import logging
from dataclasses import dataclass, field

from git.objects import Commit as GitCommit

from repo_synth.operations.ancestors import find_nearest_visible_ancestor
from repo_synth.operations.config import SynthConfig
from repo_synth.operations.labels import (
    add_branch_labels,
    add_tag_names,
    build_branch_labels,
    classify_remote_kind,
)
from repo_synth.operations.models import BranchLabel, Commit, RemoteBranchRef
from repo_synth.operations.repository import RepositoryHandle

logger = logging.getLogger(__name__)

HEAD_LABEL = "HEAD"


@dataclass(slots=True)
class RefTipMaps:
    """Ref tips of one repository grouped by the commit they point at."""

    local: dict[str, list[str]] = field(default_factory=dict)
    remote: dict[str, list[RemoteBranchRef]] = field(default_factory=dict)
    tags: dict[str, list[str]] = field(default_factory=dict)
    tip_index: dict[str, str] = field(default_factory=dict)

    def tip_shas(self) -> list[str]:
        """Every distinct tip, branches before tags, in first-seen order."""
        return list(dict.fromkeys([*self.local, *self.remote, *self.tags]))


def collect_ref_tips(repository: RepositoryHandle) -> RefTipMaps:
    """Group branch and tag tips by target commit and index tips by name."""
    tips = RefTipMaps()

    for branch in repository.local_branches():
        tips.local.setdefault(branch.sha, []).append(branch.name)
        tips.tip_index[branch.name] = branch.sha

    urls = repository.remote_urls()
    for branch in repository.remote_branches():
        ref = RemoteBranchRef(
            name=branch.name,
            remote_name=branch.remote_name,
            kind=classify_remote_kind(urls.get(branch.remote_name)),
            tip_sha=branch.sha,
        )
        tips.remote.setdefault(branch.sha, []).append(ref)
        tips.tip_index[ref.full_name] = branch.sha

    for tag in repository.tags():
        tips.tags.setdefault(tag.sha, []).append(tag.name)

    return tips


class CommitGraphBuilder:
    """Produce an ordered, fully labeled window of commits."""

    def __init__(self, repository: RepositoryHandle, config: SynthConfig | None = None):
        self.repository = repository
        self.config = config or SynthConfig()

    def build(
        self,
        skip: int = 0,
        count: int | None = None,
        branch: str | None = None,
    ) -> list[Commit]:
        """Commits ``skip`` to ``skip + count`` of the history.

        With ``branch`` only commits reachable from that branch are listed;
        an unknown branch gives an empty list.
        """
        if count is None:
            count = self.config.page_size

        repository = self.repository
        head_sha = repository.head_sha()
        detached = repository.is_head_detached()
        current_branch = repository.current_branch_name()
        tips = collect_ref_tips(repository)

        logger.debug(
            "Building graph: HEAD=%s detached=%s skip=%d count=%d branch=%s",
            head_sha[:7] if head_sha else None,
            detached,
            skip,
            count,
            branch,
        )

        if branch:
            branch_tip = repository.find_branch(branch)
            if branch_tip is None:
                logger.debug("Branch %s not found", branch)
                return []
            roots = [branch_tip]
        else:
            roots = self._traversal_roots(tips, head_sha if detached else None)

        commits = [
            self._materialize(git_commit, head_sha, tips, current_branch)
            for git_commit in repository.iter_commits(roots, skip=skip, count=count)
        ]
        commits_by_sha = {commit.sha: commit for commit in commits}

        self._backfill_orphaned_tips(commits_by_sha, tips, current_branch)

        if detached and head_sha:
            self._place_detached_head(commits_by_sha, head_sha)

        return commits

    def get_commit(self, sha: str) -> Commit | None:
        """A single commit without labels, ``None`` if it does not exist."""
        git_commit = self.repository.commit(sha)
        if git_commit is None:
            return None
        return self._materialize(git_commit, self.repository.head_sha(), RefTipMaps(), None)

    def _traversal_roots(self, tips: RefTipMaps, detached_head: str | None) -> list[str]:
        roots = list(dict.fromkeys([*tips.local, *tips.remote]))
        if detached_head and detached_head not in roots:
            roots.append(detached_head)
        return roots

    def _materialize(
        self,
        git_commit: GitCommit,
        head_sha: str | None,
        tips: RefTipMaps,
        current_branch: str | None,
    ) -> Commit:
        sha = git_commit.hexsha
        return Commit(
            sha=sha,
            message_short=git_commit.summary,
            message=git_commit.message,
            author_name=git_commit.author.name,
            author_email=git_commit.author.email,
            authored_at=git_commit.authored_datetime,
            parent_shas=tuple(parent.hexsha for parent in git_commit.parents),
            is_head=sha == head_sha,
            branch_names=list(tips.local.get(sha, [])),
            branch_labels=build_branch_labels(
                sha, tips.local, tips.remote, tips.tip_index, current_branch
            ),
            tag_names=list(tips.tags.get(sha, [])),
        )

    def _backfill_orphaned_tips(
        self,
        commits_by_sha: dict[str, Commit],
        tips: RefTipMaps,
        current_branch: str | None,
    ) -> None:
        """Draw labels of tips outside the window on their nearest visible ancestor.

        The target commit may already carry unrelated labels; the labels
        are merged into it either way.
        """
        if not commits_by_sha:
            return

        visible = commits_by_sha.keys()
        orphans = [sha for sha in tips.tip_shas() if sha not in visible]
        if len(orphans) > self.config.max_backfill_tips:
            logger.warning(
                "%d ref tips outside the window, only placing the first %d",
                len(orphans),
                self.config.max_backfill_tips,
            )
            orphans = orphans[: self.config.max_backfill_tips]

        for tip_sha in orphans:
            nearest = find_nearest_visible_ancestor(
                tip_sha, visible, self.repository.parents_of
            )
            if nearest is None:
                continue

            target = commits_by_sha[nearest]
            labels = build_branch_labels(
                tip_sha, tips.local, tips.remote, tips.tip_index, current_branch
            )
            add_branch_labels(target, labels)
            add_tag_names(target, tips.tags.get(tip_sha, []))
            logger.debug("Placed labels of %s on %s", tip_sha[:7], nearest[:7])

    def _place_detached_head(self, commits_by_sha: dict[str, Commit], head_sha: str) -> None:
        """Put the "HEAD" label on HEAD, or on its nearest visible ancestor."""
        if not commits_by_sha:
            return
        target_sha = find_nearest_visible_ancestor(
            head_sha, commits_by_sha.keys(), self.repository.parents_of
        )
        if target_sha is None:
            return
        self._mark_detached_head(commits_by_sha[target_sha], head_sha)

    def _mark_detached_head(self, head_commit: Commit, head_sha: str) -> None:
        if any(label.is_current for label in head_commit.branch_labels):
            return
        head_commit.branch_labels.insert(
            0,
            BranchLabel(name=HEAD_LABEL, is_local=True, is_current=True, tip_sha=head_sha),
        )
