"""Read access to one repository's refs, objects and index."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from git import Repo
from git.exc import BadName, BadObject, InvalidGitRepositoryError, NoSuchPathError
from git.objects import Commit as GitCommit

from repo_synth.errors import RepositoryNotFoundError
from repo_synth.operations.labels import split_remote_ref

logger = logging.getLogger(__name__)

REMOTES_PREFIX = "refs/remotes/"


@dataclass(frozen=True, slots=True)
class RefTip:
    """A branch or tag and the commit it points at."""

    name: str
    sha: str


@dataclass(frozen=True, slots=True)
class RemoteRefTip:
    """A remote-tracking branch split into remote and short branch name."""

    remote_name: str
    name: str
    sha: str

    @property
    def full_name(self) -> str:
        return f"{self.remote_name}/{self.name}"


class RepositoryHandle:
    """Thin view over a GitPython ``Repo``.

    Lookup failures other than "not found" propagate: a corrupt repository
    is not something callers can recover from.
    """

    def __init__(self, repo: Repo):
        self.repo = repo

    @classmethod
    def open(cls, path: str | Path) -> "RepositoryHandle":
        try:
            repo = Repo(str(path))
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise RepositoryNotFoundError(f"Not a git repository: {path}")
        return cls(repo)

    def close(self) -> None:
        self.repo.close()

    def __enter__(self) -> "RepositoryHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def working_dir(self) -> Path:
        return Path(self.repo.working_tree_dir)

    @property
    def git_dir(self) -> Path:
        return Path(self.repo.git_dir)

    def remote_urls(self) -> dict[str, str]:
        urls = {}
        for remote in self.repo.remotes:
            urls[remote.name] = next(iter(remote.urls), "")
        return urls

    def local_branches(self) -> list[RefTip]:
        return [RefTip(head.name, head.commit.hexsha) for head in self.repo.heads]

    def remote_branches(self) -> list[RemoteRefTip]:
        """Remote-tracking branches, without the symbolic ``<remote>/HEAD``."""
        remote_names = [remote.name for remote in self.repo.remotes]
        tips = []
        for ref in self.repo.refs:
            if not ref.path.startswith(REMOTES_PREFIX):
                continue

            qualified = ref.path[len(REMOTES_PREFIX) :]
            split = split_remote_ref(qualified, remote_names)
            if split is None:
                # refs of a remote that is no longer configured
                remote_name, _, name = qualified.partition("/")
            else:
                remote_name, name = split

            if not name or name == "HEAD":
                continue
            tips.append(RemoteRefTip(remote_name, name, ref.commit.hexsha))
        return tips

    def tags(self) -> list[RefTip]:
        """Tags peeled to the commit they mark."""
        tips = []
        for tag in self.repo.tags:
            try:
                sha = tag.commit.hexsha
            except ValueError:
                logger.debug("Skipping tag %s: does not point at a commit", tag.name)
                continue
            tips.append(RefTip(tag.name, sha))
        return tips

    def head_sha(self) -> str | None:
        """Commit HEAD points at, ``None`` on an unborn branch."""
        try:
            return self.repo.head.commit.hexsha
        except ValueError:
            return None

    def is_head_detached(self) -> bool:
        return self.repo.head.is_detached

    def current_branch_name(self) -> str | None:
        if self.repo.head.is_detached:
            return None
        return self.repo.head.ref.name

    def find_branch(self, name: str) -> str | None:
        """Tip of a local branch, or of a remote branch given as "<remote>/<name>"."""
        for head in self.repo.heads:
            if head.name == name:
                return head.commit.hexsha
        for tip in self.remote_branches():
            if tip.full_name == name:
                return tip.sha
        return None

    def commit(self, sha: str) -> GitCommit | None:
        try:
            return self.repo.commit(sha)
        except (BadName, BadObject, ValueError):
            return None

    def parents_of(self, sha: str) -> list[str]:
        return [parent.hexsha for parent in self.repo.commit(sha).parents]

    def iter_commits(
        self, roots: list[str], skip: int = 0, count: int | None = None
    ) -> Iterator[GitCommit]:
        """Commits reachable from ``roots``.

        Children always come before their parents; commits with no
        ancestry relation are ordered by commit time.
        """
        if not roots:
            return iter(())
        kwargs = {"date_order": True}
        if skip:
            kwargs["skip"] = skip
        if count is not None:
            kwargs["max_count"] = count
        return self.repo.iter_commits(roots, **kwargs)

    def unmerged_paths(self) -> list[str]:
        """Paths with conflict-stage entries in the index."""
        return sorted(self.repo.index.unmerged_blobs())

    def head_file_text(self, path: str) -> str | None:
        """Content of ``path`` at HEAD, ``None`` when HEAD has no such file."""
        try:
            blob = self.repo.head.commit.tree / path
        except (KeyError, ValueError):
            return None
        return blob.data_stream.read().decode("utf-8", errors="replace")
