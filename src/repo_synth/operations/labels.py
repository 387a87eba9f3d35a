"""Assemble the branch labels drawn on each commit."""

import logging
from collections.abc import Iterable

from repo_synth.operations.models import BranchLabel, Commit, RemoteBranchRef, RemoteKind

logger = logging.getLogger(__name__)

_GITHUB_HOSTS = ("github.com",)
_AZURE_DEVOPS_HOSTS = ("dev.azure.com", "visualstudio.com")


def classify_remote_kind(url: str | None) -> RemoteKind:
    """Determine the hosting service from a remote URL."""
    if not url:
        return RemoteKind.OTHER

    lowered = url.lower()
    if any(host in lowered for host in _GITHUB_HOSTS):
        return RemoteKind.GITHUB
    if any(host in lowered for host in _AZURE_DEVOPS_HOSTS):
        return RemoteKind.AZURE_DEVOPS
    return RemoteKind.OTHER


def split_remote_ref(
    qualified_name: str, remote_names: Iterable[str]
) -> tuple[str, str] | None:
    """Split "<remote>/<branch>" into its parts.

    Remote and branch names may both contain slashes, so the remote is
    found by matching configured remote names, longest first. Returns
    ``None`` when no configured remote matches.
    """
    for remote in sorted(remote_names, key=len, reverse=True):
        prefix = f"{remote}/"
        if qualified_name.startswith(prefix) and len(qualified_name) > len(prefix):
            return remote, qualified_name[len(prefix) :]
    return None


def build_branch_labels(
    sha: str,
    local_tips: dict[str, list[str]],
    remote_tips: dict[str, list[RemoteBranchRef]],
    tip_index: dict[str, str],
    current_branch: str | None,
) -> list[BranchLabel]:
    """Labels for the branches whose tip is ``sha``.

    One label per local branch, carrying every remote copy of the same
    short name. Remote-only names get one label consolidating all remotes.
    The checked-out branch sorts first.
    """
    local_names = local_tips.get(sha, [])
    remote_refs = remote_tips.get(sha, [])

    remotes_by_name: dict[str, list[RemoteBranchRef]] = {}
    for ref in remote_refs:
        remotes_by_name.setdefault(ref.name.casefold(), []).append(ref)

    current_key = current_branch.casefold() if current_branch else None

    labels = []
    for local_name in local_names:
        key = local_name.casefold()
        labels.append(
            BranchLabel(
                name=local_name,
                is_local=True,
                is_current=key == current_key,
                tip_sha=tip_index.get(local_name),
                remotes=list(remotes_by_name.pop(key, [])),
            )
        )

    for refs in remotes_by_name.values():
        first = refs[0]
        labels.append(
            BranchLabel(
                name=first.name,
                is_local=False,
                tip_sha=tip_index.get(first.full_name),
                remotes=list(refs),
            )
        )

    # sort is stable: local labels stay ahead of remote-only ones
    labels.sort(key=lambda label: not label.is_current)
    return labels


def add_branch_labels(commit: Commit, labels: list[BranchLabel]) -> None:
    """Merge ``labels`` into the labels already on ``commit``."""
    existing = {label.full_name.casefold() for label in commit.branch_labels}
    names = {name.casefold() for name in commit.branch_names}

    for label in labels:
        key = label.full_name.casefold()
        if key not in existing:
            commit.branch_labels.append(label)
            existing.add(key)

        if label.is_local and label.name.casefold() not in names:
            commit.branch_names.append(label.name)
            names.add(label.name.casefold())


def add_tag_names(commit: Commit, tag_names: list[str]) -> None:
    for tag in tag_names:
        if tag not in commit.tag_names:
            commit.tag_names.append(tag)
