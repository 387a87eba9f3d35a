"""Classify git CLI error text.

All matching is substring based and runs against output produced under
``LC_ALL=C``, so the fragments below are the untranslated git messages.
New fragments are added to ``ERROR_PATTERNS`` only; call sites never
match text themselves.
"""

from enum import Enum


class ErrorKind(Enum):
    """Known categories of backend failure."""

    AUTHENTICATION = "authentication"
    NETWORK_UNREACHABLE = "network-unreachable"
    CONNECTION_REFUSED = "connection-refused"
    PERMISSION_DENIED = "permission-denied"
    BRANCH_NOT_FOUND = "branch-not-found"
    MERGE_IN_PROGRESS = "merge-in-progress"
    DETACHED_HEAD = "detached-head"
    DIVERGED = "diverged"
    UNRELATED_HISTORIES = "unrelated-histories"
    CONFLICT = "conflict"


# Checked in order; the first matching fragment wins.
ERROR_PATTERNS: tuple[tuple[str, ErrorKind], ...] = (
    ("authentication failed", ErrorKind.AUTHENTICATION),
    ("could not read username", ErrorKind.AUTHENTICATION),
    ("could not resolve host", ErrorKind.NETWORK_UNREACHABLE),
    ("network is unreachable", ErrorKind.NETWORK_UNREACHABLE),
    ("connection refused", ErrorKind.CONNECTION_REFUSED),
    ("permission denied", ErrorKind.PERMISSION_DENIED),
    ("not a valid branch", ErrorKind.BRANCH_NOT_FOUND),
    ("you are in the middle of a merge", ErrorKind.MERGE_IN_PROGRESS),
    ("you have not concluded your merge", ErrorKind.MERGE_IN_PROGRESS),
    ("detached head", ErrorKind.DETACHED_HEAD),
    ("not possible to fast-forward", ErrorKind.DIVERGED),
    ("have diverged", ErrorKind.DIVERGED),
    ("refusing to merge unrelated histories", ErrorKind.UNRELATED_HISTORIES),
    ("conflict", ErrorKind.CONFLICT),
)

FRIENDLY_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTHENTICATION: "Authentication failed. Check your credentials.",
    ErrorKind.NETWORK_UNREACHABLE: (
        "Could not connect to remote server. Check your network connection."
    ),
    ErrorKind.CONNECTION_REFUSED: "Connection refused by remote server.",
    ErrorKind.PERMISSION_DENIED: "Permission denied. Check your access rights.",
    ErrorKind.BRANCH_NOT_FOUND: "The specified branch does not exist.",
    ErrorKind.MERGE_IN_PROGRESS: "A merge is in progress. Complete or abort it first.",
    ErrorKind.DETACHED_HEAD: "Cannot perform this operation in detached HEAD state.",
    ErrorKind.DIVERGED: "Cannot fast-forward: branches have diverged. Use merge instead.",
}


def classify_error(text: str | None) -> ErrorKind | None:
    """Return the kind of the first known fragment found in ``text``."""
    if not text:
        return None
    lowered = text.lower()
    for fragment, kind in ERROR_PATTERNS:
        if fragment in lowered:
            return kind
    return None


def map_error(error: str | None, operation: str) -> str:
    """Turn raw stderr into a message fit for display."""
    if not error or not error.strip():
        return f"{operation} failed"

    kind = classify_error(error)
    if kind in FRIENDLY_MESSAGES:
        return FRIENDLY_MESSAGES[kind]
    return error.strip()


def is_conflict_error(output: str | None, error: str | None) -> bool:
    """Whether git reported merge conflicts.

    Upper-case ``CONFLICT`` is git's per-file marker and is only trusted
    case-sensitively on stdout; stderr is matched in any case.
    """
    output = output or ""
    error = error or ""
    return "CONFLICT" in output or "conflict" in error.lower()


def is_unrelated_histories_error(error: str | None) -> bool:
    return classify_error(error) is ErrorKind.UNRELATED_HISTORIES


def is_fast_forward_not_possible(output: str | None, error: str | None) -> bool:
    return (
        classify_error(error) is ErrorKind.DIVERGED
        or classify_error(output) is ErrorKind.DIVERGED
    )
