"""Custom exceptions for repo-synth."""

from repo_synth.error_mapper import ErrorKind


class SynthError(Exception):
    """Base exception for all repo-synth errors."""

    exit_code: int = 1


class RepositoryNotFoundError(SynthError):
    """Raised when a path is not a git repository."""

    exit_code: int = 2


class NotFoundError(SynthError):
    """Raised when a named branch, commit, tag or stash does not exist."""

    pass


class InvalidStateError(SynthError):
    """Raised when an operation is incompatible with the repository state."""

    exit_code: int = 3


class BackendFailure(SynthError):
    """Raised when a git command exits non-zero."""

    exit_code: int = 4

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        stderr: str = "",
        returncode: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.stderr = stderr
        self.returncode = returncode


class DataLossRiskError(SynthError):
    """Raised when a step would discard content that is not stored elsewhere."""

    exit_code: int = 5
