"""Shared utilities for commands."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click

from ..errors import SynthError
from ..operations import (
    ConflictStateTracker,
    GitExecutor,
    MergeOutcome,
    RepositoryHandle,
    SynthConfig,
    SynthConfigManager,
)


@dataclass
class Session:
    """Everything a command needs to work on one repository."""

    repository: RepositoryHandle
    executor: GitExecutor
    config: SynthConfig
    tracker: ConflictStateTracker


def to_click_exception(error: SynthError) -> click.ClickException:
    exception = click.ClickException(str(error))
    exception.exit_code = error.exit_code
    return exception


@contextmanager
def open_session(ctx: click.Context) -> Iterator[Session]:
    """Open the repository selected with ``-C`` and close it afterwards.

    Every ``SynthError`` raised inside becomes a ``ClickException``.
    """
    path = ctx.ensure_object(dict).get("repo_path") or Path.cwd()
    try:
        repository = RepositoryHandle.open(path)
    except SynthError as e:
        raise to_click_exception(e)

    with repository:
        executor = GitExecutor(repository.working_dir)
        try:
            config = SynthConfigManager(executor).load()
            yield Session(
                repository=repository,
                executor=executor,
                config=config,
                tracker=ConflictStateTracker(executor, repository),
            )
        except SynthError as e:
            raise to_click_exception(e)


def report_outcome(outcome: MergeOutcome, success_message: str) -> None:
    """Echo a merge-like outcome; anything but success exits non-zero."""
    if outcome.ok:
        click.echo(success_message)
        if outcome.temp_stash is not None:
            click.echo(
                f"Temporary stash {outcome.temp_stash.sha[:7]} could not be dropped; "
                f"run 'repo-synth stash cleanup {outcome.temp_stash.sha}'"
            )
        return

    if outcome.has_conflicts:
        click.echo(outcome.message or "Conflicts detected:")
        for path in outcome.conflicts:
            click.echo(f"  {path}")
        if outcome.temp_stash is not None:
            click.echo(
                "Your local changes are kept in stash entry "
                f"{outcome.temp_stash.sha[:7]}. After resolving, run "
                f"'repo-synth stash cleanup {outcome.temp_stash.sha}'"
            )
        raise click.ClickException("Resolve the conflicts listed above")

    raise click.ClickException(outcome.message or outcome.kind.value)
