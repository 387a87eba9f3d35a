import click

from ..errors import NotFoundError
from ..operations import StashMergeEngine, TempStashHandle
from ._shared import open_session, report_outcome, to_click_exception


@click.group()
def stash() -> None:
    """Browse, pop and drop stash entries."""


@stash.command("list")
@click.pass_context
def list_(ctx: click.Context) -> None:
    """List stash entries."""
    with open_session(ctx) as session:
        entries = StashMergeEngine(session.executor, session.tracker, session.config).list_stashes()

    if not entries:
        click.echo("No stash entries")
        return
    for entry in entries:
        branch = f" [{entry.branch_name}]" if entry.branch_name else ""
        click.echo(f"{entry.reference} {entry.sha[:7]}{branch} {entry.message_short}")


@stash.command()
@click.argument("index", type=click.IntRange(min=0), default=0)
@click.pass_context
def pop(ctx: click.Context, index: int) -> None:
    """Apply a stash entry onto the working tree and drop it.

    INDEX: Position in the stash list (default: 0)
    """
    with open_session(ctx) as session:
        engine = StashMergeEngine(session.executor, session.tracker, session.config)
        outcome = engine.pop(index)
    report_outcome(outcome, f"Applied and dropped stash@{{{index}}}")


@stash.command()
@click.argument("index", type=click.IntRange(min=0))
@click.pass_context
def drop(ctx: click.Context, index: int) -> None:
    """Drop a stash entry.

    INDEX: Position in the stash list
    """
    with open_session(ctx) as session:
        StashMergeEngine(session.executor, session.tracker, session.config).drop_stash(index)
    click.echo(f"Dropped stash@{{{index}}}")


@stash.command()
@click.argument("sha")
@click.pass_context
def cleanup(ctx: click.Context, sha: str) -> None:
    """Drop the temporary stash entry left by a conflicting pop.

    SHA: Object id printed by 'stash pop'
    """
    with open_session(ctx) as session:
        engine = StashMergeEngine(session.executor, session.tracker, session.config)
        full_sha = session.executor.rev_parse(sha)
        if full_sha is None or not engine.cleanup_temp_stash(
            TempStashHandle(sha=full_sha, message=session.config.temp_stash_message)
        ):
            raise to_click_exception(NotFoundError(f"No stash entry {sha}"))
    click.echo(f"Dropped temporary stash {full_sha[:7]}")
