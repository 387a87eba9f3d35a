import click

from ..operations import StateKind
from ._shared import open_session


@click.command()
@click.pass_context
def state(ctx: click.Context) -> None:
    """Show whether a merge or rebase is in progress."""
    with open_session(ctx) as session:
        repo_state = session.tracker.state()
        count = session.tracker.conflict_count()

    if repo_state.kind is StateKind.MERGE_IN_PROGRESS:
        click.echo(f"Merge of {repo_state.incoming_branch} in progress")
    elif repo_state.kind is StateKind.REBASE_IN_PROGRESS:
        click.echo("Rebase in progress")
    elif repo_state.kind is StateKind.ORPHANED_CONFLICT:
        click.echo("Conflicts in the index without a merge in progress")
    else:
        click.echo("Clean")

    if count:
        click.echo(f"Conflicting files: {count}")


@click.command()
@click.pass_context
def conflicts(ctx: click.Context) -> None:
    """List conflicting files and which sides each has."""
    with open_session(ctx) as session:
        records = session.tracker.conflicts()

    if not records:
        click.echo("No conflicts")
        return

    for record in records:
        sides = [
            name
            for name, content in (
                ("base", record.base_content),
                ("ours", record.ours_content),
                ("theirs", record.theirs_content),
            )
            if content is not None
        ]
        if record.merged_content is not None:
            sides.append("markers")
        click.echo(f"{record.path} ({', '.join(sides) or 'no content'})")
