import click

from ..operations import CommitGraphBuilder
from ._shared import open_session


def format_labels(commit) -> str:
    """Decoration in the style of ``git log --decorate``."""
    names = []
    for label in commit.branch_labels:
        if label.is_local:
            name = label.name
            if label.remotes:
                name += " [" + ", ".join(ref.remote_name for ref in label.remotes) + "]"
        else:
            name = ", ".join(ref.full_name for ref in label.remotes)
        names.append(f"* {name}" if label.is_current else name)
    names.extend(f"tag: {tag}" for tag in commit.tag_names)
    return f" ({', '.join(names)})" if names else ""


@click.command()
@click.option("--skip", default=0, show_default=True, type=click.IntRange(min=0))
@click.option(
    "--count",
    type=click.IntRange(min=1),
    help="Commits to show (default: synth.pageSize, 500)",
)
@click.option("--branch", help="Only show commits reachable from this branch")
@click.pass_context
def log(ctx: click.Context, skip: int, count: int | None, branch: str | None) -> None:
    """Show the labeled commit graph."""
    with open_session(ctx) as session:
        builder = CommitGraphBuilder(session.repository, session.config)
        if branch and session.repository.find_branch(branch) is None:
            raise click.ClickException(f"Branch '{branch}' not found")
        commits = builder.build(skip=skip, count=count, branch=branch)

    if not commits:
        click.echo("No commits in this window")
        return

    for commit in commits:
        marker = "@" if commit.is_head else ("M" if commit.is_merge else "*")
        click.echo(f"{marker} {commit.short_sha}{format_labels(commit)} {commit.message_short}")
