"""CLI entry point for repo-synth."""

import logging
from pathlib import Path

import click


@click.group()
@click.option(
    "-C",
    "--repo",
    "repo_path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository to work on (default: current directory)",
)
@click.option("-v", "--verbose", is_flag=True, help="Log every git invocation")
@click.pass_context
def cli(ctx: click.Context, repo_path: Path | None, verbose: bool) -> None:
    """repo-synth: labeled commit graphs and conflict-safe stash pops.

    Shows the commit graph with every branch and tag label placed, and
    reapplies stash entries onto a dirty working tree without losing work.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["repo_path"] = repo_path


# Import and register commands
from .commands.log import log
from .commands.merge import merge
from .commands.stash import stash
from .commands.state import conflicts, state

cli.add_command(log)
cli.add_command(state)
cli.add_command(conflicts)
cli.add_command(stash)
cli.add_command(merge)


if __name__ == "__main__":
    cli()
