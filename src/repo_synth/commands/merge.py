import click

from ..operations import MergeOperations, OutcomeKind
from ._shared import open_session, report_outcome


@click.command()
@click.argument("branch")
@click.option("--ff-only", is_flag=True, help="Only fast-forward")
@click.option("--squash", is_flag=True, help="Stage the changes without committing")
@click.option(
    "--allow-unrelated-histories",
    is_flag=True,
    help="Merge branches with no common ancestor",
)
@click.pass_context
def merge(
    ctx: click.Context,
    branch: str,
    ff_only: bool,
    squash: bool,
    allow_unrelated_histories: bool,
) -> None:
    """Merge a branch into the current branch.

    BRANCH: Branch to merge
    """
    if ff_only and squash:
        raise click.UsageError("--ff-only and --squash are mutually exclusive")

    with open_session(ctx) as session:
        operations = MergeOperations(session.executor, session.tracker)
        if ff_only:
            outcome = operations.fast_forward(branch)
        elif squash:
            outcome = operations.squash_merge(branch)
        else:
            outcome = operations.merge_branch(branch, allow_unrelated_histories)

    if outcome.kind is OutcomeKind.UNRELATED_HISTORIES:
        raise click.ClickException(
            f"{outcome.message} Retry with --allow-unrelated-histories to merge anyway."
        )
    report_outcome(outcome, f"Merged {branch}")
