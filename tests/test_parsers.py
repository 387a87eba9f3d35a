from textwrap import dedent

import pytest
from pytest_check import check

from repo_synth.operations.parsers import (
    collect_reject_files,
    extract_branch_from_stash_message,
    has_patch_rejections,
    parse_conflict_files_from_porcelain,
    parse_conflicts_section,
    parse_merging_branch,
    parse_nul_paths,
)


@pytest.mark.parametrize(
    "message, branch",
    [
        ("WIP on main: 1234abc Initial commit", "main"),
        ("On feature/login: half done", "feature/login"),
        ("wip on dev: 1234abc x", "dev"),
        ("custom message", ""),
        ("On : nothing", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_extract_branch_from_stash_message(message, branch):
    assert extract_branch_from_stash_message(message) == branch


def test_parse_nul_paths():
    output = "a.txt\0dir/b c.txt\0café.txt\0"
    assert parse_nul_paths(output) == ["a.txt", "dir/b c.txt", "café.txt"]
    assert parse_nul_paths(None) == []


def test_parse_conflict_files_from_porcelain():
    output = "\0".join(
        [
            "UU both.txt",
            "AA added.txt",
            "DD deleted.txt",
            "UD them-deleted.txt",
            " M modified.txt",
            "R  renamed.txt",
            "UU-looking source.txt",
            "?? untracked.txt",
            "A  staged.txt",
            'UU say "hi".txt',
            "",
        ]
    )
    assert parse_conflict_files_from_porcelain(output) == [
        "both.txt",
        "added.txt",
        "deleted.txt",
        "them-deleted.txt",
        'say "hi".txt',
    ]


@pytest.mark.parametrize(
    "merge_msg, branch",
    [
        ("Merge branch 'feature' into main\n", "feature"),
        ("Merge branch 'feature/x'\n\n# Conflicts:\n#\ta.txt\n", "feature/x"),
        ("Merge remote-tracking branch 'origin/dev'\n", "origin/dev"),
        ("Merge commit 'abc123'\n", "Incoming"),
        ("", "Incoming"),
        (None, "Incoming"),
    ],
)
def test_parse_merging_branch(merge_msg, branch):
    assert parse_merging_branch(merge_msg) == branch


def test_parse_conflicts_section():
    merge_msg = dedent(
        """\
        Merge branch 'feature'

        # Conflicts:
        #\ta.txt
        #\tdir/b.txt
        #
        # It looks like you may be committing a merge.
        """
    )
    assert parse_conflicts_section(merge_msg) == ["a.txt", "dir/b.txt"]
    assert parse_conflicts_section("Merge branch 'x'\n") == []


def test_patch_output_parsing():
    output = dedent(
        """\
        patching file a.txt
        Hunk #1 FAILED at 1.
        1 out of 1 hunk FAILED -- saving rejects to file a.txt.rej
        """
    )
    check.is_true(has_patch_rejections(output))
    check.equal(collect_reject_files(output), ["a.txt.rej"])
    check.is_false(has_patch_rejections("patching file a.txt\nHunk #1 succeeded at 3 with fuzz 1.\n"))
    check.is_true(has_patch_rejections("1 out of 1 hunk ignored"))
    check.equal(collect_reject_files(None), [])
