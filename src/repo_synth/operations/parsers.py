"""Parse git command output into plain values."""

# Porcelain v1 XY codes for unmerged paths. AA and DD carry no ``U``.
UNMERGED_STATUS_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})


def extract_branch_from_stash_message(message: str | None) -> str:
    """Get the origin branch from "WIP on <branch>: ..." or "On <branch>: ..."."""
    if not message:
        return ""

    for prefix in ("WIP on ", "On "):
        if message[: len(prefix)].lower() == prefix.lower():
            rest = message[len(prefix) :]
            colon = rest.find(":")
            if colon > 0:
                return rest[:colon]
            return ""
    return ""


def parse_nul_paths(output: str | None) -> list[str]:
    """Paths from ``-z`` output, one per NUL-terminated record."""
    if not output:
        return []
    return [path for path in output.split("\0") if path]


def parse_conflict_files_from_porcelain(output: str | None) -> list[str]:
    """Paths whose ``git status --porcelain -z`` entry is unmerged."""
    files = []
    records = iter((output or "").split("\0"))
    for record in records:
        if len(record) < 4:
            continue

        status = record[:2]
        if "R" in status or "C" in status:
            # the rename or copy source follows as its own record
            next(records, None)
            continue
        if "U" not in status and status not in UNMERGED_STATUS_CODES:
            continue

        files.append(record[3:])
    return files


def parse_merging_branch(merge_msg: str | None) -> str:
    """Branch name from a MERGE_MSG such as "Merge branch 'feature' into main"."""
    if not merge_msg:
        return "Incoming"

    msg = merge_msg.strip()
    for prefix in ("Merge branch '", "Merge remote-tracking branch '"):
        if msg.startswith(prefix):
            end = msg.find("'", len(prefix))
            if end > len(prefix):
                return msg[len(prefix) : end]
    return "Incoming"


def parse_conflicts_section(merge_msg: str | None) -> list[str]:
    """Paths listed under the "Conflicts:" section of a MERGE_MSG."""
    results = []
    in_conflicts = False
    for line in (merge_msg or "").splitlines():
        stripped = line.lstrip("#").strip()
        if not in_conflicts:
            if stripped.lower().startswith("conflicts:"):
                in_conflicts = True
            continue

        if not stripped:
            break
        results.append(stripped)
    return results


def collect_reject_files(output: str | None) -> list[str]:
    """Reject files named by ``patch``'s "saving rejects to file X" lines."""
    marker = "saving rejects to file "
    files = []
    for line in (output or "").splitlines():
        idx = line.find(marker)
        if idx >= 0:
            files.append(line[idx + len(marker) :].strip())
    return files


def has_patch_rejections(output: str | None) -> bool:
    """Whether ``patch`` reported hunks it could not apply."""
    output = output or ""
    return (
        "FAILED" in output
        or "saving rejects" in output
        or "hunks ignored" in output
        or "hunk ignored" in output
    )
