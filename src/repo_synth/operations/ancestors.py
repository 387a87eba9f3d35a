"""Find where a paged-out ref tip should be drawn."""

from collections import deque
from collections.abc import Callable, Collection, Sequence


def find_nearest_visible_ancestor(
    start_sha: str,
    visible: Collection[str],
    parents_of: Callable[[str], Sequence[str]],
) -> str | None:
    """Nearest ancestor of ``start_sha`` (itself included) that is visible.

    Breadth-first over parent edges, so the first visible commit reached
    has the fewest edges to the start. Each commit is expanded at most
    once even when merges make histories re-converge.
    """
    queue = deque([start_sha])
    seen = {start_sha}

    while queue:
        sha = queue.popleft()
        if sha in visible:
            return sha

        for parent in parents_of(sha):
            if parent not in seen:
                seen.add(parent)
                queue.append(parent)

    return None
