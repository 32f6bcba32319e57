"""Turn `git status` and `git branch -r` output into a RepoStatus."""

import re
from typing import List, Optional, Sequence

from gitswitch.domain import DETACHED, RepoStatus
from gitswitch.exceptions import NotAGitRepoError

ON_BRANCH_RE = re.compile(r"On branch (.+)$")
CLEAN_MARKER = "nothing to commit"
HEAD_MARKER = "HEAD"


def parse_status(
    status_lines: Sequence[str],
    remote_branches: Optional[Sequence[str]] = None,
    path: str = "",
) -> RepoStatus:
    """
    Parse `git status` output.

    Raises NotAGitRepoError when there is no output at all or git reported a
    fatal error on the first line.
    """
    lines = list(status_lines)
    if not lines:
        raise NotAGitRepoError(path, "no status output")
    if "fatal" in lines[0]:
        raise NotAGitRepoError(path, lines[0].strip())

    branch = DETACHED
    match = ON_BRANCH_RE.search(lines[0])
    if match:
        branch = match.group(1).strip() or DETACHED

    last = next((line for line in reversed(lines) if line.strip()), "")
    dirty = CLEAN_MARKER not in last

    return RepoStatus(
        branch=branch,
        dirty=dirty,
        raw_status_lines=lines,
        remote_branches=list(remote_branches or []),
    )


def _is_head_pointer(name: str) -> bool:
    # "HEAD -> origin/main", or a bare "HEAD" when the ref is dangling
    return " -> " in name or name == HEAD_MARKER


def parse_remote_branches(branch_lines: Sequence[str], remote: str = "origin") -> List[str]:
    """
    Parse `git branch -r` output into bare branch names.

    Order is preserved; the symbolic ``origin/HEAD -> origin/main`` entry is
    dropped since it cannot be checked out.
    """
    prefix = f"{remote}/"
    branches = []
    for raw in branch_lines:
        name = raw.strip()
        if name.startswith(prefix):
            name = name[len(prefix):]
        if not name or _is_head_pointer(name):
            continue
        branches.append(name)
    return branches
