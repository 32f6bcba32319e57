"""Allow-lists for names that end up in git argv vectors."""

import re

from gitswitch.exceptions import InvalidNameError

IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9._-]+(/[A-Za-z0-9._-]+)*$")
BRANCH_RE = re.compile(r"^[A-Za-z0-9._/-]+$")


def validate_identifier(identifier: str) -> str:
    if not identifier or not IDENTIFIER_RE.match(identifier):
        raise InvalidNameError("repository", identifier)
    if any(part in (".", "..") for part in identifier.split("/")):
        raise InvalidNameError("repository", identifier)
    return identifier


def validate_branch(branch: str) -> str:
    """Reject anything git would read as an option or an invalid ref."""
    if (
        not branch
        or not BRANCH_RE.match(branch)
        or branch.startswith(("-", "/", "."))
        or branch.endswith(("/", ".", ".lock"))
        or ".." in branch
        or "//" in branch
        or "/." in branch
    ):
        raise InvalidNameError("branch", branch)
    return branch
