from typing import Optional, Sequence


class GitSwitchError(Exception):
    pass


class NotAGitRepoError(GitSwitchError):
    """Raised when `git status` produced no usable output."""

    def __init__(self, path: str, detail: Optional[str] = None):
        self.path = path
        message = f"{path} is not a git working tree"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnknownRepoError(GitSwitchError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Unknown repository '{identifier}'")


class InvalidNameError(GitSwitchError):
    def __init__(self, kind: str, value: str):
        self.kind = kind
        self.value = value
        super().__init__(f"Invalid {kind} name: {value!r}")


class UnauthorizedError(GitSwitchError):
    pass


class CannotSwitchError(GitSwitchError):
    pass


class RepoLockedError(GitSwitchError):
    def __init__(self, identifier: str, waited: float):
        self.identifier = identifier
        self.waited = waited
        super().__init__(
            f"Another git operation is running on '{identifier}' (waited {waited}s)"
        )


class CommandFailedError(GitSwitchError):
    def __init__(self, args: Sequence[str], returncode: int, output: str = ""):
        self.args_ = list(args)
        self.returncode = returncode
        self.output = output
        cmd = " ".join(args)
        super().__init__(f"{cmd} failed (rc={returncode}): {output or 'no output'}")


class CommandTimedOutError(GitSwitchError):
    def __init__(self, args: Sequence[str], timeout: float):
        self.args_ = list(args)
        self.timeout = timeout
        super().__init__(f"{' '.join(args)} timed out after {timeout}s")
