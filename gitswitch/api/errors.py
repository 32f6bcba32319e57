"""Plain-text error responses for git-switch failures."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from gitswitch.exceptions import (
    CannotSwitchError,
    CommandFailedError,
    CommandTimedOutError,
    GitSwitchError,
    InvalidNameError,
    NotAGitRepoError,
    RepoLockedError,
    UnauthorizedError,
    UnknownRepoError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    UnknownRepoError: status.HTTP_404_NOT_FOUND,
    InvalidNameError: status.HTTP_400_BAD_REQUEST,
    CannotSwitchError: status.HTTP_409_CONFLICT,
    NotAGitRepoError: status.HTTP_409_CONFLICT,
    RepoLockedError: status.HTTP_409_CONFLICT,
    CommandFailedError: status.HTTP_502_BAD_GATEWAY,
    CommandTimedOutError: status.HTTP_504_GATEWAY_TIMEOUT,
}

ERROR_MESSAGE = {
    UnauthorizedError: "You can't do this.",
    CannotSwitchError: "Can't interact with Git.",
    NotAGitRepoError: "Can't interact with Git.",
}


def error_response(exc: GitSwitchError) -> PlainTextResponse:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            message = ERROR_MESSAGE.get(error_type, str(exc))
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        message = str(exc)

    logger.warning(f"{type(exc).__name__}: {exc}")
    return PlainTextResponse(message, status_code=status_code)


def register_exception_handlers(app: FastAPI) -> None:
    async def handle_git_switch_error(
        request: Request, exc: GitSwitchError
    ) -> PlainTextResponse:
        return error_response(exc)

    app.add_exception_handler(GitSwitchError, handle_git_switch_error)
