"""Secret-guarded deploy hooks.

Any request carrying ``git-switch-auto-deploy=<secret>`` refreshes the named
repo (or all of them) and answers "Refreshed."; CI systems call this after a
push. ``git-pull=<secret>`` does the same refresh and then redirects back to
the page without the trigger parameters.
"""
from __future__ import annotations

import hmac
import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response

from gitswitch.api.errors import error_response
from gitswitch.exceptions import GitSwitchError
from gitswitch.services.git_switch_service import GitSwitchService

logger = logging.getLogger(__name__)

AUTO_DEPLOY_PARAM = "git-switch-auto-deploy"
PULL_PARAM = "git-pull"
REPO_PARAM = "repo"


def _secret_matches(candidate: Optional[str], secret: str) -> bool:
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


def _refresh(service: GitSwitchService, repo: Optional[str]) -> None:
    if repo:
        service.refresh(repo)
    else:
        service.refresh_all()


class DeployTriggerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        secret = request.app.state.settings.security.deploy_secret
        if not secret:
            return await call_next(request)

        params = request.query_params
        auto_deploy = _secret_matches(params.get(AUTO_DEPLOY_PARAM), secret)
        pull = _secret_matches(params.get(PULL_PARAM), secret)
        if not (auto_deploy or pull):
            return await call_next(request)

        service: GitSwitchService = request.app.state.git_switch
        repo = params.get(REPO_PARAM)
        logger.info(
            "Deploy trigger received",
            extra={"trigger": AUTO_DEPLOY_PARAM if auto_deploy else PULL_PARAM, "repo": repo},
        )
        try:
            await run_in_threadpool(_refresh, service, repo)
        except GitSwitchError as exc:
            return error_response(exc)

        if auto_deploy:
            return PlainTextResponse("Refreshed.")
        target = request.url.remove_query_params([PULL_PARAM, REPO_PARAM])
        return RedirectResponse(str(target), status_code=303)
