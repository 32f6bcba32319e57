from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from gitswitch.api.deps import get_app_settings, get_git_switch, require_switcher, require_viewer
from gitswitch.core.config import Settings
from gitswitch.dtos import BranchOption, RepoListResponse, RepoStatusResponse
from gitswitch.middleware.auth import Operator
from gitswitch.middleware.deploy_trigger import PULL_PARAM
from gitswitch.services.git_switch_service import GitSwitchService

router = APIRouter()


def _safe_referer(request: Request) -> str:
    """Referring page, provided it is on this host."""
    referer = request.headers.get("referer")
    if not referer:
        return "/"
    parsed = urlparse(referer)
    if parsed.scheme not in ("", "http", "https"):
        return "/"
    if parsed.netloc and parsed.netloc != request.url.netloc:
        return "/"
    return referer


@router.get("/repos", response_model=RepoListResponse, name="list_repos")
def list_repos(
    request: Request,
    service: GitSwitchService = Depends(get_git_switch),
    settings: Settings = Depends(get_app_settings),
    operator: Operator = Depends(require_viewer),
):
    """Status of each managed repository with switch links for its remote branches."""
    deploy_secret = settings.security.deploy_secret
    items = []
    for identifier, repo_status in service.list_statuses().items():
        branches = []
        for name in repo_status.remote_branches:
            nonce = service.nonces.create(identifier, name, subject=operator.subject)
            switch_url = request.url_for("switch_branch").include_query_params(
                repo=identifier, branch=name, nonce=nonce
            )
            branches.append(
                BranchOption(
                    name=name,
                    current=name == repo_status.branch,
                    switch_url=str(switch_url),
                )
            )

        pull_url = None
        if deploy_secret and branches:
            pull_url = str(
                request.url_for("list_repos").include_query_params(
                    **{PULL_PARAM: deploy_secret, "repo": identifier}
                )
            )

        items.append(
            RepoStatusResponse(
                repo=identifier,
                branch=repo_status.branch,
                dirty=repo_status.dirty,
                label=repo_status.label,
                status=repo_status.raw_status_lines,
                remote_branches=branches,
                pull_url=pull_url,
            )
        )
    return RepoListResponse(total=len(items), items=items)


@router.get("/switch-branch", name="switch_branch")
def switch_branch(
    request: Request,
    repo: str = Query(..., description="Repository identifier, e.g. themes/foo"),
    branch: str = Query(..., description="Remote branch to check out"),
    nonce: str = Query(..., description="Switch token issued with the branch list"),
    service: GitSwitchService = Depends(get_git_switch),
    operator: Operator = Depends(require_switcher),
):
    service.switch_branch(repo, branch, nonce, subject=operator.subject)
    return RedirectResponse(
        _safe_referer(request), status_code=status.HTTP_303_SEE_OTHER
    )
