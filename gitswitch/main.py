"""FastAPI application entry point."""

import logging
from typing import Optional

import redis
from fastapi import FastAPI

from gitswitch import __version__
from gitswitch.api import health, repos
from gitswitch.api.errors import register_exception_handlers
from gitswitch.core.config import Settings, get_settings
from gitswitch.core.logging import setup_logging
from gitswitch.core.redis import get_redis
from gitswitch.middleware.deploy_trigger import DeployTriggerMiddleware
from gitswitch.middleware.pending_purge import PendingPurgeMiddleware
from gitswitch.middleware.request_logging import RequestLoggingMiddleware
from gitswitch.services.command_runner import CommandRunner
from gitswitch.services.git_switch_service import GitSwitchService

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    redis_client: Optional[redis.Redis] = None,
    runner: Optional[CommandRunner] = None,
    service: Optional[GitSwitchService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    redis_client = redis_client or get_redis(settings.redis.url)

    app = FastAPI(
        title="Git Switch",
        description="Inspect and switch the git branch of deployed themes",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings
    app.state.git_switch = service or GitSwitchService.from_settings(
        settings, redis_client, runner=runner
    )

    # Added last runs first: logging wraps everything, pending purges run
    # before any deploy trigger or route.
    app.add_middleware(DeployTriggerMiddleware)
    app.add_middleware(PendingPurgeMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(repos.router, prefix="/api/git-switch", tags=["Git Switch"])

    logger.info(
        f"Managing {len(app.state.git_switch.registry.list_repos())} repositories"
    )
    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    setup_logging(settings.logging.level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
