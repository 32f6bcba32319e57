"""Run a purge left behind by a previous branch switch or refresh."""
from __future__ import annotations

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class PendingPurgeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        purge = request.app.state.git_switch.purge
        await run_in_threadpool(purge.consume_if_set)
        return await call_next(request)
