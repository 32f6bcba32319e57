"""Access log for git-switch requests.

Every response gets an X-Request-ID (the caller's, if it sent one). Query
strings are never logged: deploy triggers carry the deploy secret there.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Optional

from jose.exceptions import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gitswitch.services.auth_service import decode_access_token

logger = logging.getLogger("gitswitch.request")

REQUEST_ID_HEADER = "X-Request-ID"


def _operator_subject(request: Request) -> Optional[str]:
    """Subject of the operator token, if the request carries a valid one."""
    token = request.cookies.get("access_token")
    if not token:
        scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() == "bearer":
            token = credentials.strip()
    if not token:
        return None
    try:
        return decode_access_token(token, request.app.state.settings).get("sub")
    except JWTError:
        return None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        started = time.monotonic()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        fields: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "request_id": request_id,
            "operator_sub": _operator_subject(request),
        }

        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = int((time.monotonic() - started) * 1000)
            logger.exception("Request failed", extra=fields)
            raise

        fields["status"] = response.status_code
        fields["duration_ms"] = int((time.monotonic() - started) * 1000)
        logger.info("Request finished", extra=fields)

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response
