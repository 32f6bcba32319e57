"""Operator authentication dependencies for FastAPI."""

from __future__ import annotations

from typing import List, Optional

from fastapi import Cookie, Depends, Header, HTTPException, Request, status
from jose.exceptions import JWTError
from pydantic import BaseModel, Field

from gitswitch.core.config import Settings
from gitswitch.services.auth_service import decode_access_token


class Operator(BaseModel):
    subject: str
    capabilities: List[str] = Field(default_factory=list)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_operator(
    access_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> Operator:
    token = None

    # Try to get token from cookie first
    if access_token:
        token = access_token
    elif authorization and authorization.startswith("Bearer "):
        token = authorization.replace("Bearer ", "", 1)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Please login.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token, settings)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {str(e)}"
        )

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return Operator(subject=subject, capabilities=payload.get("capabilities") or [])


async def require_viewer(
    operator: Operator = Depends(get_current_operator),
    settings: Settings = Depends(get_app_settings),
) -> Operator:
    if not operator.can(settings.security.view_capability):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can't do this.",
        )
    return operator


async def require_switcher(
    operator: Operator = Depends(get_current_operator),
    settings: Settings = Depends(get_app_settings),
) -> Operator:
    if not operator.can(settings.security.switch_capability):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can't do this.",
        )
    return operator
