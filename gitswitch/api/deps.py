"""Common dependency aliases for API endpoints."""

from fastapi import Request

from gitswitch.middleware.auth import (
    get_app_settings,
    get_current_operator,
    require_switcher,
    require_viewer,
)
from gitswitch.services.git_switch_service import GitSwitchService


def get_git_switch(request: Request) -> GitSwitchService:
    return request.app.state.git_switch


__all__ = [
    "get_app_settings",
    "get_current_operator",
    "get_git_switch",
    "require_switcher",
    "require_viewer",
]
