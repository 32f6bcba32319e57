"""Centralised configuration loader for the git-switch service."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field


class GitSettings(BaseModel):
    executable: str = Field(default="git")
    remote: str = Field(default="origin")
    # Seconds before a hung git invocation is killed.
    command_timeout: float = Field(default=120.0)
    # Seconds to wait for another switch/refresh on the same repo.
    lock_timeout: float = Field(default=30.0)
    strict_commands: bool = Field(default=False)


class PathsSettings(BaseModel):
    content_root: Path = Field(
        default_factory=lambda: Path(
            os.getenv("GIT_SWITCH_CONTENT_ROOT", "/var/www/html/wp-content")
        )
    )
    app_root: Path = Field(
        default_factory=lambda: Path(os.getenv("GIT_SWITCH_APP_ROOT", "/var/www/html"))
    )


class RepoSettings(BaseModel):
    ssh_key_path: Optional[Path] = Field(default=None)


class CacheSettings(BaseModel):
    status_key: str = Field(default="git-switch-status")
    status_ttl: int = Field(default=3 * 60)
    purge_flag_key: str = Field(default="force_purge_cache")
    purge_flag_ttl: int = Field(default=15 * 60)


class SecuritySettings(BaseModel):
    secret_key: str = Field(
        default_factory=lambda: os.getenv(
            "GIT_SWITCH_SECRET_KEY", "your-secret-key-change-in-production"
        )
    )
    algorithm: str = Field(default="HS256")
    deploy_secret: Optional[str] = Field(
        default_factory=lambda: os.getenv("GIT_SWITCH_DEPLOY_SECRET") or None
    )
    nonce_ttl: int = Field(default=24 * 60 * 60)
    view_capability: str = Field(default="manage_options")
    switch_capability: str = Field(default="switch_themes")


class PurgeSettings(BaseModel):
    sites: List[str] = Field(default_factory=lambda: ["default"])
    # "package.module:callable" targets, each invoked as callback(site).
    callbacks: List[str] = Field(default_factory=list)


class RedisSettings(BaseModel):
    url: str = Field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )


class LoggingSettings(BaseModel):
    """Logging configuration loaded from git-switch.yml."""

    # Accept either a level name (e.g. INFO, DEBUG) or numeric level as str.
    level: str = Field(default="INFO")


class Settings(BaseModel):
    environment: str = Field(default="local")
    git: GitSettings = Field(default_factory=GitSettings)
    paths: PathsSettings = Field(default_factory=PathsSettings)
    repos: Dict[str, RepoSettings] = Field(default_factory=dict)
    active_theme: Optional[str] = Field(
        default_factory=lambda: os.getenv("GIT_SWITCH_ACTIVE_THEME") or None
    )
    cache: CacheSettings = Field(default_factory=CacheSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    purge: PurgeSettings = Field(default_factory=PurgeSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config at {path} must be a mapping")
        return data


def _config_path() -> Path:
    env_path = os.getenv("GIT_SWITCH_CONFIG")
    if env_path:
        return Path(env_path).expanduser().resolve()
    current = Path(__file__).resolve()
    for parent in current.parents:
        candidate = parent / "config" / "git-switch.yml"
        if candidate.exists():
            return candidate
    return current.parents[2] / "config" / "git-switch.yml"


def load_settings(path: Optional[Path] = None) -> Settings:
    raw = _load_yaml(path or _config_path())
    # `repos: {themes/foo: }` leaves the value as None in YAML
    repos = raw.get("repos") or {}
    raw["repos"] = {key: value or {} for key, value in repos.items()}
    return Settings(**raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
