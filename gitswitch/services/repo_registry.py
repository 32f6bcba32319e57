import logging
from pathlib import Path
from typing import Dict, List, Optional

from gitswitch.core.config import Settings
from gitswitch.domain import RepoConfig
from gitswitch.exceptions import UnknownRepoError
from gitswitch.utils.names import validate_identifier

logger = logging.getLogger(__name__)

THEMES_DIR = "themes"


class RepoRegistry:
    """
    Maps repo identifiers to working trees under the content root.

    Without a `repos` section the registry serves the active theme only, the
    way single-theme installs have always worked.
    """

    def __init__(
        self,
        content_root: Path,
        app_root: Path,
        repos: Optional[Dict[str, Optional[Path]]] = None,
        active_theme: Optional[str] = None,
    ):
        self.content_root = Path(content_root)
        self.app_root = Path(app_root)
        self._ssh_keys: Dict[str, Optional[Path]] = {}

        if repos:
            for identifier, ssh_key_path in repos.items():
                self._ssh_keys[validate_identifier(identifier)] = (
                    Path(ssh_key_path).expanduser() if ssh_key_path else None
                )
        elif active_theme:
            identifier = validate_identifier(f"{THEMES_DIR}/{active_theme}")
            logger.info(f"No repos configured, using active theme {identifier}")
            self._ssh_keys[identifier] = None
        else:
            logger.warning("No repos configured and no active theme set")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RepoRegistry":
        return cls(
            content_root=settings.paths.content_root,
            app_root=settings.paths.app_root,
            repos={
                identifier: repo.ssh_key_path
                for identifier, repo in settings.repos.items()
            },
            active_theme=settings.active_theme,
        )

    def list_repos(self) -> List[str]:
        return list(self._ssh_keys)

    def resolve(self, identifier: str) -> RepoConfig:
        if identifier not in self._ssh_keys:
            raise UnknownRepoError(identifier)

        ssh_key_path = self._ssh_keys[identifier]
        if ssh_key_path is not None and not ssh_key_path.is_absolute():
            ssh_key_path = self.app_root / ssh_key_path

        return RepoConfig(
            identifier=identifier,
            absolute_path=self.content_root / identifier,
            ssh_key_path=ssh_key_path,
        )
