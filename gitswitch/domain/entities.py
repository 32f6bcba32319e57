from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

DETACHED = "detached"


@dataclass(frozen=True)
class RepoConfig:
    identifier: str
    absolute_path: Path
    ssh_key_path: Optional[Path] = None


class RepoStatus(BaseModel):
    """Parsed snapshot of a working tree, as stored in the status cache."""

    branch: str = Field(default=DETACHED)
    dirty: bool = Field(default=True)
    raw_status_lines: List[str] = Field(default_factory=list)
    remote_branches: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_detached(self) -> bool:
        return self.branch == DETACHED

    @property
    def label(self) -> str:
        """Admin bar title, e.g. ``git(main)*`` for a dirty tree."""
        return f"git({self.branch}){'*' if self.dirty else ''}"
