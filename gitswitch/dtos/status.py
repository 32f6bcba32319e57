"""Repository status DTOs"""

from typing import List, Optional

from pydantic import BaseModel, Field


class BranchOption(BaseModel):
    name: str
    current: bool = False
    switch_url: str = Field(..., description="Signed, single-use switch link")


class RepoStatusResponse(BaseModel):
    repo: str
    branch: str
    dirty: bool
    label: str = Field(..., description="Admin bar title, e.g. git(main)*")
    status: List[str] = Field(default_factory=list)
    remote_branches: List[BranchOption] = Field(default_factory=list)
    pull_url: Optional[str] = None


class RepoListResponse(BaseModel):
    total: int
    items: List[RepoStatusResponse]
