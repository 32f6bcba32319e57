"""Data Transfer Objects (DTOs) for API responses"""

from .status import BranchOption, RepoListResponse, RepoStatusResponse

__all__ = [
    "BranchOption",
    "RepoListResponse",
    "RepoStatusResponse",
]
