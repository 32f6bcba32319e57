from .entities import DETACHED, RepoConfig, RepoStatus

__all__ = ["DETACHED", "RepoConfig", "RepoStatus"]
