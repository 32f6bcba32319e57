"""
Branch switching and refreshing for deployed themes.

GitSwitchService is built once at startup (see `gitswitch.main.create_app`)
and handed to the request handlers. It holds no state of its own besides the
status cache; every mutation invalidates the repo's cache entry before
returning and leaves a purge flag for the next request.
"""

from __future__ import annotations

import importlib
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import redis

from gitswitch.core.config import Settings
from gitswitch.domain import RepoConfig, RepoStatus
from gitswitch.exceptions import (
    CannotSwitchError,
    GitSwitchError,
    InvalidNameError,
    NotAGitRepoError,
    RepoLockedError,
)
from gitswitch.services.command_runner import CommandResult, CommandRunner, GitRunner
from gitswitch.services.nonce import NonceAuthority
from gitswitch.services.purge import PurgeScheduler, resolve_callbacks
from gitswitch.services.repo_registry import RepoRegistry
from gitswitch.services.status_cache import StatusCache
from gitswitch.services.status_parser import parse_remote_branches, parse_status
from gitswitch.utils.events import publish_branch_switched
from gitswitch.utils.locking import repo_lock
from gitswitch.utils.names import validate_branch

logger = logging.getLogger(__name__)

STATUS_ARGS = ["status"]
REMOTE_BRANCHES_ARGS = ["branch", "-r", "--sort=-committerdate"]


def switch_steps(branch: str) -> List[List[str]]:
    return [
        ["checkout", "-f", branch],
        ["submodule", "update", "--init"],
    ]


def fetch_steps(remote: str) -> List[List[str]]:
    return [
        ["remote", "update"],
        ["fetch", remote],
        ["remote", "prune", remote],
    ]


def reset_steps(remote: str, branch: str) -> List[List[str]]:
    return [
        ["clean", "-fd"],
        ["reset", "--hard"],
        ["pull", "-f", remote, branch],
        ["submodule", "update", "--init", "--recursive"],
    ]


@dataclass
class OperationResult:
    repo: str
    branch: Optional[str]
    steps: List[CommandResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(step.ok for step in self.steps)


class GitSwitchService:
    def __init__(
        self,
        registry: RepoRegistry,
        cache: StatusCache,
        git: GitRunner,
        purge: PurgeScheduler,
        nonces: NonceAuthority,
        redis_client: redis.Redis,
        remote: str = "origin",
        lock_timeout: float = 30.0,
        strict_commands: bool = False,
        invalidate_bytecode: Callable[[], None] = importlib.invalidate_caches,
        lock_factory: Optional[Callable[[str], AbstractContextManager]] = None,
        publisher: Optional[Callable[[str, str], None]] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.git = git
        self.purge = purge
        self.nonces = nonces
        self.remote = remote
        self.lock_timeout = lock_timeout
        self.strict_commands = strict_commands
        self.invalidate_bytecode = invalidate_bytecode
        self.lock_factory = lock_factory or (
            lambda repo_id: repo_lock(redis_client, repo_id, timeout=lock_timeout)
        )
        self.publisher = publisher or (
            lambda repo, branch: publish_branch_switched(redis_client, repo, branch)
        )

    # Status

    def get_status(self, identifier: str) -> RepoStatus:
        """Return the cached status, reading it from git on a miss."""
        repo = self.registry.resolve(identifier)
        cached = self.cache.get(identifier)
        if cached is not None:
            return cached
        return self._read_status(repo)

    def _read_status(self, repo: RepoConfig) -> RepoStatus:
        path = repo.absolute_path
        status_result = self.git.run(path, STATUS_ARGS, repo.ssh_key_path)
        status = parse_status(status_result.lines, path=str(path))

        branches_result = self.git.run(path, REMOTE_BRANCHES_ARGS, repo.ssh_key_path)
        status = status.model_copy(
            update={
                "remote_branches": parse_remote_branches(
                    branches_result.lines, self.remote
                )
            }
        )

        self.cache.put(repo.identifier, status)
        return status

    def list_statuses(self) -> Dict[str, RepoStatus]:
        """Status of every registered repo; repos that cannot be read are left out."""
        statuses = {}
        for identifier in self.registry.list_repos():
            try:
                statuses[identifier] = self.get_status(identifier)
            except NotAGitRepoError as e:
                logger.debug(f"Skipping {identifier}: {e}")
            except GitSwitchError as e:
                logger.warning(f"Leaving {identifier} out of the listing: {e}")
        return statuses

    # Mutations

    def _run_steps(
        self, repo: RepoConfig, steps: Sequence[Sequence[str]]
    ) -> List[CommandResult]:
        results = []
        for args in steps:
            result = self.git.run(repo.absolute_path, args, repo.ssh_key_path)
            results.append(result)
            if not result.ok:
                logger.warning(
                    f"git {' '.join(args)} failed in {repo.identifier} "
                    f"(rc={result.returncode}): {result.stderr.strip()}"
                )
                if self.strict_commands:
                    result.check()
        return results

    def switch_branch(
        self,
        identifier: str,
        target_branch: str,
        authorization_token: str,
        subject: Optional[str] = None,
    ) -> OperationResult:
        validate_branch(target_branch)
        repo = self.registry.resolve(identifier)
        claims = self.nonces.check(
            authorization_token, identifier, target_branch, subject
        )

        try:
            self.get_status(identifier)
        except NotAGitRepoError as e:
            raise CannotSwitchError("Can't interact with Git.") from e

        with self.lock_factory(identifier) as acquired:
            if not acquired:
                raise RepoLockedError(identifier, self.lock_timeout)
            self.nonces.consume(claims)
            logger.info(f"Switching {identifier} to {target_branch}")
            try:
                steps = self._run_steps(repo, switch_steps(target_branch))
            finally:
                self.invalidate_bytecode()
                self.cache.invalidate(identifier)

        self.publisher(identifier, target_branch)
        self.purge.schedule()
        return OperationResult(repo=identifier, branch=target_branch, steps=steps)

    def refresh(self, identifier: str) -> OperationResult:
        """Fetch from the remote and hard-reset the checked out branch to it."""
        repo = self.registry.resolve(identifier)
        status: Optional[RepoStatus] = None
        steps: List[CommandResult] = []

        with self.lock_factory(identifier) as acquired:
            if not acquired:
                raise RepoLockedError(identifier, self.lock_timeout)
            try:
                steps.extend(self._run_steps(repo, fetch_steps(self.remote)))
                self.cache.invalidate(identifier)

                try:
                    status = self._read_status(repo)
                except NotAGitRepoError as e:
                    logger.warning(f"Not resetting {identifier}: {e}")

                if status is not None and not status.is_detached:
                    try:
                        validate_branch(status.branch)
                    except InvalidNameError:
                        logger.warning(
                            f"Not resetting {identifier}: unexpected branch {status.branch!r}"
                        )
                    else:
                        steps.extend(
                            self._run_steps(
                                repo, reset_steps(self.remote, status.branch)
                            )
                        )
            finally:
                self.cache.invalidate(identifier)

        logger.info(f"Refreshed {identifier}")
        self.purge.schedule()
        return OperationResult(
            repo=identifier,
            branch=status.branch if status else None,
            steps=steps,
        )

    def refresh_all(self) -> List[OperationResult]:
        results = []
        for identifier in self.registry.list_repos():
            try:
                results.append(self.refresh(identifier))
            except GitSwitchError:
                logger.exception(f"Refresh of {identifier} failed")
        return results

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        redis_client: redis.Redis,
        runner: Optional[CommandRunner] = None,
    ) -> "GitSwitchService":
        runner = runner or CommandRunner(timeout=settings.git.command_timeout)
        return cls(
            registry=RepoRegistry.from_settings(settings),
            cache=StatusCache(
                redis_client,
                key=settings.cache.status_key,
                ttl=settings.cache.status_ttl,
            ),
            git=GitRunner(runner, executable=settings.git.executable),
            purge=PurgeScheduler(
                redis_client,
                callbacks=resolve_callbacks(settings.purge.callbacks),
                sites=settings.purge.sites,
                key=settings.cache.purge_flag_key,
                ttl=settings.cache.purge_flag_ttl,
            ),
            nonces=NonceAuthority(
                redis_client,
                secret_key=settings.security.secret_key,
                algorithm=settings.security.algorithm,
                ttl=settings.security.nonce_ttl,
            ),
            redis_client=redis_client,
            remote=settings.git.remote,
            lock_timeout=settings.git.lock_timeout,
            strict_commands=settings.git.strict_commands,
        )
