"""
Deferred purge of downstream rendering caches.

Switching a branch changes the theme's templates and styles, so compiled CSS
and page caches have to be rebuilt. The purge is not run inline: the mutating
request only sets a flag, and the next request consumes it on the way in.
"""

import importlib
import logging
from typing import Callable, Iterable, List, Optional, Sequence

import redis

logger = logging.getLogger(__name__)

PurgeCallback = Callable[[str], None]

DEFAULT_FLAG_KEY = "force_purge_cache"
DEFAULT_FLAG_TTL = 15 * 60


def resolve_callbacks(targets: Iterable[str]) -> List[PurgeCallback]:
    """
    Import ``package.module:attr`` purge targets.

    Integrations that are not installed are skipped, not treated as errors.
    """
    callbacks = []
    for target in targets:
        module_name, _, attr = target.partition(":")
        try:
            module = importlib.import_module(module_name)
            callback = getattr(module, attr) if attr else module
        except (ImportError, AttributeError) as e:
            logger.debug(f"Skipping purge target {target}: {e}")
            continue
        if not callable(callback):
            logger.debug(f"Skipping purge target {target}: not callable")
            continue
        callbacks.append(callback)
    return callbacks


class PurgeScheduler:
    def __init__(
        self,
        redis_client: redis.Redis,
        callbacks: Optional[Sequence[PurgeCallback]] = None,
        sites: Optional[Sequence[str]] = None,
        key: str = DEFAULT_FLAG_KEY,
        ttl: int = DEFAULT_FLAG_TTL,
    ):
        self.redis = redis_client
        self.callbacks = list(callbacks or [])
        self.sites = list(sites or ["default"])
        self.key = key
        self.ttl = ttl

    def schedule(self) -> None:
        """Force cache purging on next request."""
        try:
            self.redis.set(self.key, 1, ex=self.ttl)
        except redis.RedisError as e:
            logger.error(f"Failed to schedule cache purge: {e}")

    def is_pending(self) -> bool:
        try:
            return bool(self.redis.exists(self.key))
        except redis.RedisError:
            return False

    def consume_if_set(self) -> bool:
        try:
            flag = self.redis.getdel(self.key)
        except redis.RedisError as e:
            logger.warning(f"Could not read cache purge flag: {e}")
            return False
        if not flag:
            return False
        self.purge()
        return True

    def purge(self) -> None:
        """Run every purge callback for every site."""
        logger.info(
            f"Purging downstream caches on {len(self.sites)} site(s) "
            f"with {len(self.callbacks)} callback(s)"
        )
        for site in self.sites:
            for callback in self.callbacks:
                try:
                    callback(site)
                except Exception:
                    logger.exception(
                        f"Purge callback {getattr(callback, '__name__', callback)!r} "
                        f"failed for site {site}"
                    )
