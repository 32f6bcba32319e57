import logging
from contextlib import contextmanager
from typing import Generator

import redis

logger = logging.getLogger(__name__)


@contextmanager
def repo_lock(
    redis_client: redis.Redis, repo_id: str, timeout: float = 30
) -> Generator[bool, None, None]:
    """
    Acquires a lock for a specific repository to prevent concurrent git operations.

    Args:
        redis_client: Redis connection holding the lock.
        repo_id: The identifier of the repository to lock.
        timeout: Maximum time to wait for the lock in seconds.
    """
    lock_name = f"lock:repo:{repo_id}"
    lock = redis_client.lock(lock_name, timeout=300, blocking_timeout=timeout)

    acquired = False
    try:
        acquired = lock.acquire()
        if not acquired:
            logger.warning(
                f"Could not acquire lock for repo {repo_id} after {timeout}s"
            )
        yield acquired
    finally:
        if acquired:
            try:
                lock.release()
            except redis.exceptions.LockError:
                logger.warning(
                    f"Could not release lock for repo {repo_id} (maybe expired)"
                )
