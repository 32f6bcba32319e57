"""
Short-lived cache of repository status records.

Every repo shares a single Redis key holding a JSON object
``{identifier: RepoStatus}``; each write rewrites the whole object and resets
its TTL. Writes go through WATCH/MULTI so two requests updating different
repos cannot drop each other's entries.

Store failures never reach the caller: a broken Redis reads as a cache miss
and the status is recomputed from git.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

import redis
from pydantic import ValidationError

from gitswitch.domain import RepoStatus

logger = logging.getLogger(__name__)

DEFAULT_KEY = "git-switch-status"
DEFAULT_TTL = 3 * 60


class StatusCache:
    def __init__(
        self,
        redis_client: redis.Redis,
        key: str = DEFAULT_KEY,
        ttl: int = DEFAULT_TTL,
    ):
        self.redis = redis_client
        self.key = key
        self.ttl = ttl

    @staticmethod
    def _decode(raw: Any) -> Dict[str, Any]:
        if not raw:
            return {}
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable status cache payload")
            return {}
        return data if isinstance(data, dict) else {}

    def _read_map(self) -> Dict[str, Any]:
        try:
            return self._decode(self.redis.get(self.key))
        except redis.RedisError as e:
            logger.warning(f"Status cache read failed: {e}")
            return {}

    def get(self, identifier: str) -> Optional[RepoStatus]:
        value = self._read_map().get(identifier)
        if not value:
            return None
        try:
            return RepoStatus.model_validate(value)
        except ValidationError:
            logger.debug(f"Ignoring malformed cache entry for {identifier}")
            return None

    def _update(self, mutate: Callable[[Dict[str, Any]], None]) -> None:
        def apply(pipe: redis.client.Pipeline) -> None:
            entries = self._decode(pipe.get(self.key))
            mutate(entries)
            pipe.multi()
            if entries:
                pipe.set(self.key, json.dumps(entries), ex=self.ttl)
            else:
                pipe.delete(self.key)

        try:
            self.redis.transaction(apply, self.key)
        except redis.RedisError as e:
            logger.warning(f"Status cache write failed: {e}")

    def put(self, identifier: str, status: RepoStatus) -> None:
        def mutate(entries: Dict[str, Any]) -> None:
            entries[identifier] = status.model_dump()

        self._update(mutate)

    def invalidate(self, identifier: str) -> None:
        self._update(lambda entries: entries.pop(identifier, None))

    def clear(self) -> None:
        try:
            self.redis.delete(self.key)
        except redis.RedisError as e:
            logger.warning(f"Status cache clear failed: {e}")
