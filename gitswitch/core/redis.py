from typing import Optional

import redis


class RedisClient:
    _client: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls, url: Optional[str] = None) -> redis.Redis:
        if cls._client is None:
            if url is None:
                raise ValueError("Redis URL must be provided for initialization")
            cls._client = redis.from_url(url, decode_responses=True)
        return cls._client


def get_redis(url: Optional[str] = None) -> redis.Redis:
    if url is None:
        from gitswitch.core.config import get_settings

        url = get_settings().redis.url
    return RedisClient.get_client(url)
