import json
import logging

import redis

logger = logging.getLogger(__name__)

EVENTS_CHANNEL = "events"
BRANCH_SWITCHED = "GIT_SWITCH_BRANCH"


def publish_branch_switched(redis_client: redis.Redis, repo: str, branch: str) -> None:
    try:
        redis_client.publish(
            EVENTS_CHANNEL,
            json.dumps(
                {
                    "type": BRANCH_SWITCHED,
                    "payload": {
                        "branch": branch,
                        "repo": repo,
                    },
                }
            ),
        )
    except redis.RedisError as e:
        logger.error(f"Failed to publish branch switch for {repo}: {e}")
