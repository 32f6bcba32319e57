"""Single-use switch tokens bound to one repo/branch pair."""

import logging
import time
import uuid
from typing import Any, Dict, Optional

import redis
from jose import jwt
from jose.exceptions import JWTError

from gitswitch.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

ACTION = "git-switch-branch"
USED_KEY_PREFIX = "git-switch-nonce"


class NonceAuthority:
    def __init__(
        self,
        redis_client: redis.Redis,
        secret_key: str,
        algorithm: str = "HS256",
        ttl: int = 24 * 60 * 60,
    ):
        self.redis = redis_client
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl

    def create(self, repo: str, branch: str, subject: Optional[str] = None) -> str:
        claims = {
            "act": ACTION,
            "repo": repo,
            "branch": branch,
            "jti": uuid.uuid4().hex,
            "exp": int(time.time()) + self.ttl,
        }
        if subject:
            claims["sub"] = subject
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def check(
        self, token: str, repo: str, branch: str, subject: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Return the claims of a token minted for this switch and not yet used.

        The token stays usable until `consume` is called with its claims.
        """
        if not token:
            raise UnauthorizedError("Missing nonce")
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise UnauthorizedError(f"Invalid nonce: {e}") from e

        if (
            claims.get("act") != ACTION
            or claims.get("repo") != repo
            or claims.get("branch") != branch
        ):
            raise UnauthorizedError("Nonce was not issued for this repository/branch")
        if subject and claims.get("sub") not in (None, subject):
            raise UnauthorizedError("Nonce was issued to another operator")

        jti = claims.get("jti")
        if not jti:
            raise UnauthorizedError("Nonce has no identifier")
        try:
            used = self.redis.exists(f"{USED_KEY_PREFIX}:{jti}")
        except redis.RedisError as e:
            logger.error(f"Could not check nonce use: {e}")
            raise UnauthorizedError("Nonce could not be verified") from e
        if used:
            raise UnauthorizedError("Nonce has already been used")
        return claims

    def consume(self, claims: Dict[str, Any]) -> None:
        """Mark a checked token as used; only the first caller wins."""
        remaining = max(int(claims.get("exp", 0) - time.time()), 1)
        try:
            first_use = self.redis.set(
                f"{USED_KEY_PREFIX}:{claims['jti']}", 1, nx=True, ex=remaining
            )
        except redis.RedisError as e:
            logger.error(f"Could not record nonce use: {e}")
            raise UnauthorizedError("Nonce could not be verified") from e
        if not first_use:
            raise UnauthorizedError("Nonce has already been used")

    def verify(
        self, token: str, repo: str, branch: str, subject: Optional[str] = None
    ) -> None:
        """Raise UnauthorizedError unless the token was minted for this switch."""
        self.consume(self.check(token, repo, branch, subject))
