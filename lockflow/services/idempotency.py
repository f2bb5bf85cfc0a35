import logging

import redis

from lockflow.core.config import settings

logger = logging.getLogger(__name__)


class IdempotencyStore:
    def __init__(self, client: redis.Redis | None = None, default_ttl: int | None = None) -> None:
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.default_ttl = default_ttl if default_ttl is not None else settings.unlock_idempotency_ttl

    def check_and_set(self, key: str, ttl_seconds: int | None = None) -> bool:
        """Atomic operation: setnx + expire in one call. True the first time a key is seen."""
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        try:
            created = self.client.set(f"idempotency:{key}", "1", nx=True, ex=ttl)
        except redis.RedisError as e:
            logger.warning("idempotency_redis_error", extra={"error": str(e)})
            return True  # Fail open - the session's own state already allows one grant
        return created is not None
