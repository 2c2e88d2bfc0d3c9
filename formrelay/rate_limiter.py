"""
Hybrid in-memory + Redis rate limiting
Counters live in process memory; Redis (optional) keeps them roughly in sync across workers
"""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Optional

import redis

from .config import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS, REDIS_URL

logger = logging.getLogger(__name__)

MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    retry_after: int


def get_redis_client(redis_url: Optional[str] = REDIS_URL) -> Optional[redis.Redis]:
    """
    Create a Redis client for counter sync, or None when REDIS_URL is not set
    """
    if not redis_url:
        logger.info("REDIS_URL not configured - rate limiting uses in-memory counters only")
        return None

    # Mask password in URL for logging
    if "@" in redis_url:
        url_parts = redis_url.split("@")
        protocol = url_parts[0].split(":")[0]
        masked_url = f"{protocol}:****@{url_parts[1]}"
    else:
        masked_url = "****"
    logger.info(f"📡 Using Redis URL connection: {masked_url}")

    try:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
            max_connections=20,
        )
        client.ping()
        logger.info("Redis connected successfully via URL")
        return client
    except Exception as e:
        logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
        logger.warning("⚠️ Rate limiting will use in-memory counters only")
        return None


class RateLimiter:
    """
    Fixed-window counter keyed by client identity.

    ``check`` is an atomic check-and-increment: concurrent requests for the
    same identity serialize on the lock, so no increments are lost.
    """

    def __init__(
        self,
        limit: int = RATE_LIMIT_MAX_REQUESTS,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        redis_client: Optional[redis.Redis] = None,
        key_prefix: str = "form_submit",
        clock=time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self._clock = clock
        # Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
        self._memory_cache: dict[str, dict] = {}
        self._lock = Lock()
        self._last_cleanup_time = 0

    def _now(self) -> int:
        return int(self._clock())

    def _cleanup_expired(self, current_time: int):
        """Remove expired entries from memory cache (caller holds the lock)"""
        if current_time - self._last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
            return

        expired_keys = [
            k for k, v in self._memory_cache.items() if current_time >= v.get("reset_time", 0)
        ]
        for k in expired_keys:
            del self._memory_cache[k]

        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

        self._last_cleanup_time = current_time

    def _load_from_redis(self, key: str, current_time: int) -> Optional[dict]:
        """Resume a window another worker already counted (called without the lock)"""
        if self.redis_client is None:
            return None
        try:
            redis_count = self.redis_client.get(key)
            redis_ttl = self.redis_client.ttl(key)
            if redis_count and redis_ttl > 0:
                return {
                    "count": int(redis_count),
                    "reset_time": current_time + redis_ttl,
                    "last_redis_sync": current_time,
                }
        except Exception as e:
            logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")
        return None

    def _new_entry(self, current_time: int) -> dict:
        return {
            "count": 0,
            "reset_time": current_time + self.window_seconds,
            "last_redis_sync": current_time,
        }

    def _due_for_sync(self, entry: dict, current_time: int) -> Optional[tuple[int, int]]:
        """Count and TTL to push to Redis, or None when not due (caller holds the lock)"""
        if self.redis_client is None:
            return None
        if current_time - entry.get("last_redis_sync", 0) < MEMORY_CACHE_SYNC_INTERVAL:
            return None
        entry["last_redis_sync"] = current_time
        return entry["count"], max(1, entry["reset_time"] - current_time)

    def _sync_to_redis(self, key: str, count: int, ttl: int):
        """Push a counter snapshot to Redis (called without the lock)"""
        try:
            self.redis_client.set(key, count, ex=ttl)
            logger.debug(f"📡 Synced {key} to Redis: {count}/{self.limit}")
        except Exception as e:
            logger.warning(f"⚠️ Failed to sync to Redis: {e}")

    def check(self, identity: str) -> RateLimitDecision:
        """
        Count one request for ``identity`` and report whether it is allowed.

        Redis round-trips happen outside the lock; with Redis configured this
        blocks, so async callers should run it in a worker thread.
        """
        key = f"{self.key_prefix}:{identity}"
        try:
            current_time = self._now()

            with self._lock:
                self._cleanup_expired(current_time)
                known = key in self._memory_cache

            resumed = None if known else self._load_from_redis(key, current_time)

            with self._lock:
                entry = self._memory_cache.get(key)
                if entry is None:
                    entry = resumed or self._new_entry(current_time)
                    self._memory_cache[key] = entry

                # Check if window has expired
                if current_time >= entry["reset_time"]:
                    entry["count"] = 0
                    entry["reset_time"] = current_time + self.window_seconds
                    entry["last_redis_sync"] = 0

                is_allowed = entry["count"] < self.limit
                if is_allowed:
                    entry["count"] += 1

                snapshot = self._due_for_sync(entry, current_time)
                ttl = max(0, entry["reset_time"] - current_time)
                decision = RateLimitDecision(allowed=is_allowed, count=entry["count"], retry_after=ttl)

            if snapshot is not None:
                self._sync_to_redis(key, *snapshot)
            return decision

        except Exception as e:
            logger.error(f"❌ Rate limit check failed: {str(e)}")
            # Fail closed - deny request if rate limiting fails
            logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
            return RateLimitDecision(allowed=False, count=self.limit, retry_after=0)


def build_rate_limiter() -> RateLimiter:
    return RateLimiter(redis_client=get_redis_client())
