"""
Redis caching utilities for external lookups
Keeps geocoding results across restarts; the service works without Redis
"""
import hashlib
import json
import logging
import os
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None


def redis_configured() -> bool:
    return bool(os.getenv("REDIS_URL") or os.getenv("REDIS_HOST"))


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports both standard Redis and managed Redis URLs
    """
    global redis_client

    if redis_client is None:
        redis_url = os.getenv("REDIS_URL")

        if redis_url:
            # Mask password in URL for logging
            if "@" in redis_url:
                url_parts = redis_url.split("@")
                protocol = url_parts[0].split(":")[0]
                masked_url = f"{protocol}:****@{url_parts[1]}"
            else:
                masked_url = "****"
            logger.info(f"📡 Using Redis URL connection: {masked_url}")

            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
        else:
            redis_host = os.getenv("REDIS_HOST", "localhost")
            redis_port = int(os.getenv("REDIS_PORT", "6379"))
            redis_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"
            logger.info(f"📡 Using Redis at {redis_host}:{redis_port} (SSL: {redis_ssl})")

            client = redis.Redis(
                host=redis_host,
                port=redis_port,
                password=os.getenv("REDIS_PASSWORD", None),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=redis_ssl,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )

        # Test connection
        client.ping()
        redis_client = client
        logger.info("Redis connected successfully")

    return redis_client


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, client: Optional[Any] = None):
        self.redis_client = client
        self._unavailable = False

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is not None:
            return self.redis_client
        if self._unavailable or not redis_configured():
            return None
        try:
            self.redis_client = get_redis_client()
        except Exception as e:
            logger.warning(f"⚠️ Redis cache unavailable: {e}")
            self._unavailable = True
            return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()


def build_geocode_key(address: str) -> str:
    """Build cache key for a geocoded address (hash of the normalized text)"""
    normalized = " ".join(address.lower().split())
    digest = hashlib.sha1(normalized.encode("utf-8")).hexdigest()
    return f"geo:addr:{digest}"
