"""Redis cache for window statistics."""

import json
import logging
from typing import Optional

import redis

from gombesafe.core.config import Settings
from gombesafe.services.aggregation.engine import WindowStats

logger = logging.getLogger(__name__)

KEY_PREFIX = "stats_window"


class StatsCache:
    """
    Redis cache for statsForWindow results.

    Keys embed the store generation, which changes on every mutation, so a
    write implicitly invalidates every cached window. Redis being absent or
    unreachable only disables the cache.
    """

    def __init__(self, settings: Settings, redis_client: Optional[redis.Redis] = None):
        """
        Initialize the stats cache.

        Args:
            settings: Application settings
            redis_client: Optional Redis client (creates new if not provided)
        """
        self.ttl_seconds = settings.stats_cache_ttl_seconds
        self.redis_client = redis_client
        self._cache_enabled = settings.stats_cache_enabled or redis_client is not None

        if not self._cache_enabled:
            return

        if self.redis_client is None:
            try:
                self.redis_client = redis.from_url(
                    settings.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                # Test connection
                self.redis_client.ping()
                logger.info("Redis stats cache initialized successfully")
            except Exception as e:
                logger.warning(f"Redis stats cache initialization failed: {str(e)}")
                logger.warning("Continuing without cache (graceful degradation)")
                self._cache_enabled = False
                self.redis_client = None

    def _generate_cache_key(self, hours: int, generation: int, aged_out: int) -> str:
        return f"{KEY_PREFIX}:{generation}:{aged_out}:{hours}"

    def get(self, hours: int, generation: int, aged_out: int) -> Optional[WindowStats]:
        """
        Get cached window statistics.

        Args:
            hours: Window length in hours
            generation: Store generation the result was computed at
            aged_out: Records already older than the window start, so the
                key changes whenever an incident leaves the window

        Returns:
            Cached WindowStats or None if not found
        """
        if not self.is_enabled():
            return None

        cache_key = self._generate_cache_key(hours, generation, aged_out)
        try:
            cached_data = self.redis_client.get(cache_key)
        except redis.RedisError as e:
            logger.warning(f"Error reading stats cache: {str(e)}")
            return None

        if cached_data:
            logger.debug(f"Cache hit for key: {cache_key}")
            return WindowStats.from_dict(json.loads(cached_data))
        logger.debug(f"Cache miss for key: {cache_key}")
        return None

    def set(self, stats: WindowStats, generation: int, aged_out: int):
        if not self.is_enabled():
            return

        cache_key = self._generate_cache_key(stats.hours, generation, aged_out)
        try:
            self.redis_client.setex(cache_key, self.ttl_seconds, json.dumps(stats.to_dict()))
            logger.debug(f"Cached window stats with key: {cache_key} (TTL: {self.ttl_seconds}s)")
        except redis.RedisError as e:
            logger.warning(f"Error caching window stats: {str(e)}")

    def invalidate(self):
        """Drop every cached window."""
        if not self.is_enabled():
            return

        try:
            keys = list(self.redis_client.scan_iter(f"{KEY_PREFIX}:*"))
            if keys:
                self.redis_client.delete(*keys)
                logger.info(f"Invalidated {len(keys)} stats cache entries")
        except redis.RedisError as e:
            logger.warning(f"Error invalidating stats cache: {str(e)}")

    def is_enabled(self) -> bool:
        return self._cache_enabled and self.redis_client is not None
