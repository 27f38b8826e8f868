"""
Externally invalidated cache of resolved agent configuration, keyed by config key
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class ToolConfigCache(ABC):
    """Cache of raw configuration documents; safe to share between concurrent turns"""

    @abstractmethod
    async def get(self, config_key: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def set(self, config_key: str, config_data: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def invalidate(self, config_key: str) -> None:
        pass


class InMemoryToolConfigCache(ToolConfigCache):
    """TTL-bounded process-local cache"""

    def __init__(self, ttl_seconds: int = 60):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, config_key: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            entry = self._entries.get(config_key)
            if entry is None:
                return None
            expires_at, data = entry
            if self.ttl_seconds and time.monotonic() >= expires_at:
                del self._entries[config_key]
                return None
            return data

    async def set(self, config_key: str, config_data: Dict[str, Any]) -> None:
        async with self._lock:
            self._entries[config_key] = (time.monotonic() + self.ttl_seconds, config_data)

    async def invalidate(self, config_key: str) -> None:
        async with self._lock:
            self._entries.pop(config_key, None)


class RedisToolConfigCache(ToolConfigCache):
    """Cache shared by every worker process through Redis"""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int = 60, prefix: str = "agent_config"):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self.logger = logging.getLogger(self.__class__.__name__)

    def _key(self, config_key: str) -> str:
        return f"{self.prefix}:{config_key}"

    async def get(self, config_key: str) -> Optional[Dict[str, Any]]:
        raw = await self.redis.get(self._key(config_key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            self.logger.warning(f"Discarding unreadable cache entry for {config_key}")
            await self.redis.delete(self._key(config_key))
            return None

    async def set(self, config_key: str, config_data: Dict[str, Any]) -> None:
        payload = json.dumps(config_data)
        if self.ttl_seconds:
            await self.redis.setex(self._key(config_key), self.ttl_seconds, payload)
        else:
            await self.redis.set(self._key(config_key), payload)

    async def invalidate(self, config_key: str) -> None:
        await self.redis.delete(self._key(config_key))
        self.logger.info(f"Invalidated cached configuration {config_key}")


def create_tool_config_cache(settings_obj) -> ToolConfigCache:
    """Build the cache backend selected in settings"""
    if settings_obj.TOOL_CONFIG_CACHE_BACKEND == "redis":
        client = redis.from_url(settings_obj.REDIS_URL, decode_responses=True)
        logger.info("Redis client initialized for tool configuration cache")
        return RedisToolConfigCache(client, ttl_seconds=settings_obj.TOOL_CONFIG_CACHE_TTL_SECONDS)
    return InMemoryToolConfigCache(ttl_seconds=settings_obj.TOOL_CONFIG_CACHE_TTL_SECONDS)
