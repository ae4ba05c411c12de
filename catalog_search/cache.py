"""Term lookup cache with Redis primary and in-memory fallback.

Entries back the popular/boosted term lookups used by search-box
autocomplete. Keys are namespaced ``terms:<index>:<domain>:<prefix>`` so a
write to one domain can drop every cached prefix of that domain at once.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import redis

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis get failed key=%s: %s", key, exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable cache entry key=%s", key)
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value, ensure_ascii=False))
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis set failed key=%s: %s", key, exc)

    def delete_prefix(self, prefix: str) -> int:
        try:
            keys = list(self.client.scan_iter(match=f"{prefix}*"))
            if not keys:
                return 0
            return int(self.client.delete(*keys))
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis invalidation failed prefix=%s: %s", prefix, exc)
            return 0


class InMemoryCache:
    def __init__(self) -> None:
        self._store: Dict[str, tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._store.get(key)
            if not value:
                return None
            expires_at, payload = value
            if expires_at < time.time():
                self._store.pop(key, None)
                return None
            return payload

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            self._store[key] = (time.time() + ttl, value)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            stale = [key for key in self._store if key.startswith(prefix)]
            for key in stale:
                del self._store[key]
            return len(stale)


def create_cache(config: Settings | None = None) -> CacheBackend:
    config = config or default_settings
    try:
        client = redis.Redis(host=config.redis_host, port=config.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s:%s", config.redis_host, config.redis_port)
        return RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        return InMemoryCache()
