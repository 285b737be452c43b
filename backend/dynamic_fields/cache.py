"""Namespaced TTL caches used for registry read-through lookups."""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from threading import Lock
from typing import Any, Protocol

import redis

from .config import RegistrySettings

# purpose: get/set/invalidate-by-namespace cache collaborator with two storage options
# inputs: namespace string, key string, JSON-compatible value, TTL seconds
# outputs: cached value or None on miss/expiry
# status: active

_logger = logging.getLogger(__name__)


class Cache(Protocol):
    def get(self, namespace: str, key: str) -> Any | None: ...

    def set(self, namespace: str, key: str, value: Any, ttl: int) -> None: ...

    def invalidate(self, namespace: str) -> None: ...


@dataclass
class _CacheEntry:
    """Stored value with its absolute expiry."""

    value: Any
    expires_at: datetime


class MemoryCache:
    """Process-local cache guarded by a lock; values are deep-copied both ways."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], _CacheEntry] = {}
        self._lock = Lock()

    def _prune_expired(self, now: datetime) -> None:
        expired_keys = [
            cache_key
            for cache_key, entry in self._entries.items()
            if entry.expires_at <= now
        ]
        for cache_key in expired_keys:
            self._entries.pop(cache_key, None)

    def get(self, namespace: str, key: str) -> Any | None:
        now = datetime.now(timezone.utc)
        with self._lock:
            self._prune_expired(now)
            entry = self._entries.get((namespace, key))
            if entry is None:
                return None
            return copy.deepcopy(entry.value)

    def set(self, namespace: str, key: str, value: Any, ttl: int) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        entry = _CacheEntry(value=copy.deepcopy(value), expires_at=expires_at)
        with self._lock:
            self._entries[(namespace, key)] = entry

    def invalidate(self, namespace: str) -> None:
        with self._lock:
            for cache_key in [k for k in self._entries if k[0] == namespace]:
                self._entries.pop(cache_key, None)

    def __len__(self) -> int:
        with self._lock:
            self._prune_expired(datetime.now(timezone.utc))
            return len(self._entries)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class RedisCache:
    """Redis-backed cache storing JSON documents under ``<namespace>::<key>``."""

    def __init__(self, client: "redis.Redis") -> None:
        self.client = client

    @staticmethod
    def _key(namespace: str, key: str) -> str:
        return f"{namespace}::{key}"

    def get(self, namespace: str, key: str) -> Any | None:
        raw = self.client.get(self._key(namespace, key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return json.loads(raw)

    def set(self, namespace: str, key: str, value: Any, ttl: int) -> None:
        payload = json.dumps(value, default=_json_default)
        self.client.set(self._key(namespace, key), payload, ex=ttl)

    def invalidate(self, namespace: str) -> None:
        keys = list(self.client.scan_iter(match=f"{namespace}::*"))
        if keys:
            self.client.delete(*keys)
        _logger.debug("Invalidated %d cache keys under %s", len(keys), namespace)


_CACHE: Cache | None = None


def build_cache(settings: RegistrySettings) -> Cache:
    """Construct the cache selected by ``settings.cache_backend``."""

    if settings.cache_backend == "redis":
        if settings.testing:
            import fakeredis

            return RedisCache(fakeredis.FakeRedis())
        return RedisCache(redis.from_url(settings.redis_url))
    if settings.cache_backend != "memory":
        _logger.warning(
            "Unknown cache backend %r, falling back to memory", settings.cache_backend
        )
    return MemoryCache()


def get_cache(settings: RegistrySettings) -> Cache:
    global _CACHE
    if _CACHE is None:
        _CACHE = build_cache(settings)
    return _CACHE


def reset_cache() -> None:
    global _CACHE
    _CACHE = None
