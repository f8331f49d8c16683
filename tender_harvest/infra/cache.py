"""Key/value cache backends holding per-source snapshots with a TTL."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Dict

import redis

from ..config import CacheSettings
from ..errors import CacheError


class BaseCache(ABC):
    """Uniform cache contract so the read path does not care about the backend."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent or expired."""

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""

    @abstractmethod
    def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store ``value`` only when ``key`` is absent; return True when written."""

    @abstractmethod
    def delete(self, *keys: str) -> None:
        """Remove keys; missing keys are ignored."""

    def close(self) -> None:
        return


class MemoryCache(BaseCache):
    """In-process cache; entries expire lazily on read."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[str, tuple[datetime, str]] = {}
        self._lock = Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise CacheError(f"TTL must be positive, got {ttl_seconds}")
        with self._lock:
            self._entries[key] = (self._clock() + timedelta(seconds=ttl_seconds), value)

    def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            raise CacheError(f"TTL must be positive, got {ttl_seconds}")
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and now < entry[0]:
                return False
            self._entries[key] = (now + timedelta(seconds=ttl_seconds), value)
            return True

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._entries.pop(key, None)


class RedisCache(BaseCache):
    """Redis-backed cache using SETEX so expiry is enforced server side."""

    def __init__(self, client: Any) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> str | None:
        try:
            value = self.client.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"GET {key} failed: {exc}") from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self.client.setex(key, ttl_seconds, value)
        except redis.RedisError as exc:
            raise CacheError(f"SETEX {key} failed: {exc}") from exc

    def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        try:
            written = self.client.set(key, value, ex=ttl_seconds, nx=True)
        except redis.RedisError as exc:
            raise CacheError(f"SET NX {key} failed: {exc}") from exc
        return bool(written)

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError as exc:
            raise CacheError(f"DEL {', '.join(keys)} failed: {exc}") from exc

    def close(self) -> None:
        self.client.close()


def build_cache(settings: CacheSettings) -> BaseCache:
    if settings.backend == "redis":
        return RedisCache.from_url(str(settings.redis_url))
    return MemoryCache()


__all__ = ["BaseCache", "MemoryCache", "RedisCache", "build_cache"]
