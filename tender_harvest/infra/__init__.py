"""Infra layer utilities (SQLite connections, cache backends)."""

from .cache import BaseCache, MemoryCache, RedisCache, build_cache
from .storage import SQLiteManager

__all__ = ["BaseCache", "MemoryCache", "RedisCache", "SQLiteManager", "build_cache"]
