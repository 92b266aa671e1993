"""
Response cache and single-flight locks.

Two backends share one interface:
- MemoryCache: per-process dict with expiry (development, tests, one-node deploys)
- RedisCache: shared across the fleet; locks use SET NX EX so only one
  node runs a given job at a time

The backend is selected by ``CACHE_STORAGE`` ("memory" or "redis"), the same
way rate limiting picks its storage.

Values are JSON-serialisable structures (dicts/lists of primitives); cached
responses are stored exactly as they are returned to clients.
"""
import json
import threading
import time
import uuid
from typing import Any, Callable, Optional

import redis

from scout_api.core.config import settings
from scout_api.core.logging import get_logger

logger = get_logger(__name__)


class BaseCache:
    """Interface shared by the cache backends."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int) -> None:
        raise NotImplementedError

    def forget(self, key: str) -> bool:
        raise NotImplementedError

    def forget_prefix(self, prefix: str) -> int:
        raise NotImplementedError

    def flush(self) -> None:
        raise NotImplementedError

    def acquire_lock(self, name: str, ttl: int) -> Optional[str]:
        """Try to take the named lock; returns an owner token or None if held."""
        raise NotImplementedError

    def release_lock(self, name: str, token: str) -> bool:
        raise NotImplementedError

    def extend_lock(self, name: str, token: str, ttl: int) -> bool:
        """Reset the TTL of a lock this token still owns; False once it is lost."""
        raise NotImplementedError

    def remember(self, key: str, ttl: int, factory: Callable[[], Any]) -> Any:
        """Return the cached value for key, computing and storing it on a miss."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        self.set(key, value, ttl)
        return value


class MemoryCache(BaseCache):
    """In-process cache with per-key expiry."""

    def __init__(self):
        self._data: dict[str, tuple[float, Any]] = {}
        self._locks: dict[str, tuple[float, str]] = {}
        self._mutex = threading.Lock()

    def _expired(self, expires_at: float) -> bool:
        return expires_at <= time.monotonic()

    def get(self, key: str) -> Optional[Any]:
        with self._mutex:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._expired(expires_at):
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int) -> None:
        # Round-trip through JSON so both backends hand back equal structures
        stored = json.loads(json.dumps(value, default=str))
        with self._mutex:
            self._data[key] = (time.monotonic() + ttl, stored)

    def forget(self, key: str) -> bool:
        with self._mutex:
            return self._data.pop(key, None) is not None

    def forget_prefix(self, prefix: str) -> int:
        with self._mutex:
            doomed = [k for k in self._data if k.startswith(prefix)]
            for key in doomed:
                del self._data[key]
            return len(doomed)

    def flush(self) -> None:
        with self._mutex:
            self._data.clear()

    def acquire_lock(self, name: str, ttl: int) -> Optional[str]:
        with self._mutex:
            held = self._locks.get(name)
            if held and not self._expired(held[0]):
                return None
            token = str(uuid.uuid4())
            self._locks[name] = (time.monotonic() + ttl, token)
            return token

    def release_lock(self, name: str, token: str) -> bool:
        with self._mutex:
            held = self._locks.get(name)
            if held and held[1] == token:
                del self._locks[name]
                return True
            return False

    def extend_lock(self, name: str, token: str, ttl: int) -> bool:
        with self._mutex:
            held = self._locks.get(name)
            if not held or held[1] != token or self._expired(held[0]):
                return False
            self._locks[name] = (time.monotonic() + ttl, token)
            return True


# Compare-and-delete so a node never releases a lock that expired and was
# re-acquired by someone else
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

_EXTEND_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('expire', KEYS[1], ARGV[2])
end
return 0
"""


class RedisCache(BaseCache):
    """Redis-backed cache shared by every API node and scheduler process."""

    def __init__(self, client: redis.Redis, prefix: str = ""):
        self.client = client
        self.prefix = prefix
        self._release = self.client.register_script(_RELEASE_SCRIPT)
        self._extend = self.client.register_script(_EXTEND_SCRIPT)

    @classmethod
    def from_url(cls, url: str, prefix: str = "") -> "RedisCache":
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self.client.set(self._key(key), json.dumps(value, default=str), ex=ttl)

    def forget(self, key: str) -> bool:
        return bool(self.client.delete(self._key(key)))

    def forget_prefix(self, prefix: str) -> int:
        removed = 0
        for key in self.client.scan_iter(match=f"{self._key(prefix)}*", count=500):
            removed += self.client.delete(key)
        return removed

    def flush(self) -> None:
        # Only our namespace; locks live under lock: and are left alone
        for key in self.client.scan_iter(match=f"{self.prefix}*", count=500):
            if not key.startswith(f"{self.prefix}lock:"):
                self.client.delete(key)

    def acquire_lock(self, name: str, ttl: int) -> Optional[str]:
        token = str(uuid.uuid4())
        if self.client.set(self._key(f"lock:{name}"), token, nx=True, ex=ttl):
            return token
        return None

    def release_lock(self, name: str, token: str) -> bool:
        return bool(self._release(keys=[self._key(f"lock:{name}")], args=[token]))

    def extend_lock(self, name: str, token: str, ttl: int) -> bool:
        return bool(self._extend(keys=[self._key(f"lock:{name}")], args=[token, ttl]))


_cache: Optional[BaseCache] = None


def build_cache() -> BaseCache:
    """Create the backend named by CACHE_STORAGE."""
    if settings.CACHE_STORAGE == "redis":
        logger.info("Using Redis cache backend")
        return RedisCache.from_url(settings.REDIS_URL, prefix=settings.CACHE_PREFIX)
    return MemoryCache()


def get_cache() -> BaseCache:
    """Get the process-wide cache instance."""
    global _cache
    if _cache is None:
        _cache = build_cache()
    return _cache


def set_cache(cache: Optional[BaseCache]) -> None:
    """Replace the process-wide cache (tests, CLI)."""
    global _cache
    _cache = cache
