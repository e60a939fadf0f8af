from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Optional

import redis

log = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "").strip()
MODEL_CACHE_KEY = os.getenv("MODEL_CACHE_KEY", "coditor:model").strip() or "coditor:model"
try:
    MODEL_CACHE_TTL_SECONDS = int(os.getenv("MODEL_CACHE_TTL_SECONDS", "0") or 0)  # 0 = never expire
except ValueError:
    MODEL_CACHE_TTL_SECONDS = 0
try:
    _REDIS_TIMEOUT = float(os.getenv("MODEL_CACHE_REDIS_TIMEOUT", "0.35") or 0.35)
except ValueError:
    _REDIS_TIMEOUT = 0.35


class ModelCache:
    """Holds the selected model identifier for the life of the process.

    `get_or_resolve` runs the resolver at most once per empty cache; the lock
    is held across the call so concurrent first requests share one listing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Optional[str] = None

    def get(self) -> Optional[str]:
        return self._value

    def set(self, model_name: str) -> None:
        if not model_name:
            raise ValueError("model name must be non-empty")
        self._value = model_name

    def clear(self) -> None:
        with self._lock:
            self._value = None

    def get_or_resolve(self, resolver: Callable[[], str]) -> str:
        cached = self.get()
        if cached:
            log.debug("model_cache: hit model=%s", cached)
            return cached
        with self._lock:
            cached = self.get()
            if cached:
                return cached
            model_name = resolver()
            self.set(model_name)
            return model_name


class RedisModelCache(ModelCache):
    """Model cache shared by every instance pointing at the same Redis.

    Falls back to the in-process value when Redis is unreachable; the
    provider picks the same model for every caller, so last writer wins.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key: str = MODEL_CACHE_KEY,
        ttl_seconds: int = MODEL_CACHE_TTL_SECONDS,
        client: Optional["redis.Redis[str]"] = None,  # type: ignore[name-defined]
    ) -> None:
        super().__init__()
        self.key = key
        # set when the last write only reached the local value
        self._local_only = False
        self.ttl_seconds = max(0, int(ttl_seconds or 0))
        if client is not None:
            self._redis = client
        else:
            self._redis = redis.from_url(
                (redis_url or REDIS_URL).strip(),
                decode_responses=True,
                socket_timeout=_REDIS_TIMEOUT,
                socket_connect_timeout=_REDIS_TIMEOUT,
            )

    def get(self) -> Optional[str]:
        try:
            value = self._redis.get(self.key)
        except redis.RedisError as exc:
            log.warning("model_cache: redis get failed, using local value: %s", exc)
            return self._value
        if value:
            self._value = value
            self._local_only = False
            return value
        if self._local_only:
            return self._value
        return None

    def set(self, model_name: str) -> None:
        super().set(model_name)
        try:
            if self.ttl_seconds > 0:
                self._redis.setex(self.key, self.ttl_seconds, model_name)
            else:
                self._redis.set(self.key, model_name)
        except redis.RedisError as exc:
            self._local_only = True
            log.warning("model_cache: redis set failed, kept local value only: %s", exc)
        else:
            self._local_only = False

    def clear(self) -> None:
        super().clear()
        self._local_only = False
        try:
            self._redis.delete(self.key)
        except redis.RedisError as exc:
            log.warning("model_cache: redis delete failed: %s", exc)


def build_model_cache() -> ModelCache:
    """Pick the Redis-backed cache when REDIS_URL is configured (never under pytest)."""
    if REDIS_URL and not os.getenv("PYTEST_CURRENT_TEST"):
        try:
            cache = RedisModelCache(REDIS_URL)
            log.info("model_cache: using redis key=%s ttl=%ss", cache.key, cache.ttl_seconds)
            return cache
        except (redis.RedisError, ValueError) as exc:
            log.warning("model_cache: redis unavailable (%s); using in-process cache", exc)
    return ModelCache()
