# ================================================================
# REDIS / IN-MEMORY KEY CACHE
# (Redis optional — falls back to in-process dict for single-worker dev)
# ================================================================

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional

import redis

from safepass.config import Settings

logger = logging.getLogger(__name__)


class KeyCache:
    """Expiring string keys; used for the logout token denylist."""

    def __init__(self, host: str = "localhost", port: int = 6379, enabled: bool = True):
        self.host = host
        self.port = port
        self.enabled = enabled
        self._redis: Optional[redis.Redis] = None
        self._store: Dict[str, dict] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "KeyCache":
        return cls(settings.redis_host, settings.redis_port, settings.use_redis)

    def get_redis(self) -> Optional[redis.Redis]:
        if self._redis is None and self.enabled:
            try:
                c = redis.Redis(
                    host=self.host, port=self.port,
                    decode_responses=True,
                    socket_connect_timeout=3,
                    socket_timeout=3,
                )
                c.ping()
                self._redis = c
                logger.info("Redis connected.")
            except redis.RedisError as e:
                logger.warning("Redis unavailable (%s). Using in-memory key cache.", e)
                self.enabled = False
        return self._redis

    def set(self, key: str, val: str, ex: int) -> None:
        r = self.get_redis()
        if r:
            r.set(key, val, ex=max(ex, 1))
            return
        with self._lock:
            self._store[key] = {"v": val, "exp": time.time() + ex}

    def get(self, key: str) -> Optional[str]:
        r = self.get_redis()
        if r:
            return r.get(key)
        with self._lock:
            e = self._store.get(key)
            if e and time.time() < e["exp"]:
                return e["v"]
            self._store.pop(key, None)
        return None

    def delete(self, key: str) -> None:
        r = self.get_redis()
        if r:
            r.delete(key)
            return
        with self._lock:
            self._store.pop(key, None)
