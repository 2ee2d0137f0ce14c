"""TTL-bounded caches for raw JSON responses, keyed by hash(model + prompt)."""
import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

import redis

from rephrase.utils import get_logger, log_cache_event

LOG = get_logger()

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 50


def cache_key(model: str, prompt: str) -> str:
    h = hashlib.sha256(f'{model}\x00{prompt}'.encode('utf-8')).hexdigest()[:32]
    return f'llm:{h}'


@dataclass(frozen=True)
class CachedResponse:
    payload: str
    timestamp: float


class ResponseCache:
    """In-process cache; oldest insertion is evicted once ``max_entries`` is exceeded."""

    backend = 'memory'

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, max_entries: int = DEFAULT_MAX_ENTRIES, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: 'OrderedDict[str, CachedResponse]' = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, model: str, prompt: str) -> Optional[str]:
        key = cache_key(model, prompt)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                log_cache_event('miss', key, self.backend)
                return None
            if self._clock() - entry.timestamp >= self.ttl:
                del self._entries[key]
                log_cache_event('expired', key, self.backend)
                return None
        log_cache_event('hit', key, self.backend)
        return entry.payload

    def set(self, model: str, prompt: str, payload: str) -> None:
        key = cache_key(model, prompt)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CachedResponse(payload=payload, timestamp=self._clock())
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log_cache_event('evict', evicted, self.backend)
        log_cache_event('set', key, self.backend, ttl=self.ttl)

    def invalidate(self, model: str, prompt: str) -> None:
        with self._lock:
            self._entries.pop(cache_key(model, prompt), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisResponseCache:
    """Shared cache for multi-process deployments; expiry is delegated to Redis."""

    backend = 'redis'

    def __init__(self, url: str, ttl: float = DEFAULT_TTL_SECONDS):
        self.ttl = ttl
        self.enabled = True
        self._client = None
        try:
            self._client = redis.from_url(url, decode_responses=True)
            self._client.ping()
            LOG.info('redis_cache_connected', extra={'url': url})
        except redis.RedisError as e:
            LOG.warning('redis_cache_unavailable', extra={'error': str(e)})
            self.enabled = False

    def get(self, model: str, prompt: str) -> Optional[str]:
        if not self.enabled:
            return None
        key = cache_key(model, prompt)
        try:
            val = self._client.get(key)
        except redis.RedisError as e:
            LOG.warning('cache_get_failed', extra={'error': str(e)})
            return None
        log_cache_event('miss' if val is None else 'hit', key, self.backend)
        return val

    def set(self, model: str, prompt: str, payload: str) -> None:
        if not self.enabled:
            return
        key = cache_key(model, prompt)
        try:
            self._client.setex(key, max(1, int(self.ttl)), payload)
        except redis.RedisError as e:
            LOG.warning('cache_set_failed', extra={'error': str(e)})
            return
        log_cache_event('set', key, self.backend, ttl=self.ttl)

    def invalidate(self, model: str, prompt: str) -> None:
        if not self.enabled:
            return
        try:
            self._client.delete(cache_key(model, prompt))
        except redis.RedisError as e:
            LOG.warning('cache_invalidate_failed', extra={'error': str(e)})

    def clear(self) -> None:
        # keys are namespaced; only drop ours
        if not self.enabled:
            return
        try:
            for key in self._client.scan_iter('llm:*'):
                self._client.delete(key)
        except redis.RedisError as e:
            LOG.warning('cache_clear_failed', extra={'error': str(e)})


def build_response_cache(settings):
    if not settings.RESPONSE_CACHE_ENABLED:
        return None
    if settings.RESPONSE_CACHE_BACKEND == 'redis':
        return RedisResponseCache(settings.REDIS_URL, ttl=settings.RESPONSE_CACHE_TTL)
    return ResponseCache(ttl=settings.RESPONSE_CACHE_TTL, max_entries=settings.RESPONSE_CACHE_MAX_ENTRIES)
