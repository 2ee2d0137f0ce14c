from typing import Dict, Optional, Protocol, runtime_checkable

import redis

from rephrase.utils import get_logger

LOG = get_logger()


@runtime_checkable
class BlobStore(Protocol):
    """Anything with ``get(key) -> bytes | None`` and ``set(key, bytes)``."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class InMemoryBlobStore:
    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class RedisBlobStore:
    def __init__(self, url: str, namespace: str = 'rephrase', client=None):
        self._namespace = namespace
        self._client = client or redis.from_url(url, decode_responses=False)
        LOG.info('RedisBlobStore initialized', extra={'namespace': namespace})

    def _key(self, key: str) -> str:
        return f'{self._namespace}:{key}'

    def get(self, key: str) -> Optional[bytes]:
        val = self._client.get(self._key(key))
        if isinstance(val, str):
            val = val.encode('utf-8')
        return val

    def set(self, key: str, value: bytes) -> None:
        self._client.set(self._key(key), value)


def build_blob_store(settings) -> BlobStore:
    if settings.BLOB_STORE_BACKEND == 'redis':
        try:
            store = RedisBlobStore(settings.REDIS_URL)
            store._client.ping()
            return store
        except redis.RedisError as e:
            LOG.warning('Redis not available for blob store, using in-memory store', extra={'error': str(e)})
    return InMemoryBlobStore()
