import pytest

from rephrase.config import Settings
from rephrase.storage import BlobStore, InMemoryBlobStore, RedisBlobStore, build_blob_store
from tests.fixtures.mock_redis import MockRedisClient, UnreachableRedisClient


@pytest.mark.unit
def test_in_memory_store():
    store = InMemoryBlobStore()
    assert store.get('k') is None
    store.set('k', b'v')
    assert store.get('k') == b'v'
    assert isinstance(store, BlobStore)


@pytest.mark.unit
def test_redis_store_namespaces_keys():
    client = MockRedisClient()
    store = RedisBlobStore('redis://localhost:6379/0', client=client)
    store.set('vocabBank', b'[]')
    assert client.get('rephrase:vocabBank') == b'[]'
    assert store.get('vocabBank') == b'[]'
    assert store.get('missing') is None


@pytest.mark.unit
def test_redis_store_returns_bytes_for_decoded_clients():
    client = MockRedisClient()
    client.set('rephrase:k', 'text')
    assert RedisBlobStore('redis://x', client=client).get('k') == b'text'


@pytest.mark.unit
def test_build_blob_store_falls_back_to_memory(monkeypatch):
    monkeypatch.setattr('redis.from_url', lambda *a, **k: UnreachableRedisClient())
    store = build_blob_store(Settings(BLOB_STORE_BACKEND='redis'))
    assert isinstance(store, InMemoryBlobStore)


@pytest.mark.unit
def test_build_blob_store_redis(mock_redis_client):
    assert isinstance(build_blob_store(Settings(BLOB_STORE_BACKEND='redis')), RedisBlobStore)
    assert isinstance(build_blob_store(Settings()), InMemoryBlobStore)
