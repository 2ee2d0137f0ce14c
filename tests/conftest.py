import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')

from tests.fixtures.mock_llm import API_URL, FakeLLM  # noqa: E402
from tests.fixtures.mock_redis import MockRedisClient  # noqa: E402


@pytest.fixture(autouse=True)
def silence_logger(monkeypatch):
    # Helpers re-fetch the logger on every call, so patching get_logger mutes them
    import rephrase.utils.logger as logger_mod
    monkeypatch.setattr(logger_mod, 'get_logger', lambda *a, **k: MagicMock())
    yield


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def endpoint():
    from rephrase.llm import Endpoint
    return Endpoint(url=API_URL, api_key='test-key', timeout=5.0)


@pytest.fixture
def llm_client(fake_llm, endpoint):
    from rephrase.llm import StructuredRequestClient
    return StructuredRequestClient(endpoint, transport=fake_llm.transport(), max_retries=2)


@pytest.fixture
def blob_store():
    from rephrase.storage import InMemoryBlobStore
    return InMemoryBlobStore()


@pytest.fixture
def mock_redis_client(monkeypatch):
    client = MockRedisClient()
    monkeypatch.setattr('redis.from_url', lambda *a, **k: client)
    return client


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()
