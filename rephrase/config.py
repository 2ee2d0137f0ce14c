"""Service settings loaded from the environment (and an optional .env file)."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # Server
    HOST: str = '0.0.0.0'
    PORT: int = 8000
    ENVIRONMENT: str = 'development'
    CORS_ORIGIN: str = '*'

    # LLM provider
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = 'https://api.openai.com/v1/chat/completions'
    OPENAI_MODEL: str = 'gpt-4o'
    OPENAI_TIMEOUT: float = Field(60.0, gt=0)

    # Retry
    LLM_MAX_RETRIES: int = Field(2, ge=0)
    LLM_RETRY_MULTIPLIER: float = Field(0.5, ge=0)
    LLM_RETRY_MAX_WAIT: float = Field(4.0, ge=0)
    LLM_HISTORY_SIZE: int = Field(10, ge=0)

    # Response cache
    RESPONSE_CACHE_ENABLED: bool = True
    RESPONSE_CACHE_BACKEND: str = 'memory'
    RESPONSE_CACHE_TTL: float = Field(300.0, gt=0)
    RESPONSE_CACHE_MAX_ENTRIES: int = Field(50, gt=0)

    # Storage
    REDIS_URL: str = 'redis://localhost:6379/0'
    BLOB_STORE_BACKEND: str = 'memory'


@lru_cache
def get_settings() -> Settings:
    return Settings()
