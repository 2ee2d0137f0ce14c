"""HTTP transport for the chat-completions endpoint.

Wraps a pooled ``httpx.AsyncClient`` and maps httpx failures onto the
pipeline's error kinds. Tests inject an ``httpx.MockTransport`` through the
``client`` argument instead of patching module globals.
"""
from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from pydantic import BaseModel, ValidationError

from rephrase.utils import get_logger
from .errors import LLMCredentialError, LLMHTTPError, LLMInvalidURLError, LLMNetworkError, LLMTimeoutError

LOG = get_logger()


class _ErrorBody(BaseModel):
    message: str
    type: Optional[str] = None
    code: Optional[str] = None


class ErrorEnvelope(BaseModel):
    error: _ErrorBody


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def extract_error_detail(body: bytes) -> Optional[str]:
    """Return ``error.message`` from a provider error envelope, or None."""
    try:
        return ErrorEnvelope.model_validate_json(body).error.message
    except (ValidationError, ValueError):
        return None


def http_error_from(status_code: int, body: bytes) -> LLMHTTPError:
    return LLMHTTPError(status_code, extract_error_detail(body))


def validate_url(url: str) -> httpx.URL:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise LLMInvalidURLError(f'Invalid API URL: {url!r}') from e
    if parsed.scheme not in ('http', 'https') or not parsed.host:
        raise LLMInvalidURLError(f'Invalid API URL: {url!r}')
    return parsed


@dataclass(frozen=True)
class Endpoint:
    """Where and how to reach the provider. The key is injected, never read from globals."""

    url: str
    api_key: Optional[str] = None
    timeout: float = 60.0

    def headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise LLMCredentialError('LLM API key is missing. Set OPENAI_API_KEY.')
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }

    def check(self) -> Dict[str, str]:
        """Fail fast on a missing key or unusable URL; returns request headers."""
        headers = self.headers()
        validate_url(self.url)
        return headers


class Transport:
    """Sends JSON requests over a reusable connection pool."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 60.0):
        self._timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
        return self._client

    async def send(
        self,
        url: str,
        method: str = 'POST',
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        validate_url(url)
        try:
            response = await self.client.request(
                method,
                url,
                headers=headers,
                content=json.dumps(body).encode() if body is not None else None,
                timeout=timeout or self._timeout,
            )
        except httpx.TimeoutException as e:
            LOG.warning('llm_transport_timeout', extra={'url': url})
            raise LLMTimeoutError(f'Request timed out after {timeout or self._timeout}s') from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise LLMInvalidURLError(str(e)) from e
        except httpx.TransportError as e:
            LOG.warning('llm_transport_error', extra={'url': url, 'error': str(e)})
            raise LLMNetworkError(str(e) or e.__class__.__name__) from e
        return TransportResponse(status_code=response.status_code, body=response.content)

    @asynccontextmanager
    async def open_stream(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[AsyncIterator[str]]:
        """Open a streaming POST and yield an iterator over response lines.

        Non-2xx responses are read in full and raised as ``LLMHTTPError``
        before any line is yielded.
        """
        validate_url(url)
        try:
            async with self.client.stream(
                'POST',
                url,
                headers=headers,
                content=json.dumps(body).encode() if body is not None else None,
                timeout=timeout or self._timeout,
            ) as response:
                if not 200 <= response.status_code < 300:
                    raw = await response.aread()
                    raise http_error_from(response.status_code, raw)
                yield response.aiter_lines()
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f'Stream timed out after {timeout or self._timeout}s') from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise LLMInvalidURLError(str(e)) from e
        except httpx.TransportError as e:
            raise LLMNetworkError(str(e) or e.__class__.__name__) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
