"""Exceptions raised by the LLM request pipeline.

LLMClientError
├── LLMCredentialError      API key missing; raised before any network I/O
├── LLMInvalidURLError      endpoint URL unusable
├── LLMNetworkError         connectivity loss
│   └── LLMTimeoutError     request exceeded the configured timeout
├── LLMHTTPError            non-2xx status, with the provider's message if decodable
├── LLMEmptyResponseError   2xx without assistant content
└── LLMValidationError      sanitized output is not valid JSON
    └── LLMSchemaError      JSON parsed but lacks required fields
"""
from __future__ import annotations

from typing import Optional

RAW_EXCERPT_LENGTH = 500

_HTTP_MESSAGES = {
    400: 'Bad request - please check your input',
    401: 'Invalid API key - please check your configuration',
    403: 'Access forbidden - API key may lack permissions',
    404: 'API endpoint not found',
    429: 'Rate limit exceeded - please wait and try again',
    500: 'LLM provider server error - please try again later',
    502: 'LLM provider temporarily unavailable',
    503: 'LLM provider temporarily unavailable',
    504: 'LLM provider temporarily unavailable',
}

# statuses worth a fresh attempt; every other 4xx is permanent
RETRYABLE_STATUS_CODES = frozenset({408, 409, 429})


class LLMClientError(Exception):
    kind = 'llm_error'


class LLMCredentialError(LLMClientError):
    kind = 'missing_credential'


class LLMInvalidURLError(LLMClientError):
    kind = 'invalid_url'


class LLMNetworkError(LLMClientError):
    kind = 'network_failure'


class LLMTimeoutError(LLMNetworkError):
    kind = 'timeout'


class LLMHTTPError(LLMClientError):
    kind = 'http_failure'

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        base = _HTTP_MESSAGES.get(status_code, f'HTTP Error {status_code}')
        super().__init__(f'{base}: {detail}' if detail else base)

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500 or self.status_code in RETRYABLE_STATUS_CODES


class LLMEmptyResponseError(LLMClientError):
    kind = 'empty_response'


class LLMValidationError(LLMClientError):
    kind = 'invalid_json'

    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw[:RAW_EXCERPT_LENGTH] if raw else raw
        super().__init__(message)


class LLMSchemaError(LLMValidationError):
    kind = 'schema_mismatch'
