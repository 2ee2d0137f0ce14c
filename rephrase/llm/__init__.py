"""
LLM request pipeline: transport, sanitizer, retrying structured client,
response cache and SSE streaming consumer.
"""
from .errors import (
	LLMClientError,
	LLMCredentialError,
	LLMInvalidURLError,
	LLMNetworkError,
	LLMTimeoutError,
	LLMHTTPError,
	LLMEmptyResponseError,
	LLMValidationError,
	LLMSchemaError,
)
from .sanitizer import clean
from .presets import RequestConfig, RequestKind, GENERATE, EVALUATE, STREAM, preset_for
from .schemas import Sentence, Feedback, CriteriaScores, CriterionScore, Issue, Upgrade, Alternative, parse_payload
from .cache_manager import ResponseCache, RedisResponseCache, CachedResponse, build_response_cache
from .transport import Transport, TransportResponse, Endpoint
from .streaming import StreamingConsumer
from .client import StructuredRequestClient, SentenceHistory, PrefetchSlot

__all__ = [
	'LLMClientError', 'LLMCredentialError', 'LLMInvalidURLError', 'LLMNetworkError', 'LLMTimeoutError',
	'LLMHTTPError', 'LLMEmptyResponseError', 'LLMValidationError', 'LLMSchemaError',
	'clean',
	'RequestConfig', 'RequestKind', 'GENERATE', 'EVALUATE', 'STREAM', 'preset_for',
	'Sentence', 'Feedback', 'CriteriaScores', 'CriterionScore', 'Issue', 'Upgrade', 'Alternative', 'parse_payload',
	'ResponseCache', 'RedisResponseCache', 'CachedResponse', 'build_response_cache',
	'Transport', 'TransportResponse', 'Endpoint',
	'StreamingConsumer',
	'StructuredRequestClient', 'SentenceHistory', 'PrefetchSlot',
]
