"""Utility subpackage for logging and request context"""

from .logger import (
	get_logger,
	log_request,
	log_error,
	log_llm_call,
	log_cache_event,
	log_generation,
	log_evaluation,
	log_review_outcome,
	set_request_context,
	get_request_context,
)

__all__ = [
	'get_logger',
	'log_request',
	'log_error',
	'log_llm_call',
	'log_cache_event',
	'log_generation',
	'log_evaluation',
	'log_review_outcome',
	'set_request_context',
	'get_request_context',
]
