"""Structured request client for sentence generation and translation evaluation.

Provides:
- ``StructuredRequestClient.request``: send a prompt, sanitize the reply and
  insist on parseable JSON, re-asking with a corrective prefix on failure
- ``generate`` / ``prefetch`` / ``evaluate`` built on top of ``request``
- ``stream`` / ``explain`` for token-streamed free-form text

One client per process is a deployment choice made by the composition root
(see ``main.py``); nothing here is a singleton.
"""
from __future__ import annotations

import asyncio
import json
import time
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Deque, Iterator, Optional

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from rephrase.utils import get_logger, log_evaluation, log_generation, log_llm_call
from .errors import (
    LLMClientError,
    LLMEmptyResponseError,
    LLMHTTPError,
    LLMNetworkError,
    LLMValidationError,
)
from .presets import RequestConfig, RequestKind, preset_for
from .prompts import build_evaluation_prompt, build_explanation_prompt, build_generation_prompt, with_correction
from .sanitizer import clean
from .schemas import Feedback, Sentence, parse_payload
from .streaming import StreamingConsumer
from .transport import Endpoint, Transport, http_error_from

LOG = get_logger()

DEFAULT_MAX_RETRIES = 2
DEFAULT_HISTORY_SIZE = 10


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, LLMHTTPError):
        return exc.retryable
    return isinstance(exc, (LLMValidationError, LLMEmptyResponseError, LLMNetworkError))


def prefetch_key(topic: str, target_band: str) -> str:
    return f'{topic}|{target_band}'


def extract_content(body: bytes) -> str:
    """Pull ``choices[0].message.content`` out of a completion response."""
    try:
        content = json.loads(body)['choices'][0]['message']['content']
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise LLMEmptyResponseError('No content in response') from e
    if not isinstance(content, str) or not content.strip():
        raise LLMEmptyResponseError('No content in response')
    return content


class SentenceHistory:
    """Most recent generated sentences, oldest evicted first."""

    def __init__(self, maxlen: int = DEFAULT_HISTORY_SIZE):
        self._items: Deque[str] = deque(maxlen=maxlen)

    def append(self, sentence: str) -> None:
        self._items.append(sentence)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, sentence: object) -> bool:
        return sentence in self._items


@dataclass
class PrefetchSlot:
    key: str
    task: 'asyncio.Task[Sentence]'

    @property
    def resolved(self) -> Optional[Sentence]:
        if self.task.done() and not self.task.cancelled() and self.task.exception() is None:
            return self.task.result()
        return None


def _retrieve_prefetch_error(task: 'asyncio.Task[Sentence]') -> None:
    # marks the exception as retrieved so discarded prefetches don't warn at GC
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOG.warning('prefetch_failed', extra={'task': task.get_name(), 'error': str(exc)})


class StructuredRequestClient:
    def __init__(
        self,
        endpoint: Endpoint,
        transport: Optional[Transport] = None,
        cache=None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_multiplier: float = 0.0,
        retry_max_wait: float = 0.0,
        history_size: int = DEFAULT_HISTORY_SIZE,
        model: Optional[str] = None,
        cache_evaluations: bool = True,
    ):
        self._endpoint = endpoint
        self._transport = transport or Transport(timeout=endpoint.timeout)
        self._cache = cache
        self.max_retries = max_retries
        self._wait = wait_exponential(multiplier=retry_multiplier, max=retry_max_wait)
        self.history = SentenceHistory(history_size)
        self.cache_evaluations = cache_evaluations
        self._generate_config = preset_for(RequestKind.GENERATE, model)
        self._evaluate_config = preset_for(RequestKind.EVALUATE, model)
        self._stream_config = preset_for(RequestKind.STREAM, model)
        self._streaming = StreamingConsumer(self._transport, endpoint)
        self._prefetch: Optional[PrefetchSlot] = None
        LOG.info('StructuredRequestClient initialized', extra={'model': self._generate_config.model, 'max_retries': max_retries})

    @classmethod
    def from_settings(cls, settings, transport: Optional[Transport] = None, cache=None) -> 'StructuredRequestClient':
        endpoint = Endpoint(url=settings.OPENAI_BASE_URL, api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT)
        return cls(
            endpoint,
            transport=transport,
            cache=cache,
            max_retries=settings.LLM_MAX_RETRIES,
            retry_multiplier=settings.LLM_RETRY_MULTIPLIER,
            retry_max_wait=settings.LLM_RETRY_MAX_WAIT,
            history_size=settings.LLM_HISTORY_SIZE,
            model=settings.OPENAI_MODEL,
        )

    @property
    def prefetch_slot(self) -> Optional[PrefetchSlot]:
        return self._prefetch

    async def _attempt(self, prompt: str, config: RequestConfig, headers, attempt_number: int) -> str:
        start = time.time()
        resp = await self._transport.send(self._endpoint.url, 'POST', headers=headers, body=config.chat_body(prompt), timeout=self._endpoint.timeout)
        duration_ms = int((time.time() - start) * 1000)
        if not resp.ok:
            log_llm_call(config.model, attempt_number, duration_ms, status_code=resp.status_code, outcome='http_error')
            raise http_error_from(resp.status_code, resp.body)
        content = extract_content(resp.body)
        cleaned = clean(content)
        try:
            json.loads(cleaned)
        except ValueError as e:
            log_llm_call(config.model, attempt_number, duration_ms, status_code=resp.status_code, outcome='invalid_json')
            raise LLMValidationError('Failed to parse API response as JSON', raw=content) from e
        log_llm_call(config.model, attempt_number, duration_ms, status_code=resp.status_code)
        return cleaned

    async def request(self, prompt: str, config: RequestConfig, use_cache: bool = False) -> str:
        """Return sanitized JSON text for ``prompt``, retrying up to ``max_retries`` times.

        Missing credentials and bad URLs fail before any attempt. Attempts
        after an invalid-JSON reply carry the corrective prefix. When every
        attempt fails, an invalid-JSON error is raised only if all failures
        were parse failures; otherwise the last transport or HTTP error is.
        """
        headers = self._endpoint.check()
        if use_cache and self._cache is not None:
            cached = self._cache.get(config.model, prompt)
            if cached is not None:
                return cached

        corrective = False
        result = None
        # last transport/HTTP failure; wins over a trailing parse failure
        last_transport_error: Optional[LLMClientError] = None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception(_should_retry),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempt_prompt = with_correction(prompt) if corrective else prompt
                    result = await self._attempt(attempt_prompt, config, headers, attempt.retry_state.attempt_number)
                outcome = attempt.retry_state.outcome
                if outcome is not None and outcome.failed:
                    exc = outcome.exception()
                    corrective = isinstance(exc, LLMValidationError)
                    if isinstance(exc, LLMClientError) and not corrective:
                        last_transport_error = exc
                    LOG.warning('llm_attempt_failed', extra={'attempt': attempt.retry_state.attempt_number, 'kind': getattr(exc, 'kind', 'unknown'), 'error': str(exc)})
        except LLMValidationError:
            # parse failures are only reported when nothing else went wrong
            if last_transport_error is not None:
                raise last_transport_error
            raise

        if use_cache and self._cache is not None:
            self._cache.set(config.model, prompt, result)
        return result

    async def _fetch_sentence(self, topic: str, target_band: str) -> Sentence:
        prompt = build_generation_prompt(topic, target_band, list(self.history))
        text = await self.request(prompt, self._generate_config)
        return parse_payload(Sentence, text)

    async def _take_prefetched(self, key: str) -> Optional[Sentence]:
        slot = self._prefetch
        if slot is None:
            return None
        self._prefetch = None
        if slot.key != key:
            slot.task.cancel()
            LOG.info('prefetch_discarded', extra={'key': slot.key, 'requested': key})
            return None
        try:
            return await slot.task
        except LLMClientError:
            return None

    def prefetch(self, topic: str, target_band: str) -> None:
        """Start generating the next sentence in the background.

        Must be called from a running event loop. A prefetch for a different
        key supersedes (cancels) the outstanding one; repeating the current
        key is a no-op.
        """
        key = prefetch_key(topic, target_band)
        slot = self._prefetch
        if slot is not None:
            if slot.key == key:
                return
            slot.task.cancel()
            LOG.info('prefetch_superseded', extra={'key': slot.key, 'by': key})
        task = asyncio.get_running_loop().create_task(self._fetch_sentence(topic, target_band), name=f'prefetch:{key}')
        task.add_done_callback(_retrieve_prefetch_error)
        self._prefetch = PrefetchSlot(key=key, task=task)

    async def generate(self, topic: str, target_band: str) -> Sentence:
        start = time.time()
        sentence = await self._take_prefetched(prefetch_key(topic, target_band))
        prefetched = sentence is not None
        if sentence is None:
            sentence = await self._fetch_sentence(topic, target_band)
        self.history.append(sentence.vietnamese)
        log_generation(topic, target_band, int((time.time() - start) * 1000), prefetched=prefetched, history_size=len(self.history))
        return sentence

    async def evaluate(self, source_text: str, translation: str, target_band: str) -> Feedback:
        if not translation or not translation.strip():
            raise ValueError('translation must not be empty')
        start = time.time()
        prompt = build_evaluation_prompt(source_text, translation.strip(), target_band)
        text = await self.request(prompt, self._evaluate_config, use_cache=self.cache_evaluations)
        feedback = parse_payload(Feedback, text)
        log_evaluation(target_band, feedback.overall_band, len(feedback.upgrades), int((time.time() - start) * 1000))
        return feedback

    def stream(self, prompt: str, config: Optional[RequestConfig] = None) -> AsyncIterator[str]:
        """Lazily stream text deltas; never cached."""
        return self._streaming.stream(prompt, config or self._stream_config)

    async def stream_text(self, prompt: str, on_chunk=None, config: Optional[RequestConfig] = None) -> str:
        return await self._streaming.collect(prompt, config or self._stream_config, on_chunk=on_chunk)

    def explain(self, source_text: str, translation: str, target_band: str) -> AsyncIterator[str]:
        return self.stream(build_explanation_prompt(source_text, translation, target_band))

    def cancel_prefetch(self) -> None:
        if self._prefetch is not None:
            self._prefetch.task.cancel()
            self._prefetch = None

    async def close(self) -> None:
        self.cancel_prefetch()
        await self._transport.close()
