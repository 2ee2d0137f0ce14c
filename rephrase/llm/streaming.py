"""Server-sent-event consumption for token-streamed completions.

``StreamingConsumer.stream`` is an async generator: a finite, single-pass
sequence of text deltas. Callers cancel simply by breaking out of the loop,
which closes the underlying HTTP stream. Nothing is cached or persisted.
"""
from __future__ import annotations

import json
import time
from typing import AsyncIterator, Callable, Optional

from rephrase.utils import get_logger, log_llm_call
from .presets import RequestConfig
from .transport import Endpoint, Transport

LOG = get_logger()

DATA_PREFIX = 'data:'
DONE_SENTINEL = '[DONE]'


def is_terminal(line: str) -> bool:
    line = line.strip()
    return line.startswith(DATA_PREFIX) and line[len(DATA_PREFIX):].strip() == DONE_SENTINEL


def decode_event(line: str) -> Optional[str]:
    """Return the text delta carried by one SSE line, or None.

    Non-data lines, the terminal sentinel, malformed JSON and chunks without
    ``choices[0].delta.content`` all yield None.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):].strip()
    if data == DONE_SENTINEL:
        return None
    try:
        chunk = json.loads(data)
        content = chunk['choices'][0]['delta'].get('content')
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        LOG.debug('stream_chunk_skipped', extra={'line': line[:200]})
        return None
    return content if isinstance(content, str) and content else None


class StreamingConsumer:
    def __init__(self, transport: Transport, endpoint: Endpoint):
        self._transport = transport
        self._endpoint = endpoint

    async def stream(self, prompt: str, config: RequestConfig) -> AsyncIterator[str]:
        headers = self._endpoint.check()
        body = config.chat_body(prompt, stream=True)
        start = time.time()
        chunks = 0
        async with self._transport.open_stream(self._endpoint.url, headers=headers, body=body, timeout=self._endpoint.timeout) as lines:
            async for line in lines:
                if is_terminal(line):
                    break
                delta = decode_event(line)
                if delta is None:
                    continue
                chunks += 1
                yield delta
        log_llm_call(config.model, attempt=1, duration_ms=int((time.time() - start) * 1000), outcome=f'{chunks}_chunks', streamed=True)

    async def collect(self, prompt: str, config: RequestConfig, on_chunk: Optional[Callable[[str], None]] = None) -> str:
        """Consume the whole stream, calling ``on_chunk`` per delta in arrival order."""
        parts = []
        async for delta in self.stream(prompt, config):
            parts.append(delta)
            if on_chunk is not None:
                on_chunk(delta)
        return ''.join(parts)
