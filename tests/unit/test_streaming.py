import httpx
import pytest

from rephrase.llm import LLMCredentialError, LLMHTTPError, STREAM, Endpoint, StructuredRequestClient
from rephrase.llm.streaming import StreamingConsumer, decode_event, is_terminal
from tests.fixtures.mock_llm import API_URL, error, sse


@pytest.mark.unit
def test_decode_event():
    assert decode_event('data: {"choices": [{"delta": {"content": "Hi"}}]}') == 'Hi'
    assert decode_event('data: {"choices": [{"delta": {}}]}') is None
    assert decode_event('data: {broken') is None
    assert decode_event(': keep-alive') is None
    assert decode_event('') is None
    assert decode_event('data: [DONE]') is None


@pytest.mark.unit
def test_is_terminal():
    assert is_terminal('data: [DONE]')
    assert is_terminal('data:[DONE]  ')
    assert not is_terminal('data: {"choices": []}')


@pytest.mark.unit
@pytest.mark.asyncio
async def test_collect_joins_chunks_in_order(fake_llm, endpoint):
    fake_llm.queue(sse('Xin ', 'chào', '!'))
    seen = []
    consumer = StreamingConsumer(fake_llm.transport(), endpoint)
    text = await consumer.collect('p', STREAM, on_chunk=seen.append)
    assert text == 'Xin chào!'
    assert seen == ['Xin ', 'chào', '!']
    assert fake_llm.requests[0]['stream'] is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_chunks_are_skipped(fake_llm, endpoint):
    fake_llm.queue(sse('a', extra_lines=['data: {not json', '', 'event: ping', 'data: {"choices": [{"delta": {"content": "b"}}]}']))
    consumer = StreamingConsumer(fake_llm.transport(), endpoint)
    assert await consumer.collect('p', STREAM) == 'ab'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_stops_at_done_sentinel(fake_llm, endpoint):
    # anything after [DONE] must be ignored
    body = (
        b'data: {"choices": [{"delta": {"content": "a"}}]}\n\n'
        b'data: [DONE]\n\n'
        b'data: {"choices": [{"delta": {"content": "late"}}]}\n'
    )
    fake_llm.queue(httpx.Response(200, content=body))
    consumer = StreamingConsumer(fake_llm.transport(), endpoint)
    assert await consumer.collect('p', STREAM) == 'a'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_without_sentinel_ends_at_eof(fake_llm, endpoint):
    fake_llm.queue(sse('a', 'b', done=False))
    consumer = StreamingConsumer(fake_llm.transport(), endpoint)
    assert await consumer.collect('p', STREAM) == 'ab'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_http_error(fake_llm, endpoint):
    fake_llm.queue(error(500, 'boom'))
    consumer = StreamingConsumer(fake_llm.transport(), endpoint)
    with pytest.raises(LLMHTTPError) as ei:
        await consumer.collect('p', STREAM)
    assert ei.value.detail == 'boom'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_missing_key(fake_llm):
    client = StructuredRequestClient(Endpoint(url=API_URL, api_key=None), transport=fake_llm.transport())
    with pytest.raises(LLMCredentialError):
        await client.stream_text('p')
    assert fake_llm.calls == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_consumer_can_stop_early(fake_llm, llm_client):
    fake_llm.queue(sse('one', 'two', 'three'))
    got = []
    async for chunk in llm_client.stream('p'):
        got.append(chunk)
        break
    assert got == ['one']


@pytest.mark.unit
@pytest.mark.asyncio
async def test_explain_streams_explanation(fake_llm, llm_client):
    fake_llm.queue(sse('Bạn ', 'nên ...'))
    chunks = [c async for c in llm_client.explain('Tôi mệt', 'I tired', '7.0')]
    assert ''.join(chunks) == 'Bạn nên ...'
    assert 'IELTS Band 7.0' in fake_llm.prompts[0]
