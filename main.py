import os
import time
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from rephrase.config import Settings, get_settings
from rephrase.llm import (
    LLMClientError,
    LLMCredentialError,
    LLMHTTPError,
    LLMInvalidURLError,
    LLMNetworkError,
    LLMSchemaError,
    LLMTimeoutError,
    LLMValidationError,
    StructuredRequestClient,
    Transport,
    Upgrade,
    build_response_cache,
)
from rephrase.review import VocabBank, VocabItemNotFound, band_label, load_stats, save_stats
from rephrase.storage import BlobStore, build_blob_store
from rephrase.utils import get_logger, log_error, log_request, set_request_context

LOG = get_logger()


class Services:
    """Composition root: one client, one bank and one stats record per app."""

    def __init__(self, settings: Settings, transport: Optional[Transport] = None, blob_store: Optional[BlobStore] = None):
        self.settings = settings
        self.store = blob_store if blob_store is not None else build_blob_store(settings)
        self.client = StructuredRequestClient.from_settings(settings, transport=transport, cache=build_response_cache(settings))
        self.bank = VocabBank.load(self.store)
        self.stats = load_stats(self.store)


class GenerateRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    target_band: str = Field('6.5', min_length=1)
    prefetch_next: bool = False


class PrefetchRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    target_band: str = Field('6.5', min_length=1)


class EvaluateRequest(BaseModel):
    source_text: str = Field(..., min_length=1)
    translation: str
    target_band: str = Field('6.5', min_length=1)


class AddVocabRequest(BaseModel):
    upgrade: Upgrade


class ReviewRequest(BaseModel):
    correct: bool


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, 'request_id', None)


def _error(status_code: int, error: str, request_id: Optional[str], details: Optional[str] = None, kind: Optional[str] = None) -> JSONResponse:
    body = {'success': False, 'error': error, 'request_id': request_id}
    if details is not None:
        body['details'] = details
    if kind is not None:
        body['kind'] = kind
    return JSONResponse(status_code=status_code, content=body)


def _llm_error_response(e: LLMClientError, request_id: Optional[str]) -> JSONResponse:
    if isinstance(e, LLMCredentialError):
        return _error(503, 'LLM not configured', request_id, str(e), e.kind)
    if isinstance(e, LLMInvalidURLError):
        return _error(500, 'LLM endpoint misconfigured', request_id, str(e), e.kind)
    if isinstance(e, LLMTimeoutError):
        return _error(504, 'LLM request timeout', request_id, str(e), e.kind)
    if isinstance(e, LLMNetworkError):
        return _error(502, 'LLM unreachable', request_id, str(e), e.kind)
    if isinstance(e, LLMHTTPError):
        return _error(502, 'LLM API error', request_id, str(e), e.kind)
    if isinstance(e, LLMSchemaError):
        return _error(422, 'Schema validation failed', request_id, str(e), e.kind)
    if isinstance(e, LLMValidationError):
        return _error(502, 'Invalid LLM response', request_id, str(e), e.kind)
    return _error(502, 'LLM error', request_id, str(e), e.kind)


def create_app(settings: Optional[Settings] = None, transport: Optional[Transport] = None, blob_store: Optional[BlobStore] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title='RePhrase Service', version='1.0.0', description='Translation practice: sentence generation, IELTS feedback and vocabulary review')
    app.state.services = Services(settings, transport=transport, blob_store=blob_store)

    origins = [o.strip() for o in settings.CORS_ORIGIN.split(',') if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ['*'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.middleware('http')
    async def add_request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get('x-request-id') or os.urandom(8).hex()
        request.state.request_id = request_id
        set_request_context(request_id)
        start = time.time()
        LOG.info('http_request_start', extra={'method': request.method, 'path': request.url.path, 'request_id': request_id})
        try:
            response: Response = await call_next(request)
        except Exception as e:
            log_error(e, {'path': request.url.path, 'method': request.method})
            return _error(500, 'Internal server error', request_id)
        duration = int((time.time() - start) * 1000)
        log_request(request_id, request.method, request.url.path, response.status_code, duration, ip=request.client.host if request.client else None)
        response.headers['X-Request-ID'] = request_id
        return response

    @app.on_event('shutdown')
    async def _shutdown():
        await app.state.services.client.close()

    @app.get('/health')
    async def health():
        return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat(), 'service': 'rephrase'}

    @app.post('/sentences/generate')
    async def generate_sentence(req: GenerateRequest, request: Request):
        services: Services = request.app.state.services
        request_id = _request_id(request)
        try:
            sentence = await services.client.generate(req.topic, req.target_band)
        except LLMClientError as e:
            return _llm_error_response(e, request_id)
        if req.prefetch_next:
            services.client.prefetch(req.topic, req.target_band)
        return {'success': True, 'sentence': sentence.model_dump(by_alias=True), 'request_id': request_id}

    @app.post('/sentences/prefetch', status_code=202)
    async def prefetch_sentence(req: PrefetchRequest, request: Request):
        services: Services = request.app.state.services
        services.client.prefetch(req.topic, req.target_band)
        return {'success': True, 'queued': True, 'request_id': _request_id(request)}

    @app.post('/feedback/evaluate')
    async def evaluate_translation(req: EvaluateRequest, request: Request):
        services: Services = request.app.state.services
        request_id = _request_id(request)
        if not req.translation.strip():
            return _error(400, 'Empty translation', request_id)
        try:
            feedback = await services.client.evaluate(req.source_text, req.translation, req.target_band)
        except LLMClientError as e:
            return _llm_error_response(e, request_id)
        services.stats.record_score(feedback.overall_band)
        save_stats(services.store, services.stats)
        return {
            'success': True,
            'feedback': feedback.model_dump(by_alias=True),
            'band_label': band_label(feedback.overall_band),
            'request_id': request_id,
        }

    @app.post('/feedback/stream')
    async def stream_explanation(req: EvaluateRequest, request: Request):
        services: Services = request.app.state.services
        request_id = _request_id(request)
        chunks = services.client.explain(req.source_text, req.translation, req.target_band)
        # pull the first chunk eagerly so setup failures become JSON errors
        try:
            first = await chunks.__anext__()
        except StopAsyncIteration:
            first = ''
        except LLMClientError as e:
            return _llm_error_response(e, request_id)

        async def body() -> AsyncIterator[str]:
            if first:
                yield first
            async for chunk in chunks:
                yield chunk

        return StreamingResponse(body(), media_type='text/plain; charset=utf-8')

    @app.get('/vocab')
    async def list_vocab(request: Request):
        services: Services = request.app.state.services
        bank = services.bank
        return {
            'success': True,
            'items': [i.model_dump(mode='json', by_alias=True) for i in bank.sorted_by_band()],
            'count': len(bank),
            'due_count': bank.due_count(),
            'mastered_count': bank.mastered_count(),
        }

    @app.post('/vocab', status_code=201)
    async def add_vocab(req: AddVocabRequest, request: Request):
        services: Services = request.app.state.services
        added = services.bank.add_upgrade(req.upgrade)
        return {'success': True, 'added': [i.model_dump(mode='json', by_alias=True) for i in added], 'request_id': _request_id(request)}

    @app.delete('/vocab/{item_id}')
    async def delete_vocab(item_id: str, request: Request):
        services: Services = request.app.state.services
        try:
            services.bank.remove(item_id)
        except VocabItemNotFound:
            return _error(404, 'Vocabulary item not found', _request_id(request), item_id)
        return {'success': True, 'request_id': _request_id(request)}

    @app.get('/vocab/session')
    async def review_session(request: Request, fallback_size: int = 10, due_cap: int = 20):
        services: Services = request.app.state.services
        items = services.bank.session(fallback_size=fallback_size, due_cap_size=due_cap)
        return {'success': True, 'items': [i.model_dump(mode='json', by_alias=True) for i in items], 'count': len(items)}

    @app.post('/vocab/{item_id}/review')
    async def review_vocab(item_id: str, req: ReviewRequest, request: Request):
        services: Services = request.app.state.services
        try:
            item = services.bank.record_outcome(item_id, req.correct)
        except VocabItemNotFound:
            return _error(404, 'Vocabulary item not found', _request_id(request), item_id)
        return {'success': True, 'item': item.model_dump(mode='json', by_alias=True), 'request_id': _request_id(request)}

    @app.get('/stats')
    async def user_stats(request: Request):
        services: Services = request.app.state.services
        stats = services.stats
        if stats.refresh_streak():
            save_stats(services.store, stats)
        return {
            'success': True,
            'stats': stats.model_dump(mode='json', by_alias=True),
            'average_band': round(stats.average_band, 2),
            'band_label': band_label(stats.average_band),
            'due_count': services.bank.due_count(),
            'mastered_count': services.bank.mastered_count(),
        }

    return app


app = create_app()


if __name__ == '__main__':
    import uvicorn

    s = get_settings()
    uvicorn.run('main:app', host=s.HOST, port=s.PORT)
