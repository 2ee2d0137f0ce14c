import json

import pytest
from fastapi.testclient import TestClient

import main as app_main
from rephrase.config import Settings
from rephrase.review.vocab_bank import VOCAB_BANK_KEY
from tests.fixtures.mock_llm import API_URL, FakeLLM, error, sse
from tests.fixtures.sample_data import SAMPLE_UPGRADE, feedback_json, sentence_json, vocab_record


def make_settings(**overrides):
    values = dict(
        OPENAI_API_KEY='test-key',
        OPENAI_BASE_URL=API_URL,
        LLM_RETRY_MULTIPLIER=0,
        LLM_RETRY_MAX_WAIT=0,
        RESPONSE_CACHE_BACKEND='memory',
        BLOB_STORE_BACKEND='memory',
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake():
    return FakeLLM()


@pytest.fixture
def client(fake, blob_store):
    app = app_main.create_app(make_settings(), transport=fake.transport(), blob_store=blob_store)
    with TestClient(app) as c:
        yield c


@pytest.mark.integration
def test_health(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json()['status'] == 'ok'
    assert r.headers.get('X-Request-ID')


@pytest.mark.integration
def test_request_id_is_echoed(client):
    r = client.get('/health', headers={'X-Request-ID': 'req-123'})
    assert r.headers['X-Request-ID'] == 'req-123'


@pytest.mark.integration
def test_generate_sentence(client, fake):
    fake.queue('```json\n' + sentence_json(vietnamese='Câu mới') + '\n```')
    r = client.post('/sentences/generate', json={'topic': 'Work', 'target_band': '6.5'})
    assert r.status_code == 200
    data = r.json()
    assert data['success'] is True
    assert data['sentence']['vietnamese'] == 'Câu mới'
    assert data['sentence']['keyStructures']


@pytest.mark.integration
def test_generate_uses_prefetched_sentence(client, fake):
    fake.queue(sentence_json(vietnamese='Trước'))
    r = client.post('/sentences/prefetch', json={'topic': 'Work', 'target_band': '6.5'})
    assert r.status_code == 202
    r = client.post('/sentences/generate', json={'topic': 'Work', 'target_band': '6.5'})
    assert r.json()['sentence']['vietnamese'] == 'Trước'
    assert fake.calls == 1


@pytest.mark.integration
def test_generate_validation_failure_maps_to_502(client, fake):
    fake.queue('nope', 'nope', 'nope')
    r = client.post('/sentences/generate', json={'topic': 'Work'})
    assert r.status_code == 502
    data = r.json()
    assert data['success'] is False
    assert data['kind'] == 'invalid_json'
    assert fake.calls == 3


@pytest.mark.integration
def test_generate_schema_mismatch_maps_to_422(client, fake):
    fake.queue('{"vietnamese": "X"}')
    r = client.post('/sentences/generate', json={'topic': 'Work'})
    assert r.status_code == 422
    assert r.json()['kind'] == 'schema_mismatch'


@pytest.mark.integration
def test_generate_auth_error(client, fake):
    fake.queue(error(401, 'Incorrect API key provided'))
    r = client.post('/sentences/generate', json={'topic': 'Work'})
    assert r.status_code == 502
    assert 'Invalid API key' in r.json()['details']


@pytest.mark.integration
def test_missing_api_key_maps_to_503(fake, blob_store):
    app = app_main.create_app(make_settings(OPENAI_API_KEY=None), transport=fake.transport(), blob_store=blob_store)
    with TestClient(app) as c:
        r = c.post('/sentences/generate', json={'topic': 'Work'})
    assert r.status_code == 503
    assert r.json()['kind'] == 'missing_credential'
    assert fake.calls == 0


@pytest.mark.integration
def test_evaluate_records_stats(client, fake, blob_store):
    fake.queue(feedback_json(overallBand=7.0))
    r = client.post('/feedback/evaluate', json={'source_text': 'Tôi mệt', 'translation': 'I am tired', 'target_band': '7.0'})
    assert r.status_code == 200
    data = r.json()
    assert data['feedback']['overallBand'] == 7.0
    assert data['feedback']['criteria']['lexicalResource']['band'] == 6.0
    assert data['band_label'] == 'Good User'

    stats = client.get('/stats').json()
    assert stats['stats']['sentenceCount'] == 1
    assert stats['stats']['streak'] == 1
    assert stats['average_band'] == 7.0
    assert json.loads(blob_store.get('userStats'))['totalScore'] == 7.0


@pytest.mark.integration
def test_evaluate_empty_translation(client, fake):
    r = client.post('/feedback/evaluate', json={'source_text': 'Tôi mệt', 'translation': '   '})
    assert r.status_code == 400
    assert r.json()['success'] is False
    assert fake.calls == 0


@pytest.mark.integration
def test_stream_explanation(client, fake):
    fake.queue(sse('Bạn ', 'nên dùng ', '"drained".'))
    r = client.post('/feedback/stream', json={'source_text': 'Tôi mệt', 'translation': 'I am tired'})
    assert r.status_code == 200
    assert r.text == 'Bạn nên dùng "drained".'


@pytest.mark.integration
def test_stream_upstream_error_is_json(client, fake):
    fake.queue(error(500, 'boom'))
    r = client.post('/feedback/stream', json={'source_text': 'Tôi mệt', 'translation': 'I am tired'})
    assert r.status_code == 502
    assert r.json()['kind'] == 'http_failure'


@pytest.mark.integration
def test_vocab_lifecycle(client):
    r = client.post('/vocab', json={'upgrade': SAMPLE_UPGRADE})
    assert r.status_code == 201
    added = r.json()['added']
    assert [i['word'] for i in added] == ['drained', 'exhausted']

    # same upgrade again adds nothing
    assert client.post('/vocab', json={'upgrade': SAMPLE_UPGRADE}).json()['added'] == []

    listing = client.get('/vocab').json()
    assert listing['count'] == 2
    assert [i['word'] for i in listing['items']] == ['drained', 'exhausted']
    assert listing['due_count'] == 0

    # nothing due yet, so the session falls back to the collection
    session = client.get('/vocab/session').json()
    assert session['count'] == 2

    item_id = added[0]['id']
    r = client.post(f'/vocab/{item_id}/review', json={'correct': True})
    assert r.status_code == 200
    assert r.json()['item']['reviewInterval'] == 3 * 86400

    assert client.delete(f'/vocab/{item_id}').status_code == 200
    assert client.get('/vocab').json()['count'] == 1


@pytest.mark.integration
def test_vocab_unknown_item(client):
    assert client.delete('/vocab/missing').status_code == 404
    r = client.post('/vocab/missing/review', json={'correct': False})
    assert r.status_code == 404
    assert r.json()['success'] is False


@pytest.mark.integration
def test_session_returns_due_items_first(fake, blob_store):
    records = [
        vocab_record('due', nextReview='2000-01-01T00:00:00+00:00'),
        vocab_record('later', nextReview='2999-01-01T00:00:00+00:00'),
    ]
    blob_store.set(VOCAB_BANK_KEY, json.dumps({'version': 2, 'items': records}).encode())
    app = app_main.create_app(make_settings(), transport=fake.transport(), blob_store=blob_store)
    with TestClient(app) as c:
        data = c.get('/vocab/session').json()
    assert [i['word'] for i in data['items']] == ['due']


@pytest.mark.integration
def test_stats_report_lapsed_streak(fake, blob_store):
    blob_store.set('userStats', json.dumps({
        'streak': 5, 'totalScore': 32.5, 'sentenceCount': 5, 'lastActiveDate': '2000-01-01T09:00:00+00:00',
    }).encode())
    app = app_main.create_app(make_settings(), transport=fake.transport(), blob_store=blob_store)
    with TestClient(app) as c:
        data = c.get('/stats').json()
    assert data['stats']['streak'] == 1
    assert data['stats']['sentenceCount'] == 5
    assert json.loads(blob_store.get('userStats'))['streak'] == 1
