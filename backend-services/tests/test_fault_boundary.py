import asyncio
import json

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.responses import StreamingResponse
from httpx import ASGITransport, AsyncClient

from middleware.body_buffer_middleware import BodyBufferMiddleware
from middleware.fault_boundary_middleware import FaultBoundaryMiddleware
from services.fault_service import LOG_TEMPLATE
from utils.body_capture_util import UNSEEKABLE_SENTINEL, capture_form_snapshot
from utils.response_util import PROBLEM_MEDIA_TYPE


def _fault_records(handler):
    return [r for r in handler.records if r.msg == LOG_TEMPLATE]


def _logged_body(handler):
    records = _fault_records(handler)
    assert len(records) == 1
    return records[0].args['body']


@pytest.mark.asyncio
async def test_failed_json_request_is_logged_sanitized(client, gateway_logs):
    r = await client.post('/test-default', json={'username': 'bob', 'password': 'hunter2-XYZ', 'tags': ['x', 'y']})

    assert r.status_code == 500
    assert r.headers['content-type'].startswith(PROBLEM_MEDIA_TYPE)
    assert r.json() == {'status': 500, 'title': 'Server error'}
    assert json.loads(_logged_body(gateway_logs)) == {'username': 'bob', 'tags': ['x', 'y']}
    assert 'hunter2-XYZ' not in gateway_logs.text
    record = _fault_records(gateway_logs)[0]
    assert record.getMessage().startswith('Exception occurred. RawBody: {')
    assert 'Method: POST, Path: /test-default, ContentType: application/json' in record.getMessage()


@pytest.mark.asyncio
async def test_response_never_leaks_exception_text(client, gateway_logs):
    r = await client.post('/test-default', json={'username': 'bob'})
    assert 'Test exception' not in r.text
    assert 'RuntimeError' not in r.text


@pytest.mark.asyncio
@pytest.mark.parametrize('path, payload, expected', [
    ('/test-attribute', {'password': 'sensitive-data', 'name': 'ann'}, {'name': 'ann'}),
    ('/test-real', {'title': 'hello', 'email': 'ann@example.com'}, {'title': 'hello'}),
    ('/test-single', {'only_secret': 'This should be removed completely'}, {}),
    (
        '/test-mixed',
        {
            'public_info': 'p', 'secret_number': '42', 'secret_codes': ['c1'],
            'public_tags': ['t1'], 'secret_dict': {'k': 'v'},
        },
        {'public_info': 'p', 'public_tags': ['t1']},
    ),
])
async def test_marked_fields_are_removed_from_logged_body(client, gateway_logs, path, payload, expected):
    r = await client.post(path, json=payload)
    assert r.status_code == 500
    assert json.loads(_logged_body(gateway_logs)) == expected


@pytest.mark.asyncio
async def test_nested_body_and_model_log(client, gateway_logs):
    payload = {
        'id': 1,
        'name': 'Ann',
        'credentials': {'username': 'ann', 'password': 'pw-XYZ'},
        'settings': {'theme': 'dark', 'secret_token': 'st-XYZ'},
    }
    r = await client.post('/test-complex', json=payload)

    assert r.status_code == 500
    body = json.loads(_logged_body(gateway_logs))
    assert body['name'] == 'Ann'
    assert body['settings'] == {'theme': 'dark'}
    assert 'credentials' not in body
    assert 'st-XYZ' not in gateway_logs.text
    assert 'pw-XYZ' not in gateway_logs.text
    assert any(line.startswith('Received profile: ') for line in gateway_logs.lines)


@pytest.mark.asyncio
async def test_single_upload_is_summarised(client, gateway_logs):
    content = b'\x89PNG' + b'0' * 1020
    r = await client.post(
        '/upload-file',
        data={'description': 'holiday', 'secret_data': 'topsecret-XYZ'},
        files={'file': ('pic.png', content, 'image/png')},
    )

    assert r.status_code == 500
    body = json.loads(_logged_body(gateway_logs))
    assert body['description'] == 'holiday'
    assert 'secret_data' not in body
    assert body['file'] == {'filePresent': True, 'fileName': 'pic.png', 'size': 1024, 'contentType': 'image/png'}
    assert 'topsecret-XYZ' not in gateway_logs.text
    assert 'PNG0000' not in gateway_logs.text


@pytest.mark.asyncio
async def test_multiple_uploads_are_summarised(client, gateway_logs):
    r = await client.post(
        '/upload-multiple',
        data={'batch_name': 'trip'},
        files=[('files', ('a.txt', b'aa', 'text/plain')), ('files', ('b.txt', b'bbb', 'text/plain'))],
    )

    assert r.status_code == 500
    body = json.loads(_logged_body(gateway_logs))
    assert body['batch_name'] == 'trip'
    assert [(f['fileName'], f['size']) for f in body['files']] == [('a.txt', 2), ('b.txt', 3)]


@pytest.mark.asyncio
async def test_malformed_json_is_a_validation_error(client, gateway_logs):
    r = await client.post(
        '/test-default',
        content=b'{"password": "hunter2-XYZ"',
        headers={'Content-Type': 'application/json'},
    )
    assert r.status_code == 422
    assert r.headers['content-type'].startswith(PROBLEM_MEDIA_TYPE)
    assert r.json() == {'status': 422, 'title': 'Validation error'}
    assert 'hunter2-XYZ' not in r.text
    assert not _fault_records(gateway_logs)


@pytest.mark.asyncio
async def test_request_id_is_echoed(client, gateway_logs):
    r = await client.post('/test-default', json={'username': 'bob'}, headers={'X-Request-ID': 'abc-123'})
    assert r.headers['X-Request-ID'] == 'abc-123'
    assert _fault_records(gateway_logs)[0].request_id == 'abc-123'


@pytest.mark.asyncio
async def test_request_id_is_generated(client):
    r = await client.post('/test-default', json={'username': 'bob'})
    assert r.headers.get('X-Request-ID')


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}


@pytest.mark.asyncio
async def test_concurrent_faults_keep_their_own_bodies(client, gateway_logs):
    async def fail(i):
        return await client.post('/test-default', json={'username': f'user-{i}', 'password': f'pw-{i}'})

    responses = await asyncio.gather(*(fail(i) for i in range(10)))

    assert all(r.status_code == 500 for r in responses)
    bodies = {r.args['body'] for r in _fault_records(gateway_logs)}
    assert bodies == {json.dumps({'username': f'user-{i}'}, separators=(',', ':')) for i in range(10)}


def _build_app(max_bytes=None):
    app = FastAPI(dependencies=[Depends(capture_form_snapshot)])
    app.add_middleware(FaultBoundaryMiddleware)
    app.add_middleware(BodyBufferMiddleware, max_bytes=max_bytes)

    @app.post('/raw')
    async def raw(request: Request):
        data = await request.body()
        raise RuntimeError(f'consumed {len(data)} bytes')

    @app.get('/stream')
    async def stream():
        async def chunks():
            yield b'first'
            raise RuntimeError('stream broke')
        return StreamingResponse(chunks())

    return app


async def _post_raw(app, content, content_type='text/plain'):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url='http://testserver') as ac:
        return await ac.post('/raw', content=content, headers={'Content-Type': content_type})


@pytest.mark.asyncio
async def test_body_is_readable_after_handler_consumed_it(gateway_logs):
    r = await _post_raw(_build_app(), b'hello world')

    assert r.status_code == 500
    assert _logged_body(gateway_logs) == 'hello world'
    assert str(_fault_records(gateway_logs)[0].exc_info[1]) == 'consumed 11 bytes'


@pytest.mark.asyncio
async def test_oversized_body_reports_sentinel(gateway_logs):
    r = await _post_raw(_build_app(max_bytes=8), b'0123456789abcdef')

    assert r.status_code == 500
    assert _logged_body(gateway_logs) == UNSEEKABLE_SENTINEL
    assert str(_fault_records(gateway_logs)[0].exc_info[1]) == 'consumed 16 bytes'


@pytest.mark.asyncio
async def test_urlencoded_body_is_parsed_and_redacted(gateway_logs):
    r = await _post_raw(_build_app(), b'user=ann&pin=1234', 'application/x-www-form-urlencoded')

    assert r.status_code == 500
    assert json.loads(_logged_body(gateway_logs)) == {'user': 'ann'}


@pytest.mark.asyncio
async def test_oversized_urlencoded_body_reports_sentinel(gateway_logs):
    r = await _post_raw(_build_app(max_bytes=8), b'user=ann&pin=1234', 'application/x-www-form-urlencoded')

    assert r.status_code == 500
    assert _logged_body(gateway_logs) == UNSEEKABLE_SENTINEL
    assert str(_fault_records(gateway_logs)[0].exc_info[1]) == 'consumed 17 bytes'


@pytest.mark.asyncio
async def test_fault_after_response_started_is_only_logged(gateway_logs):
    transport = ASGITransport(app=_build_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url='http://testserver') as ac:
        r = await ac.get('/stream')

    assert r.status_code == 200
    assert 'Exception after response started: GET /stream' in gateway_logs.text
    assert not _fault_records(gateway_logs)
