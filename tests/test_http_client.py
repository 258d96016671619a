"""Unit tests for HttpRecordStoreClient."""

import json
from dataclasses import replace

import httpx
import pytest

from common.exceptions import RemoteUnavailableError
from common.types import Attachment, Payload, RecordKind
from record_store.change_feed import ChangeFeed
from record_store.http_client import HttpRecordStoreClient

RECORD_ID = "00000000-0000-4000-8000-000000000001"


def remote_doc(record_id=RECORD_ID, **overrides):
    doc = {
        'id': record_id,
        'kind': 'regular',
        'owner_label': 'Alice',
        'activity': 'reading',
        'author_id': 'u1',
        'created_at': '2024-03-01T12:00:00+00:00',
        'last_modified': '2024-03-01T12:00:00+00:00',
        'remote_ref': f'ref-{record_id}',
    }
    doc.update(overrides)
    return doc


def make_client(handler, **kwargs):
    """Client over a mock transport that never really sleeps between retries."""
    client = HttpRecordStoreClient('http://test', transport=httpx.MockTransport(handler), **kwargs)

    async def no_sleep(_delay):
        return None

    client._sleep = no_sleep
    return client


@pytest.mark.asyncio
async def test_current_author_id_sends_token_and_request_id():
    """Test identity lookup sends bearer token and a request id."""
    seen = {}

    def handler(request):
        seen['auth'] = request.headers.get('Authorization')
        seen['request_id'] = request.headers.get('X-Request-ID')
        return httpx.Response(200, json={'author_id': 'u1'})

    client = make_client(handler, api_token='secret')

    assert await client.current_author_id() == 'u1'
    assert seen['auth'] == 'Bearer secret'
    assert seen['request_id'] == client.request_id
    await client.close()


@pytest.mark.asyncio
async def test_invalid_token_maps_to_readable_error():
    """Test 401 with INVALID_TOKEN code."""
    def handler(request):
        return httpx.Response(401, json={'detail': 'bad token', 'code': 'INVALID_TOKEN'})

    client = make_client(handler)

    with pytest.raises(RemoteUnavailableError) as exc_info:
        await client.current_author_id()

    assert 'Not authenticated' in str(exc_info.value)
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_save_puts_flat_document(make_record):
    """Test record save sends the encoded record to its own path."""
    captured = {}

    def handler(request):
        captured['method'] = request.method
        captured['path'] = request.url.path
        captured['body'] = json.loads(request.content)
        return httpx.Response(200, json={'remote_ref': 'ref-1'})

    client = make_client(handler)
    record = make_record(RECORD_ID, activity='chess', assumption='bored')

    receipt = await client.save(record)

    assert receipt.remote_ref == 'ref-1'
    assert receipt.attachment_ref is None
    assert captured['method'] == 'PUT'
    assert captured['path'] == f'/records/{RECORD_ID}'
    assert captured['body']['activity'] == 'chess'
    assert captured['body']['assumption'] == 'bored'
    assert captured['body']['kind'] == 'regular'


@pytest.mark.asyncio
async def test_save_uploads_attachment_first(make_record):
    """Test photo bytes go to the asset endpoint before the record."""
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        if request.url.path.startswith('/assets/'):
            assert request.content == b'jpeg-bytes'
            return httpx.Response(201, json={'asset_ref': 'asset-1'})
        body = json.loads(request.content)
        assert body['attachment_ref'] == 'asset-1'
        return httpx.Response(200, json={'remote_ref': 'ref-1'})

    client = make_client(handler)
    base = make_record(RECORD_ID)
    record = replace(base, payload=Payload(
        fields=dict(base.payload.fields),
        attachment=Attachment(content_type="image/jpeg", data=b"jpeg-bytes"),
    ))

    receipt = await client.save(record)

    assert calls == [('PUT', f'/assets/{RECORD_ID}'), ('PUT', f'/records/{RECORD_ID}')]
    assert receipt.attachment_ref == 'asset-1'


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    """Test 5xx responses are retried until success."""
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={'author_id': 'u1'})

    client = make_client(handler, max_retries=3)

    assert await client.current_author_id() == 'u1'
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_persistent_server_error_raises():
    """Test the final 5xx is reported after retries run out."""
    attempts = []

    def handler(request):
        attempts.append(1)
        return httpx.Response(500)

    client = make_client(handler, max_retries=2)

    with pytest.raises(RemoteUnavailableError) as exc_info:
        await client.current_author_id()

    assert len(attempts) == 3
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    """Test 4xx responses return immediately."""
    attempts = []

    def handler(request):
        attempts.append(1)
        return httpx.Response(400, json={'detail': 'bad'})

    client = make_client(handler, max_retries=3)

    with pytest.raises(RemoteUnavailableError):
        await client.current_author_id()

    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_connection_error_raises_after_retries():
    """Test connection failures surface as RemoteUnavailableError."""
    attempts = []

    def handler(request):
        attempts.append(1)
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler, max_retries=1)

    with pytest.raises(RemoteUnavailableError) as exc_info:
        await client.fetch_all()

    assert 'Cannot connect' in str(exc_info.value)
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_timeout_raises_readable_error():
    """Test timeouts surface as RemoteUnavailableError."""
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    client = make_client(handler, max_retries=0)

    with pytest.raises(RemoteUnavailableError) as exc_info:
        await client.fetch_all()

    assert 'timed out' in str(exc_info.value)


@pytest.mark.asyncio
async def test_fetch_all_sends_filters_and_skips_undecodable():
    """Test kind/author filters and tolerant decoding."""
    seen = {}

    def handler(request):
        seen['kinds'] = request.url.params.get_list('kind')
        seen['author_id'] = request.url.params.get('author_id')
        return httpx.Response(200, json={'records': [
            remote_doc(),
            {'id': 'not-a-uuid', 'created_at': 'never'},
            None,
            'stray string',
            remote_doc("00000000-0000-4000-8000-000000000002", kind='activity', name='chess'),
        ]})

    client = make_client(handler)

    records = await client.fetch_all(kinds=[RecordKind.REGULAR], author_id='u1')

    assert seen['kinds'] == ['regular']
    assert seen['author_id'] == 'u1'
    assert [r.id for r in records] == [RECORD_ID]
    assert records[0].remote_ref == f'ref-{RECORD_ID}'
    assert 'remote_ref' not in records[0].payload.fields


@pytest.mark.asyncio
async def test_delete_by_id_tolerates_missing_record():
    """Test 404 on delete is treated as already deleted."""
    def handler(request):
        return httpx.Response(404, json={'detail': 'gone', 'code': 'RECORD_NOT_FOUND'})

    client = make_client(handler)

    await client.delete_by_id('ref-1')


@pytest.mark.asyncio
async def test_delete_all_by_author_returns_count():
    """Test bulk delete passes the author and returns the count."""
    def handler(request):
        assert request.method == 'DELETE'
        assert request.url.params.get('author_id') == 'u1'
        return httpx.Response(200, json={'deleted_count': 4})

    client = make_client(handler)

    assert await client.delete_all_by_author('u1') == 4


@pytest.mark.asyncio
async def test_fetch_attachment_returns_bytes():
    """Test attachment download."""
    def handler(request):
        assert request.url.path == '/assets/asset-1'
        return httpx.Response(200, content=b'\xff\xd8photo')

    client = make_client(handler)

    assert await client.fetch_attachment('asset-1') == b'\xff\xd8photo'


@pytest.mark.asyncio
async def test_unexpected_body_is_reported():
    """Test a malformed success body raises instead of crashing."""
    def handler(request):
        return httpx.Response(200, json={'unexpected': True})

    client = make_client(handler)

    with pytest.raises(RemoteUnavailableError):
        await client.current_author_id()


@pytest.mark.asyncio
async def test_fetch_profiles_accepts_legacy_fields():
    """Test profiles stored by older clients decode."""
    def handler(request):
        return httpx.Response(200, json={'profiles': [{
            'id': 'p1',
            'name': 'Alice',
            'idealVision': 'Sea view',
            'createdAt': '2024-03-01T12:00:00Z',
            'userCloudKitID': 'u1',
            'locationHistory': json.dumps([
                {'id': 'l1', 'location': 'Lisbon', 'date': '2024-03-01T12:00:00Z', 'isTravel': True},
            ]),
        }]})

    client = make_client(handler)

    profiles = await client.fetch_profiles(author_id='u1')

    assert profiles[0].vision == 'Sea view'
    assert profiles[0].author_id == 'u1'
    assert profiles[0].location_history[0].is_travel is True
    assert profiles[0].last_modified == profiles[0].created_at


@pytest.mark.asyncio
async def test_fetch_profiles_skips_non_object_items():
    """Test one malformed list item does not hide the others."""
    def handler(request):
        return httpx.Response(200, json={'profiles': [
            None,
            {'id': 'p1', 'name': 'Alice', 'created_at': '2024-03-01T12:00:00Z'},
            42,
        ]})

    client = make_client(handler)

    profiles = await client.fetch_profiles()

    assert [p.id for p in profiles] == ['p1']


@pytest.mark.asyncio
async def test_subscribe_tolerates_existing_subscription():
    """Test 409 on subscribe is not an error and polling starts."""
    def handler(request):
        if request.url.path == '/subscriptions':
            return httpx.Response(409, json={'detail': 'exists'})
        return httpx.Response(200, json={'change_token': 't1'})

    client = make_client(handler, change_poll_interval=3600)

    await client.subscribe(ChangeFeed())

    assert client._poll_task is not None
    await client.close()
    assert client._poll_task is None


@pytest.mark.asyncio
async def test_poll_changes_publishes_when_token_moves():
    """Test change token polling notifies subscribers."""
    tokens = iter(['t1', 't1', 't2'])

    def handler(request):
        return httpx.Response(200, json={'change_token': next(tokens)})

    client = make_client(handler)
    feed = ChangeFeed()
    subscription = feed.subscribe()
    client._feeds.append(feed)

    assert await client.poll_changes() is False
    assert await client.poll_changes() is False
    assert subscription.pending is False

    assert await client.poll_changes() is True
    assert subscription.pending is True
