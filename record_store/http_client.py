"""HTTP client for communicating with the remote record store service."""

import asyncio
import uuid
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from common.config import Config
from common.constants import DEFAULT_ATTACHMENT_CONTENT_TYPE, SUBSCRIPTION_ID
from common.exceptions import DecodeFailureError, RemoteUnavailableError
from common.logging_config import get_logger
from common.types import Attachment, Profile, Record, RecordKind, SaveReceipt
from record_store.base import RecordStoreClient
from record_store.change_feed import ChangeFeed
from record_store.schemas import (
    AssetResponse,
    DeleteByAuthorResponse,
    ProfileListResponse,
    RecordListResponse,
    SaveResponse,
    WhoAmIResponse,
    decode_profile,
    decode_record,
    encode_profile,
    encode_record,
)

logger = get_logger(__name__)


class HttpRecordStoreClient(RecordStoreClient):
    """HTTP client for the record store API with retry logic and error handling."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        change_poll_interval: float = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize record store client.

        Args:
            base_url: Store base URL (e.g. "http://localhost:8080")
            api_token: Bearer token sent with every request
            timeout: Per-request timeout in seconds
            max_retries: Retry attempts on 5xx and network errors
            retry_backoff_multiplier: Delay before retry n is multiplier ** n seconds
            change_poll_interval: Seconds between change token polls after subscribe
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url
        self.api_token = api_token
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.change_poll_interval = change_poll_interval
        self.session = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self.request_id: Optional[str] = None
        self._sleep = asyncio.sleep
        self._poll_task: Optional[asyncio.Task] = None
        self._feeds: List[ChangeFeed] = []
        self._change_token: Optional[str] = None
        logger.info(f"Initialized HttpRecordStoreClient [base_url={base_url}]")

    @classmethod
    def from_config(cls, config: Config) -> 'HttpRecordStoreClient':
        retry_config = config.get_retry_config()
        return cls(
            base_url=config.get_base_url(),
            api_token=config.get_api_token(),
            timeout=config.get_timeout(),
            max_retries=retry_config['max_retries'],
            retry_backoff_multiplier=retry_config['retry_backoff_multiplier'],
            change_poll_interval=config.get_change_poll_interval(),
        )

    def _get_auth_header(self) -> dict:
        if not self.api_token:
            return {}
        return {'Authorization': f'Bearer {self.api_token}'}

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, PUT, DELETE, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses client default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object (4xx responses are returned without retry)

        Raises:
            RemoteUnavailableError: If max retries exceeded or connection fails
        """
        max_retries = max_retries if max_retries is not None else self.max_retries
        backoff = self.retry_backoff_multiplier

        last_exception = None
        response = None

        self.request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop('headers', None) or {})
        headers.update(self._get_auth_header())
        headers['X-Request-ID'] = self.request_id
        kwargs['headers'] = headers

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        for attempt in range(max_retries + 1):
            try:
                response = await self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    await self._sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    await self._sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )
            except httpx.HTTPError as e:
                logger.error(f"Transport error: {method} {endpoint} error={e} [request_id={self.request_id}]")
                raise RemoteUnavailableError(f"Request to record store failed: {type(e).__name__}") from e

        if isinstance(last_exception, httpx.ConnectError):
            raise RemoteUnavailableError("Cannot connect to record store. Is it running?") from last_exception
        if isinstance(last_exception, httpx.TimeoutException):
            raise RemoteUnavailableError("Request timed out. Record store may be overloaded.") from last_exception
        raise RemoteUnavailableError("Max retries exceeded", status_code=response.status_code if response is not None else None)

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to readable messages.

        Args:
            response: HTTP response object

        Returns:
            Error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except (ValueError, AttributeError):
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'INVALID_TOKEN': 'Not authenticated. Check api_token in the config file.',
            'RECORD_NOT_FOUND': 'Record not found on the record store.',
            'ASSET_NOT_FOUND': 'Attachment not found on the record store.',
            'QUOTA_EXCEEDED': 'Record store quota exceeded.',
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            401: 'Not authenticated',
            403: 'Access forbidden',
            404: 'Not found',
            413: 'Payload too large',
            500: 'Server error',
            503: 'Service unavailable',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def _raise_for_status(self, response: httpx.Response, operation: str, ok: Iterable[int] = (200, 201, 204)) -> None:
        if response.status_code not in ok:
            message = f"{operation} failed: {self._format_error(response)}"
            raise RemoteUnavailableError(message, status_code=response.status_code)

    def _parse(self, model, response: httpx.Response, operation: str):
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteUnavailableError(f"{operation} returned an unexpected body: {e}",
                                         status_code=response.status_code) from e

    async def _upload_attachment(self, asset_id: str, attachment: Attachment) -> Optional[str]:
        if attachment.is_uploaded:
            return attachment.ref
        if attachment.data is None:
            return None
        response = await self._request_with_retry(
            'PUT',
            f'/assets/{asset_id}',
            content=attachment.data,
            headers={'Content-Type': attachment.content_type or DEFAULT_ATTACHMENT_CONTENT_TYPE},
        )
        self._raise_for_status(response, "Attachment upload")
        return self._parse(AssetResponse, response, "Attachment upload").asset_ref

    async def current_author_id(self) -> str:
        response = await self._request_with_retry('GET', '/me')
        self._raise_for_status(response, "Identity lookup", ok=(200,))
        author_id = self._parse(WhoAmIResponse, response, "Identity lookup").author_id
        logger.info(f"Resolved current author [author_id={author_id}]")
        return author_id

    async def save(self, record: Record) -> SaveReceipt:
        attachment_ref = None
        if record.payload.attachment is not None:
            attachment_ref = await self._upload_attachment(record.id, record.payload.attachment)

        ref = record.remote_ref or record.id
        response = await self._request_with_retry(
            'PUT',
            f'/records/{ref}',
            json=encode_record(record, attachment_ref),
        )
        self._raise_for_status(response, "Record save")
        remote_ref = self._parse(SaveResponse, response, "Record save").remote_ref
        logger.debug(f"Saved record {record.id} [remote_ref={remote_ref}]")
        return SaveReceipt(remote_ref, attachment_ref)

    async def fetch_all(
        self,
        kinds: Optional[Iterable[RecordKind]] = None,
        author_id: Optional[str] = None,
    ) -> List[Record]:
        """
        Fetch a full snapshot of remote records.

        Args:
            kinds: Restrict to these kinds (all kinds when None)
            author_id: Restrict to records authored by this identity

        Returns:
            Decoded records; undecodable documents are logged and skipped
        """
        wanted = {RecordKind(k) for k in kinds} if kinds else None
        params: List[tuple] = []
        if wanted:
            params.extend(('kind', k.value) for k in sorted(wanted, key=lambda k: k.value))
        if author_id:
            params.append(('author_id', author_id))

        response = await self._request_with_retry('GET', '/records', params=params)
        self._raise_for_status(response, "Record fetch", ok=(200,))
        raw_records = self._parse(RecordListResponse, response, "Record fetch").records

        records: List[Record] = []
        for raw in raw_records:
            try:
                record = decode_record(raw)
            except DecodeFailureError as e:
                logger.warning(f"Skipping remote record: {e}")
                continue
            if wanted and record.kind not in wanted:
                continue
            records.append(record)

        logger.debug(f"Fetched {len(records)}/{len(raw_records)} records [author_id={author_id}]")
        return records

    async def delete_by_id(self, remote_ref: str) -> None:
        response = await self._request_with_retry('DELETE', f'/records/{remote_ref}')
        if response.status_code == 404:
            logger.debug(f"Record already absent remotely [remote_ref={remote_ref}]")
            return
        self._raise_for_status(response, "Record delete")

    async def delete_all_by_author(self, author_id: str) -> int:
        response = await self._request_with_retry('DELETE', '/records', params={'author_id': author_id})
        self._raise_for_status(response, "Bulk delete", ok=(200,))
        deleted = self._parse(DeleteByAuthorResponse, response, "Bulk delete").deleted_count
        logger.info(f"Deleted {deleted} remote records [author_id={author_id}]")
        return deleted

    async def fetch_attachment(self, ref: str) -> bytes:
        response = await self._request_with_retry('GET', f'/assets/{ref}')
        self._raise_for_status(response, "Attachment fetch", ok=(200,))
        return response.content

    async def save_profile(self, profile: Profile) -> str:
        selfie_ref = None
        if profile.selfie is not None:
            selfie_ref = await self._upload_attachment(f"profile-{profile.id}", profile.selfie)

        ref = profile.remote_ref or profile.id
        response = await self._request_with_retry(
            'PUT',
            f'/profiles/{ref}',
            json=encode_profile(profile, selfie_ref),
        )
        self._raise_for_status(response, "Profile save")
        return self._parse(SaveResponse, response, "Profile save").remote_ref

    async def fetch_profiles(self, author_id: Optional[str] = None, name: Optional[str] = None) -> List[Profile]:
        params: Dict[str, Any] = {}
        if author_id:
            params['author_id'] = author_id
        if name:
            params['name'] = name

        response = await self._request_with_retry('GET', '/profiles', params=params)
        self._raise_for_status(response, "Profile fetch", ok=(200,))
        raw_profiles = self._parse(ProfileListResponse, response, "Profile fetch").profiles

        profiles = []
        for raw in raw_profiles:
            try:
                profiles.append(decode_profile(raw))
            except DecodeFailureError as e:
                logger.warning(f"Skipping remote profile: {e}")
        return profiles

    async def delete_profile(self, remote_ref: str) -> None:
        response = await self._request_with_retry('DELETE', f'/profiles/{remote_ref}')
        if response.status_code == 404:
            return
        self._raise_for_status(response, "Profile delete")

    async def subscribe(self, feed: ChangeFeed) -> None:
        """
        Register the change subscription and start polling for change tokens.

        A 409 response means the subscription already exists.
        """
        response = await self._request_with_retry(
            'POST',
            '/subscriptions',
            json={'subscription_id': SUBSCRIPTION_ID, 'kinds': [k.value for k in RecordKind]},
        )
        if response.status_code == 409:
            logger.debug(f"Subscription {SUBSCRIPTION_ID} already exists")
        else:
            self._raise_for_status(response, "Subscription")
            logger.info(f"Registered subscription {SUBSCRIPTION_ID}")

        if feed not in self._feeds:
            self._feeds.append(feed)
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_changes_loop())

    async def poll_changes(self) -> bool:
        """
        Check the change token once and publish to feeds when it moved.

        Returns:
            True if a change was published
        """
        response = await self._request_with_retry('GET', '/changes', max_retries=0)
        self._raise_for_status(response, "Change poll", ok=(200,))
        try:
            token = response.json().get('change_token')
        except ValueError as e:
            raise RemoteUnavailableError(f"Change poll returned an unexpected body: {e}") from e

        changed = self._change_token is not None and token != self._change_token
        self._change_token = token
        if changed:
            for feed in self._feeds:
                feed.publish()
        return changed

    async def _poll_changes_loop(self):
        while True:
            try:
                await self.poll_changes()
            except RemoteUnavailableError as e:
                logger.debug(f"Change poll failed: {e}")
            except Exception as e:
                logger.error(f"Error in change poll loop: {e}", exc_info=True)
            await asyncio.sleep(self.change_poll_interval)

    async def close(self) -> None:
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        await self.session.aclose()
