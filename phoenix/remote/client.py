"""HTTP client for the remote records API.

Every failure is normalised into a ``SyncError`` subclass: ``TransportError``
when no usable response arrived, ``ServerError`` for a non-2xx status and
``DecodeError`` when a 2xx body does not match the expected shape.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from phoenix.exceptions import DecodeError, MissingLinkError, ServerError, TransportError
from phoenix.schemas.sync import (
    LoginRequest,
    ManifestEntry,
    ManifestResponse,
    Record,
    RecordPayload,
    RecordResponse,
    SingleRecordResponse,
    TokenResponse,
    VerboseRecord,
)

if TYPE_CHECKING:
    from phoenix.config import Settings

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

LOGIN_PATH = "/api/login_check"
RECORDS_PATH = "/api/records"
MANIFEST_PATH = "/api/records/manifest"


def _record_path(external_id: int) -> str:
    return f"{RECORDS_PATH}/{external_id}"


def transport_error_from(exc: Exception) -> TransportError:
    """Map an httpx exception raised before a response was available."""
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return TransportError(message="FATAL ERROR: Builder Issue in client")
    if isinstance(exc, httpx.TooManyRedirects):
        try:
            url = str(exc.request.url)
        except RuntimeError:
            url = "unknown"
        return TransportError(message=f"redirect loop at: {url}")
    if isinstance(exc, httpx.ConnectError):
        return TransportError(message="Connection could not be made.")
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(message="Request timed out.")
    if isinstance(exc, (httpx.StreamError, httpx.WriteError, httpx.DecodingError)):
        return TransportError(message="Issue with request body.")
    if isinstance(exc, httpx.RequestError):
        return TransportError(message="Issue making the request to server")
    return TransportError()


class RecordsClient:
    """Request/response client for one remote endpoint.

    The bearer token obtained by ``authenticate`` lives only as long as the
    client instance; it is never persisted.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        verify: bool = False,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            verify=verify,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        base_url: str,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RecordsClient:
        return cls(
            base_url,
            verify=settings.remote_verify_tls,
            timeout=settings.remote_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> RecordsClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        if self.token is not None:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self.client.request(method, path, json=json, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise transport_error_from(exc) from exc

        logger.debug("%s %s -> %d", method, path, response.status_code)
        if not response.is_success:
            status = f"{response.status_code} {response.reason_phrase}".strip()
            raise ServerError(status=status)
        return response

    @staticmethod
    def _decode(response: httpx.Response, model: type[_ModelT]) -> _ModelT:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as exc:
            logger.debug("Unexpected response body for %s: %s", model.__name__, exc)
            raise DecodeError() from exc

    async def authenticate(self, username: str, password: str) -> str:
        """Exchange username/password for a bearer token and keep it on the client."""
        body = LoginRequest(username=username, password=password).model_dump()
        response = await self._request("POST", LOGIN_PATH, json=body)
        token = self._decode(response, TokenResponse).token
        self.token = token
        return token

    async def fetch_manifest(self) -> list[ManifestEntry]:
        """Fetch every ``{id, updatedAt}`` pair the remote holds."""
        response = await self._request("GET", MANIFEST_PATH)
        return self._decode(response, ManifestResponse).data

    async def push_new_record(self, payload: RecordPayload) -> Record:
        """Create a remote record and return its identity, hash and timestamp."""
        response = await self._request("POST", RECORDS_PATH, json=payload.to_wire())
        return self._decode(response, RecordResponse).data

    async def pull_record(self, external_id: int) -> VerboseRecord:
        """Fetch the full record, including the plaintext secret."""
        response = await self._request("GET", _record_path(external_id))
        return self._decode(response, SingleRecordResponse).data

    async def replace_record(self, external_id: int | None, payload: RecordPayload) -> Record:
        """Overwrite a remote record. Raises MissingLinkError without an external id."""
        if external_id is None:
            raise MissingLinkError()
        response = await self._request("PUT", _record_path(external_id), json=payload.to_wire())
        return self._decode(response, RecordResponse).data

    async def delete_record(self, external_id: int) -> None:
        """Delete a remote record. Any 2xx response counts as success."""
        await self._request("DELETE", _record_path(external_id))
