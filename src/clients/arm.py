"""
Azure Resource Manager client - Implements RemoteAPIClient over aiohttp.

Speaks the ARM long-running operation protocol: a 201/202 response that
carries an Azure-AsyncOperation or Location header is returned as an
OperationHandle, and poll() follows that header until the operation
settles.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import aiohttp

from errors import ErrorKind, RemoteError
from identifiers import ResourceLocator, encode
from remote import (
    MutationKind,
    MutationRequest,
    OperationHandle,
    OperationState,
    OperationStatus,
    RemoteAPIClient,
    RemoteRecord,
    SyncResult,
)

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://management.azure.com"
DEFAULT_API_VERSION = "2020-06-01"

ASYNC_OPERATION_HEADER = "Azure-AsyncOperation"
LOCATION_HEADER = "Location"

_METHODS = {
    MutationKind.CREATE: "PUT",
    MutationKind.UPDATE: "PUT",
    MutationKind.DELETE: "DELETE",
}

_SUCCEEDED = {"succeeded"}
_FAILED = {"failed", "canceled", "cancelled"}


def classify_status(status: int) -> ErrorKind:
    """Classify an HTTP error status into a provider ErrorKind."""
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 409:
        return ErrorKind.CONFLICT
    if status in (408, 429) or 500 <= status < 600:
        return ErrorKind.TRANSIENT
    if 400 <= status < 500:
        return ErrorKind.REJECTED
    return ErrorKind.UNKNOWN


def error_message(body: Mapping[str, Any], default: str) -> str:
    """Extract the message from an ARM error body."""
    error = body.get("error") if isinstance(body, Mapping) else None
    if isinstance(error, Mapping):
        code = error.get("code")
        message = error.get("message") or default
        return f"{code}: {message}" if code else message
    return default


def parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ResourceManagerClient(RemoteAPIClient):
    """
    Remote API client for Azure Resource Manager.

    Performs no retries of its own; transient failures are classified and
    raised for the caller to handle.
    """

    def __init__(
        self,
        token: str = "",
        endpoint: str = DEFAULT_ENDPOINT,
        api_versions: Optional[Dict[str, str]] = None,
        request_timeout: float = 60.0,
    ):
        self.token = token
        self.endpoint = endpoint.rstrip("/")
        self.api_versions = dict(api_versions or {})
        self.request_timeout = request_timeout

        if not self.token:
            logger.warning(
                "ARM access token not configured. Set ARM_ACCESS_TOKEN "
                "environment variable."
            )

    @classmethod
    def from_config(cls, provider_config, api_versions: Optional[Dict[str, str]] = None):
        """Build a client from ProviderConfig plus per-kind API versions."""
        versions = dict(api_versions or {})
        versions.update(provider_config.api_versions)
        return cls(
            token=provider_config.token,
            endpoint=provider_config.endpoint,
            api_versions=versions,
            request_timeout=provider_config.request_timeout,
        )

    async def get(
        self,
        locator: ResourceLocator,
        deadline=None,
        api_version: Optional[str] = None,
    ) -> RemoteRecord:
        """Fetch a resource; raises RemoteError(NOT_FOUND) on 404."""
        status, _, body = await self._send(
            "GET", self._url(locator), self._api_version(locator, api_version)
        )
        if status != 200:
            raise RemoteError(
                classify_status(status),
                error_message(body, f"GET {encode(locator)} failed"),
                status,
            )
        return RemoteRecord(identifier=body.get("id"), properties=body)

    async def submit(
        self,
        mutation: MutationRequest,
        deadline=None,
    ) -> Union[SyncResult, OperationHandle]:
        """Send a PUT/DELETE and return the result or an operation handle."""
        method = _METHODS[mutation.kind]
        payload = mutation.payload if method == "PUT" else None
        status, headers, body = await self._send(
            method,
            self._url(mutation.locator),
            self._api_version(mutation.locator, mutation.api_version),
            payload,
        )

        if status not in (200, 201, 202, 204):
            raise RemoteError(
                classify_status(status),
                error_message(
                    body, f"{method} {encode(mutation.locator)} failed"
                ),
                status,
            )

        if status in (201, 202):
            poll_url = headers.get(ASYNC_OPERATION_HEADER)
            protocol = "azure-async-operation"
            if not poll_url:
                poll_url = headers.get(LOCATION_HEADER)
                protocol = "location"
            if poll_url:
                logger.debug(f"{method} {encode(mutation.locator)} accepted, polling {poll_url}")
                return OperationHandle(
                    mutation=mutation,
                    poll_reference=poll_url,
                    retry_after=parse_retry_after(headers),
                    metadata={"protocol": protocol},
                )

        record = None
        if body and body.get("id"):
            record = RemoteRecord(identifier=body.get("id"), properties=body)
        return SyncResult(record=record)

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        """Check a long-running operation once."""
        status, headers, body = await self._send("GET", handle.poll_reference)
        retry_after = parse_retry_after(headers)

        if handle.metadata.get("protocol") == "azure-async-operation":
            if status != 200:
                raise RemoteError(
                    classify_status(status),
                    error_message(body, "operation status check failed"),
                    status,
                )
            op_status = str(body.get("status", "")).lower()
            if op_status in _SUCCEEDED:
                return OperationStatus(OperationState.SUCCEEDED)
            if op_status in _FAILED:
                return OperationStatus(
                    OperationState.FAILED,
                    cause=error_message(body, f"operation {op_status}"),
                )
            return OperationStatus(OperationState.IN_PROGRESS, retry_after=retry_after)

        # Location protocol: 202 while running, 200/201/204 when done
        if status == 202:
            return OperationStatus(OperationState.IN_PROGRESS, retry_after=retry_after)
        if status in (200, 201, 204):
            return OperationStatus(OperationState.SUCCEEDED)
        if status == 404:
            return OperationStatus(OperationState.NOT_FOUND)
        raise RemoteError(
            classify_status(status),
            error_message(body, "operation status check failed"),
            status,
        )

    # Private helper methods

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for ARM requests."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, locator: ResourceLocator) -> str:
        return f"{self.endpoint}{encode(locator)}"

    def _api_version(self, locator: ResourceLocator, requested: Optional[str]) -> str:
        return (
            self.api_versions.get(locator.resource_type)
            or requested
            or DEFAULT_API_VERSION
        )

    async def _send(
        self,
        method: str,
        url: str,
        api_version: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Dict[str, str], Dict[str, Any]]:
        """Send one request and return (status, headers, parsed body)."""
        params = {"api-version": api_version} if api_version else None
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method,
                    url,
                    headers=self._get_headers(),
                    params=params,
                    json=payload,
                ) as response:
                    text = await response.text()
                    return response.status, dict(response.headers), _parse_body(text)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteError(
                ErrorKind.TRANSIENT, f"{method} {url} failed: {e}"
            ) from e


def _parse_body(text: str) -> Dict[str, Any]:
    if not text:
        return {}
    try:
        body = json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}
    return body if isinstance(body, dict) else {"value": body}
