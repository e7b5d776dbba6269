"""Shared HTTP plumbing for remote service clients.

Maps transport failures and non-2xx answers onto the remote error
taxonomy. Nothing here retries; retry policy belongs to the caller.
"""

from typing import Any

import httpx
import structlog

from catalog_api.domain.exceptions import (
    RemoteError,
    RemoteNotFound,
    RemoteRateLimited,
    RemoteUnavailable,
)

logger = structlog.get_logger()

RATE_LIMIT_RESET_HEADER = "X-Rate-Limit-Time-Reset-Ms"


def rate_limit_reset_seconds(response: httpx.Response) -> float | None:
    """Seconds until the remote's rate-limit window resets.

    Args:
        response: A 429 answer.

    Returns:
        The announced reset delay, or None when the header is absent or invalid.
    """
    raw = response.headers.get(RATE_LIMIT_RESET_HEADER)
    if raw is None:
        return None
    try:
        reset_ms = int(raw.strip())
    except ValueError:
        return None
    return max(reset_ms, 0) / 1000


class RemoteServiceClient:
    """Base class for JSON-over-HTTP clients.

    The underlying ``httpx.AsyncClient`` is created lazily and released by
    ``close()``; instances can be used as async context managers.
    """

    service_name = "remote"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        headers: dict[str, str] | None = None,
        request_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize remote client.

        Args:
            base_url: Base URL all request paths are relative to.
            timeout: Request timeout in seconds.
            headers: Default headers sent with every request.
            request_id: Optional request ID for correlation.
            transport: Optional transport override (used by tests).
        """
        self.base_url = base_url
        self.timeout = timeout
        self.headers = dict(headers or {})
        if request_id:
            self.headers["X-Request-ID"] = request_id
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RemoteServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and decode the JSON answer.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            params: Optional query parameters.
            json: Optional JSON body.

        Returns:
            Decoded JSON body, or an empty dict for empty answers.

        Raises:
            RemoteUnavailable: On transport error or timeout.
            RemoteRateLimited: On 429.
            RemoteNotFound: On 404.
            RemoteError: On any other non-2xx status.
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise RemoteUnavailable(
                self.service_name, f"Timed out calling {method} {path}: {e}"
            ) from e
        except httpx.RequestError as e:
            raise RemoteUnavailable(
                self.service_name, f"Failed to call {method} {path}: {e}"
            ) from e

        self._raise_for_status(method, path, response)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                self.service_name,
                f"Invalid JSON from {method} {path}",
                response.status_code,
                response.text,
            ) from e

    def _raise_for_status(self, method: str, path: str, response: httpx.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return

        logger.warning(
            "Remote call failed",
            service=self.service_name,
            method=method,
            path=path,
            status_code=status,
        )
        if status == 429:
            raise RemoteRateLimited(
                self.service_name,
                f"Rate limited on {method} {path}",
                status,
                response.text,
                retry_after=rate_limit_reset_seconds(response),
            )
        if status == 404:
            raise RemoteNotFound(
                self.service_name, f"Not found: {method} {path}", status, response.text
            )
        raise RemoteError(
            self.service_name,
            f"{method} {path} returned {status}",
            status,
            response.text,
        )
