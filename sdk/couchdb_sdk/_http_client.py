"""
Internal HTTP transport for the CouchDB SDK.

This module provides the low-level HTTP communication layer.
It is internal to the SDK and should not be used directly by users.

Users should use CouchDB and Database instead, which translate
method calls into requests and dispatch on the returned status.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from .errors import ConnectionError, InvalidArgumentError, ServerCommunicationError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json"}
JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass
class HttpResponse:
    """Status and raw body of one HTTP round trip."""

    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ServerCommunicationError: If the body is empty or not valid JSON
        """
        try:
            return json.loads(self.content)
        except ValueError as e:
            raise ServerCommunicationError(
                f"Failed to decode JSON response: {e}",
                status_code=self.status_code,
                body=self.text[:500],
            ) from e


@runtime_checkable
class Transport(Protocol):
    """Protocol defining the transport interface.

    Transports perform exactly one request per call, never retry,
    and never interpret status codes.
    """

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> HttpResponse:
        """Execute one request against a path relative to the server root."""
        ...

    def close(self) -> None:
        """Release any held connections."""
        ...


class HttpTransport:
    """httpx-backed transport.

    This is an internal class - users should use CouchDB instead.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Server root URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=DEFAULT_HEADERS,
            timeout=timeout,
            transport=transport,
        )

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> HttpResponse:
        url = "/" + path.lstrip("/")
        kwargs: dict[str, Any] = {}
        if body is not None:
            try:
                kwargs["content"] = json.dumps(body).encode("utf-8")
            except (TypeError, ValueError) as e:
                raise InvalidArgumentError(
                    f"Request body cannot be encoded as JSON: {e}",
                    argument="body",
                ) from e
            kwargs["headers"] = JSON_HEADERS
        if params:
            kwargs["params"] = params

        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise ConnectionError(
                f"Connection error to {self.base_url}{url}: {e}",
                address=self.base_url,
            ) from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        return HttpResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )

    def close(self) -> None:
        self._client.close()
