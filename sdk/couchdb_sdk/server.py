"""
CouchDB server handle for the CouchDB SDK.

This module provides the entry point of the SDK:
- CouchDB: connection to one server, database discovery and creation
- Status dispatch shared by every Database and Document operation

Example:
    >>> with CouchDB("http://127.0.0.1:5984") as couch:
    ...     db = couch.create_database("orders")
    ...     doc = db.insert({"name": "widget"})

Invariants:
    - Every operation issues at most one request per call
    - Statuses outside an operation's expectations raise; nothing retries
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from typing import Any

from ._http_client import HttpResponse, HttpTransport, Transport
from .config import ClientSettings
from .database import Database
from .errors import (
    CouchDbError,
    InvalidArgumentError,
    RemoteFaultError,
    ServerCommunicationError,
)
from .validate import validate_database_name

logger = logging.getLogger(__name__)


class CouchDB:
    """Client for one CouchDB server.

    Example:
        >>> couch = CouchDB()  # COUCHDB_URL or http://127.0.0.1:5984
        >>> [db.name for db in couch.all_databases()]
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        settings: ClientSettings | None = None,
        transport: Transport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            url: Server URL, overrides settings.url
            settings: Client settings (loaded from environment if omitted)
            transport: Optional transport, an HttpTransport is built otherwise
        """
        settings = settings or ClientSettings()
        if url is not None:
            settings = settings.model_copy(update={"url": url})
        self.settings = settings
        self.uri = settings.url.rstrip("/")

        if transport is None:
            transport = HttpTransport(self.uri, timeout=settings.timeout)
        elif not isinstance(transport, Transport):
            raise InvalidArgumentError(
                f"transport must implement request() and close(), got {type(transport).__name__}",
                argument="transport",
            )
        self._transport = transport

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.uri!r})"

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()

    def __enter__(self) -> CouchDB:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # SERVER API

    def about(self) -> dict[str, Any]:
        """Return the server's welcome document (version, vendor, ...)."""
        response = self.request("GET", "", description="fetch server information")
        return response.json()

    # DATABASE API

    def all_databases(self) -> list[Database]:
        """Return a handle for every database on the server."""
        response = self.request("GET", "_all_dbs", description="list all databases")
        names = response.json()
        if not isinstance(names, list):
            raise ServerCommunicationError(
                "Database listing is not a list",
                status_code=response.status_code,
                body=response.text[:500],
            )
        return [Database(self, name) for name in names]

    def database(self, name: str) -> Database:
        """Return a handle for an existing database without contacting the server."""
        return Database(self, validate_database_name(name))

    def create_database(self, name: str) -> Database:
        """Create a new database.

        Raises:
            AlreadyExistsError: If a database named ``name`` exists
        """
        db = Database(self, validate_database_name(name))
        db.create()
        return db

    def delete_database(self, name: str) -> None:
        """Delete an existing database.

        Raises:
            NotFoundError: If no database named ``name`` exists
        """
        Database(self, validate_database_name(name)).delete()

    # INTERNALS

    def call(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> HttpResponse:
        """Send one request relative to the server root."""
        return self._transport.request(method, path, body=body, params=params)

    def request(
        self,
        method: str,
        path: str,
        *,
        description: str,
        expect: Collection[int] = (200,),
        errors: Mapping[int, CouchDbError] | None = None,
        body: Any = None,
        params: dict[str, Any] | None = None,
        target: str | None = None,
    ) -> HttpResponse:
        """Send a request and dispatch on its status.

        Args:
            method: HTTP method
            path: Path relative to the server root
            description: What the request does, used in error messages
            expect: Statuses that count as success
            errors: Statuses mapped to the exception to raise
            body: Optional JSON body
            params: Optional query parameters
            target: Database or document the request addresses

        Returns:
            The response, when its status is in ``expect``

        Raises:
            CouchDbError: The mapped exception for statuses in ``errors``
            RemoteFaultError: For any other status
        """
        response = self.call(method, path, body=body, params=params)
        status = response.status_code
        if status in expect:
            return response
        if errors and status in errors:
            raise errors[status]

        error, reason = _error_fields(response)
        logger.debug(f"{method} {path} failed with status {status}: {error} ({reason})")
        message = f"Unknown status code '{status}' while trying to {description} on the CouchDB instance at {self.uri}"
        if error:
            message += f": {error} ({reason})"
        raise RemoteFaultError(
            message,
            status_code=status,
            operation=description,
            target=target,
            error=error,
            reason=reason,
        )


def _error_fields(response: HttpResponse) -> tuple[str | None, str | None]:
    """Pull CouchDB's ``error``/``reason`` fields out of an error body."""
    try:
        data = response.json()
    except ServerCommunicationError:
        return None, None
    if not isinstance(data, dict):
        return None, None
    return data.get("error"), data.get("reason")
