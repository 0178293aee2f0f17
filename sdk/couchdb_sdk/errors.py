"""
Error types for the CouchDB SDK.

This module defines all exception types raised by the SDK:
- CouchDbError: Base exception
- ConnectionError: Server could not be reached
- InvalidArgumentError: Caller passed a malformed or wrong-kind argument
- AlreadyExistsError: Database creation against an existing name
- NotFoundError: Target database or document does not exist
- RemoteFaultError: Any other unexpected status from the server
- ServerCommunicationError: Undecodable or malformed response body

Invariants:
    - All errors inherit from CouchDbError
    - InvalidArgumentError is raised before any request is sent
    - Errors carry the operation and target for debugging
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CouchDbError(Exception):
    """Base exception for all CouchDB SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "COUCHDB_ERROR"
        self.details = details or {}


class ConnectionError(CouchDbError):
    """Failed to reach the CouchDB server.

    Raised when:
    - Server is unreachable
    - Connection or read times out
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"address": address},
        )
        self.address = address


class InvalidArgumentError(CouchDbError):
    """Caller passed a malformed or wrong-kind argument.

    Raised when:
    - A non-mapping is inserted
    - A non-Document is bulk updated or deleted
    - A document ID is missing or empty
    """

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_ARGUMENT",
            details={"argument": argument},
        )
        self.argument = argument


class AlreadyExistsError(CouchDbError):
    """A database with the requested name already exists."""

    def __init__(self, message: str, database: str) -> None:
        super().__init__(
            message,
            code="ALREADY_EXISTS",
            details={"database": database},
        )
        self.database = database


class NotFoundError(CouchDbError):
    """Resource not found.

    Raised when:
    - Deleting a database that doesn't exist
    - Refreshing a document that doesn't exist
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class RemoteFaultError(CouchDbError):
    """The server answered with a status the operation does not expect.

    Attributes:
        status_code: HTTP status returned by the server
        operation: Human readable description of the failed operation
        target: Database name or document ID the operation addressed
        error: The server's ``error`` field, if the body carried one
        reason: The server's ``reason`` field, if the body carried one
        failures: Per-document failures reported in a bulk response
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        operation: str,
        target: Optional[str] = None,
        error: Optional[str] = None,
        reason: Optional[str] = None,
        failures: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(
            message,
            code="REMOTE_FAULT",
            details={
                "status_code": status_code,
                "operation": operation,
                "target": target,
                "error": error,
                "reason": reason,
                "failures": failures or [],
            },
        )
        self.status_code = status_code
        self.operation = operation
        self.target = target
        self.error = error
        self.reason = reason
        self.failures = failures or []


class ServerCommunicationError(CouchDbError):
    """The server's response body could not be understood.

    Raised when:
    - A body that should be JSON fails to decode
    - A decoded body lacks the keys the operation needs
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SERVER_COMMUNICATION",
            details={"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body
