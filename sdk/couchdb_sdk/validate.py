"""
Argument validation for the CouchDB SDK.

This module provides validation utilities:
- Insert records must be plain mappings
- Bulk update/delete entries must be Document objects
- Document IDs and database names must be usable in a URL path

Invariants:
    - Validation happens before any request is sent
    - Every failure raises InvalidArgumentError naming the argument
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional

from .document import Document
from .errors import InvalidArgumentError

# Database names accepted by CouchDB
DATABASE_NAME_RE = re.compile(r"^[a-z][a-z0-9_$()+/-]*$")
SYSTEM_DATABASES = frozenset({"_users", "_replicator", "_global_changes"})


def validate_record(value: Any, argument: str = "insert") -> Dict[str, Any]:
    """Check that ``value`` is plain content suitable for insertion.

    Returns:
        The record as a dict

    Raises:
        InvalidArgumentError: If value is a Document, not a mapping, or
            carries an _id that is not a non-empty string
    """
    if isinstance(value, Document):
        raise InvalidArgumentError(
            f"Only plain mappings may be passed to {argument}, got Document {value.id!r}",
            argument=argument,
        )
    if not isinstance(value, Mapping):
        raise InvalidArgumentError(
            f"Only plain mappings may be passed to {argument}, got {type(value).__name__}",
            argument=argument,
        )
    record = dict(value)
    if "_id" in record:
        doc_id = record["_id"]
        if not isinstance(doc_id, str) or not doc_id:
            raise InvalidArgumentError(
                f"Record passed to {argument} has an invalid _id {doc_id!r}, expected a non-empty string",
                argument=argument,
            )
    return record


def validate_document(value: Any, argument: str) -> Document:
    """Check that ``value`` is an existing Document.

    Raises:
        InvalidArgumentError: If value is not a Document or lacks id/rev
    """
    if not isinstance(value, Document):
        raise InvalidArgumentError(
            f"Only Document objects may be passed to {argument}, got {type(value).__name__}",
            argument=argument,
        )
    if not value.id or not value.rev:
        raise InvalidArgumentError(
            f"Document passed to {argument} has no id or revision",
            argument=argument,
        )
    return value


def validate_records(values: Optional[Iterable[Any]], argument: str = "insert") -> List[Dict[str, Any]]:
    """Validate every record in an optional iterable."""
    if values is None:
        return []
    _ensure_iterable(values, argument)
    return [validate_record(value, argument) for value in values]


def validate_documents(values: Optional[Iterable[Any]], argument: str) -> List[Document]:
    """Validate every Document in an optional iterable."""
    if values is None:
        return []
    _ensure_iterable(values, argument)
    return [validate_document(value, argument) for value in values]


def validate_document_id(doc_id: Any) -> str:
    """Check that a document ID is a non-empty string."""
    if not isinstance(doc_id, str) or not doc_id:
        raise InvalidArgumentError(
            f"Document ID must be a non-empty string, got {doc_id!r}",
            argument="doc_id",
        )
    return doc_id


def validate_database_name(name: Any) -> str:
    """Check that a database name follows CouchDB's naming rules.

    Names start with a lowercase letter and contain only lowercase
    letters, digits and any of ``_$()+-/``. The server's own system
    databases are accepted as well.
    """
    if isinstance(name, str) and name in SYSTEM_DATABASES:
        return name
    if not isinstance(name, str) or not DATABASE_NAME_RE.match(name):
        raise InvalidArgumentError(
            f"Invalid database name {name!r}. Names must start with a lowercase "
            "letter and contain only a-z, 0-9 and _$()+-/",
            argument="name",
        )
    return name


def _ensure_iterable(values: Any, argument: str) -> None:
    # A single mapping or string would otherwise be iterated key by key
    if isinstance(values, (Mapping, str, bytes, Document)) or not isinstance(values, Iterable):
        raise InvalidArgumentError(
            f"{argument} must be a list, got {type(values).__name__}",
            argument=argument,
        )
