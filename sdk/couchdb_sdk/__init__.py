"""
CouchDB Python SDK - Client library for CouchDB document databases.

This SDK exposes a CouchDB server's REST API as local method calls:
- CouchDB for listing, creating and deleting databases
- Database for metadata, compaction and document operations
- Document, a mutable record updated in place on acknowledged writes
- Atomic bulk insert/update/delete in a single request

Example:
    >>> from couchdb_sdk import CouchDB
    >>>
    >>> with CouchDB("http://127.0.0.1:5984") as couch:
    ...     db = couch.create_database("orders")
    ...     a = db.insert({"name": "widget"})
    ...     b = db.insert({"name": "gadget"})
    ...     a["price"] = 10
    ...     created = db.bulk(insert=[{"x": 1}], update=[a], delete=[b])
    ...     assert b.deleted

Invariants:
    - Every operation issues at most one request (compaction waits poll)
    - Bulk writes either reconcile every document or none
    - Nothing is retried

Version: 1.0.0
"""

__version__ = "1.0.0"

from .bulk import BulkOperation, BulkRequest, BulkSynchronizer, CorrelationTable
from .config import ClientSettings
from .database import Database, DatabaseInfo
from .document import Document
from .errors import (
    AlreadyExistsError,
    ConnectionError,
    CouchDbError,
    InvalidArgumentError,
    NotFoundError,
    RemoteFaultError,
    ServerCommunicationError,
)
from .server import CouchDB

__all__ = [
    # Version
    "__version__",
    # Client
    "CouchDB",
    "ClientSettings",
    "Database",
    "DatabaseInfo",
    "Document",
    # Bulk
    "BulkOperation",
    "BulkRequest",
    "BulkSynchronizer",
    "CorrelationTable",
    # Errors
    "CouchDbError",
    "ConnectionError",
    "InvalidArgumentError",
    "AlreadyExistsError",
    "NotFoundError",
    "RemoteFaultError",
    "ServerCommunicationError",
]
