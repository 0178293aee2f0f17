"""
Database handle for the CouchDB SDK.

A Database represents one named database on a CouchDB server. It owns
no documents; it builds Document objects from server responses and
routes document operations to the server.

Example:
    >>> db = couch.database("orders")
    >>> doc = db.insert({"name": "widget"})
    >>> doc["name"] = "gadget"
    >>> db.bulk(update=[doc])

Invariants:
    - The database name never changes
    - Cached metadata is only refreshed on an explicit fresh fetch
    - Multi-document writes go through one bulk request
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable
from urllib.parse import quote

from ._http_client import HttpResponse
from .bulk import BulkRequest, BulkSynchronizer
from .document import META_KEYS, Document
from .errors import AlreadyExistsError, NotFoundError, ServerCommunicationError
from .validate import validate_document_id, validate_record

if TYPE_CHECKING:
    from .server import CouchDB

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseInfo:
    """Snapshot of a database's metadata.

    Attributes:
        doc_count: Number of non-deleted documents
        doc_del_count: Number of deleted documents
        disk_size: Size of the database file in bytes
        compact_running: Whether compaction is in progress
        raw: The full metadata body returned by the server
    """

    doc_count: int
    doc_del_count: int
    disk_size: int
    compact_running: bool
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, data: Any) -> DatabaseInfo:
        """Build a snapshot from a metadata response body.

        Raises:
            ServerCommunicationError: If required keys are missing
        """
        if not isinstance(data, dict):
            raise ServerCommunicationError(f"Database metadata is not an object: {data!r}")
        # Newer servers report the file size under sizes.file only
        disk_size = data.get("disk_size")
        if disk_size is None:
            disk_size = (data.get("sizes") or {}).get("file")
        try:
            return cls(
                doc_count=data["doc_count"],
                doc_del_count=data["doc_del_count"],
                disk_size=disk_size if disk_size is not None else 0,
                compact_running=bool(data.get("compact_running", False)),
                raw=data,
            )
        except KeyError as e:
            raise ServerCommunicationError(f"Database metadata lacks {e.args[0]!r}") from e


class Database:
    """A single CouchDB database.

    Attributes:
        couch: Server the database resides on
        name: Database name
    """

    def __init__(self, couch: CouchDB, name: str) -> None:
        self.couch = couch
        self._name = name
        self._about: DatabaseInfo | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._name!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> str:
        """URL path of the database, relative to the server root."""
        return quote(self._name, safe="")

    @property
    def uri(self) -> str:
        return f"{self.couch.uri}/{self.path}/"

    # DATABASE OPERATIONS

    def create(self) -> Database:
        """Create this database on the server.

        Raises:
            AlreadyExistsError: If the database already exists
        """
        self.couch.request(
            "PUT",
            self.path,
            description=f"create a database named '{self._name}'",
            expect=(201,),
            errors={
                409: AlreadyExistsError(
                    f"A database named '{self._name}' already exists",
                    database=self._name,
                ),
            },
            target=self._name,
        )
        logger.info(f"Created database {self._name}")
        return self

    def delete(self) -> None:
        """Delete this database and all its documents.

        Raises:
            NotFoundError: If the database does not exist
        """
        self.couch.request(
            "DELETE",
            self.path,
            description=f"delete the database named {self._name}",
            expect=(200,),
            errors={
                404: NotFoundError(
                    f"The database {self._name} does not exist",
                    resource_type="database",
                    resource_id=self._name,
                ),
            },
            target=self._name,
        )
        self._about = None
        logger.info(f"Deleted database {self._name}")

    def about(self, cached: bool = False) -> DatabaseInfo:
        """Return metadata about this database.

        Args:
            cached: Return the previous snapshot if there is one,
                instead of fetching from the server

        Returns:
            DatabaseInfo snapshot
        """
        if cached and self._about is not None:
            return self._about

        response = self.request("GET", "", description="fetch database metadata")
        self._about = DatabaseInfo.from_response(response.json())
        return self._about

    def document_count(self, cached: bool = False) -> int:
        """Number of non-deleted documents."""
        return self.about(cached).doc_count

    def deleted_document_count(self, cached: bool = False) -> int:
        """Number of deleted documents, whether or not compaction removed them."""
        return self.about(cached).doc_del_count

    def disk_size(self, cached: bool = False) -> int:
        """Size of the database on disk, in bytes."""
        return self.about(cached).disk_size

    def is_compacting(self) -> bool:
        """Whether compaction is running. Always fetches fresh metadata."""
        return self.about().compact_running

    def compact(self, async_: bool = False) -> None:
        """Compact the database, removing outdated revisions.

        Args:
            async_: Return as soon as the server accepts the request,
                instead of waiting for compaction to finish
        """
        self.request(
            "POST",
            "_compact",
            body={},
            description=f"compact the database named {self._name}",
            expect=(202,),
        )
        logger.info(f"Compaction of {self._name} started")
        if async_:
            return

        interval = self.couch.settings.compact_poll_interval
        while self.is_compacting():
            time.sleep(interval)
        logger.info(f"Compaction of {self._name} finished")

    # DOCUMENTS

    def insert(self, record: dict[str, Any]) -> Document:
        """Create one document.

        A record carrying ``_id`` is stored under that ID, otherwise the
        server assigns one.

        Returns:
            The new Document, with the inserted content

        Raises:
            InvalidArgumentError: If record is not a plain mapping
        """
        data = validate_record(record, "insert")
        doc_id = data.get("_id")
        if doc_id is not None:
            method, path = "PUT", _document_path(validate_document_id(doc_id))
        else:
            method, path = "POST", ""

        response = self.request(
            method,
            path,
            body=data,
            description="create a document",
            expect=(201,),
            target=doc_id,
        )
        body = response.json()
        try:
            new_id, new_rev = body["id"], body["rev"]
        except (KeyError, TypeError) as e:
            raise ServerCommunicationError(
                f"Insert response lacks id or rev: {body!r}",
                status_code=response.status_code,
            ) from e

        content = {k: v for k, v in data.items() if k not in META_KEYS}
        return Document(db=self, id=new_id, rev=new_rev, content=copy.deepcopy(content))

    def insert_many(self, records: Iterable[dict[str, Any]]) -> list[Document]:
        """Create several documents with one bulk request."""
        return self.bulk(insert=records)

    def bulk(
        self,
        insert: Iterable[Any] | None = None,
        update: Iterable[Any] | None = None,
        delete: Iterable[Any] | None = None,
    ) -> list[Document]:
        """Insert, update and delete documents atomically in one request.

        Args:
            insert: Plain records to create
            update: Documents whose current content should be written
            delete: Documents to delete

        Returns:
            One new Document per insert, in the order the server reported them.
            Updated and deleted Documents are modified in place.

        Raises:
            InvalidArgumentError: Before any request, for malformed arguments
            RemoteFaultError: If the server rejects the request; no Document
                is modified
        """
        request = BulkRequest.from_arguments(insert=insert, update=update, delete=delete)
        return BulkSynchronizer(self).execute(request)

    def fetch(self, doc_id: str) -> dict[str, Any] | None:
        """Fetch the raw body of a document, or None if it does not exist."""
        doc_id = validate_document_id(doc_id)
        response = self.request(
            "GET",
            _document_path(doc_id),
            description="fetch a document",
            expect=(200, 404),
            target=doc_id,
        )
        if response.status_code == 404:
            return None
        data = response.json()
        if not isinstance(data, dict) or "_id" not in data or "_rev" not in data:
            raise ServerCommunicationError(
                f"Document body for {doc_id!r} lacks _id or _rev",
                status_code=response.status_code,
                body=response.text[:500],
            )
        return data

    def document(self, doc_id: str) -> Document | None:
        """Return the document ``doc_id``, or None if there is no such document."""
        data = self.fetch(doc_id)
        if data is None:
            return None
        return Document.from_response(self, data)

    def all_documents(self) -> list[Document]:
        """Return every document in the database, without content."""
        response = self.request("GET", "_all_docs", description="retrieve all documents")
        data = response.json()
        try:
            return [
                Document(db=self, id=row["id"], rev=row["value"]["rev"])
                for row in data["rows"]
            ]
        except (KeyError, TypeError) as e:
            raise ServerCommunicationError(
                f"Malformed document listing: {e}",
                status_code=response.status_code,
                body=response.text[:500],
            ) from e

    # INTERNALS

    def call(
        self,
        method: str,
        path: str = "",
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> HttpResponse:
        """Like CouchDB.call, with ``path`` relative to this database."""
        return self.couch.call(method, self._join(path), body=body, params=params)

    def request(self, method: str, path: str = "", **kwargs: Any) -> HttpResponse:
        """Like CouchDB.request, with ``path`` relative to this database."""
        if kwargs.get("target") is None:
            kwargs["target"] = self._name
        return self.couch.request(method, self._join(path), **kwargs)

    def _join(self, path: str) -> str:
        if not path:
            return self.path
        return f"{self.path}/{path.lstrip('/')}"


def _document_path(doc_id: str) -> str:
    """Quote a document ID for use in a URL path."""
    if doc_id.startswith("_design/"):
        return "_design/" + quote(doc_id[len("_design/"):], safe="")
    return quote(doc_id, safe="")
