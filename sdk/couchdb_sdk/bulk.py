"""
Bulk document synchronization for the CouchDB SDK.

This module merges pending inserts, updates and deletes into one
``_bulk_docs`` request and fans the server's flat response back out
to the Document objects that produced it:
- BulkRequest: the validated insert/update/delete lists
- CorrelationTable: document ID -> (operation, Document) for one call
- BulkSynchronizer: builds the request, sends it, reconciles the result

Example:
    >>> sync = BulkSynchronizer(db)
    >>> created = sync.execute(BulkRequest.from_arguments(
    ...     insert=[{"x": 1}], update=[doc_a], delete=[doc_b]))

Invariants:
    - Validation completes before any request is sent
    - Each document ID appears at most once across updates and deletes
    - Every correlated ID must appear exactly once in the response
    - The response is checked in full before any Document is mutated
    - Response entries whose ID is not correlated are inserts, one per
      inserted record
"""

from __future__ import annotations

import copy
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from .document import META_KEYS, Document
from .errors import InvalidArgumentError, RemoteFaultError, ServerCommunicationError
from .validate import validate_documents, validate_records

if TYPE_CHECKING:
    from .database import Database

logger = logging.getLogger(__name__)


class BulkOperation(Enum):
    """Kinds of change to an existing document."""

    UPDATE = "update"
    DELETE = "delete"


@dataclass
class BulkRequest:
    """Pending changes for one bulk call.

    Attributes:
        insert: Plain records to create
        update: Existing documents whose content should be written
        delete: Existing documents to delete
    """

    insert: list[dict[str, Any]] = field(default_factory=list)
    update: list[Document] = field(default_factory=list)
    delete: list[Document] = field(default_factory=list)

    @classmethod
    def from_arguments(
        cls,
        insert: Iterable[Any] | None = None,
        update: Iterable[Any] | None = None,
        delete: Iterable[Any] | None = None,
    ) -> BulkRequest:
        """Validate caller arguments into a request.

        Raises:
            InvalidArgumentError: If an insert is not a plain mapping or an
                update/delete entry is not a Document
        """
        return cls(
            insert=validate_records(insert, "insert"),
            update=validate_documents(update, "update"),
            delete=validate_documents(delete, "delete"),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.insert or self.update or self.delete)


class CorrelationTable:
    """Maps document IDs to the operation and Document that produced them.

    Scoped to a single bulk call.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[BulkOperation, Document]] = {}

    def add(self, operation: BulkOperation, doc: Document) -> None:
        if doc.id in self._entries:
            previous, _ = self._entries[doc.id]
            raise InvalidArgumentError(
                f"Document {doc.id!r} appears more than once in a bulk request "
                f"({previous.value} and {operation.value})",
                argument=operation.value,
            )
        self._entries[doc.id] = (operation, doc)

    def get(self, doc_id: str) -> tuple[BulkOperation, Document] | None:
        return self._entries.get(doc_id)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


@dataclass(frozen=True)
class NewRevision:
    """One ``{"id", "rev"}`` pair from a bulk response."""

    id: str
    rev: str


def parse_bulk_response(body: Any, status_code: int, target: str | None = None) -> list[NewRevision]:
    """Extract new revisions from a bulk response body.

    Accepts the ``{"new_revs": [...]}`` form as well as the plain list
    returned by newer servers.

    Raises:
        ServerCommunicationError: If the body has an unexpected shape
        RemoteFaultError: If the server reported per-document errors
    """
    if isinstance(body, dict) and "new_revs" in body:
        items = body["new_revs"]
    else:
        items = body
    if not isinstance(items, list):
        raise ServerCommunicationError(
            "Bulk response carries no list of new revisions",
            status_code=status_code,
            body=repr(body)[:500],
        )

    revisions: list[NewRevision] = []
    failures: list[dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict) or "id" not in item:
            raise ServerCommunicationError(
                f"Malformed bulk response entry: {item!r}",
                status_code=status_code,
                body=repr(body)[:500],
            )
        if "error" in item:
            failures.append(item)
            continue
        if "rev" not in item:
            raise ServerCommunicationError(
                f"Bulk response entry for {item['id']!r} has no revision",
                status_code=status_code,
                body=repr(body)[:500],
            )
        revisions.append(NewRevision(id=item["id"], rev=item["rev"]))

    if failures:
        logger.warning(f"Bulk request rejected for {len(failures)} document(s): {failures}")
        first = failures[0]
        raise RemoteFaultError(
            f"{len(failures)} document(s) failed in bulk request: "
            f"{first.get('error')} ({first.get('reason')}) for {first['id']!r}",
            status_code=status_code,
            operation="bulk change documents",
            target=target,
            error=first.get("error"),
            reason=first.get("reason"),
            failures=failures,
        )
    return revisions


class BulkSynchronizer:
    """Sends one bulk request and reconciles the result.

    Documents passed for update or delete are mutated in place; new
    Documents are created for inserts.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def build(self, request: BulkRequest) -> tuple[list[dict[str, Any]], CorrelationTable]:
        """Assemble request entries and the correlation table.

        Entries are ordered inserts, then deletes, then updates.
        """
        entries: list[dict[str, Any]] = list(request.insert)
        table = CorrelationTable()

        for doc in request.delete:
            table.add(BulkOperation.DELETE, doc)
            entries.append(doc.to_delete_entry())

        for doc in request.update:
            table.add(BulkOperation.UPDATE, doc)
            entries.append(doc.to_entry())

        for record in request.insert:
            doc_id = record.get("_id")
            if doc_id is not None and doc_id in table:
                raise InvalidArgumentError(
                    f"Document {doc_id!r} is both inserted and changed in one bulk request",
                    argument="insert",
                )

        return entries, table

    def execute(self, request: BulkRequest) -> list[Document]:
        """Send the request and reconcile the response.

        Returns:
            New Documents, one per insert, in the server's response order
        """
        if request.is_empty:
            return []

        entries, table = self.build(request)
        logger.debug(
            f"Bulk request to {self.db.name}: {len(request.insert)} inserts, "
            f"{len(request.update)} updates, {len(request.delete)} deletes"
        )

        response = self.db.request(
            "POST",
            "_bulk_docs",
            body={"docs": entries},
            description="bulk change documents",
            expect=(201,),
        )
        revisions = parse_bulk_response(response.json(), response.status_code, target=self.db.name)
        return self.reconcile(revisions, table, request.insert)

    def reconcile(
        self,
        revisions: list[NewRevision],
        table: CorrelationTable,
        inserted: list[dict[str, Any]] | None = None,
    ) -> list[Document]:
        """Apply new revisions to correlated Documents and create the rest.

        Args:
            revisions: New revisions in response order
            table: Correlation table of the request
            inserted: The records that were inserted, one per expected
                uncorrelated revision

        Raises:
            ServerCommunicationError: If a correlated ID is missing from, or
                repeated in, the response, or if the number of remaining
                revisions differs from the number of inserts. No Document
                is mutated.
        """
        inserted = inserted or []
        self._check_complete(revisions, table, len(inserted))

        known_content = {
            record["_id"]: {k: v for k, v in record.items() if k not in META_KEYS}
            for record in inserted
            if record.get("_id") is not None
        }

        created: list[Document] = []
        for revision in revisions:
            correlated = table.get(revision.id)
            if correlated is not None:
                operation, doc = correlated
                doc.mark_synced(revision.rev, deleted=operation is BulkOperation.DELETE)
                continue

            content = known_content.get(revision.id)
            created.append(
                Document(
                    db=self.db,
                    id=revision.id,
                    rev=revision.rev,
                    content=copy.deepcopy(content) if content is not None else None,
                )
            )
        return created

    def _check_complete(
        self,
        revisions: list[NewRevision],
        table: CorrelationTable,
        expected_inserts: int,
    ) -> None:
        counts = Counter(r.id for r in revisions if r.id in table)
        missing = [doc_id for doc_id in table if counts[doc_id] == 0]
        repeated = [doc_id for doc_id, n in counts.items() if n > 1]
        if missing or repeated:
            raise ServerCommunicationError(
                f"Bulk response does not match request: missing {missing}, repeated {repeated}",
            )
        uncorrelated = len(revisions) - sum(counts.values())
        if uncorrelated != expected_inserts:
            raise ServerCommunicationError(
                f"Bulk response reports {uncorrelated} new document(s) for {expected_inserts} insert(s)",
            )
