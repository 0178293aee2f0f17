"""
Document model for the CouchDB SDK.

A Document is the in-memory view of one remote document. It is shared
between the caller and the library: bulk operations mutate the caller's
instance in place when the server acknowledges a write, so references
held by the caller always see the latest acknowledged revision.

Invariants:
    - ``id`` never changes once assigned
    - ``rev`` reflects the last server-acknowledged state; editing
      ``content`` locally does not touch it
    - ``deleted`` becomes True only after an acknowledged delete
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .errors import InvalidArgumentError, NotFoundError

if TYPE_CHECKING:
    from .database import Database

# Keys of the wire representation that are metadata, not content
META_KEYS = ("_id", "_rev", "_deleted")


@dataclass(eq=False)
class Document:
    """A document stored in a CouchDB database.

    Attributes:
        db: Database the document lives in
        id: Document identifier
        rev: Revision token of the last acknowledged write
        content: Field values, or None when not loaded from the server
        deleted: Whether a delete of this document was acknowledged
    """

    db: Database = field(repr=False)
    id: str
    rev: str
    content: dict[str, Any] | None = field(default=None, repr=False)
    deleted: bool = False

    @classmethod
    def from_response(cls, db: Database, data: dict[str, Any]) -> Document:
        """Build a Document from a fetched document body."""
        content = {k: v for k, v in data.items() if k not in META_KEYS}
        return cls(
            db=db,
            id=data["_id"],
            rev=data["_rev"],
            content=content,
            deleted=bool(data.get("_deleted", False)),
        )

    @property
    def is_loaded(self) -> bool:
        """Whether the document's content is known locally."""
        return self.content is not None

    def mark_synced(self, rev: str, deleted: bool = False) -> None:
        """Record a server-acknowledged write in place."""
        self.rev = rev
        self.deleted = deleted

    def to_entry(self) -> dict[str, Any]:
        """Build the bulk request entry that writes this document's content.

        The content is deep copied so later local edits cannot leak
        into a request that is already being sent.
        """
        if self.content is None:
            raise InvalidArgumentError(
                f"Document {self.id!r} has no loaded content to write; call refresh() first",
                argument="update",
            )
        entry = copy.deepcopy(self.content)
        entry["_id"] = self.id
        entry["_rev"] = self.rev
        return entry

    def to_delete_entry(self) -> dict[str, Any]:
        """Build the bulk request entry that deletes this document."""
        return {"_id": self.id, "_rev": self.rev, "_deleted": True}

    def refresh(self) -> Document:
        """Reload content and revision from the server in place.

        Raises:
            NotFoundError: If the document no longer exists
        """
        data = self.db.fetch(self.id)
        if data is None:
            raise NotFoundError(
                f"Document {self.id!r} does not exist in database {self.db.name!r}",
                resource_type="document",
                resource_id=self.id,
            )
        self.rev = data["_rev"]
        self.content = {k: v for k, v in data.items() if k not in META_KEYS}
        self.deleted = False
        return self

    def update(self) -> None:
        """Write the current content to the server."""
        self.db.bulk(update=[self])

    def delete(self) -> None:
        """Delete this document on the server."""
        self.db.bulk(delete=[self])

    # Mapping-style access to content

    def __getitem__(self, key: str) -> Any:
        if self.content is None:
            raise KeyError(key)
        return self.content[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if self.content is None:
            self.content = {}
        self.content[key] = value

    def __delitem__(self, key: str) -> None:
        if self.content is None:
            raise KeyError(key)
        del self.content[key]

    def __contains__(self, key: object) -> bool:
        return self.content is not None and key in self.content

    def get(self, key: str, default: Any = None) -> Any:
        if self.content is None:
            return default
        return self.content.get(key, default)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        # handles to the same database compare equal by URI
        return self.id == other.id and self.rev == other.rev and self.db.uri == other.db.uri

    def __hash__(self) -> int:
        return hash(self.id)
