"""
In-memory CouchDB server for testing.

This module provides a small emulation of the CouchDB REST API that
plugs into httpx as a mock transport, for:
- Unit and integration tests of code built on the SDK
- Local development without a running server

Only the endpoints the SDK uses are implemented: server welcome,
database listing/creation/deletion/metadata/compaction, single
document reads and writes, ``_all_docs`` and ``_bulk_docs``.

Invariants:
    - All data is lost when the object is discarded
    - Every accepted write assigns a new revision ``<n>-<hex>``
    - Writes to an existing document must quote its current revision

How to change safely:
    - This is test-only code, changes don't affect the client
    - Keep status codes and error bodies identical to a real server
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import unquote

import httpx

from ._http_client import HttpTransport
from .config import ClientSettings
from .server import CouchDB
from .validate import DATABASE_NAME_RE, SYSTEM_DATABASES

logger = logging.getLogger(__name__)

NEW_REVS = "new_revs"
LIST = "list"


@dataclass
class StoredDocument:
    """One document as kept by the in-memory server."""

    id: str
    rev: str
    body: dict[str, Any] = field(default_factory=dict)
    deleted: bool = False

    @property
    def generation(self) -> int:
        return int(self.rev.split("-", 1)[0])

    def to_json(self) -> dict[str, Any]:
        data = dict(self.body)
        data["_id"] = self.id
        data["_rev"] = self.rev
        return data


@dataclass
class StoredDatabase:
    """One database as kept by the in-memory server."""

    name: str
    docs: dict[str, StoredDocument] = field(default_factory=dict)
    writes: int = 0
    compaction_polls_left: int = 0

    def info(self) -> dict[str, Any]:
        compacting = self.compaction_polls_left > 0
        if compacting:
            self.compaction_polls_left -= 1
        return {
            "db_name": self.name,
            "doc_count": sum(1 for d in self.docs.values() if not d.deleted),
            "doc_del_count": sum(1 for d in self.docs.values() if d.deleted),
            "update_seq": self.writes,
            "disk_size": 4096 + 512 * self.writes,
            "compact_running": compacting,
        }


class Conflict(Exception):
    """A write quoted a stale revision."""


class InMemoryCouchServer:
    """In-memory emulation of a CouchDB server for tests.

    Attributes:
        bulk_format: ``"new_revs"`` for the ``{"new_revs": [...]}`` bulk
            response with all-or-nothing semantics, ``"list"`` for the plain
            list with per-document errors
        reverse_bulk_results: Report bulk results in reverse request order
        compaction_polls: Metadata fetches that report compaction running
            after a compaction request
        requests: Every (method, path, body) received, in order

    Example:
        >>> server = InMemoryCouchServer()
        >>> couch = server.client()
        >>> db = couch.create_database("orders")
    """

    def __init__(
        self,
        *,
        bulk_format: str = NEW_REVS,
        reverse_bulk_results: bool = False,
        compaction_polls: int = 2,
    ) -> None:
        if bulk_format not in (NEW_REVS, LIST):
            raise ValueError(f"bulk_format must be {NEW_REVS!r} or {LIST!r}")
        self.bulk_format = bulk_format
        self.reverse_bulk_results = reverse_bulk_results
        self.compaction_polls = compaction_polls
        self.databases: dict[str, StoredDatabase] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self._failures: list[tuple[int, Any]] = []
        self._lock = threading.Lock()

    # Testing helpers

    def client(self, url: str = "http://couchdb.test", **settings: Any) -> CouchDB:
        """Build a CouchDB client whose requests are served by this object."""
        settings.setdefault("compact_poll_interval", 0)
        client_settings = ClientSettings(url=url, **settings)
        transport = HttpTransport(
            url,
            timeout=client_settings.timeout,
            transport=httpx.MockTransport(self.handle),
        )
        return CouchDB(settings=client_settings, transport=transport)

    def fail_next(self, status_code: int, body: Any = None) -> None:
        """Answer the next request with ``status_code`` and ``body``."""
        self._failures.append((status_code, body))

    def get_document(self, db_name: str, doc_id: str) -> Optional[StoredDocument]:
        db = self.databases.get(db_name)
        return db.docs.get(doc_id) if db else None

    def clear(self) -> None:
        with self._lock:
            self.databases.clear()
            self.requests.clear()
            self._failures.clear()

    # Request handling

    def handle(self, request: httpx.Request) -> httpx.Response:
        """Serve one request; suitable for httpx.MockTransport."""
        raw_path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        parts = [unquote(p) for p in raw_path.strip("/").split("/") if p]
        body = json.loads(request.content) if request.content else None
        method = request.method

        with self._lock:
            self.requests.append((method, "/" + "/".join(parts), body))
            if self._failures:
                status, error_body = self._failures.pop(0)
                return _respond(status, error_body)
            response = self._dispatch(method, parts, body)
        logger.debug(f"{method} {raw_path} -> {response.status_code}")
        return response

    def _dispatch(self, method: str, parts: list[str], body: Any) -> httpx.Response:
        if not parts:
            if method == "GET":
                return _respond(200, {"couchdb": "Welcome", "version": "3.3.3", "vendor": {"name": "in-memory"}})
            return _method_not_allowed()
        if parts == ["_all_dbs"]:
            if method == "GET":
                return _respond(200, sorted(self.databases))
            return _method_not_allowed()

        db_name = parts[0]
        rest = parts[1:]
        if not rest:
            return self._database(method, db_name, body)

        db = self.databases.get(db_name)
        if db is None:
            return _respond(404, {"error": "not_found", "reason": "Database does not exist."})

        if rest == ["_bulk_docs"] and method == "POST":
            return self._bulk_docs(db, body)
        if rest == ["_all_docs"] and method == "GET":
            return self._all_docs(db)
        if rest == ["_compact"] and method == "POST":
            db.compaction_polls_left = self.compaction_polls
            return _respond(202, {"ok": True})

        doc_id = "/".join(rest)
        if method == "GET":
            doc = db.docs.get(doc_id)
            if doc is None or doc.deleted:
                reason = "deleted" if doc is not None else "missing"
                return _respond(404, {"error": "not_found", "reason": reason})
            return _respond(200, doc.to_json())
        if method == "PUT":
            data = dict(body or {})
            data["_id"] = doc_id
            return self._write_single(db, data)
        return _method_not_allowed()

    def _database(self, method: str, name: str, body: Any) -> httpx.Response:
        if method == "PUT":
            if name in self.databases:
                return _respond(409, {
                    "error": "file_exists",
                    "reason": "The database could not be created, the file already exists.",
                })
            if name not in SYSTEM_DATABASES and not DATABASE_NAME_RE.match(name):
                return _respond(400, {"error": "illegal_database_name", "reason": f"Name: '{name}'."})
            self.databases[name] = StoredDatabase(name=name)
            return _respond(201, {"ok": True})

        db = self.databases.get(name)
        if db is None:
            return _respond(404, {"error": "not_found", "reason": "Database does not exist."})
        if method == "GET":
            return _respond(200, db.info())
        if method == "DELETE":
            del self.databases[name]
            return _respond(200, {"ok": True})
        if method == "POST":
            data = dict(body or {})
            data.setdefault("_id", uuid.uuid4().hex)
            return self._write_single(db, data)
        return _method_not_allowed()

    def _write_single(self, db: StoredDatabase, data: dict[str, Any]) -> httpx.Response:
        try:
            doc = self._apply(db, data)
        except Conflict:
            return _respond(409, {"error": "conflict", "reason": "Document update conflict."})
        return _respond(201, {"ok": True, "id": doc.id, "rev": doc.rev})

    def _bulk_docs(self, db: StoredDatabase, body: Any) -> httpx.Response:
        if not isinstance(body, dict) or not isinstance(body.get("docs"), list):
            return _respond(400, {"error": "bad_request", "reason": "POST body must include `docs` parameter."})
        entries = [dict(entry) for entry in body["docs"]]
        for entry in entries:
            entry.setdefault("_id", uuid.uuid4().hex)

        if self.bulk_format == NEW_REVS:
            # all or nothing
            if any(self._conflicts(db, entry) for entry in entries):
                return _respond(409, {"error": "conflict", "reason": "Document update conflict."})
            results = []
            for entry in entries:
                doc = self._apply(db, entry)
                results.append({"id": doc.id, "rev": doc.rev})
            if self.reverse_bulk_results:
                results.reverse()
            return _respond(201, {"ok": True, "new_revs": results})

        results = []
        for entry in entries:
            try:
                doc = self._apply(db, entry)
            except Conflict:
                results.append({"id": entry["_id"], "error": "conflict", "reason": "Document update conflict."})
            else:
                results.append({"ok": True, "id": doc.id, "rev": doc.rev})
        if self.reverse_bulk_results:
            results.reverse()
        return _respond(201, results)

    def _all_docs(self, db: StoredDatabase) -> httpx.Response:
        live = sorted((d for d in db.docs.values() if not d.deleted), key=lambda d: d.id)
        rows = [{"id": d.id, "key": d.id, "value": {"rev": d.rev}} for d in live]
        return _respond(200, {"total_rows": len(rows), "offset": 0, "rows": rows})

    def _conflicts(self, db: StoredDatabase, entry: dict[str, Any]) -> bool:
        existing = db.docs.get(entry["_id"])
        rev = entry.get("_rev")
        if existing is None:
            return rev is not None
        if existing.deleted:
            # a tombstone may be recreated without quoting its revision
            return rev is not None and rev != existing.rev
        return rev != existing.rev

    def _apply(self, db: StoredDatabase, entry: dict[str, Any]) -> StoredDocument:
        if self._conflicts(db, entry):
            raise Conflict(entry["_id"])
        existing = db.docs.get(entry["_id"])
        generation = existing.generation + 1 if existing else 1
        deleted = bool(entry.get("_deleted", False))
        body = {k: v for k, v in entry.items() if k not in ("_id", "_rev", "_deleted")}
        doc = StoredDocument(
            id=entry["_id"],
            rev=f"{generation}-{uuid.uuid4().hex}",
            body={} if deleted else body,
            deleted=deleted,
        )
        db.docs[doc.id] = doc
        db.writes += 1
        return doc


def _respond(status_code: int, body: Any) -> httpx.Response:
    if body is None:
        return httpx.Response(status_code)
    return httpx.Response(status_code, json=body)


def _method_not_allowed() -> httpx.Response:
    return _respond(405, {"error": "method_not_allowed", "reason": "Only GET,PUT,POST,DELETE allowed"})
