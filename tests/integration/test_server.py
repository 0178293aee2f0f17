"""
Integration tests for the CouchDB server handle with the in-memory server.

Tests cover:
- Server information
- Database listing, creation and deletion
- Status dispatch and error mapping
"""

import pytest

from couchdb_sdk import CouchDB
from couchdb_sdk.errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
    RemoteFaultError,
    ServerCommunicationError,
)


class TestServer:
    """Tests for server-level operations."""

    def test_about(self, couch):
        info = couch.about()

        assert info["couchdb"] == "Welcome"
        assert "version" in info

    def test_repr_and_uri(self, couch):
        assert couch.uri == "http://couchdb.test"
        assert repr(couch) == "CouchDB('http://couchdb.test')"

    def test_url_overrides_settings(self, server):
        client = server.client()
        other = CouchDB("http://elsewhere:5984/", settings=client.settings, transport=client._transport)

        assert other.uri == "http://elsewhere:5984"

    def test_rejects_non_transport(self):
        with pytest.raises(InvalidArgumentError):
            CouchDB("http://couchdb.test", transport=object())

    def test_context_manager(self, server):
        with server.client() as couch:
            assert couch.about()["couchdb"] == "Welcome"


class TestDatabases:
    """Tests for database discovery and lifecycle."""

    def test_create_and_list(self, couch):
        couch.create_database("b-db")
        couch.create_database("a-db")

        names = [db.name for db in couch.all_databases()]

        assert names == ["a-db", "b-db"]

    def test_create_existing(self, couch):
        couch.create_database("orders")

        with pytest.raises(AlreadyExistsError) as exc_info:
            couch.create_database("orders")
        assert exc_info.value.database == "orders"

    def test_create_invalid_name_sends_nothing(self, couch, server):
        with pytest.raises(InvalidArgumentError):
            couch.create_database("Bad Name")

        assert server.requests == []

    def test_delete_twice(self, couch):
        """First delete succeeds, the second reports NotFound."""
        db = couch.create_database("orders")

        db.delete()
        with pytest.raises(NotFoundError) as exc_info:
            db.delete()

        assert exc_info.value.resource_type == "database"
        assert exc_info.value.resource_id == "orders"

    def test_delete_database_by_name(self, couch):
        couch.create_database("orders")

        couch.delete_database("orders")

        assert couch.all_databases() == []

    def test_database_handle_sends_nothing(self, couch, server):
        db = couch.database("orders")

        assert db.name == "orders"
        assert db.uri == "http://couchdb.test/orders/"
        assert server.requests == []

    def test_database_name_is_quoted(self, couch, server):
        db = couch.create_database("a/b")

        assert db.path == "a%2Fb"
        assert "a/b" in server.databases
        assert [d.name for d in couch.all_databases()] == ["a/b"]


class TestStatusDispatch:
    """Tests for CouchDB.request."""

    def test_unexpected_status(self, couch, server):
        server.fail_next(500, {"error": "unknown_error", "reason": "badarg"})

        with pytest.raises(RemoteFaultError) as exc_info:
            couch.create_database("orders")

        error = exc_info.value
        assert error.status_code == 500
        assert error.error == "unknown_error"
        assert error.reason == "badarg"
        assert error.target == "orders"
        assert "create a database" in error.operation

    def test_unexpected_status_without_body(self, couch, server):
        server.fail_next(503)

        with pytest.raises(RemoteFaultError) as exc_info:
            couch.about()
        assert exc_info.value.error is None

    def test_listing_not_a_list(self, couch, server):
        server.fail_next(200, {"rows": []})

        with pytest.raises(ServerCommunicationError):
            couch.all_databases()

    def test_call_returns_any_status(self, couch):
        response = couch.call("GET", "missing-db")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_database_call_is_relative(self, db, server):
        db.insert({"_id": "order:1"})

        response = db.call("GET", "_all_docs")

        assert response.status_code == 200
        assert server.requests[-1][1] == "/orders-test/_all_docs"
        assert response.json()["total_rows"] == 1
