"""
E2E test fixtures for the CouchDB SDK.

These tests require a running CouchDB server reachable at COUCHDB_URL
(credentials may be embedded in the URL).
"""

import uuid

import pytest

from couchdb_sdk import CouchDB
from couchdb_sdk.errors import NotFoundError


@pytest.fixture
def couch():
    """Client for the server at COUCHDB_URL."""
    client = CouchDB()
    yield client
    client.close()


@pytest.fixture
def db_name() -> str:
    """Generate unique database name for test isolation."""
    return f"e2e-test-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def db(couch, db_name):
    """A freshly created database, dropped after the test."""
    database = couch.create_database(db_name)
    yield database
    try:
        database.delete()
    except NotFoundError:
        pass
