"""
Integration test fixtures: a client wired to the in-memory server.
"""

import pytest

from couchdb_sdk.testing import InMemoryCouchServer


@pytest.fixture
def server():
    """Fresh in-memory CouchDB server."""
    return InMemoryCouchServer()


@pytest.fixture
def couch(server):
    """Client talking to the in-memory server."""
    client = server.client()
    yield client
    client.close()


@pytest.fixture
def db(couch):
    """A freshly created database."""
    return couch.create_database("orders-test")
