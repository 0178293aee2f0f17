"""
Unit tests for client configuration.
"""

import pytest
from pydantic import ValidationError

from couchdb_sdk.config import ClientSettings


class TestClientSettings:
    """Tests for ClientSettings."""

    def test_defaults(self, monkeypatch):
        for name in ("COUCHDB_URL", "COUCHDB_TIMEOUT", "COUCHDB_COMPACT_POLL_INTERVAL"):
            monkeypatch.delenv(name, raising=False)

        settings = ClientSettings()

        assert settings.url == "http://127.0.0.1:5984"
        assert settings.timeout == 30.0
        assert settings.compact_poll_interval == 1.0

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("COUCHDB_URL", "http://couch.example:5984")
        monkeypatch.setenv("COUCHDB_TIMEOUT", "5")
        monkeypatch.setenv("COUCHDB_COMPACT_POLL_INTERVAL", "0.25")

        settings = ClientSettings()

        assert settings.url == "http://couch.example:5984"
        assert settings.timeout == 5.0
        assert settings.compact_poll_interval == 0.25

    def test_negative_poll_interval_rejected(self):
        with pytest.raises(ValidationError):
            ClientSettings(compact_poll_interval=-1)
