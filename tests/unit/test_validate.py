"""
Unit tests for SDK argument validation.

Tests cover:
- Insert record validation
- Document validation for bulk updates/deletes
- Document ID and database name checks
"""

from collections import OrderedDict
from unittest.mock import MagicMock

import pytest

from couchdb_sdk.database import Database
from couchdb_sdk.document import Document
from couchdb_sdk.errors import InvalidArgumentError
from couchdb_sdk.validate import (
    validate_database_name,
    validate_document,
    validate_document_id,
    validate_documents,
    validate_record,
    validate_records,
)


@pytest.fixture
def doc():
    return Document(db=MagicMock(spec=Database), id="a", rev="1-a", content={})


class TestRecordValidation:
    """Tests for validate_record."""

    def test_plain_dict(self):
        assert validate_record({"name": "widget"}) == {"name": "widget"}

    def test_other_mapping_becomes_dict(self):
        record = validate_record(OrderedDict(name="widget"))

        assert type(record) is dict
        assert record == {"name": "widget"}

    def test_returns_copy(self):
        original = {"name": "widget"}
        record = validate_record(original)
        record["name"] = "changed"

        assert original["name"] == "widget"

    @pytest.mark.parametrize("value", [None, "text", 42, ["a"], ("k", "v")])
    def test_rejects_non_mapping(self, value):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_record(value)
        assert exc_info.value.code == "INVALID_ARGUMENT"

    def test_rejects_document(self, doc):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_record(doc, "insert")
        assert "Document" in str(exc_info.value)

    def test_accepts_string_id(self):
        assert validate_record({"_id": "order:1"})["_id"] == "order:1"

    @pytest.mark.parametrize("doc_id", [["a"], 5, "", None])
    def test_rejects_bad_id(self, doc_id):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_record({"_id": doc_id}, "insert")
        assert exc_info.value.argument == "insert"

    def test_records_none_is_empty(self):
        assert validate_records(None) == []

    def test_records_accepts_generator(self):
        records = validate_records({"n": i} for i in range(3))

        assert records == [{"n": 0}, {"n": 1}, {"n": 2}]


class TestDocumentValidation:
    """Tests for validate_document."""

    def test_accepts_document(self, doc):
        assert validate_document(doc, "update") is doc

    def test_rejects_mapping(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_document({"_id": "a", "_rev": "1-a"}, "delete")
        assert exc_info.value.argument == "delete"

    def test_rejects_document_without_revision(self):
        doc = Document(db=MagicMock(spec=Database), id="a", rev="")

        with pytest.raises(InvalidArgumentError):
            validate_document(doc, "update")

    def test_documents_rejects_single_document(self, doc):
        """A lone Document must be wrapped in a list."""
        with pytest.raises(InvalidArgumentError):
            validate_documents(doc, "update")


class TestIdentifiers:
    """Tests for document IDs and database names."""

    def test_document_id(self):
        assert validate_document_id("order:1") == "order:1"

    @pytest.mark.parametrize("value", ["", None, 7])
    def test_bad_document_id(self, value):
        with pytest.raises(InvalidArgumentError):
            validate_document_id(value)

    @pytest.mark.parametrize("name", ["orders", "orders-test", "a/b", "x_1$(+)", "_users"])
    def test_database_name(self, name):
        assert validate_database_name(name) == name

    @pytest.mark.parametrize("name", ["", "Orders", "1orders", "_private", "has space", None])
    def test_bad_database_name(self, name):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_database_name(name)
        assert exc_info.value.argument == "name"
