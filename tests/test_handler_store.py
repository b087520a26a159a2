"""
Unit tests for the file-backed handler store.
"""

import json

import pytest

from handler_editor_core.exceptions import HandlerStoreError
from handler_editor_core.handler_store import FileHandlerStore, handler_doc_id
from handler_editor_core.models import DbQuery, HandlerSpec, LetStatement, Tier


class TestFileHandlerStore:
    """Test cases for FileHandlerStore."""

    def test_doc_id(self):
        assert handler_doc_id("getUser") == "handlers/getUser.handler.json"

    def test_write_then_read(self, tmp_path):
        """A written document reads back equal."""
        store = FileHandlerStore(str(tmp_path))
        spec = HandlerSpec(name="getUser", body=(LetStatement("user", DbQuery("User")),))
        store.write_handler(handler_doc_id("getUser"), spec)
        path = tmp_path / "handlers" / "getUser.handler.json"
        assert path.exists()
        assert not (tmp_path / "handlers" / "getUser.handler.json.tmp").exists()
        assert store.read_handler("handlers/getUser.handler.json") == spec

    def test_reads_hand_written_document(self, tmp_path):
        """Documents without ids or tiers get them on load."""
        (tmp_path / "handlers").mkdir()
        (tmp_path / "handlers" / "list.handler.json").write_text(json.dumps({
            "name": "listUsers",
            "body": [{"type": "ReturnStatement", "value": {"type": "DbQuery", "model": "User"}}],
        }))
        spec = FileHandlerStore(str(tmp_path)).read_handler("handlers/list.handler.json")
        assert spec.name == "listUsers"
        assert spec.body[0].value.tier == Tier.DOMAIN

    def test_missing_document(self, tmp_path):
        with pytest.raises(HandlerStoreError, match="not found"):
            FileHandlerStore(str(tmp_path)).read_handler("handlers/none.handler.json")

    def test_malformed_documents(self, tmp_path):
        """Broken JSON, non-objects and unknown node types are store errors."""
        (tmp_path / "bad.json").write_text("{not json")
        (tmp_path / "list.json").write_text("[]")
        (tmp_path / "odd.json").write_text(json.dumps({"name": "x", "body": [{"type": "Nope"}]}))
        store = FileHandlerStore(str(tmp_path))
        for doc_id in ("bad.json", "list.json", "odd.json"):
            with pytest.raises(HandlerStoreError) as exc_info:
                store.read_handler(doc_id)
            assert exc_info.value.doc_id == doc_id

    def test_path_escape_rejected(self, tmp_path):
        """Document ids can not point outside the project root."""
        store = FileHandlerStore(str(tmp_path / "project"))
        with pytest.raises(HandlerStoreError, match="escapes"):
            store.read_handler("../secrets.json")
