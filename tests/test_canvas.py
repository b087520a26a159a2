"""
Unit tests for the canvas outline and its dispatch into the session.
"""

import pytest

from handler_editor_core.canvas import (
    GENERIC_RENDERER, HandlerCanvas, RowStyle, register_renderer, renderer_for,
)
from handler_editor_core.editor_session import EditorSession
from handler_editor_core.exceptions import UnknownNodeTypeError
from handler_editor_core.models import HandlerSpec, Literal, MatchArm, MatchStatement


@pytest.fixture
def canvas(sample_spec):
    session = EditorSession()
    session.load("handlers/getUser.handler.json", sample_spec)
    return HandlerCanvas(session)


class TestRenderers:
    """Test cases for the renderer registry."""

    def test_statement_and_domain_styles(self):
        assert renderer_for("IfStatement").style == RowStyle.STATEMENT
        assert renderer_for("DbQuery").style == RowStyle.DOMAIN
        assert renderer_for("NativeBridge").style == RowStyle.DOMAIN

    def test_unknown_types_fall_back(self):
        """Types without a renderer use the generic one."""
        assert renderer_for("Literal") is GENERIC_RENDERER
        assert renderer_for("SomethingNew") is GENERIC_RENDERER

    def test_register_renderer(self):
        register_renderer("CustomForTest", RowStyle.GENERIC, lambda n: "custom")
        assert renderer_for("CustomForTest").label(None) == "custom"


class TestHandlerCanvas:
    """Test cases for HandlerCanvas."""

    def test_rows_follow_tree(self, canvas):
        """Rows are depth-first with nesting depth and slot names."""
        rows = canvas.rows()
        assert [(r.node_type, r.depth, r.slot) for r in rows] == [
            ("LetStatement", 0, ""),
            ("DbQuery", 1, "value"),
            ("CtxGet", 2, "where"),
            ("IfStatement", 0, ""),
            ("Identifier", 1, "condition"),
            ("Literal", 1, "body"),
        ]
        assert rows[0].label == "let user"
        assert rows[1].label == "db.User.findUnique"
        assert rows[1].tier == 1
        assert rows[1].to_dict()["style"] == "domain"

    def test_rows_inside_match_arms(self):
        """Nodes inside record entries get their own rows."""
        session = EditorSession()
        child = Literal(1)
        session.load("h", HandlerSpec(name="m", body=(MatchStatement(None, (MatchArm("_", (child,)),)),)))
        rows = HandlerCanvas(session).rows()
        assert rows[0].label == "match (1 arms)"
        assert (rows[1].node_id, rows[1].slot) == (child.id, "arms")

    def test_add_from_palette_selects(self, canvas):
        """A palette pick lands in the tree and becomes the selection."""
        node = canvas.add_from_palette("HttpRespond")
        assert canvas.session.selected_id == node.id
        assert canvas.rows()[-1].selected
        assert canvas.session.dirty

    def test_add_under_parent(self, canvas):
        parent = canvas.session.body[1]
        node = canvas.add_from_palette("ReturnStatement", parent.id)
        assert canvas.session.body[1].body[-1] is node

    def test_add_unknown_type(self, canvas):
        with pytest.raises(UnknownNodeTypeError):
            canvas.add_from_palette("Nope")

    def test_click_and_delete(self, canvas):
        """Click selects; delete removes the selected node."""
        target = canvas.session.body[0]
        assert canvas.click(target.id)
        assert not canvas.click("ghost")
        assert canvas.delete_selected()
        assert canvas.session.body[0].node_type == "IfStatement"
        assert not canvas.delete_selected()

    def test_empty(self):
        session = EditorSession()
        session.load("h", HandlerSpec(name="empty"))
        canvas = HandlerCanvas(session)
        assert canvas.empty
        assert canvas.rows() == []
