"""
Canvas presentation contract for the handler editor.

The canvas shows the body as an indented outline and forwards add, select
and delete gestures to the editing session. How a row is drawn is chosen
once per node type from a renderer registry; statement and domain kinds
have dedicated renderers and anything else falls back to the generic one.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .editor_session import EditorSession
from .models import AstNode
from .node_palette import NodePalette
from .tree_engine import iter_children

EMPTY_CANVAS_MESSAGE = "No statements yet. Add blocks from the palette."


class RowStyle:
    STATEMENT = "statement"
    DOMAIN = "domain"
    GENERIC = "generic"


@dataclass
class CanvasRow:
    """One line of the outline."""
    node_id: str
    node_type: str
    tier: int
    depth: int
    slot: str
    label: str
    style: str
    selected: bool = False

    def to_dict(self) -> Dict:
        return {
            'id': self.node_id,
            'type': self.node_type,
            'tier': self.tier,
            'depth': self.depth,
            'slot': self.slot,
            'label': self.label,
            'style': self.style,
            'selected': self.selected,
        }


@dataclass
class NodeRenderer:
    """Rendering strategy for one node type."""
    style: str
    label: Callable[[AstNode], str]


def _generic_label(node: AstNode) -> str:
    return node.node_type


GENERIC_RENDERER = NodeRenderer(RowStyle.GENERIC, _generic_label)

_RENDERERS: Dict[str, NodeRenderer] = {}


def register_renderer(node_type: str, style: str, label: Callable[[AstNode], str]):
    _RENDERERS[node_type] = NodeRenderer(style, label)


def renderer_for(node_type: str) -> NodeRenderer:
    return _RENDERERS.get(node_type, GENERIC_RENDERER)


for _type, _label in {
    'LetStatement': lambda n: f"{'let mut' if n.mutable else 'let'} {n.name or '?'}",
    'IfStatement': lambda n: "if",
    'ForStatement': lambda n: f"for {n.variable} in",
    'WhileStatement': lambda n: "while",
    'ReturnStatement': lambda n: "return",
    'TryCatchStatement': lambda n: f"try / catch ({n.catch_param})",
    'ThrowStatement': lambda n: "throw",
    'MatchStatement': lambda n: f"match ({len(n.arms)} arms)",
}.items():
    register_renderer(_type, RowStyle.STATEMENT, _label)

for _type, _label in {
    'DbQuery': lambda n: f"db.{n.model or '?'}.{n.operation}",
    'DbMutate': lambda n: f"db.{n.model or '?'}.{n.operation}",
    'HttpRespond': lambda n: f"respond {n.status}",
    'CtxGet': lambda n: f"ctx.{n.key}" if n.key else "ctx",
    'Validate': lambda n: f"validate {n.schema}".rstrip(),
    'HashPassword': lambda n: "hashPassword",
    'SignToken': lambda n: "signToken",
    'NativeBridge': lambda n: f"native[{n.language}] {n.module}.{n.method}",
}.items():
    register_renderer(_type, RowStyle.DOMAIN, _label)


class HandlerCanvas:
    """Outline view over an editing session."""

    def __init__(self, session: EditorSession, palette: Optional[NodePalette] = None):
        self.session = session
        self.palette = palette or NodePalette()

    def rows(self) -> List[CanvasRow]:
        """The current tree flattened depth-first, with nesting depth."""
        selected = self.session.selected_id
        rows: List[CanvasRow] = []

        def visit(node: AstNode, depth: int, slot: str):
            renderer = renderer_for(node.node_type)
            rows.append(CanvasRow(
                node_id=node.id,
                node_type=node.node_type,
                tier=int(node.tier),
                depth=depth,
                slot=slot,
                label=renderer.label(node),
                style=renderer.style,
                selected=node.id == selected,
            ))
            for child_slot, child in iter_children(node):
                visit(child, depth + 1, child_slot)

        for root in self.session.body:
            visit(root, 0, "")
        return rows

    @property
    def empty(self) -> bool:
        return not self.session.body

    def add_from_palette(self, node_type: str, parent_id: Optional[str] = None) -> AstNode:
        """Palette click: create the node, insert it and focus it."""
        node = self.palette.create_node(node_type)
        if self.session.insert(parent_id, node):
            self.session.select(node.id)
        return node

    def click(self, node_id: str) -> bool:
        return self.session.select(node_id)

    def delete_selected(self) -> bool:
        return self.session.delete_selected()
