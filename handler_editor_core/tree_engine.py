"""
Tree Engine - pure structural operations over a handler body.

Every operation takes the top-level sequence of root nodes and returns a new
sequence; inputs are never mutated. Nodes are addressed only by id, so each
operation is a full walk of the tree. Children are discovered by field shape:
any node-valued field is a singular child, and record entries inside a
sequence (match arms, object properties) are walked through as well. Only the
canonical slot names, or a non-empty sequence made up entirely of nodes and
records, count as container slots for insertion.

Subtrees that an operation does not touch are returned by reference, and an
operation that changes nothing returns the input sequence itself. Misses
(unknown id, parent without a container slot, unknown property) are
documented no-ops, never errors.
"""

from dataclasses import fields, is_dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging

from .exceptions import DuplicateNodeIdError
from .models import AstNode, Tier, is_node, wire_name

logger = logging.getLogger(__name__)

# Priority used to pick a slot when a parent has more than one.
CONTAINER_SLOT_ORDER = (
    "body", "try_body", "catch_body", "else_body",
    "elements", "arguments", "properties", "arms",
)

_IDENTITY_FIELDS = ("id", "tier")

Body = Tuple[AstNode, ...]


def _is_record(value: Any) -> bool:
    return is_dataclass(value) and not isinstance(value, type) and not is_node(value)


def _child_field_names(obj: Any) -> List[str]:
    names = [f.name for f in fields(obj)]
    if is_node(obj):
        names = [name for name in names if name not in _IDENTITY_FIELDS]
    return names


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------

def _iter_value(value: Any) -> Iterator[AstNode]:
    if is_node(value):
        yield value
        for name in _child_field_names(value):
            yield from _iter_value(getattr(value, name))
    elif _is_record(value):
        for name in _child_field_names(value):
            yield from _iter_value(getattr(value, name))
    elif isinstance(value, (tuple, list)):
        for item in value:
            yield from _iter_value(item)


def iter_nodes(nodes: Sequence[AstNode]) -> Iterator[AstNode]:
    """Yield every node of the tree, depth-first, parents before children."""
    for node in nodes:
        yield from _iter_value(node)


def _direct_nodes(value: Any) -> Iterator[AstNode]:
    if is_node(value):
        yield value
    elif _is_record(value):
        for name in _child_field_names(value):
            yield from _direct_nodes(getattr(value, name))
    elif isinstance(value, (tuple, list)):
        for item in value:
            yield from _direct_nodes(item)


def iter_children(node: AstNode) -> Iterator[Tuple[str, AstNode]]:
    """Yield ``(field_name, child)`` for the node's direct children, in field order."""
    for name in _child_field_names(node):
        for child in _direct_nodes(getattr(node, name)):
            yield name, child


def find_node(nodes: Sequence[AstNode], node_id: str) -> Optional[AstNode]:
    """Return the node with ``node_id`` or None when it is not in the tree."""
    for node in iter_nodes(nodes):
        if node.id == node_id:
            return node
    return None


def collect_ids(nodes: Sequence[AstNode]) -> List[str]:
    return [node.id for node in iter_nodes(nodes)]


def ensure_unique_ids(nodes: Sequence[AstNode]) -> None:
    """Raise DuplicateNodeIdError if two nodes in the tree share an id."""
    seen = set()
    for node_id in collect_ids(nodes):
        if node_id in seen:
            raise DuplicateNodeIdError(node_id)
        seen.add(node_id)


def _is_slot(name: str, value: Any) -> bool:
    if not isinstance(value, tuple):
        return False
    if name in CONTAINER_SLOT_ORDER:
        return True
    return bool(value) and all(is_node(item) or _is_record(item) for item in value)


def container_slots(node: AstNode) -> Dict[str, tuple]:
    """Return the node's container slots, highest insertion priority first.

    Slots named in CONTAINER_SLOT_ORDER come first in that order, empty or
    not. Any other tuple field follows in declaration order, but only while
    it is non-empty and holds nothing but nodes and records, so a literal's
    list value or a template's text parts never receive children.
    """
    slots = {name: getattr(node, name) for name in _child_field_names(node)
             if _is_slot(name, getattr(node, name))}
    ordered = {name: slots[name] for name in CONTAINER_SLOT_ORDER if name in slots}
    for name, value in slots.items():
        ordered.setdefault(name, value)
    return ordered


def max_tier(nodes: Sequence[AstNode]) -> Tier:
    """Highest portability tier used anywhere in the tree (universal when empty)."""
    return max((node.tier for node in iter_nodes(nodes)), default=Tier.UNIVERSAL)


def bridge_languages(nodes: Sequence[AstNode]) -> List[str]:
    """Languages that native-bridge nodes in the tree are locked to."""
    languages = {
        node.language for node in iter_nodes(nodes)
        if node.tier == Tier.NATIVE and getattr(node, "language", None)
    }
    return sorted(languages)


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------

class _Rewriter:
    """Copy-on-write walk; unchanged values are returned as the same object."""

    def node(self, node: AstNode) -> Optional[AstNode]:
        return self.children(node)

    def singular(self, node: AstNode) -> Optional[AstNode]:
        return self.node(node)

    def children(self, obj: Any) -> Any:
        changes = {}
        for name in _child_field_names(obj):
            old = getattr(obj, name)
            new = self.value(old)
            if new is not old:
                changes[name] = new
        return replace(obj, **changes) if changes else obj

    def value(self, value: Any) -> Any:
        if is_node(value):
            return self.singular(value)
        if _is_record(value):
            return self.children(value)
        if isinstance(value, tuple):
            return self.sequence(value)
        return value

    def keep(self, item: Any) -> bool:
        return True

    def sequence(self, items: tuple) -> tuple:
        rewritten = tuple(self.value(item) for item in items if self.keep(item))
        if len(rewritten) == len(items) and all(a is b for a, b in zip(rewritten, items)):
            return items
        return rewritten


class _Remover(_Rewriter):
    def __init__(self, node_id: str):
        self.node_id = node_id

    def keep(self, item: Any) -> bool:
        return not (is_node(item) and item.id == self.node_id)

    def singular(self, node: AstNode) -> Optional[AstNode]:
        # Singular fields are not resizable; the reference becomes an explicit absence.
        if node.id == self.node_id:
            return None
        return self.node(node)


class _Updater(_Rewriter):
    def __init__(self, node_id: str, key: str, value: Any):
        self.node_id = node_id
        self.key = key
        self.new_value = value

    def node(self, node: AstNode) -> AstNode:
        if node.id != self.node_id:
            return self.children(node)
        name = _resolve_field(node, self.key)
        if name is None:
            logger.debug(f"Node {node.id} ({node.node_type}) has no property {self.key!r}; update ignored")
            return node
        if name == "tier" and not _valid_tier(self.new_value):
            logger.debug(f"Node {node.id} ({node.node_type}) can not take tier {self.new_value!r}; update ignored")
            return node
        return replace(node, **{name: self.new_value})


class _Inserter(_Rewriter):
    def __init__(self, parent_id: str, child: AstNode, index: Optional[int]):
        self.parent_id = parent_id
        self.child = child
        self.index = index

    def node(self, node: AstNode) -> AstNode:
        if node.id != self.parent_id:
            return self.children(node)
        slots = container_slots(node)
        if not slots:
            logger.debug(f"Node {node.id} ({node.node_type}) has no container slot; insert ignored")
            return node
        name = next(iter(slots))
        record = _field_metadata(node, name).get("record")
        entry = record.wrap(self.child) if record is not None else self.child
        return replace(node, **{name: _spliced(slots[name], entry, self.index)})


def _field_metadata(node: AstNode, name: str) -> dict:
    for f in fields(node):
        if f.name == name:
            return f.metadata
    return {}


def _resolve_field(node: AstNode, key: str) -> Optional[str]:
    for name in _child_field_names(node):
        if key == name or key == wire_name(name):
            return name
    if key == "tier":
        return key
    return None


def _valid_tier(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return value in {tier.value for tier in Tier}


def _spliced(items: Sequence[Any], item: Any, index: Optional[int]) -> tuple:
    result = list(items)
    if index is None:
        result.append(item)
    else:
        result.insert(index, item)
    return tuple(result)


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

def insert_node(nodes: Sequence[AstNode], parent_id: Optional[str], node: AstNode,
                index: Optional[int] = None) -> Body:
    """Insert ``node`` at the top level or into a parent's container slot.

    With ``parent_id`` None the node goes into the root sequence at
    ``index`` (appended by default). Otherwise it goes into the parent's
    highest-priority container slot. A parent that cannot be found, or that
    has no container slot, leaves the tree unchanged.
    """
    roots = tuple(nodes)
    if parent_id is None:
        return _spliced(roots, node, index)
    result = _Inserter(parent_id, node, index).sequence(roots)
    if result is roots:
        logger.debug(f"Insert of {node.id} under {parent_id} changed nothing")
    return result


def remove_node(nodes: Sequence[AstNode], node_id: str) -> Body:
    """Remove the node with ``node_id`` and its whole subtree, wherever it is."""
    roots = tuple(nodes)
    result = _Remover(node_id).sequence(roots)
    if result is roots:
        logger.debug(f"Remove of {node_id} changed nothing: id not in tree")
    return result


def update_node_property(nodes: Sequence[AstNode], node_id: str, key: str, value: Any) -> Body:
    """Replace one field of the node with ``node_id``.

    ``key`` may be the Python field name or its serialized camelCase form.
    The id itself can not be replaced, and ``tier`` only takes one of the
    four tier values.
    """
    roots = tuple(nodes)
    if key == "id":
        logger.debug(f"Refusing to replace the id of {node_id}")
        return roots
    result = _Updater(node_id, key, value).sequence(roots)
    if result is roots:
        logger.debug(f"Update of {node_id}.{key} changed nothing")
    return result
