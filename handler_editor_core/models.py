"""
Core data models for the Handler Editor.

A handler's logic is a tree of immutable, typed AST nodes. Every node carries
an opaque unique ``id``, a discriminator (``node_type``, serialized as
``"type"``) and a portability ``tier``:

    0  universal        statements/expressions expressible in any target
    1  domain primitive needs a target-specific runtime shim (database, http)
    2  specialized      reserved, no node kind uses it yet
    3  native bridge    opaque target-specific code

Container slots are tuple-valued fields holding child nodes (``body``,
``try_body``, ``arguments``, ...). Singular children are node-valued fields
that may be ``None``. Nodes are frozen dataclasses; lists handed to a
constructor are frozen into tuples so no subtree can be mutated in place.
"""

from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Type
from enum import IntEnum
import itertools
import threading
import time

from .exceptions import UnknownNodeTypeError


class Tier(IntEnum):
    """Portability tier of a node."""
    UNIVERSAL = 0
    DOMAIN = 1
    SPECIALIZED = 2
    NATIVE = 3


class NodeCategory:
    """Palette/rendering families a node kind belongs to."""
    STATEMENT = "statement"
    EXPRESSION = "expression"
    DOMAIN = "domain"
    BRIDGE = "bridge"


_id_counter = itertools.count(1)
_id_lock = threading.Lock()


def new_node_id() -> str:
    """Allocate a process-unique node id.

    The sequence part never repeats for the lifetime of the process, so two
    ids handed out here cannot collide even within the same millisecond.
    """
    with _id_lock:
        seq = next(_id_counter)
    return f"node_{int(time.time() * 1000)}_{seq}"


def _freeze(value: Any) -> Any:
    """Convert lists (recursively) into tuples."""
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, dict):
        return {key: _freeze(item) for key, item in value.items()}
    return value


def _freeze_fields(obj: Any, skip: Sequence[str] = ()):
    for f in fields(obj):
        if f.name in skip:
            continue
        value = getattr(obj, f.name)
        frozen = _freeze(value)
        if frozen is not value:
            object.__setattr__(obj, f.name, frozen)


@dataclass(frozen=True, kw_only=True)
class AstNode:
    """Base class for every handler AST node.

    Subclasses register themselves under their discriminator when they are
    defined::

        @dataclass(frozen=True)
        class DbQuery(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
            model: str = ""
    """
    id: str = field(default_factory=new_node_id)
    tier: Optional[Tier] = None

    node_type: ClassVar[str] = ""
    default_tier: ClassVar[Tier] = Tier.UNIVERSAL
    category: ClassVar[str] = NodeCategory.EXPRESSION
    _registry: ClassVar[Dict[str, Type['AstNode']]] = {}

    def __init_subclass__(cls, node_type: Optional[str] = None, tier: Tier = Tier.UNIVERSAL,
                          category: str = NodeCategory.EXPRESSION, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.node_type = node_type or cls.__name__
        cls.default_tier = Tier(tier)
        cls.category = category
        AstNode._registry[cls.node_type] = cls

    def __post_init__(self):
        tier = self.default_tier if self.tier is None else self.tier
        object.__setattr__(self, 'tier', Tier(tier))
        _freeze_fields(self, skip=('id', 'tier'))


def is_node(value: Any) -> bool:
    """Return True if ``value`` is shaped like a node (carries id, type and tier)."""
    if isinstance(value, type):
        return False
    return (
        isinstance(getattr(value, 'node_type', None), str)
        and isinstance(getattr(value, 'tier', None), int)
        and isinstance(getattr(value, 'id', None), str)
    )


def get_node_tier(node: AstNode) -> Tier:
    """Return the portability tier of a node."""
    return node.tier


def node_class(node_type: str) -> Type[AstNode]:
    """Look up the class registered for a discriminator."""
    try:
        return AstNode._registry[node_type]
    except KeyError:
        raise UnknownNodeTypeError(node_type) from None


def registered_node_types() -> List[str]:
    return list(AstNode._registry)


def create_node(node_type: str, **values: Any) -> AstNode:
    """Create a node of the given type with a fresh id and its default tier.

    Raises:
        UnknownNodeTypeError: ``node_type`` is not a registered node kind.
    """
    return node_class(node_type)(**values)


# ---------------------------------------------------------------------------
# Records held inside container slots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchArm:
    """One arm of a match statement: a pattern and the statements it runs."""
    pattern: str = "_"
    body: Tuple[AstNode, ...] = ()

    def __post_init__(self):
        _freeze_fields(self)

    @classmethod
    def wrap(cls, node: AstNode) -> 'MatchArm':
        """Entry used when a bare node is inserted into a match's arm list."""
        return cls(body=(node,))


@dataclass(frozen=True)
class ObjectProperty:
    """A ``key: value`` entry of an object expression."""
    key: str = ""
    value: Optional[AstNode] = None

    @classmethod
    def wrap(cls, node: AstNode) -> 'ObjectProperty':
        return cls(value=node)


# ---------------------------------------------------------------------------
# Statements (tier 0)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LetStatement(AstNode, category=NodeCategory.STATEMENT):
    name: str = ""
    value: Optional[AstNode] = None
    mutable: bool = False


@dataclass(frozen=True)
class IfStatement(AstNode, category=NodeCategory.STATEMENT):
    condition: Optional[AstNode] = None
    body: Tuple[AstNode, ...] = ()
    else_body: Tuple[AstNode, ...] = ()


@dataclass(frozen=True)
class ForStatement(AstNode, category=NodeCategory.STATEMENT):
    variable: str = "item"
    iterable: Optional[AstNode] = None
    body: Tuple[AstNode, ...] = ()


@dataclass(frozen=True)
class WhileStatement(AstNode, category=NodeCategory.STATEMENT):
    condition: Optional[AstNode] = None
    body: Tuple[AstNode, ...] = ()


@dataclass(frozen=True)
class ReturnStatement(AstNode, category=NodeCategory.STATEMENT):
    value: Optional[AstNode] = None


@dataclass(frozen=True)
class TryCatchStatement(AstNode, category=NodeCategory.STATEMENT):
    try_body: Tuple[AstNode, ...] = ()
    catch_param: str = "err"
    catch_body: Tuple[AstNode, ...] = ()


@dataclass(frozen=True)
class ThrowStatement(AstNode, category=NodeCategory.STATEMENT):
    value: Optional[AstNode] = None


@dataclass(frozen=True)
class MatchStatement(AstNode, category=NodeCategory.STATEMENT):
    subject: Optional[AstNode] = None
    arms: Tuple[MatchArm, ...] = field(default=(), metadata={'record': MatchArm})


# ---------------------------------------------------------------------------
# Expressions (tier 0)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal(AstNode):
    value: Any = ""


@dataclass(frozen=True)
class Identifier(AstNode):
    name: str = ""


@dataclass(frozen=True)
class BinaryExpression(AstNode):
    operator: str = "+"
    left: Optional[AstNode] = None
    right: Optional[AstNode] = None


@dataclass(frozen=True)
class CallExpression(AstNode):
    callee: Optional[AstNode] = None
    arguments: Tuple[AstNode, ...] = ()


@dataclass(frozen=True)
class MemberExpression(AstNode):
    object: Optional[AstNode] = None
    property: str = ""


@dataclass(frozen=True)
class ObjectExpression(AstNode):
    properties: Tuple[ObjectProperty, ...] = field(default=(), metadata={'record': ObjectProperty})


@dataclass(frozen=True)
class ArrayExpression(AstNode):
    elements: Tuple[AstNode, ...] = ()


@dataclass(frozen=True)
class TemplateLiteral(AstNode):
    # Mix of plain text and embedded expression nodes
    parts: Tuple[Any, ...] = ()


# ---------------------------------------------------------------------------
# Domain primitives (tier 1)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DbQuery(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
    model: str = ""
    operation: str = "findMany"
    where: Optional[AstNode] = None


@dataclass(frozen=True)
class DbMutate(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
    model: str = ""
    operation: str = "create"
    data: Optional[AstNode] = None


@dataclass(frozen=True)
class HttpRespond(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
    status: int = 200
    body: Optional[AstNode] = None
    headers: Optional[AstNode] = None


@dataclass(frozen=True)
class CtxGet(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
    key: str = ""


@dataclass(frozen=True)
class Validate(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
    schema: str = ""
    value: Optional[AstNode] = None


@dataclass(frozen=True)
class HashPassword(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
    value: Optional[AstNode] = None


@dataclass(frozen=True)
class SignToken(AstNode, tier=Tier.DOMAIN, category=NodeCategory.DOMAIN):
    payload: Optional[AstNode] = None
    secret: Optional[AstNode] = None


# ---------------------------------------------------------------------------
# Escape hatch (tier 3)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NativeBridge(AstNode, tier=Tier.NATIVE, category=NodeCategory.BRIDGE):
    language: str = "typescript"
    module: str = ""
    method: str = ""
    arguments: Tuple[AstNode, ...] = ()


# ---------------------------------------------------------------------------
# Structured-data conversion
# ---------------------------------------------------------------------------

def wire_name(name: str) -> str:
    """Map a Python field name to its serialized camelCase key."""
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _is_record(value: Any) -> bool:
    return is_dataclass(value) and not isinstance(value, type) and not is_node(value)


def _looks_like_serialized_node(value: Any) -> bool:
    if not isinstance(value, Mapping) or not isinstance(value.get('type'), str):
        return False
    return 'tier' in value or value['type'] in AstNode._registry


def _to_plain(value: Any) -> Any:
    if is_node(value):
        return node_to_dict(value)
    if _is_record(value):
        return {wire_name(f.name): _to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _to_plain(item) for key, item in value.items()}
    return value


def _from_plain(value: Any, record: Optional[type] = None) -> Any:
    if _looks_like_serialized_node(value):
        return node_from_dict(value)
    if isinstance(value, (list, tuple)):
        return tuple(_from_plain(item, record) for item in value)
    if isinstance(value, Mapping):
        if record is not None:
            return _record_from_dict(record, value)
        return {key: _from_plain(item) for key, item in value.items()}
    return value


def _field_values(cls: type, data: Mapping[str, Any], skip: Sequence[str] = ()) -> Dict[str, Any]:
    values = {}
    for f in fields(cls):
        if f.name in skip:
            continue
        key = wire_name(f.name)
        if key not in data:
            key = f.name
            if key not in data:
                continue
        values[f.name] = _from_plain(data[key], f.metadata.get('record'))
    return values


def _record_from_dict(record: type, data: Mapping[str, Any]) -> Any:
    return record(**_field_values(record, data))


def node_to_dict(node: AstNode) -> Dict[str, Any]:
    """Serialize a node (and its subtree) to plain structured data."""
    data: Dict[str, Any] = {'type': node.node_type, 'id': node.id, 'tier': int(node.tier)}
    for f in fields(node):
        if f.name in ('id', 'tier'):
            continue
        data[wire_name(f.name)] = _to_plain(getattr(node, f.name))
    return data


def node_from_dict(data: Mapping[str, Any]) -> AstNode:
    """Rebuild a node from plain structured data.

    Missing ``id`` values are freshly allocated and a missing ``tier`` falls
    back to the kind's default, so hand-written documents load too.

    Raises:
        UnknownNodeTypeError: the ``type`` discriminator is not registered.
    """
    cls = node_class(data.get('type'))
    values = _field_values(cls, data, skip=('id', 'tier'))
    if data.get('id'):
        values['id'] = str(data['id'])
    if data.get('tier') is not None:
        values['tier'] = Tier(int(data['tier']))
    return cls(**values)


def body_to_list(body: Sequence[AstNode]) -> List[Dict[str, Any]]:
    return [node_to_dict(node) for node in body]


def body_from_list(items: Sequence[Mapping[str, Any]]) -> Tuple[AstNode, ...]:
    return tuple(node_from_dict(item) for item in items)


def value_from_plain(value: Any) -> Any:
    """Decode a property value from its structured form; serialized nodes become nodes."""
    return _from_plain(value)


# ---------------------------------------------------------------------------
# Handler document
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HandlerParam:
    """A declared handler parameter."""
    type: str = "string"
    description: str = ""


@dataclass(frozen=True)
class HandlerSpec:
    """A persisted handler: metadata plus its ``body`` tree."""
    name: str
    description: str = ""
    is_async: bool = True
    params: Dict[str, HandlerParam] = field(default_factory=dict)
    return_type: Any = None
    body: Tuple[AstNode, ...] = ()
    meta: Dict[str, Any] = field(default_factory=dict)
    schema: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'body', tuple(self.body))

    def with_body(self, body: Sequence[AstNode]) -> 'HandlerSpec':
        return replace(self, body=tuple(body))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.schema:
            data['$schema'] = self.schema
        data['name'] = self.name
        if self.description:
            data['description'] = self.description
        data['async'] = self.is_async
        if self.params:
            data['params'] = {
                name: {'type': param.type, 'description': param.description}
                if param.description else {'type': param.type}
                for name, param in self.params.items()
            }
        if self.return_type is not None:
            data['returnType'] = self.return_type
        data['body'] = body_to_list(self.body)
        if self.meta:
            data['meta'] = dict(self.meta)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'HandlerSpec':
        params = {
            name: HandlerParam(type=raw.get('type', 'string'), description=raw.get('description', ''))
            for name, raw in (data.get('params') or {}).items()
        }
        return cls(
            name=data.get('name', ''),
            description=data.get('description', ''),
            is_async=bool(data.get('async', True)),
            params=params,
            return_type=data.get('returnType'),
            body=body_from_list(data.get('body') or []),
            meta=dict(data.get('meta') or {}),
            schema=data.get('$schema'),
        )
