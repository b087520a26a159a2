"""
Node Palette for the handler editor.

Lists the node kinds a user can add, grouped by portability family, and
turns a palette pick into a fresh node.
"""

from typing import Any, Dict, List, Optional

from .exceptions import UnknownNodeTypeError
from .models import AstNode, Tier, create_node, node_class


class NodeDefinition:
    """A palette entry for one node kind."""

    def __init__(self, node_type: str, label: str, description: str = "",
                 category: str = "Statements"):
        self.node_type = node_type
        self.label = label
        self.description = description
        self.category = category
        self.tags: List[str] = []
        # Raises UnknownNodeTypeError for entries that have no node class
        self.tier: Tier = node_class(node_type).default_tier

    def add_tag(self, tag: str):
        """Add a tag for searching and filtering."""
        if tag not in self.tags:
            self.tags.append(tag)
        return self

    def create_instance(self, **values: Any) -> AstNode:
        """Create a new node of this kind with a fresh id."""
        return create_node(self.node_type, **values)

    def matches_search(self, query: str) -> bool:
        query_lower = query.lower()
        return (
            query_lower in self.label.lower() or
            query_lower in self.node_type.lower() or
            query_lower in self.description.lower() or
            any(query_lower in tag.lower() for tag in self.tags)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.node_type,
            'tier': int(self.tier),
            'label': self.label,
            'description': self.description,
            'category': self.category,
        }


class Category:
    """A named group of palette entries."""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self.nodes: List[NodeDefinition] = []

    def add_node(self, node_def: NodeDefinition):
        node_def.category = self.name
        self.nodes.append(node_def)
        return node_def

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'nodes': [n.to_dict() for n in self.nodes]}


# (node_type, label, description) per category
_STANDARD_CATEGORIES = [
    ("Statements", "Control flow and bindings", [
        ("LetStatement", "let", "Bind a value to a name"),
        ("IfStatement", "if", "Run statements when a condition holds"),
        ("ForStatement", "for", "Iterate over a collection"),
        ("WhileStatement", "while", "Loop while a condition holds"),
        ("ReturnStatement", "return", "Return a value from the handler"),
        ("TryCatchStatement", "try/catch", "Catch errors raised by a block"),
        ("ThrowStatement", "throw", "Raise an error"),
        ("MatchStatement", "match", "Branch on the shape of a value"),
    ]),
    ("Expressions", "Values and operations", [
        ("Literal", "literal", "A constant value"),
        ("Identifier", "identifier", "A reference to a name"),
        ("BinaryExpression", "binary", "Combine two values with an operator"),
        ("CallExpression", "call", "Call a function"),
        ("MemberExpression", "member", "Read a property of an object"),
        ("ObjectExpression", "object", "Build an object"),
        ("ArrayExpression", "array", "Build an array"),
        ("TemplateLiteral", "template", "Interpolate values into text"),
    ]),
    ("Domain (Tier 1)", "Backend primitives with per-target runtime shims", [
        ("DbQuery", "dbQuery", "Read records from a model"),
        ("DbMutate", "dbMutate", "Create, update or delete records"),
        ("HttpRespond", "httpRespond", "Send an HTTP response"),
        ("CtxGet", "ctxGet", "Read from the request context"),
        ("Validate", "validate", "Validate a value against a schema"),
        ("HashPassword", "hashPassword", "Hash a password"),
        ("SignToken", "signToken", "Sign a token"),
    ]),
    ("Bridge (Tier 3)", "Target-specific code, opaque to the editor", [
        ("NativeBridge", "nativeBridge", "Call into a target-language package"),
    ]),
]


class NodePalette:
    """The set of node kinds the editor offers."""

    def __init__(self):
        self.categories: Dict[str, Category] = {}
        self._initialize_standard_categories()

    def _initialize_standard_categories(self):
        for name, description, entries in _STANDARD_CATEGORIES:
            category = Category(name, description)
            for node_type, label, node_description in entries:
                node_def = category.add_node(NodeDefinition(node_type, label, node_description))
                node_def.add_tag(f"tier{int(node_def.tier)}")
                node_def.add_tag(node_class(node_type).category)
            self.categories[name] = category

    def get_categories(self) -> List[Category]:
        return list(self.categories.values())

    def get_definition(self, node_type: str) -> Optional[NodeDefinition]:
        for category in self.categories.values():
            for node_def in category.nodes:
                if node_def.node_type == node_type:
                    return node_def
        return None

    def search_nodes(self, query: str, tier: Optional[int] = None) -> List[NodeDefinition]:
        """Entries matching ``query`` (all entries for a blank query), optionally one tier only."""
        results = []
        for category in self.categories.values():
            for node_def in category.nodes:
                if tier is not None and node_def.tier != tier:
                    continue
                if not query.strip() or node_def.matches_search(query):
                    results.append(node_def)
        return results

    def create_node(self, node_type: str, **values: Any) -> AstNode:
        """Instantiate a palette pick.

        Raises:
            UnknownNodeTypeError: ``node_type`` is not offered by the palette.
        """
        node_def = self.get_definition(node_type)
        if node_def is None:
            raise UnknownNodeTypeError(node_type)
        return node_def.create_instance(**values)

    def export_palette(self) -> List[Dict[str, Any]]:
        return [category.to_dict() for category in self.categories.values()]
