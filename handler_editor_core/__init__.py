"""
Handler Editor Core - visual editing of backend handler logic.

A handler's body is an immutable tree of typed nodes, each tagged with a
portability tier. This package provides the node model, the id-addressed
structural edit engine, session selection and dirty tracking, and the
debounced latest-wins preview pipeline that renders the tree through an
external code generator.
"""

__version__ = "0.1.0"
__author__ = "Handler Editor Development Team"

from .models import (
    AstNode, Tier, NodeCategory, MatchArm, ObjectProperty, HandlerSpec, HandlerParam,
    create_node, get_node_tier, is_node, new_node_id, node_to_dict, node_from_dict,
)
from .tree_engine import find_node, insert_node, remove_node, update_node_property
from .editor_session import EditorSession, SaveCoordinator
from .preview import PreviewOrchestrator, PreviewPhase, PreviewState
from .targets import LANGUAGES, FRAMEWORK_MAP, PreviewTarget
from .code_generator import CodeGenerator, HttpCodeGenerator, GenerationResult
from .handler_store import HandlerStore, FileHandlerStore
from .node_palette import NodePalette
from .canvas import HandlerCanvas
from .notifications import NotificationCenter, ToastLevel
from .config import EditorSettings
from .editor import HandlerEditor
from .exceptions import (
    HandlerEditorError, UnknownNodeTypeError, DuplicateNodeIdError, UnsupportedTargetError,
    GeneratorError, HandlerStoreError, SaveError,
)

__all__ = [
    'AstNode', 'Tier', 'NodeCategory', 'MatchArm', 'ObjectProperty', 'HandlerSpec', 'HandlerParam',
    'create_node', 'get_node_tier', 'is_node', 'new_node_id', 'node_to_dict', 'node_from_dict',
    'find_node', 'insert_node', 'remove_node', 'update_node_property',
    'EditorSession', 'SaveCoordinator',
    'PreviewOrchestrator', 'PreviewPhase', 'PreviewState',
    'LANGUAGES', 'FRAMEWORK_MAP', 'PreviewTarget',
    'CodeGenerator', 'HttpCodeGenerator', 'GenerationResult',
    'HandlerStore', 'FileHandlerStore',
    'NodePalette', 'HandlerCanvas',
    'NotificationCenter', 'ToastLevel',
    'EditorSettings', 'HandlerEditor',
    'HandlerEditorError', 'UnknownNodeTypeError', 'DuplicateNodeIdError', 'UnsupportedTargetError',
    'GeneratorError', 'HandlerStoreError', 'SaveError',
]
