"""
Exceptions for the Handler Editor Core.
"""

from typing import Optional, Any, Dict


class HandlerEditorError(Exception):
    """Base exception for all handler editor errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class UnknownNodeTypeError(HandlerEditorError, ValueError):
    """Raised when a node is requested for a type outside the closed set."""

    def __init__(self, node_type: str):
        super().__init__(f"Unknown node type: {node_type!r}", {'node_type': node_type})
        self.node_type = node_type


class DuplicateNodeIdError(HandlerEditorError):
    """Raised when two live nodes in one tree share an id."""

    def __init__(self, node_id: str):
        super().__init__(f"Duplicate node id in tree: {node_id}", {'node_id': node_id})
        self.node_id = node_id


class UnsupportedTargetError(HandlerEditorError, ValueError):
    """Raised for a language/framework pair outside the supported enumeration."""

    def __init__(self, language: str, framework: Optional[str] = None):
        if framework is None:
            message = f"Unsupported language: {language}"
        else:
            message = f"Unsupported framework {framework!r} for language {language!r}"
        super().__init__(message, {'language': language, 'framework': framework})
        self.language = language
        self.framework = framework


class GeneratorError(HandlerEditorError):
    """Raised when the external code generator rejects or fails a request."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class HandlerStoreError(HandlerEditorError):
    """Raised when a handler document cannot be read or written."""

    def __init__(self, message: str, doc_id: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.doc_id = doc_id


class SaveError(HandlerStoreError):
    """Raised to the caller of a save that failed; the session stays dirty."""
    pass
