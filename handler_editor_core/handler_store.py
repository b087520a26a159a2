"""
Handler persistence boundary.

Handlers are read and written as whole documents; there is no field-level
save. A document id is the handler file's path relative to the project root,
for example ``handlers/getUser.handler.json``.
"""

from abc import ABC, abstractmethod
from typing import Dict
import json
import logging
import os

from .exceptions import HandlerEditorError, HandlerStoreError
from .models import HandlerSpec

logger = logging.getLogger(__name__)

HANDLER_DIR = "handlers"
HANDLER_EXT = "handler.json"


def handler_doc_id(name: str) -> str:
    """Document id of the handler called ``name``."""
    return f"{HANDLER_DIR}/{name}.{HANDLER_EXT}"


class HandlerStore(ABC):
    """Reads and writes whole handler documents."""

    @abstractmethod
    def read_handler(self, doc_id: str) -> HandlerSpec:
        """Load a handler document."""

    @abstractmethod
    def write_handler(self, doc_id: str, spec: HandlerSpec) -> None:
        """Persist a complete handler document."""


class FileHandlerStore(HandlerStore):
    """JSON files under a project root, written atomically (temp file + rename)."""

    def __init__(self, project_root: str):
        self.project_root = os.path.abspath(project_root)

    def _path(self, doc_id: str) -> str:
        path = os.path.abspath(os.path.join(self.project_root, doc_id))
        if os.path.commonpath([path, self.project_root]) != self.project_root:
            raise HandlerStoreError(f"Document id escapes the project root: {doc_id}", doc_id)
        return path

    def read_handler(self, doc_id: str) -> HandlerSpec:
        path = self._path(doc_id)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise HandlerStoreError(f"Handler not found: {doc_id}", doc_id) from e
        except (OSError, json.JSONDecodeError) as e:
            raise HandlerStoreError(f"Could not read handler {doc_id}: {e}", doc_id) from e
        if not isinstance(data, dict):
            raise HandlerStoreError(f"Handler document {doc_id} is not an object", doc_id)
        try:
            return HandlerSpec.from_dict(data)
        except (HandlerEditorError, ValueError, TypeError) as e:
            raise HandlerStoreError(f"Malformed handler {doc_id}: {e}", doc_id) from e

    def write_handler(self, doc_id: str, spec: HandlerSpec) -> None:
        path = self._path(doc_id)
        tmp_path = path + '.tmp'
        payload: Dict = spec.to_dict()
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
                f.write('\n')
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise HandlerStoreError(f"Could not write handler {doc_id}: {e}", doc_id) from e
        logger.info(f"Saved handler {spec.name} to {doc_id}")
