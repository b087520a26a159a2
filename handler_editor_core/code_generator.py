"""
Boundary to the external code-generation backend.

The editor never renders source itself. It asks a generator for a preview of
the current project in one target, getting back either a single source
string or a mapping of file name to source, and can ask it to write a whole
project to disk.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
import logging

import requests

from .exceptions import GeneratorError

logger = logging.getLogger(__name__)

PreviewResult = Union[str, Dict[str, str]]


@dataclass
class GenerationResult:
    """Outcome of a full project generation."""
    output_dir: str
    file_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {'outputDir': self.output_dir, 'fileCount': self.file_count}


class CodeGenerator(ABC):
    """Interface every generator backend implements."""

    @abstractmethod
    def preview_code(self, language: str, framework: str) -> PreviewResult:
        """Render the current project for one target."""

    @abstractmethod
    def generate_project(self, output_dir: str, language: str, framework: str) -> GenerationResult:
        """Write a complete project for one target into ``output_dir``."""


class HttpCodeGenerator(CodeGenerator):
    """Talks to a generator service over HTTP with ``requests``.

    Endpoints:
        POST {base_url}/api/preview   {"language", "framework"} -> str | {file: source}
        POST {base_url}/api/generate  {"outputDir", "language", "framework"}
                                      -> {"outputDir", "fileCount"}
    """

    def __init__(self, base_url: str, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def preview_code(self, language: str, framework: str) -> PreviewResult:
        data = self._post('/api/preview', {'language': language, 'framework': framework})
        if isinstance(data, str):
            return data
        if isinstance(data, dict) and all(isinstance(v, str) for v in data.values()):
            return {str(name): source for name, source in data.items()}
        raise GeneratorError("Code generator returned an unexpected preview payload",
                             details={'payload_type': type(data).__name__})

    def generate_project(self, output_dir: str, language: str, framework: str) -> GenerationResult:
        data = self._post('/api/generate', {
            'outputDir': output_dir,
            'language': language,
            'framework': framework,
        })
        try:
            return GenerationResult(output_dir=data['outputDir'], file_count=int(data['fileCount']))
        except (KeyError, TypeError, ValueError) as e:
            raise GeneratorError(f"Malformed generation result: {e}") from e

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise GeneratorError(f"Code generator timed out ({self.timeout}s)") from e
        except requests.exceptions.ConnectionError as e:
            raise GeneratorError(f"Cannot connect to code generator at {self.base_url}") from e
        except requests.exceptions.RequestException as e:
            raise GeneratorError(f"Code generator request failed: {e}") from e

        if resp.status_code >= 400:
            raise GeneratorError(self._error_message(resp), status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise GeneratorError("Code generator returned invalid JSON",
                                 status_code=resp.status_code) from e

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get('error'):
            return str(body['error'])
        return f"Code generator responded with HTTP {resp.status_code}"
