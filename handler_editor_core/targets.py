"""
Supported preview/generation targets.

The generator renders to a fixed set of languages, each with a fixed set of
web frameworks. A target is one (language, framework) pair from that table.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .exceptions import UnsupportedTargetError


LANGUAGES: List[str] = ["typescript", "rust", "python", "go"]

FRAMEWORK_MAP: Dict[str, List[str]] = {
    'typescript': ["express", "fastify", "hono", "elysia", "nestjs"],
    'rust':       ["actix", "axum", "rocket"],
    'python':     ["fastapi", "django", "flask"],
    'go':         ["gin", "echo", "fiber"],
}


def frameworks_for(language: str) -> List[str]:
    """Frameworks supported for ``language``."""
    try:
        return list(FRAMEWORK_MAP[language])
    except KeyError:
        raise UnsupportedTargetError(language) from None


@dataclass(frozen=True)
class PreviewTarget:
    """A validated (language, framework) pair."""
    language: str = "typescript"
    framework: str = "express"

    def __post_init__(self):
        if self.framework not in frameworks_for(self.language):
            raise UnsupportedTargetError(self.language, self.framework)

    def with_language(self, language: str) -> 'PreviewTarget':
        """Switch language, keeping the framework if the new language supports it.

        Otherwise the first framework listed for the new language is used.
        """
        supported = frameworks_for(language)
        framework = self.framework if self.framework in supported else supported[0]
        return PreviewTarget(language, framework)

    def with_framework(self, framework: str) -> 'PreviewTarget':
        return PreviewTarget(self.language, framework)

    def to_dict(self) -> Dict[str, str]:
        return {'language': self.language, 'framework': self.framework}


def resolve_target(language: str, framework: Optional[str] = None) -> PreviewTarget:
    """Build a target, defaulting the framework to the language's first one."""
    if framework is None:
        framework = frameworks_for(language)[0]
    return PreviewTarget(language, framework)
