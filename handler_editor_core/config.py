"""
Editor settings.

Every configurable value resolves in three tiers: an explicit override
(e.g. from the web settings form or a test), then the environment, then the
hard-coded default.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
import logging
import os

from .targets import frameworks_for, resolve_target

logger = logging.getLogger(__name__)

# key -> (environment variable, default)
SETTINGS: Dict[str, tuple] = {
    'project_root':        ('HANDLER_EDITOR_PROJECT_ROOT', '.'),
    'generator_url':       ('HANDLER_EDITOR_GENERATOR_URL', 'http://127.0.0.1:7411'),
    'generator_timeout':   ('HANDLER_EDITOR_GENERATOR_TIMEOUT', '30'),
    'preview_debounce_ms': ('HANDLER_EDITOR_PREVIEW_DEBOUNCE_MS', '300'),
    'autosave_delay_ms':   ('HANDLER_EDITOR_AUTOSAVE_DELAY_MS', '1500'),
    'default_language':    ('HANDLER_EDITOR_DEFAULT_LANGUAGE', 'typescript'),
    'default_framework':   ('HANDLER_EDITOR_DEFAULT_FRAMEWORK', 'express'),
    'log_level':           ('HANDLER_EDITOR_LOG_LEVEL', 'INFO'),
}


def resolve_setting(key: str, env_var: str, default: str,
                    overrides: Optional[Mapping[str, Any]] = None) -> str:
    """Three-tier resolution: override -> env -> default."""
    if overrides is not None and overrides.get(key) is not None:
        return str(overrides[key])
    env_val = os.environ.get(env_var, '').strip()
    if env_val:
        return env_val
    return default


def _number(key: str, raw: str, default: str) -> float:
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value {raw!r} for setting {key}; using {default}")
        return float(default)


@dataclass(frozen=True)
class EditorSettings:
    project_root: str = '.'
    generator_url: str = 'http://127.0.0.1:7411'
    generator_timeout: float = 30.0
    preview_debounce_ms: float = 300.0
    autosave_delay_ms: float = 1500.0
    default_language: str = 'typescript'
    default_framework: str = 'express'
    log_level: str = 'INFO'

    @property
    def preview_debounce_seconds(self) -> float:
        return self.preview_debounce_ms / 1000.0

    @property
    def autosave_delay_seconds(self) -> float:
        return self.autosave_delay_ms / 1000.0

    @classmethod
    def from_env(cls, overrides: Optional[Mapping[str, Any]] = None) -> 'EditorSettings':
        """Build settings from overrides and HANDLER_EDITOR_* environment variables.

        Raises:
            UnsupportedTargetError: the default language is not supported.
        """
        values = {key: resolve_setting(key, env_var, default, overrides)
                  for key, (env_var, default) in SETTINGS.items()}
        for key in ('generator_timeout', 'preview_debounce_ms', 'autosave_delay_ms'):
            values[key] = _number(key, values[key], SETTINGS[key][1])
        language = values['default_language']
        framework = values['default_framework']
        if framework not in frameworks_for(language):
            logger.warning(f"Framework {framework} is not available for {language}; "
                           f"using {frameworks_for(language)[0]}")
            framework = None
        values['default_framework'] = resolve_target(language, framework).framework
        values['log_level'] = values['log_level'].upper()
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in SETTINGS}
