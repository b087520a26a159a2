"""
HandlerEditor - wires one editing session to its collaborators.

Everything with an outside effect (store, generator, notifications, timers,
executor) is passed in, so the same editor runs behind the web interface and
inside tests with fakes.
"""

from concurrent.futures import Executor
from typing import Callable, List, Optional
import logging
import os

from .canvas import HandlerCanvas
from .code_generator import CodeGenerator, GenerationResult, HttpCodeGenerator
from .config import EditorSettings
from .debounce import TimerFactory
from .editor_session import (
    EVENT_CHANGED, EVENT_LOADED, EditorSession, SaveCoordinator,
)
from .exceptions import GeneratorError
from .handler_store import FileHandlerStore, HandlerStore
from .node_palette import NodePalette
from .notifications import NotificationCenter
from .preview import PreviewOrchestrator, PreviewState
from .targets import PreviewTarget, resolve_target

logger = logging.getLogger(__name__)


class HandlerEditor:
    """One handler open for editing, with live preview and auto-save."""

    def __init__(self, store: HandlerStore, generator: CodeGenerator,
                 settings: Optional[EditorSettings] = None,
                 notifications: Optional[NotificationCenter] = None,
                 timer_factory: Optional[TimerFactory] = None,
                 executor: Optional[Executor] = None,
                 autosave: bool = True):
        self.settings = settings or EditorSettings()
        self.store = store
        self.generator = generator
        self.notifications = notifications or NotificationCenter()
        self.autosave = autosave

        self.session = EditorSession()
        self.palette = NodePalette()
        self.canvas = HandlerCanvas(self.session, self.palette)
        self.saver = SaveCoordinator(
            self.session, store, self.notifications,
            autosave_delay=self.settings.autosave_delay_seconds,
            timer_factory=timer_factory,
        )
        self.preview = PreviewOrchestrator(
            generator,
            target=resolve_target(self.settings.default_language, self.settings.default_framework),
            debounce_seconds=self.settings.preview_debounce_seconds,
            timer_factory=timer_factory,
            executor=executor,
            on_update=self._on_preview_update,
        )
        self._preview_listeners: List[Callable[[PreviewState], None]] = []
        self.session.add_listener(self._on_session_event)

    @classmethod
    def from_settings(cls, settings: EditorSettings, **kwargs) -> 'HandlerEditor':
        """Editor backed by the file store and the HTTP generator from ``settings``."""
        store = FileHandlerStore(settings.project_root)
        generator = HttpCodeGenerator(settings.generator_url, timeout=settings.generator_timeout)
        return cls(store, generator, settings=settings, **kwargs)

    # ------------------------------------------------------------------
    # Event plumbing
    # ------------------------------------------------------------------

    def add_preview_listener(self, listener: Callable[[PreviewState], None]):
        self._preview_listeners.append(listener)

    def _on_preview_update(self, state: PreviewState):
        for listener in list(self._preview_listeners):
            listener(state)

    def _on_session_event(self, event: str):
        if event == EVENT_LOADED:
            self.preview.artifact_name = self.session.handler_name
            self.preview.notify_changed()
        elif event == EVENT_CHANGED:
            self.preview.notify_changed()
            if self.autosave:
                self.saver.schedule_autosave()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def open(self, doc_id: str):
        """Load a handler document from the store and start editing it.

        Raises:
            HandlerStoreError: the document could not be read.
            DuplicateNodeIdError: the document's tree reuses an id.
        """
        self.saver.cancel_autosave()
        spec = self.store.read_handler(doc_id)
        self.session.load(doc_id, spec)
        return spec

    def save(self) -> bool:
        self.saver.cancel_autosave()
        return self.saver.save()

    def set_target(self, language: str, framework: Optional[str] = None) -> PreviewTarget:
        """Switch the preview target; without a framework the language default is kept or chosen."""
        if framework is None:
            target = self.preview.target.with_language(language)
        else:
            target = PreviewTarget(language, framework)
        self.preview.set_target(target)
        return target

    def generate_project(self, output_dir: str) -> GenerationResult:
        """Generate the whole project for the current preview target.

        Raises:
            GeneratorError: the generator rejected or failed the request.
        """
        target = self.preview.target
        output_dir = os.path.abspath(output_dir)
        try:
            result = self.generator.generate_project(output_dir, target.language, target.framework)
        except GeneratorError as e:
            logger.error(f"Project generation for {target.language}/{target.framework} failed: {e}")
            self.notifications.error(f"Generation failed: {e}")
            raise
        self.notifications.success(f"Generated {result.file_count} files in {result.output_dir}")
        return result

    def close(self):
        """Flush a pending auto-save and stop background work."""
        if self.autosave and self.session.dirty:
            self.saver.flush_autosave()
        self.saver.cancel_autosave()
        self.preview.close()
