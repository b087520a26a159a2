"""
Selection and dirty tracking for one handler-editing session, plus the
single-flight save coordinator.

The session owns the only "current tree" value. Each structural edit that
changes the tree bumps a revision counter; the session is dirty whenever the
current revision differs from the last one saved successfully. That makes a
save that raced with further edits leave the session dirty, and a failed save
leave it untouched.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple
import logging
import threading

from .debounce import Debouncer, TimerFactory
from .exceptions import HandlerStoreError, SaveError
from .handler_store import HandlerStore
from .models import AstNode, HandlerSpec, create_node
from .notifications import NotificationCenter
from .tree_engine import (
    Body, bridge_languages, ensure_unique_ids, find_node, insert_node, max_tier,
    remove_node, update_node_property,
)

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_SECONDS = 1.5

# Session events passed to listeners
EVENT_LOADED = "loaded"
EVENT_CHANGED = "changed"
EVENT_SELECTION = "selection"
EVENT_SAVED = "saved"

SessionListener = Callable[[str], None]


class EditorSession:
    """In-memory editing state of one handler."""

    def __init__(self):
        self._lock = threading.RLock()
        self._doc_id: Optional[str] = None
        self._spec: Optional[HandlerSpec] = None
        self._body: Body = ()
        self._selected_id: Optional[str] = None
        self._revision = 0
        self._saved_revision = 0
        self._listeners: List[SessionListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: SessionListener):
        self._listeners.append(listener)

    def _emit(self, event: str):
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def doc_id(self) -> Optional[str]:
        return self._doc_id

    @property
    def loaded(self) -> bool:
        return self._spec is not None

    @property
    def handler_name(self) -> str:
        return self._spec.name if self._spec is not None else ""

    @property
    def body(self) -> Body:
        return self._body

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def dirty(self) -> bool:
        with self._lock:
            return self._revision != self._saved_revision

    def selected_node(self) -> Optional[AstNode]:
        if self._selected_id is None:
            return None
        return find_node(self._body, self._selected_id)

    def load(self, doc_id: str, spec: HandlerSpec):
        """Start editing ``spec``: clean, nothing selected.

        Raises:
            DuplicateNodeIdError: two nodes in the document share an id.
        """
        ensure_unique_ids(spec.body)
        with self._lock:
            self._doc_id = doc_id
            self._spec = spec
            self._body = spec.body
            self._selected_id = None
            self._revision += 1
            self._saved_revision = self._revision
        logger.info(f"Loaded handler {spec.name} ({doc_id}) with {len(spec.body)} root nodes")
        self._emit(EVENT_LOADED)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, node_id: str) -> bool:
        """Focus a node. Ids that are not in the tree are ignored."""
        with self._lock:
            if find_node(self._body, node_id) is None:
                logger.debug(f"Ignoring selection of {node_id}: not in tree")
                return False
            self._selected_id = node_id
        self._emit(EVENT_SELECTION)
        return True

    def clear_selection(self):
        with self._lock:
            if self._selected_id is None:
                return
            self._selected_id = None
        self._emit(EVENT_SELECTION)

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def _commit(self, body: Body) -> bool:
        # Caller holds the lock. A tree with a repeated id is never committed.
        if body is self._body:
            return False
        ensure_unique_ids(body)
        self._body = body
        self._revision += 1
        if self._selected_id is not None and find_node(body, self._selected_id) is None:
            self._selected_id = None
        return True

    def _apply(self, edit: Callable[[Body], Body]) -> bool:
        with self._lock:
            changed = self._commit(edit(self._body))
        if changed:
            self._emit(EVENT_CHANGED)
        return changed

    def insert(self, parent_id: Optional[str], node: AstNode, index: Optional[int] = None) -> bool:
        """Insert a node; returns True if the tree changed.

        Raises:
            DuplicateNodeIdError: an id in the node's subtree is already in use.
        """
        return self._apply(lambda body: insert_node(body, parent_id, node, index))

    def remove(self, node_id: str) -> bool:
        return self._apply(lambda body: remove_node(body, node_id))

    def update_property(self, node_id: str, key: str, value: Any) -> bool:
        return self._apply(lambda body: update_node_property(body, node_id, key, value))

    def add_node(self, node_type: str, parent_id: Optional[str] = None,
                 index: Optional[int] = None, **values: Any) -> AstNode:
        """Create a node of ``node_type``, insert it and select it.

        Raises:
            UnknownNodeTypeError: the palette asked for an unsupported type.
        """
        node = create_node(node_type, **values)
        with self._lock:
            changed = self._commit(insert_node(self._body, parent_id, node, index))
            if changed:
                self._selected_id = node.id
        if changed:
            self._emit(EVENT_CHANGED)
            self._emit(EVENT_SELECTION)
        return node

    def delete_selected(self) -> bool:
        with self._lock:
            node_id = self._selected_id
        if node_id is None:
            return False
        return self.remove(node_id)

    # ------------------------------------------------------------------
    # Save support
    # ------------------------------------------------------------------

    def snapshot(self) -> Tuple[str, HandlerSpec, int]:
        """Document id, full spec with the current body, and its revision."""
        with self._lock:
            if self._spec is None or self._doc_id is None:
                raise SaveError("No handler is loaded")
            meta = dict(self._spec.meta)
            meta['maxTier'] = int(max_tier(self._body))
            bridges = bridge_languages(self._body)
            if bridges:
                meta['bridges'] = bridges
            else:
                meta.pop('bridges', None)
            meta['updatedAt'] = datetime.now(timezone.utc).isoformat()
            spec = replace(self._spec, body=self._body, meta=meta)
            return self._doc_id, spec, self._revision

    def mark_saved(self, doc_id: str, revision: int, spec: HandlerSpec) -> bool:
        """Record a successful save of ``revision`` of ``doc_id``.

        A save that finishes after another document (or a fresh copy of the
        same one) was loaded is ignored. Returns True if it was recorded.
        """
        with self._lock:
            if doc_id != self._doc_id or revision < self._saved_revision:
                logger.debug(f"Ignoring stale save of {doc_id} at revision {revision}")
                return False
            self._saved_revision = revision
            self._spec = replace(self._spec, meta=dict(spec.meta))
        self._emit(EVENT_SAVED)
        return True


class SaveCoordinator:
    """Single-flight saving with an optional auto-save quiet period.

    A save requested while another is running is not dropped: it is run
    again once the first finishes, against whatever the tree is by then. If
    the running save fails instead, the queued request is reported as a
    warning toast and the session stays dirty.
    """

    def __init__(self, session: EditorSession, store: HandlerStore,
                 notifications: Optional[NotificationCenter] = None,
                 autosave_delay: float = DEFAULT_AUTOSAVE_SECONDS,
                 timer_factory: Optional[TimerFactory] = None):
        self.session = session
        self.store = store
        self.notifications = notifications
        self._lock = threading.Lock()
        self._saving = False
        self._save_requested = False
        self._autosave = Debouncer(autosave_delay, self._run_autosave, timer_factory)

    @property
    def saving(self) -> bool:
        with self._lock:
            return self._saving

    def save(self) -> bool:
        """Save now. Returns False if the request was deferred to a running save.

        Raises:
            SaveError: the write failed; the session stays dirty.
        """
        with self._lock:
            if self._saving:
                logger.debug("Save already in progress; deferring request")
                self._save_requested = True
                return False
            self._saving = True

        first = True
        while True:
            if first or self.session.dirty:
                try:
                    self._write_once()
                except SaveError:
                    with self._lock:
                        self._saving = False
                        dropped = self._save_requested
                        self._save_requested = False
                    if dropped:
                        self._report_dropped_request()
                    raise
            first = False
            with self._lock:
                if not self._save_requested:
                    self._saving = False
                    return True
                self._save_requested = False

    def _write_once(self):
        doc_id, spec, revision = self.session.snapshot()
        try:
            self.store.write_handler(doc_id, spec)
        except HandlerStoreError as e:
            logger.error(f"Failed to save handler {spec.name}: {e}")
            if self.notifications is not None:
                self.notifications.error(f"Failed to save {spec.name}: {e}")
            raise SaveError(str(e), doc_id) from e
        self.session.mark_saved(doc_id, revision, spec)
        if self.notifications is not None:
            self.notifications.success(f"Saved handler: {spec.name}")

    def _report_dropped_request(self):
        logger.warning("A deferred save request was dropped because the running save failed")
        if self.notifications is not None:
            self.notifications.warning("A queued save did not run because the previous save failed; changes are still unsaved")

    # ------------------------------------------------------------------
    # Auto-save
    # ------------------------------------------------------------------

    def schedule_autosave(self):
        self._autosave.trigger()

    def flush_autosave(self) -> bool:
        return self._autosave.flush()

    def cancel_autosave(self):
        self._autosave.cancel()

    def _run_autosave(self):
        if not self.session.dirty:
            return
        try:
            self.save()
        except SaveError as e:
            # Already logged and reported; the session stays dirty for a retry.
            logger.debug(f"Auto-save failed: {e}")
