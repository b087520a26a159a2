"""
Preview Orchestrator - keeps one rendered-source view in step with the tree.

Lifecycle of a regeneration::

    IDLE --change--> SCHEDULED --quiet period--> IN_FLIGHT --latest response--> IDLE
                        ^   |                        |
                        +---+ change restarts        +--change--> SCHEDULED
                              the quiet period

Every request that leaves the orchestrator gets the next number from a
monotonic counter. A response is applied only when its number is still the
highest issued; anything older is dropped, whatever order responses arrive
in. In-flight requests are never cancelled, only ignored.
"""

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Optional
import logging
import threading

from .code_generator import CodeGenerator, PreviewResult
from .debounce import Debouncer, TimerFactory
from .targets import PreviewTarget

logger = logging.getLogger(__name__)

LOADING_PLACEHOLDER = "// Loading preview..."
EMPTY_PLACEHOLDER = "// No preview available"
DEFAULT_DEBOUNCE_SECONDS = 0.3


class PreviewPhase(Enum):
    """Where the orchestrator is in its request cycle."""
    IDLE = "idle"
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"


@dataclass
class PreviewState:
    """Snapshot of what the preview pane should show."""
    phase: PreviewPhase
    target: PreviewTarget
    source: str
    files: Dict[str, str] = field(default_factory=dict)
    selected_file: str = ""
    loading: bool = False
    error: Optional[str] = None
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'target': self.target.to_dict(),
            'source': self.source,
            'files': list(self.files),
            'selectedFile': self.selected_file,
            'loading': self.loading,
            'error': self.error,
            'sequence': self.sequence,
        }


class PreviewOrchestrator:
    """Debounced, latest-wins preview regeneration for one editing session."""

    def __init__(self, generator: CodeGenerator, target: Optional[PreviewTarget] = None,
                 artifact_name: str = "", debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
                 timer_factory: Optional[TimerFactory] = None,
                 executor: Optional[Executor] = None,
                 on_update: Optional[Callable[[PreviewState], None]] = None):
        self._generator = generator
        self._target = target or PreviewTarget()
        self._artifact_name = artifact_name
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix='preview')
        self._debouncer = Debouncer(debounce_seconds, self._issue_request, timer_factory)
        self.on_update = on_update

        self._lock = threading.RLock()
        self._phase = PreviewPhase.IDLE
        self._issued = 0
        self._source = LOADING_PLACEHOLDER
        self._files: Dict[str, str] = {}
        self._selected_file = ""
        self._pinned_file: Optional[str] = None
        self._loading = False
        self._error: Optional[str] = None

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def target(self) -> PreviewTarget:
        return self._target

    @property
    def artifact_name(self) -> str:
        return self._artifact_name

    @artifact_name.setter
    def artifact_name(self, name: str):
        with self._lock:
            self._artifact_name = name

    @property
    def issued_requests(self) -> int:
        return self._issued

    def notify_changed(self):
        """The tree changed; regenerate after the quiet period."""
        self._schedule()

    def set_target(self, target: PreviewTarget):
        """Switch (language, framework). A no-op when the target is unchanged."""
        with self._lock:
            if target == self._target:
                return
            logger.info(f"Preview target {self._target.language}/{self._target.framework} "
                        f"-> {target.language}/{target.framework}")
            self._target = target
            self._pinned_file = None
        self._schedule()

    def set_language(self, language: str):
        self.set_target(self._target.with_language(language))

    def set_framework(self, framework: str):
        self.set_target(self._target.with_framework(framework))

    def retry(self):
        """Regenerate through the normal debounce path (e.g. after an error)."""
        self._schedule()

    def refresh_now(self):
        """Skip the remaining quiet period and issue the request immediately."""
        if not self._debouncer.flush():
            self._issue_request()

    def select_file(self, name: str) -> bool:
        """Show another file of the current result and keep it across edits."""
        with self._lock:
            if name not in self._files:
                return False
            self._pinned_file = name
            self._selected_file = name
            self._source = self._files[name]
            snapshot = self._snapshot()
        self._notify(snapshot)
        return True

    def close(self):
        self._debouncer.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def state(self) -> PreviewState:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> PreviewState:
        return PreviewState(
            phase=self._phase,
            target=self._target,
            source=self._source,
            files=dict(self._files),
            selected_file=self._selected_file,
            loading=self._loading,
            error=self._error,
            sequence=self._issued,
        )

    def _notify(self, snapshot: PreviewState):
        if self.on_update is not None:
            self.on_update(snapshot)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _schedule(self):
        with self._lock:
            self._phase = PreviewPhase.SCHEDULED
        self._debouncer.trigger()

    def _issue_request(self):
        with self._lock:
            self._issued += 1
            sequence = self._issued
            target = self._target
            self._phase = PreviewPhase.IN_FLIGHT
            self._loading = True
        logger.debug(f"Preview request #{sequence} for {target.language}/{target.framework}")
        try:
            future = self._executor.submit(self._generator.preview_code, target.language, target.framework)
        except RuntimeError as e:
            # Executor already shut down
            self._apply(sequence, None, e)
            return
        future.add_done_callback(partial(self._on_done, sequence))

    def _on_done(self, sequence: int, future: Future):
        try:
            result = future.result()
        except Exception as e:
            self._apply(sequence, None, e)
        else:
            self._apply(sequence, result, None)

    def _apply(self, sequence: int, result: Optional[PreviewResult], error: Optional[BaseException]):
        with self._lock:
            if sequence != self._issued:
                logger.debug(f"Discarding stale preview response #{sequence} (latest is #{self._issued})")
                return
            self._loading = False
            if self._phase is PreviewPhase.IN_FLIGHT:
                self._phase = PreviewPhase.IDLE
            if error is not None:
                logger.warning(f"Preview request #{sequence} failed: {error}")
                self._error = str(error) or type(error).__name__
                self._files = {}
                self._selected_file = ""
                self._source = f"// Preview error: {self._error}"
            else:
                self._error = None
                self._show(result)
            snapshot = self._snapshot()
        self._notify(snapshot)

    def _show(self, result: PreviewResult):
        if isinstance(result, str):
            self._files = {}
            self._selected_file = ""
            self._source = result
            return
        self._files = dict(result)
        name = self._choose_file(self._files)
        self._selected_file = name
        self._source = self._files[name] if name else EMPTY_PLACEHOLDER

    def _choose_file(self, files: Dict[str, str]) -> str:
        """Pinned file if still present, else a name match on the artifact, else the first."""
        if self._pinned_file in files:
            return self._pinned_file
        needle = self._artifact_name.lower()
        if needle:
            for name in files:
                if needle in name.lower():
                    return name
        return next(iter(files), "")
