"""
Shared fixtures: deterministic timers, a manually driven executor and
in-memory collaborators for the editor.
"""

from concurrent.futures import Future
from typing import Callable, Dict, List, Optional

import pytest
from hypothesis import strategies as st

from handler_editor_core.code_generator import CodeGenerator, GenerationResult
from handler_editor_core.exceptions import HandlerStoreError
from handler_editor_core.handler_store import HandlerStore
from handler_editor_core.models import (
    CallExpression, CtxGet, DbQuery, HandlerSpec, Identifier, IfStatement, LetStatement,
    Literal, MatchArm, MatchStatement, NativeBridge, ObjectExpression, ObjectProperty,
    TryCatchStatement,
)
from handler_editor_core.notifications import NotificationCenter
from handler_editor_core.targets import LANGUAGES


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval: float, function: Callable[[], None]):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def live(self) -> bool:
        return self.started and not self.cancelled and not self.fired


class FakeTimers:
    """Timer factory that records every timer it creates."""

    def __init__(self):
        self.created: List[FakeTimer] = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer

    def live(self) -> List[FakeTimer]:
        return [t for t in self.created if t.live]

    def fire_all(self) -> int:
        fired = 0
        for timer in self.live():
            timer.fired = True
            timer.function()
            fired += 1
        return fired


class FakeExecutor:
    """Executor whose submitted calls stay pending until resolved by the test."""

    def __init__(self):
        self.calls = []
        self.shut_down = False

    def submit(self, fn, *args, **kwargs):
        if self.shut_down:
            raise RuntimeError("cannot schedule new futures after shutdown")
        future = Future()
        self.calls.append((future, fn, args, kwargs))
        return future

    def run(self, index: int):
        """Execute the recorded call and complete its future."""
        future, fn, args, kwargs = self.calls[index]
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    def resolve(self, index: int, result):
        self.calls[index][0].set_result(result)

    def fail(self, index: int, error: Exception):
        self.calls[index][0].set_exception(error)

    def run_all(self):
        for index, call in enumerate(self.calls):
            if not call[0].done():
                self.run(index)

    def shutdown(self, wait=True):
        self.shut_down = True


class FakeGenerator(CodeGenerator):
    """Records requests and answers with a configurable result."""

    def __init__(self, result=None):
        self.result = result if result is not None else "// generated"
        self.requests = []
        self.generated = []

    def preview_code(self, language, framework):
        self.requests.append((language, framework))
        if isinstance(self.result, Exception):
            raise self.result
        if callable(self.result):
            return self.result(language, framework)
        return self.result

    def generate_project(self, output_dir, language, framework):
        self.generated.append((output_dir, language, framework))
        if isinstance(self.result, Exception):
            raise self.result
        return GenerationResult(output_dir=output_dir, file_count=3)


class MemoryStore(HandlerStore):
    """Keeps documents in a dict; ``fail`` makes writes raise, ``on_write`` runs mid-write."""

    def __init__(self, docs: Optional[Dict[str, HandlerSpec]] = None):
        self.docs: Dict[str, HandlerSpec] = dict(docs or {})
        self.writes: List[HandlerSpec] = []
        self.fail = False
        self.on_write: Optional[Callable[[], None]] = None

    def read_handler(self, doc_id):
        try:
            return self.docs[doc_id]
        except KeyError:
            raise HandlerStoreError(f"Handler not found: {doc_id}", doc_id) from None

    def write_handler(self, doc_id, spec):
        if self.on_write is not None:
            hook, self.on_write = self.on_write, None
            hook()
        if self.fail:
            raise HandlerStoreError("disk full", doc_id)
        self.writes.append(spec)
        self.docs[doc_id] = spec


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def sample_spec():
    return HandlerSpec(
        name="getUser",
        description="Fetch one user",
        body=(
            LetStatement("user", DbQuery("User", "findUnique", CtxGet("id"))),
            IfStatement(Identifier("user"), body=(Literal("found"),)),
        ),
    )


@pytest.fixture
def store(sample_spec):
    return MemoryStore({"handlers/getUser.handler.json": sample_spec})


# ---------------------------------------------------------------------------
# Tree strategies
# ---------------------------------------------------------------------------

names = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=6)

leaf_nodes = st.one_of(
    st.builds(Literal, st.one_of(st.integers(), st.text(max_size=8), st.booleans(), st.none())),
    st.builds(Identifier, names),
    st.builds(CtxGet, names),
)


def _extend(children):
    child_lists = st.lists(children, max_size=3)
    optional = st.none() | children
    return st.one_of(
        st.builds(LetStatement, names, optional, st.booleans()),
        st.builds(IfStatement, optional, child_lists, st.lists(children, max_size=2)),
        st.builds(TryCatchStatement, child_lists, names, child_lists),
        st.builds(CallExpression, optional, child_lists),
        st.builds(DbQuery, names, st.just("findMany"), optional),
        st.builds(MatchStatement, optional,
                  st.lists(st.builds(MatchArm, names, child_lists), max_size=2)),
        st.builds(ObjectExpression,
                  st.lists(st.builds(ObjectProperty, names, optional), max_size=2)),
        st.builds(NativeBridge, st.sampled_from(LANGUAGES), names, names, child_lists),
    )


ast_nodes = st.recursive(leaf_nodes, _extend, max_leaves=10)
trees = st.lists(ast_nodes, max_size=4).map(tuple)
