"""
Unit tests for the preview orchestrator: debounce, latest-wins application,
file choice and error handling.
"""

from hypothesis import given, strategies as st

from handler_editor_core.exceptions import GeneratorError
from handler_editor_core.preview import (
    EMPTY_PLACEHOLDER, LOADING_PLACEHOLDER, PreviewOrchestrator, PreviewPhase,
)
from handler_editor_core.targets import PreviewTarget

from conftest import FakeExecutor, FakeGenerator, FakeTimers


def make_orchestrator(timers, executor, generator=None, **kwargs):
    return PreviewOrchestrator(
        generator or FakeGenerator(),
        timer_factory=timers,
        executor=executor,
        **kwargs,
    )


class TestScheduling:
    """Test cases for the idle -> scheduled -> in-flight -> idle cycle."""

    def test_initial_state(self, timers, executor):
        """Nothing is requested before the first change."""
        preview = make_orchestrator(timers, executor)
        state = preview.state()
        assert state.phase is PreviewPhase.IDLE
        assert state.source == LOADING_PLACEHOLDER
        assert state.target == PreviewTarget("typescript", "express")
        assert executor.calls == []

    def test_change_waits_for_quiet_period(self, timers, executor):
        """A change schedules a request but does not issue it yet."""
        preview = make_orchestrator(timers, executor)
        preview.notify_changed()
        assert preview.state().phase is PreviewPhase.SCHEDULED
        assert executor.calls == []
        timers.fire_all()
        assert len(executor.calls) == 1
        state = preview.state()
        assert state.phase is PreviewPhase.IN_FLIGHT
        assert state.loading

    def test_burst_issues_one_request(self, timers, executor):
        """Several changes inside the window produce exactly one request."""
        generator = FakeGenerator("// v1")
        preview = make_orchestrator(timers, executor, generator)
        for _ in range(4):
            preview.notify_changed()
        timers.fire_all()
        assert len(executor.calls) == 1
        executor.run(0)
        state = preview.state()
        assert state.phase is PreviewPhase.IDLE
        assert state.source == "// v1"
        assert not state.loading
        assert generator.requests == [("typescript", "express")]

    def test_change_during_flight_reschedules(self, timers, executor):
        """An edit while a request is in flight schedules another one."""
        preview = make_orchestrator(timers, executor)
        preview.notify_changed()
        timers.fire_all()
        preview.notify_changed()
        executor.resolve(0, "// first")
        # The first response is still the latest issued, but a new request is pending.
        assert preview.state().source == "// first"
        assert preview.state().phase is PreviewPhase.SCHEDULED
        timers.fire_all()
        assert preview.issued_requests == 2

    def test_refresh_now(self, timers, executor):
        """Refresh skips the remaining quiet period."""
        preview = make_orchestrator(timers, executor)
        preview.notify_changed()
        preview.refresh_now()
        assert len(executor.calls) == 1
        assert timers.fire_all() == 0
        preview.refresh_now()
        assert len(executor.calls) == 2

    def test_on_update_receives_snapshots(self, timers, executor):
        """Listeners see each applied result."""
        seen = []
        preview = make_orchestrator(timers, executor, FakeGenerator("// x"), on_update=seen.append)
        preview.notify_changed()
        timers.fire_all()
        executor.run(0)
        assert [s.source for s in seen] == ["// x"]
        assert seen[0].to_dict()["phase"] == "idle"


class TestRaceResolution:
    """Test cases for latest-wins response handling."""

    def test_late_stale_response_discarded(self, timers, executor):
        """R1 arriving after R2 does not replace R2's result."""
        preview = make_orchestrator(timers, executor)
        preview.notify_changed()
        timers.fire_all()
        preview.notify_changed()
        timers.fire_all()
        executor.resolve(1, "// R2")
        executor.resolve(0, "// R1")
        assert preview.state().source == "// R2"
        assert preview.state().sequence == 2

    def test_early_stale_response_discarded(self, timers, executor):
        """R1 arriving before R2 is not shown either."""
        preview = make_orchestrator(timers, executor)
        preview.notify_changed()
        timers.fire_all()
        preview.notify_changed()
        timers.fire_all()
        executor.resolve(0, "// R1")
        assert preview.state().source == LOADING_PLACEHOLDER
        assert preview.state().loading
        executor.resolve(1, "// R2")
        assert preview.state().source == "// R2"

    def test_stale_failure_ignored(self, timers, executor):
        """A failing superseded request does not show an error."""
        preview = make_orchestrator(timers, executor)
        preview.notify_changed()
        timers.fire_all()
        preview.notify_changed()
        timers.fire_all()
        executor.resolve(1, "// ok")
        executor.fail(0, GeneratorError("boom"))
        state = preview.state()
        assert state.error is None
        assert state.source == "// ok"

    @given(st.permutations(list(range(5))))
    def test_latest_wins_in_any_order(self, order):
        """Whatever order responses arrive in, the last request's result is shown."""
        timers, executor = FakeTimers(), FakeExecutor()
        preview = make_orchestrator(timers, executor)
        for _ in range(5):
            preview.notify_changed()
            timers.fire_all()
        for index in order:
            executor.resolve(index, f"// R{index + 1}")
        assert preview.state().source == "// R5"
        assert preview.state().phase is PreviewPhase.IDLE


class TestTargetsAndFiles:
    """Test cases for target switching and file choice."""

    FILES = {
        "src/main.rs": "fn main() {}",
        "src/handlers/get_user.rs": "pub async fn get_user() {}",
    }

    def test_switch_target_issues_one_request(self, timers, executor):
        """Switching to rust/axum with no tree change issues exactly one request."""
        generator = FakeGenerator(dict(self.FILES))
        preview = make_orchestrator(timers, executor, generator, artifact_name="get_user")
        preview.set_target(PreviewTarget("rust", "axum"))
        timers.fire_all()
        assert len(executor.calls) == 1
        executor.run(0)
        assert generator.requests == [("rust", "axum")]
        state = preview.state()
        assert state.selected_file == "src/handlers/get_user.rs"
        assert state.source == "pub async fn get_user() {}"

    def test_same_target_is_noop(self, timers, executor):
        """Selecting the current target schedules nothing."""
        preview = make_orchestrator(timers, executor)
        preview.set_target(PreviewTarget("typescript", "express"))
        assert timers.created == []

    def test_language_switch_picks_first_framework(self, timers, executor):
        """A framework not offered by the new language is replaced by its first one."""
        preview = make_orchestrator(timers, executor)
        preview.set_language("go")
        assert preview.target == PreviewTarget("go", "gin")
        preview.set_framework("fiber")
        assert preview.target.framework == "fiber"

    def test_name_match_is_case_insensitive(self, timers, executor):
        """The artifact name matches file names regardless of case."""
        files = {"index.ts": "a", "handlers/GetUser.ts": "b"}
        preview = make_orchestrator(timers, executor, FakeGenerator(files), artifact_name="getuser")
        preview.notify_changed()
        timers.fire_all()
        executor.run(0)
        assert preview.state().selected_file == "handlers/GetUser.ts"

    def test_falls_back_to_first_file(self, timers, executor):
        """Without a name match the first file in generator order is shown."""
        files = {"z.ts": "z", "a.ts": "a"}
        preview = make_orchestrator(timers, executor, FakeGenerator(files), artifact_name="other")
        preview.notify_changed()
        timers.fire_all()
        executor.run(0)
        assert preview.state().selected_file == "z.ts"
        assert preview.state().to_dict()["files"] == ["z.ts", "a.ts"]

    def test_empty_file_set(self, timers, executor):
        """An empty result shows the empty placeholder."""
        preview = make_orchestrator(timers, executor, FakeGenerator({}))
        preview.refresh_now()
        executor.run(0)
        assert preview.state().source == EMPTY_PLACEHOLDER

    def test_pinned_file_survives_edits_not_target_switch(self, timers, executor):
        """A chosen file stays selected across edits; a target switch clears it."""
        files = {"index.ts": "index", "handlers/getUser.ts": "handler"}
        preview = make_orchestrator(timers, executor, FakeGenerator(files), artifact_name="getUser")
        preview.refresh_now()
        executor.run(0)
        assert preview.select_file("index.ts")
        assert not preview.select_file("missing.ts")
        preview.notify_changed()
        timers.fire_all()
        executor.run(1)
        assert preview.state().selected_file == "index.ts"
        preview.set_target(PreviewTarget("typescript", "hono"))
        timers.fire_all()
        executor.run(2)
        assert preview.state().selected_file == "handlers/getUser.ts"


class TestErrors:
    """Test cases for generator failures."""

    def test_error_placeholder_then_recovery(self, timers, executor):
        """A failure shows a placeholder; the next success clears it."""
        generator = FakeGenerator(GeneratorError("generator offline"))
        preview = make_orchestrator(timers, executor, generator)
        preview.notify_changed()
        timers.fire_all()
        executor.run(0)
        state = preview.state()
        assert state.error == "generator offline"
        assert state.source == "// Preview error: generator offline"
        assert not state.loading
        assert state.phase is PreviewPhase.IDLE

        generator.result = "// fixed"
        preview.retry()
        timers.fire_all()
        executor.run(1)
        assert preview.state().error is None
        assert preview.state().source == "// fixed"

    def test_shut_down_executor(self, timers, executor):
        """A request after close is reported as an error instead of raising."""
        preview = make_orchestrator(timers, executor)
        executor.shutdown()
        preview.refresh_now()
        assert preview.state().error is not None
        assert preview.state().source.startswith("// Preview error:")
