"""
Unit tests for the window state reconciler.

Tests cover restore planning, observation merging, and applying plans to windows.
"""

import pytest

from tests.fakes import FakeBackend, FakeWindow
from window_state_daemon.models.geometry import Rect, RestorePlan, WindowContext, WindowObservation
from window_state_daemon.models.rule import WindowAppRule
from window_state_daemon.models.saved_state import SavedState
from window_state_daemon.services.reconciler import Reconciler, merge_observation, plan_restore

AREA = Rect(0, 0, 1920, 1080)


def make_context(frame=Rect(0, 0, 800, 600), maximized=False, siblings=None, workspace_index=0, active=0, count=4):
    return WindowContext(
        frame=frame,
        maximized=maximized,
        work_area=AREA,
        workspace_index=workspace_index,
        active_workspace_index=active,
        workspace_count=count,
        siblings=siblings or [],
    )


def make_rule(**flags) -> WindowAppRule:
    return WindowAppRule(class_pattern="firefox", **flags)


GEOMETRY_RULE = make_rule(restore_size=True, restore_pos=True)


class TestPlanRestore:
    """Test the restore algorithm."""

    def test_round_trip_saved_geometry(self):
        saved = SavedState(x=100, y=100, width=800, height=600)

        plan = plan_restore(GEOMETRY_RULE, saved, make_context(frame=Rect(0, 0, 300, 200)))

        assert plan.target == Rect(100, 100, 800, 600)
        assert plan.center_only is False
        assert plan.apply_geometry is True

    def test_no_axis_enabled_centers(self):
        plan = plan_restore(make_rule(), SavedState(x=5, y=5), make_context(frame=Rect(0, 0, 800, 600)))

        assert plan.center_only is True
        assert plan.x == 560
        assert plan.target == Rect(560, 240, 800, 600)

    def test_switch_to_workspace_alone_is_not_an_axis(self):
        plan = plan_restore(make_rule(switch_to_workspace=True), SavedState(workspace=2), make_context())

        assert plan.center_only is True

    def test_offscreen_saved_position_falls_back_to_center(self):
        saved = SavedState(x=-5000, y=100, width=800, height=600)

        plan = plan_restore(GEOMETRY_RULE, saved, make_context())

        assert (plan.x, plan.y) == (560, 240)

    def test_collision_with_sibling_of_same_class(self):
        saved = SavedState(x=560, y=400, width=800, height=600)
        ctx = make_context(siblings=[Rect(560, 400, 800, 600)])

        plan = plan_restore(GEOMETRY_RULE, saved, ctx)

        assert (plan.x, plan.y) == (610, 450)

    def test_tiny_saved_size_is_ignored(self):
        saved = SavedState(x=100, y=100, width=40, height=600)

        plan = plan_restore(GEOMETRY_RULE, saved, make_context(frame=Rect(0, 0, 640, 480)))

        assert (plan.width, plan.height) == (640, 480)
        assert (plan.x, plan.y) == (100, 100)

    def test_size_only_rule_centers_saved_size(self):
        saved = SavedState(x=100, y=100, width=1000, height=800)

        plan = plan_restore(make_rule(restore_size=True), saved, make_context())

        assert plan.target == Rect(460, 140, 1000, 800)

    def test_result_is_clamped(self):
        saved = SavedState(x=1860, y=1020, width=800, height=600)
        ctx = make_context(siblings=[Rect(1860, 1020, 800, 600)])

        plan = plan_restore(GEOMETRY_RULE, saved, ctx)

        assert (plan.x, plan.y) == (1870, 1030)

    def test_maximized_window_left_alone_without_maximized_axis(self):
        plan = plan_restore(GEOMETRY_RULE, SavedState(x=1, y=1, width=800, height=600), make_context(maximized=True))

        assert plan.apply_geometry is False
        assert plan.unmaximize is False
        assert plan.maximize is False

    def test_maximized_window_unmaximized_with_maximized_axis(self):
        rule = make_rule(restore_size=True, restore_maximized=True)

        plan = plan_restore(rule, SavedState(width=800, height=600, maximized=False), make_context(maximized=True))

        assert plan.apply_geometry is True
        assert plan.unmaximize is True
        assert plan.maximize is False

    def test_saved_maximized_is_reapplied(self):
        plan = plan_restore(make_rule(restore_maximized=True), SavedState(maximized=True), make_context())

        assert plan.maximize is True

    def test_workspace_restored_and_activated(self):
        rule = make_rule(restore_workspace=True, switch_to_workspace=True)

        plan = plan_restore(rule, SavedState(workspace=2), make_context(active=0))

        assert plan.workspace == 2
        assert plan.activate_workspace is True

    def test_workspace_already_active_not_activated(self):
        rule = make_rule(restore_workspace=True, switch_to_workspace=True)

        plan = plan_restore(rule, SavedState(workspace=2), make_context(active=2))

        assert plan.workspace == 2
        assert plan.activate_workspace is False

    @pytest.mark.parametrize("workspace", [None, -1, 4, 12])
    def test_invalid_workspace_ignored(self, workspace):
        rule = make_rule(restore_workspace=True, switch_to_workspace=True)

        plan = plan_restore(rule, SavedState(workspace=workspace), make_context(count=4))

        assert plan.workspace is None
        assert plan.activate_workspace is False

    def test_flags_need_rule_and_saved_value(self):
        rule = make_rule(restore_sticky=True, restore_minimized=True)
        saved = SavedState(sticky=True, above=True, minimized=False)

        plan = plan_restore(rule, saved, make_context())

        assert plan.sticky is True
        assert plan.above is None
        assert plan.minimized is False

    def test_absent_flag_left_alone(self):
        plan = plan_restore(make_rule(restore_above=True), SavedState(), make_context())

        assert plan.above is None


class TestMergeObservation:
    """Test merging a live observation into saved state."""

    def observe(self, frame=Rect(100, 100, 800, 600), **flags):
        return WindowObservation(frame=frame, **flags)

    def test_geometry_written_when_enabled(self):
        state = SavedState()

        changed = merge_observation(state, GEOMETRY_RULE, self.observe())

        assert changed is True
        assert (state.x, state.y, state.width, state.height) == (100, 100, 800, 600)
        assert state.maximized is None

    def test_disabled_axes_not_written(self):
        state = SavedState()

        changed = merge_observation(state, make_rule(restore_size=True), self.observe(sticky=True, workspace_index=2))

        assert changed is True
        assert (state.width, state.height) == (800, 600)
        assert state.x is None
        assert state.sticky is None
        assert state.workspace is None

    def test_maximized_writes_only_the_flag(self):
        rule = make_rule(restore_size=True, restore_pos=True, restore_maximized=True)
        state = SavedState(x=100, y=100, width=800, height=600, maximized=False)

        changed = merge_observation(state, rule, self.observe(frame=Rect(0, 0, 1920, 1080), maximized=True))

        assert changed is True
        assert state.maximized is True
        assert (state.x, state.y, state.width, state.height) == (100, 100, 800, 600)

    def test_maximized_without_maximized_axis_writes_nothing(self):
        state = SavedState(x=100, y=100, width=800, height=600)

        changed = merge_observation(state, GEOMETRY_RULE, self.observe(frame=Rect(0, 0, 1920, 1080), maximized=True))

        assert changed is False
        assert state == SavedState(x=100, y=100, width=800, height=600)

    def test_unmaximized_writes_geometry_and_false(self):
        rule = make_rule(restore_size=True, restore_pos=True, restore_maximized=True)
        state = SavedState(maximized=True)

        merge_observation(state, rule, self.observe())

        assert state.maximized is False
        assert (state.x, state.y, state.width, state.height) == (100, 100, 800, 600)

    def test_small_frame_size_not_saved(self):
        state = SavedState(width=800, height=600)

        changed = merge_observation(state, make_rule(restore_size=True), self.observe(frame=Rect(0, 0, 50, 600)))

        assert changed is False
        assert (state.width, state.height) == (800, 600)

    def test_far_offscreen_position_not_saved(self):
        state = SavedState(x=100, y=100)

        changed = merge_observation(state, make_rule(restore_pos=True), self.observe(frame=Rect(-32000, -32000, 800, 600)))

        assert changed is False
        assert (state.x, state.y) == (100, 100)

    def test_unchanged_values_report_no_change(self):
        state = SavedState(x=100, y=100, width=800, height=600)

        assert merge_observation(state, GEOMETRY_RULE, self.observe()) is False

    def test_workspace_and_flags(self):
        rule = make_rule(restore_workspace=True, restore_minimized=True, restore_above=True, restore_sticky=True)
        state = SavedState()

        merge_observation(state, rule, self.observe(minimized=True, above=False, sticky=True, workspace_index=3))

        assert state.workspace == 3
        assert state.minimized is True
        assert state.above is False
        assert state.sticky is True

    def test_no_workspace_not_saved(self):
        state = SavedState(workspace=1)

        merge_observation(state, make_rule(restore_workspace=True), self.observe(workspace_index=-1))

        assert state.workspace == 1


class TestReconciler:
    """Test applying plans through the windowing backend."""

    @pytest.fixture
    def backend(self):
        return FakeBackend()

    @pytest.fixture
    def reconciler(self, backend, state_store):
        return Reconciler(backend, state_store)

    @pytest.mark.asyncio
    async def test_apply_saved_state(self, backend, reconciler, state_store):
        state_store.put("firefox", SavedState(x=100, y=100, width=800, height=600))
        window = backend.add_window(FakeWindow(1))

        plan = await reconciler.apply_saved_state(window, "firefox", GEOMETRY_RULE)

        assert plan.target == Rect(100, 100, 800, 600)
        assert window.calls == [("move_resize_frame", 100, 100, 800, 600)]

    @pytest.mark.asyncio
    async def test_center_only_moves_without_resize(self, backend, reconciler):
        window = backend.add_window(FakeWindow(1, frame=Rect(0, 0, 800, 600)))

        await reconciler.apply_saved_state(window, "firefox", make_rule())

        assert window.calls == [("move_frame", 560, 240)]

    @pytest.mark.asyncio
    async def test_command_order(self, backend, reconciler, state_store):
        rule = make_rule(
            restore_size=True,
            restore_maximized=True,
            restore_workspace=True,
            restore_sticky=True,
            restore_above=True,
            restore_minimized=True,
        )
        state_store.put(
            "firefox",
            SavedState(width=800, height=600, maximized=True, workspace=1, sticky=True, above=True, minimized=False),
        )
        window = backend.add_window(FakeWindow(1))
        window.is_maximized = True

        await reconciler.apply_saved_state(window, "firefox", rule)

        assert window.call_names() == [
            "unmaximize",
            "move_resize_frame",
            "change_workspace",
            "stick",
            "make_above",
            "unminimize",
            "maximize",
        ]

    @pytest.mark.asyncio
    async def test_no_work_area_aborts(self, backend, reconciler):
        window = backend.add_window(FakeWindow(1))
        backend.work_area = None

        assert await reconciler.apply_saved_state(window, "firefox", GEOMETRY_RULE) is None
        assert window.calls == []

    @pytest.mark.asyncio
    async def test_window_gone_during_restore(self, backend, reconciler):
        window = backend.add_window(FakeWindow(1))
        window.gone = True
        plan = RestorePlan(x=1, y=2, width=800, height=600)

        assert await reconciler.execute_restore(window, "firefox", plan) is False

    @pytest.mark.asyncio
    async def test_center_window(self, backend, reconciler):
        window = backend.add_window(FakeWindow(1, frame=Rect(5, 5, 800, 600)))

        assert await reconciler.center_window(window) is True
        assert window.frame == Rect(560, 240, 800, 600)

    @pytest.mark.asyncio
    async def test_center_window_without_workspace(self, backend, reconciler):
        window = backend.add_window(FakeWindow(1, workspace_index=-1))

        assert await reconciler.center_window(window) is False
        assert window.calls == []

    def test_snapshot_writes_only_on_change(self, reconciler, state_store, settings_store):
        writes = []
        settings_store.connect("window-app-states", writes.append)
        observed = WindowObservation(frame=Rect(100, 100, 800, 600))

        assert reconciler.snapshot(GEOMETRY_RULE, "firefox", observed) is True
        assert reconciler.snapshot(GEOMETRY_RULE, "firefox", observed) is False

        assert len(writes) == 1
        assert state_store.get("firefox") == SavedState(x=100, y=100, width=800, height=600)

    def test_snapshot_keeps_entry_with_invalid_field(self, reconciler, state_store, write_states):
        write_states({
            "firefox": {
                "x": 100, "y": 100, "width": 800, "height": 600,
                "workspace": 2, "maximized": "sometimes", "future_field": 7,
            }
        })
        observed = WindowObservation(frame=Rect(5, 5, 300, 200), sticky=True)

        assert reconciler.snapshot(make_rule(restore_sticky=True), "firefox", observed) is True

        assert state_store.load_all()["firefox"] == {
            "x": 100, "y": 100, "width": 800, "height": 600,
            "workspace": 2, "sticky": True, "future_field": 7,
        }
