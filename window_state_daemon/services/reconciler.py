"""
Window State Reconciler

Computes and applies the first restoration of a window, and merges live
observations back into the persisted per-class state.

Restore algorithm:
1. No restoration axis enabled → center on the work area
2. Target size: saved size if enabled and sane, else current frame size
3. Target position: centered default, saved corner if enabled and valid
4. Step away from same-class windows on the same corner
5. Clamp so the title bar stays inside the work area
6. Geometry is left alone for maximized windows unless maximized
   restoration is enabled
7. Workspace move (activation is scheduled by the session)
8. Flags in order: sticky, above, minimized, maximized
"""

import logging
from typing import Optional

from ..backend.base import WindowBackend, WindowGoneError, WindowHandle
from ..constants import MIN_SANE_SIZE, NO_WORKSPACE, OFFSCREEN_LIMIT
from ..models.geometry import RestorePlan, WindowContext, WindowObservation
from ..models.rule import WindowAppRule
from ..models.saved_state import SavedState
from ..state_store import StateStore
from .positioning import center_in, clamp_to_work_area, find_free_position, is_point_in_work_area

logger = logging.getLogger(__name__)


def _sane_size(width: Optional[int], height: Optional[int]) -> bool:
    return width is not None and height is not None and width > MIN_SANE_SIZE and height > MIN_SANE_SIZE


def plan_restore(rule: WindowAppRule, saved: SavedState, ctx: WindowContext) -> RestorePlan:
    """Compute the restoration commands for one window."""
    area = ctx.work_area

    if not rule.needs_restore:
        x, y = center_in(area, ctx.frame.width, ctx.frame.height)
        return RestorePlan(x=x, y=y, width=ctx.frame.width, height=ctx.frame.height, center_only=True)

    width, height = ctx.frame.width, ctx.frame.height
    if rule.restore_size and _sane_size(saved.width, saved.height):
        width, height = saved.width, saved.height

    x, y = center_in(area, width, height)
    if rule.restore_position and saved.has_position and is_point_in_work_area(saved.x, saved.y, area):
        x, y = saved.x, saved.y

    x, y = find_free_position(x, y, ctx.siblings)
    x, y = clamp_to_work_area(x, y, area)

    plan = RestorePlan(
        x=x,
        y=y,
        width=width,
        height=height,
        apply_geometry=not ctx.maximized or rule.restore_maximized,
        unmaximize=ctx.maximized and rule.restore_maximized,
    )

    if rule.restore_workspace and saved.has_workspace and ctx.is_valid_workspace(saved.workspace):
        plan.workspace = saved.workspace
        plan.activate_workspace = rule.switch_to_workspace and saved.workspace != ctx.active_workspace_index

    if rule.restore_sticky and saved.sticky is not None:
        plan.sticky = saved.sticky
    if rule.restore_above and saved.above is not None:
        plan.above = saved.above
    if rule.restore_minimized and saved.minimized is not None:
        plan.minimized = saved.minimized

    plan.maximize = rule.restore_maximized and bool(saved.maximized)
    return plan


def merge_observation(state: SavedState, rule: WindowAppRule, observed: WindowObservation) -> bool:
    """Merge an observation into ``state`` in place.

    Only fields enabled by ``rule`` are written. A maximized window only
    writes ``maximized=True`` so the unmaximized geometry underneath is
    preserved.

    Returns:
        True if any field changed value
    """
    changed = False

    if rule.restore_workspace and observed.workspace_index != NO_WORKSPACE and state.workspace != observed.workspace_index:
        state.workspace = observed.workspace_index
        changed = True

    if rule.restore_minimized and state.minimized != observed.minimized:
        state.minimized = observed.minimized
        changed = True

    if rule.restore_above and state.above != observed.above:
        state.above = observed.above
        changed = True

    if rule.restore_sticky and state.sticky != observed.sticky:
        state.sticky = observed.sticky
        changed = True

    if observed.maximized:
        if rule.restore_maximized and state.maximized is not True:
            state.maximized = True
            changed = True
        return changed

    if rule.restore_maximized and state.maximized is not False:
        state.maximized = False
        changed = True

    frame = observed.frame
    if rule.restore_size and _sane_size(frame.width, frame.height):
        if (state.width, state.height) != (frame.width, frame.height):
            state.width = frame.width
            state.height = frame.height
            changed = True

    if rule.restore_position and frame.x > OFFSCREEN_LIMIT and frame.y > OFFSCREEN_LIMIT:
        if (state.x, state.y) != (frame.x, frame.y):
            state.x = frame.x
            state.y = frame.y
            changed = True

    return changed


class Reconciler:
    """Applies restore plans to windows and persists snapshots."""

    def __init__(self, backend: WindowBackend, state_store: StateStore) -> None:
        self.backend = backend
        self.state_store = state_store

    async def prepare_restore(
        self, window: WindowHandle, class_id: str, rule: WindowAppRule
    ) -> Optional[RestorePlan]:
        """Compute the restore plan, or None if the window has no work area."""
        ctx = await self.backend.describe(window)
        if ctx is None:
            logger.debug(f"No workspace/work area for {class_id} (window {window.window_id}), skipping restore")
            return None

        saved = self.state_store.get(class_id) if rule.needs_restore else SavedState()
        return plan_restore(rule, saved, ctx)

    async def execute_restore(self, window: WindowHandle, class_id: str, plan: RestorePlan) -> bool:
        """Issue the plan's commands. Returns False if the window vanished."""
        try:
            if plan.center_only:
                logger.debug(f"Centering {class_id}: {plan.width}x{plan.height} @ {plan.x},{plan.y}")
                await window.move_frame(plan.x, plan.y)
                return True

            logger.debug(f"Applying state for {class_id}: {plan.width}x{plan.height} @ {plan.x},{plan.y}")

            if plan.apply_geometry:
                if plan.unmaximize:
                    await window.unmaximize()
                await window.move_resize_frame(plan.x, plan.y, plan.width, plan.height)

            if plan.workspace is not None:
                await window.change_workspace(plan.workspace)

            if plan.sticky is not None:
                await (window.stick() if plan.sticky else window.unstick())

            if plan.above is not None:
                await (window.make_above() if plan.above else window.unmake_above())

            if plan.minimized is not None:
                await (window.minimize() if plan.minimized else window.unminimize())

            # Last, so the geometry step above doesn't undo it
            if plan.maximize:
                await window.maximize()

            return True

        except WindowGoneError as e:
            logger.debug(f"Window {window.window_id} ({class_id}) disappeared during restore: {e}")
            return False

    async def apply_saved_state(
        self, window: WindowHandle, class_id: str, rule: WindowAppRule
    ) -> Optional[RestorePlan]:
        """Compute and apply the restore plan in one step."""
        plan = await self.prepare_restore(window, class_id, rule)
        if plan is None:
            return None
        await self.execute_restore(window, class_id, plan)
        return plan

    async def center_window(self, window: WindowHandle) -> bool:
        """Center ``window`` on its monitor's work area.

        Returns False (not an error) if the window has no workspace.
        """
        ctx = await self.backend.describe(window)
        if ctx is None:
            return False

        x, y = center_in(ctx.work_area, ctx.frame.width, ctx.frame.height)
        logger.debug(f"Centering window {window.window_id}: {ctx.frame.width}x{ctx.frame.height} @ {x},{y}")
        try:
            await window.move_frame(x, y)
        except WindowGoneError:
            return False
        return True

    def snapshot(self, rule: WindowAppRule, class_id: str, observed: WindowObservation) -> bool:
        """Merge an observation into the persisted state for ``class_id``.

        Returns:
            True if the backing store was written
        """
        frame = observed.frame
        logger.debug(
            f"Saving state for {class_id}: {frame.width}x{frame.height} @ {frame.x},{frame.y} "
            f"(max={observed.maximized})"
        )

        state = self.state_store.get(class_id)
        if not merge_observation(state, rule, observed):
            return False

        self.state_store.put(class_id, state)
        return True
