"""Per-window session: first-restore gate, debounced saves, teardown.

States:
    Pending: session created, restore not applied yet
    Settled: restore applied once; change events now trigger saves

Until the first restore has been applied, change events are treated as
another chance to restore rather than as saves, so the transient
geometry a window gets at creation never overwrites the saved state.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional

from ..backend.base import CHANGE_EVENTS, WindowEventType, WindowHandle
from ..models.geometry import WindowObservation
from ..subscription import Subscription
from .timers import TimerSlot

if TYPE_CHECKING:
    from ..tracker import Tracker

logger = logging.getLogger(__name__)


class WindowSession:
    """Mediates between one window's notifications and the reconciler."""

    def __init__(self, window: WindowHandle, class_id: str, tracker: "Tracker") -> None:
        self.window = window
        self.class_id = class_id
        self.tracker = tracker

        self.subscriptions: List[Subscription] = []
        self.save_timer = TimerSlot(f"save:{window.window_id}")
        self.workspace_timer = TimerSlot(f"workspace:{window.window_id}")
        self.restore_applied = False
        self._restore_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def state(self) -> str:
        return "settled" if self.restore_applied else "pending"

    @property
    def restore_task(self) -> Optional[asyncio.Task]:
        """In-flight restore attempt, if any."""
        return self._restore_task

    def attach(self) -> None:
        """Subscribe to the window's notifications."""
        window = self.window
        self.subscriptions.append(window.connect(WindowEventType.SHOWN, lambda _w: self.handle_shown()))
        self.subscriptions.append(window.connect(WindowEventType.UNMANAGING, lambda _w: self.handle_unmanaging()))
        for event_type in CHANGE_EVENTS:
            self.subscriptions.append(
                window.connect(event_type, lambda _w, et=event_type: self.handle_change(et))
            )

        # Backends without a reliable "shown" for already-mapped windows
        if not self.tracker.backend.reliable_shown_signal and window.is_mapped:
            logger.debug(f"Window {window.window_id} ({self.class_id}) already mapped")
            self.handle_shown()

    # Event handlers

    def handle_shown(self) -> None:
        logger.debug(f"Window shown: {self.class_id} ({self.window.window_id})")
        self.request_restore()

    def handle_change(self, event_type: WindowEventType = WindowEventType.SIZE_CHANGED) -> None:
        if self._closed:
            return

        if not self.restore_applied:
            # Some window managers report geometry before "shown"
            self.request_restore()
            return

        # Capture now: the window may move again before the timer fires
        observed = self.window.observe()

        self.save_timer.cancel()
        if self.tracker.config.find_rule(self.class_id) is None:
            logger.debug(f"No rule for {self.class_id} anymore, not saving")
            return

        logger.debug(f"{event_type.value} on {self.class_id} ({self.window.window_id}), scheduling save")
        self.save_timer.schedule(self.tracker.settings.save_delay, lambda: self._save(observed))

    def handle_unmanaging(self) -> None:
        logger.debug(f"Window unmanaged: {self.class_id} ({self.window.window_id})")
        if self.restore_applied and not self._closed:
            self._save(self.window.observe())
        self.tracker.teardown(self.window)

    # Restore

    def request_restore(self) -> None:
        """Start a restore attempt unless one ran already or is in flight."""
        if self._closed or self.restore_applied:
            return
        if self._restore_task is not None and not self._restore_task.done():
            return
        loop = asyncio.get_running_loop()
        self._restore_task = loop.create_task(self._run_restore(), name=f"restore:{self.window.window_id}")

    async def _run_restore(self) -> None:
        try:
            await self._restore()
        except Exception as e:
            logger.exception(f"Restore failed for {self.class_id} ({self.window.window_id}): {e}")

    async def _restore(self) -> None:
        if self.restore_applied:
            return

        rule = self.tracker.config.find_rule(self.class_id)
        if rule is None:
            return

        reconciler = self.tracker.reconciler
        plan = await reconciler.prepare_restore(self.window, self.class_id, rule)
        if plan is None or self._closed or self.restore_applied:
            return

        # Set before issuing commands: their own change events are saves now
        self.restore_applied = True
        applied = await reconciler.execute_restore(self.window, self.class_id, plan)

        if applied and plan.activate_workspace and plan.workspace is not None and not self._closed:
            index = plan.workspace
            self.workspace_timer.schedule(
                self.tracker.settings.workspace_switch_delay,
                lambda: self.tracker.backend.activate_workspace(index),
            )

    # Save

    def _save(self, observed: WindowObservation) -> None:
        rule = self.tracker.config.find_rule(self.class_id)
        if rule is None:
            logger.debug(f"No rule for {self.class_id}, skipping save")
            return
        try:
            self.tracker.reconciler.snapshot(rule, self.class_id, observed)
        except OSError as e:
            logger.error(f"Failed to persist state for {self.class_id}: {e}")

    # Teardown

    def close(self) -> None:
        """Cancel timers and release every subscription. Idempotent."""
        if self._closed:
            return
        self._closed = True

        self.save_timer.cancel()
        self.workspace_timer.cancel()
        if self._restore_task is not None and not self._restore_task.done():
            self._restore_task.cancel()
        self._restore_task = None

        for subscription in self.subscriptions:
            subscription.unsubscribe()
        self.subscriptions.clear()
