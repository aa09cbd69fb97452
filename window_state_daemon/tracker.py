"""Registry of tracked windows.

Owns the window → WindowSession map, routes windowing-system
notifications to sessions, and reconciles trackedness when rules change.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from .backend.base import WindowBackend, WindowEventType, WindowHandle
from .config import ConfigStore
from .models.settings import DaemonSettings
from .services.reconciler import Reconciler
from .services.window_session import WindowSession
from .state_store import StateStore
from .subscription import Subscription

logger = logging.getLogger(__name__)


class Tracker:
    """Top-level registry of WindowSessions, created on start, torn down on stop."""

    def __init__(
        self,
        backend: WindowBackend,
        config: ConfigStore,
        state_store: StateStore,
        settings: Optional[DaemonSettings] = None,
        reconciler: Optional[Reconciler] = None,
    ) -> None:
        self.backend = backend
        self.config = config
        self.state_store = state_store
        self.settings = settings or DaemonSettings()
        self.reconciler = reconciler or Reconciler(backend, state_store)

        self.sessions: Dict[int, WindowSession] = {}
        self._pending_class: Dict[int, List[Subscription]] = {}
        self._global_subscriptions: List[Subscription] = []
        self._started = False

    def start(self) -> None:
        """Load rules, subscribe to notifications and scan existing windows."""
        if self._started:
            logger.warning("Tracker already started")
            return
        self._started = True

        self.config.reload()
        self._global_subscriptions.append(self.backend.on_window_appeared(self.on_window_appeared))
        self._global_subscriptions.append(self.config.connect_changed(self.on_config_changed))

        # Defer the scan until the loop is running, like an idle callback
        asyncio.get_running_loop().call_soon(self._scan_existing_windows)
        logger.info("Window tracker started")

    def _scan_existing_windows(self) -> None:
        if not self._started:
            return
        windows = self.backend.list_windows()
        logger.info(f"Scanning {len(windows)} existing window(s)")
        for window in windows:
            self.on_window_appeared(window)

    def is_tracked(self, window: WindowHandle) -> bool:
        return window.window_id in self.sessions

    def get_session(self, window: WindowHandle) -> Optional[WindowSession]:
        return self.sessions.get(window.window_id)

    # Window lifecycle

    def on_window_appeared(self, window: WindowHandle) -> None:
        if window.window_id in self.sessions or window.window_id in self._pending_class:
            return

        class_id = window.class_id
        if class_id:
            self.config.record_known_class(class_id)
            self._check_and_setup(window)
            return

        # Class not known yet: wait for it once
        def on_class_known(w: WindowHandle) -> None:
            self._release_pending(w)
            if w.class_id:
                self.config.record_known_class(w.class_id)
            self._check_and_setup(w)

        self._pending_class[window.window_id] = [
            window.connect(WindowEventType.CLASS_CHANGED, on_class_known),
            window.connect(WindowEventType.UNMANAGING, self._release_pending),
        ]
        logger.debug(f"Window {window.window_id} has no class yet, deferring setup")

    def _release_pending(self, window: WindowHandle) -> None:
        for subscription in self._pending_class.pop(window.window_id, []):
            subscription.unsubscribe()

    def _check_and_setup(self, window: WindowHandle) -> None:
        class_id = window.class_id
        if not class_id or window.window_id in self.sessions:
            return

        if self.config.find_rule(class_id) is None:
            return

        logger.debug(f"Tracking window {window.window_id} ({class_id})")
        session = WindowSession(window, class_id, self)
        self.sessions[window.window_id] = session
        session.attach()

    def on_config_changed(self) -> None:
        """Re-parse rules and drop windows that no longer match any."""
        self.config.reload()
        for session in list(self.sessions.values()):
            if self.config.find_rule(session.class_id) is None:
                logger.info(f"No longer managing: {session.class_id} ({session.window.window_id})")
                self.teardown(session.window)

    def teardown(self, window: WindowHandle) -> None:
        """Stop tracking ``window``. Safe to call on an untracked window."""
        self._release_pending(window)

        session = self.sessions.pop(window.window_id, None)
        if session is None:
            return
        session.close()
        logger.debug(f"Stopped tracking window {window.window_id} ({session.class_id})")

    def shutdown(self) -> None:
        """Tear down every session and release global subscriptions."""
        for session in list(self.sessions.values()):
            self.teardown(session.window)
        self.sessions.clear()

        for subscriptions in self._pending_class.values():
            for subscription in subscriptions:
                subscription.unsubscribe()
        self._pending_class.clear()

        for subscription in self._global_subscriptions:
            subscription.unsubscribe()
        self._global_subscriptions.clear()

        self._started = False
        logger.info("Window tracker stopped")
