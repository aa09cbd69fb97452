"""Windowing-system contract used by the tracker, sessions and reconciler.

A backend exposes live windows as ``WindowHandle`` objects. Reads are
synchronous and return the last state reported by the window manager;
anything that talks to the window manager is a coroutine.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..constants import NO_WORKSPACE
from ..models.geometry import Rect, WindowContext, WindowObservation
from ..subscription import Subscription, invoke_callback

logger = logging.getLogger(__name__)


class WindowGoneError(Exception):
    """Raised when a command targets a window that no longer exists."""


class WindowEventType(str, Enum):
    """Per-window notifications delivered to sessions."""

    CLASS_CHANGED = "class-changed"
    SHOWN = "shown"
    SIZE_CHANGED = "size-changed"
    POSITION_CHANGED = "position-changed"
    WORKSPACE_CHANGED = "workspace-changed"
    MINIMIZED_CHANGED = "minimized-changed"
    ABOVE_CHANGED = "above-changed"
    STICKY_CHANGED = "sticky-changed"
    UNMANAGING = "unmanaging"


# Events that signal a geometry or state change worth saving
CHANGE_EVENTS = (
    WindowEventType.SIZE_CHANGED,
    WindowEventType.POSITION_CHANGED,
    WindowEventType.WORKSPACE_CHANGED,
    WindowEventType.MINIMIZED_CHANGED,
    WindowEventType.ABOVE_CHANGED,
    WindowEventType.STICKY_CHANGED,
)

WindowCallback = Callable[["WindowHandle"], Any]


class WindowHandle(ABC):
    """One live window managed by the windowing system."""

    def __init__(self, window_id: int) -> None:
        self.window_id = window_id
        self._callbacks: Dict[WindowEventType, List[WindowCallback]] = {}

    # Last-known state

    @property
    @abstractmethod
    def class_id(self) -> Optional[str]:
        """Class identifier (WM_CLASS / app_id), None until known."""

    @property
    @abstractmethod
    def frame_rect(self) -> Rect: ...

    @property
    @abstractmethod
    def maximized(self) -> bool: ...

    @property
    @abstractmethod
    def minimized(self) -> bool: ...

    @property
    @abstractmethod
    def above(self) -> bool: ...

    @property
    @abstractmethod
    def sticky(self) -> bool: ...

    @property
    @abstractmethod
    def workspace_index(self) -> int:
        """Index of the window's workspace, NO_WORKSPACE if it has none."""

    @property
    def monitor_index(self) -> int:
        """Index of the monitor the window is on."""
        return 0

    @property
    @abstractmethod
    def is_mapped(self) -> bool:
        """True if the window's visual surface already exists."""

    def observe(self) -> WindowObservation:
        """Capture the current geometry and flags."""
        return WindowObservation(
            frame=self.frame_rect,
            maximized=self.maximized,
            minimized=self.minimized,
            above=self.above,
            sticky=self.sticky,
            workspace_index=self.workspace_index if self.workspace_index is not None else NO_WORKSPACE,
        )

    # Notifications

    def connect(self, event_type: WindowEventType, callback: WindowCallback) -> Subscription:
        """Register ``callback(window)`` for ``event_type``."""
        callbacks = self._callbacks.setdefault(event_type, [])
        callbacks.append(callback)

        def release() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return Subscription(release, f"window:{self.window_id}:{event_type.value}")

    def callbacks_for(self, event_type: WindowEventType) -> List[WindowCallback]:
        return list(self._callbacks.get(event_type, []))

    async def emit(self, event_type: WindowEventType) -> None:
        """Deliver ``event_type`` to every subscriber, isolating failures."""
        for callback in self.callbacks_for(event_type):
            try:
                await invoke_callback(callback, self)
            except Exception as e:
                logger.exception(f"Handler for {event_type.value} on window {self.window_id} failed: {e}")

    # Commands

    @abstractmethod
    async def move_frame(self, x: int, y: int) -> None: ...

    @abstractmethod
    async def move_resize_frame(self, x: int, y: int, width: int, height: int) -> None: ...

    @abstractmethod
    async def maximize(self) -> None: ...

    @abstractmethod
    async def unmaximize(self) -> None: ...

    @abstractmethod
    async def minimize(self) -> None: ...

    @abstractmethod
    async def unminimize(self) -> None: ...

    @abstractmethod
    async def make_above(self) -> None: ...

    @abstractmethod
    async def unmake_above(self) -> None: ...

    @abstractmethod
    async def stick(self) -> None: ...

    @abstractmethod
    async def unstick(self) -> None: ...

    @abstractmethod
    async def change_workspace(self, index: int) -> None: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.window_id} class={self.class_id!r}>"


class WindowBackend(ABC):
    """Source of window notifications and workspace queries."""

    # False when already-mapped windows never emit "shown"; sessions then
    # check ``is_mapped`` at setup time
    reliable_shown_signal: bool = True

    @abstractmethod
    def on_window_appeared(self, callback: WindowCallback) -> Subscription: ...

    @abstractmethod
    def list_windows(self) -> List[WindowHandle]:
        """Windows that already exist (used for the startup scan)."""

    @abstractmethod
    async def describe(self, window: WindowHandle) -> Optional[WindowContext]:
        """Gather geometry context for ``window``.

        Returns None if the window has no workspace or work area (closing,
        monitor gone); callers abort the current attempt.
        """

    @abstractmethod
    async def activate_workspace(self, index: int) -> None: ...
