"""i3/Sway windowing backend over the i3ipc async connection.

Translates ``window::*`` IPC events into per-window notifications by
diffing each window's cached container state against a fresh tree, and
maps window-state commands onto i3/Sway commands:

    maximized  ↔ fullscreen
    minimized  ↔ scratchpad
    sticky     ↔ sticky
    workspace  ↔ workspace number - 1
    work area  ↔ workspace rect (bars excluded)

Always-on-top has no i3/Sway equivalent: it reads as False and the
commands are logged no-ops.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from i3ipc import Event, aio
from i3ipc.events import IpcBaseEvent

from ..constants import NO_WORKSPACE
from ..models.geometry import Rect, WindowContext
from ..subscription import Subscription, invoke_callback
from .base import WindowBackend, WindowEventType, WindowGoneError, WindowHandle

logger = logging.getLogger(__name__)

SCRATCHPAD_WORKSPACE = "__i3_scratch"


def get_window_class(container) -> Optional[str]:
    """Get window class in a Sway/i3-compatible way.

    For Sway/Wayland: Checks app_id first (native Wayland), then window_properties.class (XWayland).
    For i3/X11: Uses window_class property (always from window_properties).

    Args:
        container: i3ipc Con object

    Returns:
        Window class string or None if not available yet
    """
    app_id = getattr(container, "app_id", None)
    if app_id:
        return app_id

    window_class = getattr(container, "window_class", None)
    if window_class:
        return window_class

    properties = getattr(container, "window_properties", None)
    if isinstance(properties, dict) and properties.get("class"):
        return properties["class"]

    return None


def _rect(r) -> Rect:
    return Rect(int(r.x), int(r.y), int(r.width), int(r.height))


def _workspace_index(workspace) -> int:
    num = getattr(workspace, "num", None)
    if num is None or num < 1:
        return NO_WORKSPACE
    return num - 1


def _output_name(workspace) -> Optional[str]:
    if workspace is None:
        return None
    ipc_data = getattr(workspace, "ipc_data", None)
    return ipc_data.get("output") if isinstance(ipc_data, dict) else None


def _is_window(con) -> bool:
    return (
        not con.nodes
        and con.type in ("con", "floating_con")
        and bool(getattr(con, "window", None) or getattr(con, "app_id", None) or getattr(con, "pid", None))
    )


def iter_windows(con, workspace=None) -> Iterator[Tuple[Any, Any]]:
    """Yield (window container, enclosing workspace) for every client window."""
    if con.type == "workspace":
        workspace = con
    if _is_window(con):
        yield con, workspace
        return
    for child in list(con.nodes) + list(con.floating_nodes):
        yield from iter_windows(child, workspace)


def find_window(tree, con_id: int) -> Optional[Tuple[Any, Any]]:
    for con, workspace in iter_windows(tree):
        if con.id == con_id:
            return con, workspace
    return None


@dataclass(frozen=True)
class ContainerState:
    """Window properties cached from the last tree read."""

    class_id: Optional[str]
    rect: Rect
    fullscreen: bool
    minimized: bool
    sticky: bool
    workspace_index: int
    workspace_name: Optional[str]
    output_name: Optional[str] = None

    @classmethod
    def from_container(cls, con, workspace, previous: Optional["ContainerState"] = None) -> "ContainerState":
        workspace_name = getattr(workspace, "name", None) if workspace is not None else None
        minimized = workspace_name == SCRATCHPAD_WORKSPACE

        # A window in the scratchpad keeps the workspace it was minimized from
        if minimized:
            workspace_index = previous.workspace_index if previous else NO_WORKSPACE
        else:
            workspace_index = _workspace_index(workspace) if workspace is not None else NO_WORKSPACE

        return cls(
            class_id=get_window_class(con),
            rect=_rect(con.rect),
            fullscreen=bool(getattr(con, "fullscreen_mode", 0)),
            minimized=minimized,
            sticky=bool(getattr(con, "sticky", False)),
            workspace_index=workspace_index,
            workspace_name=workspace_name,
            output_name=_output_name(workspace),
        )

    def diff(self, new: "ContainerState") -> List[WindowEventType]:
        """Notifications implied by moving from ``self`` to ``new``."""
        events: List[WindowEventType] = []
        if self.class_id is None and new.class_id is not None:
            events.append(WindowEventType.CLASS_CHANGED)
        if (self.rect.width, self.rect.height) != (new.rect.width, new.rect.height) or self.fullscreen != new.fullscreen:
            events.append(WindowEventType.SIZE_CHANGED)
        if (self.rect.x, self.rect.y) != (new.rect.x, new.rect.y):
            events.append(WindowEventType.POSITION_CHANGED)
        if self.workspace_index != new.workspace_index:
            events.append(WindowEventType.WORKSPACE_CHANGED)
        if self.minimized != new.minimized:
            events.append(WindowEventType.MINIMIZED_CHANGED)
        if self.sticky != new.sticky:
            events.append(WindowEventType.STICKY_CHANGED)
        return events


class SwayWindow(WindowHandle):
    """Window handle backed by a Sway/i3 container id."""

    def __init__(self, backend: "SwayBackend", con_id: int, state: ContainerState) -> None:
        super().__init__(con_id)
        self.backend = backend
        self.cached = state

    def update(self, con, workspace) -> List[WindowEventType]:
        """Refresh the cache from a tree container and return what changed."""
        new = ContainerState.from_container(con, workspace, self.cached)
        events = self.cached.diff(new)
        self.cached = new
        return events

    def update_rect(self, rect) -> None:
        self.cached = replace(self.cached, rect=_rect(rect))

    @property
    def class_id(self) -> Optional[str]:
        return self.cached.class_id

    @property
    def frame_rect(self) -> Rect:
        return self.cached.rect

    @property
    def maximized(self) -> bool:
        return self.cached.fullscreen

    @property
    def minimized(self) -> bool:
        return self.cached.minimized

    @property
    def above(self) -> bool:
        return False

    @property
    def sticky(self) -> bool:
        return self.cached.sticky

    @property
    def workspace_index(self) -> int:
        return self.cached.workspace_index

    @property
    def monitor_index(self) -> int:
        try:
            return self.backend.outputs.index(self.cached.output_name)
        except ValueError:
            return 0

    @property
    def is_mapped(self) -> bool:
        # Sway only reports windows that are already mapped
        return True

    async def _command(self, command: str) -> None:
        await self.backend.command(f"[con_id={self.window_id}] {command}")

    async def move_frame(self, x: int, y: int) -> None:
        await self._command(f"move absolute position {x} {y}")

    async def move_resize_frame(self, x: int, y: int, width: int, height: int) -> None:
        await self._command(f"resize set {width} px {height} px, move absolute position {x} {y}")

    async def maximize(self) -> None:
        await self._command("fullscreen enable")

    async def unmaximize(self) -> None:
        await self._command("fullscreen disable")

    async def minimize(self) -> None:
        await self._command("move scratchpad")

    async def unminimize(self) -> None:
        if self.minimized:
            await self._command("scratchpad show")

    async def make_above(self) -> None:
        logger.debug(f"Always-on-top is not supported by i3/Sway (window {self.window_id})")

    async def unmake_above(self) -> None:
        logger.debug(f"Always-on-top is not supported by i3/Sway (window {self.window_id})")

    async def stick(self) -> None:
        await self._command("sticky enable")

    async def unstick(self) -> None:
        await self._command("sticky disable")

    async def change_workspace(self, index: int) -> None:
        await self._command(f"move container to workspace number {index + 1}")


class SwayBackend(WindowBackend):
    """i3/Sway IPC connection with reconnection and event translation."""

    # window::new fires for mapped windows only; the startup scan finds
    # mapped windows too, so sessions check is_mapped instead
    reliable_shown_signal = False

    def __init__(self) -> None:
        self.conn: Optional[aio.Connection] = None
        self.windows: Dict[int, SwayWindow] = {}
        self.outputs: List[str] = []
        self.is_shutting_down = False
        self.reconnect_delay = 0.1
        self._appeared: List[Callable[[WindowHandle], Any]] = []

    @property
    def is_connected(self) -> bool:
        return self.conn is not None and not self.is_shutting_down

    async def connect_with_retry(self, max_attempts: int = 10) -> aio.Connection:
        """Connect to i3/Sway with exponential backoff retry.

        Raises:
            ConnectionError: If connection fails after max attempts
        """
        attempt = 0
        delay = self.reconnect_delay

        while attempt < max_attempts:
            try:
                logger.info(f"Attempting to connect to window manager (attempt {attempt + 1}/{max_attempts})")
                self.conn = await aio.Connection(auto_reconnect=True).connect()

                version = await self.conn.get_version()
                logger.info(f"Connected to window manager version {version.human_readable}")
                return self.conn

            except Exception as e:
                logger.warning(f"Connection attempt {attempt + 1} failed: {e}")
                attempt += 1

                if attempt < max_attempts:
                    logger.debug(f"Waiting {delay:.1f}s before retry...")
                    await asyncio.sleep(delay)
                    # Exponential backoff: double delay up to 5s max
                    delay = min(delay * 2, 5.0)

        raise ConnectionError(f"Failed to connect to window manager after {max_attempts} attempts")

    async def subscribe_events(self) -> None:
        """Subscribe to window and shutdown events and register handlers."""
        if not self.conn:
            logger.error("Cannot subscribe to events: not connected")
            return

        await self.conn.subscribe([Event.WINDOW, Event.SHUTDOWN])
        self.conn.on(Event.WINDOW, self._on_window_event)
        self.conn.on(Event.SHUTDOWN, self._on_shutdown_event)
        logger.info("Subscribed to window manager event stream (window, shutdown)")

    async def load_existing_windows(self) -> int:
        """Populate the window cache from the current tree without emitting."""
        if not self.conn:
            return 0

        outputs = await self.conn.get_outputs()
        self.outputs = [output.name for output in outputs if output.active]

        tree = await self.conn.get_tree()
        for con, workspace in iter_windows(tree):
            if con.id not in self.windows:
                self.windows[con.id] = SwayWindow(self, con.id, ContainerState.from_container(con, workspace))
        logger.info(f"Found {len(self.windows)} existing window(s)")
        return len(self.windows)

    async def main(self) -> None:
        """Run the IPC event loop until the connection closes."""
        if not self.conn:
            logger.error("Cannot run main loop: not connected")
            return

        try:
            await self.conn.main()
        except Exception as e:
            if not self.is_shutting_down:
                logger.error(f"Window manager event loop error: {e}")
                raise
            logger.info("Window manager event loop stopped (shutdown)")

    def close(self) -> None:
        if self.conn:
            self.is_shutting_down = True
            try:
                self.conn.main_quit()
            except Exception as e:
                logger.debug(f"Error stopping IPC main loop: {e}")
            self.conn = None
            logger.info("Closed window manager connection")

    # WindowBackend

    def on_window_appeared(self, callback: Callable[[WindowHandle], Any]) -> Subscription:
        self._appeared.append(callback)

        def release() -> None:
            if callback in self._appeared:
                self._appeared.remove(callback)

        return Subscription(release, "window-appeared")

    def list_windows(self) -> List[WindowHandle]:
        return list(self.windows.values())

    async def describe(self, window: WindowHandle) -> Optional[WindowContext]:
        if not self.conn:
            return None

        tree = await self.conn.get_tree()
        located = find_window(tree, window.window_id)
        if located is None:
            return None

        con, workspace = located
        if workspace is None or workspace.name == SCRATCHPAD_WORKSPACE:
            return None

        if isinstance(window, SwayWindow):
            window.update(con, workspace)

        work_area = _rect(workspace.rect)
        if work_area.width <= 0 or work_area.height <= 0:
            return None

        workspaces = await self.conn.get_workspaces()
        numbered = [ws.num for ws in workspaces if ws.num is not None and ws.num > 0]
        active = next((ws for ws in workspaces if ws.focused), None)

        class_id = get_window_class(con)
        siblings = [
            _rect(other.rect)
            for other, _ in iter_windows(workspace)
            if other.id != con.id and get_window_class(other) == class_id
        ]

        return WindowContext(
            frame=_rect(con.rect),
            maximized=bool(getattr(con, "fullscreen_mode", 0)),
            work_area=work_area,
            workspace_index=_workspace_index(workspace),
            active_workspace_index=_workspace_index(active) if active is not None else NO_WORKSPACE,
            workspace_count=max(numbered, default=0),
            siblings=siblings,
        )

    async def activate_workspace(self, index: int) -> None:
        await self.command(f"workspace number {index + 1}")

    async def command(self, command: str) -> None:
        """Run an IPC command; raise WindowGoneError if the target is gone."""
        if not self.conn:
            raise WindowGoneError("Not connected to the window manager")

        logger.debug(f"Executing command: {command}")
        replies = await self.conn.command(command)
        for reply in replies or []:
            if getattr(reply, "success", True):
                continue
            error = getattr(reply, "error", "") or ""
            lowered = error.lower()
            if "no matching" in lowered or "no window matches" in lowered:
                raise WindowGoneError(error)
            logger.warning(f"Command failed: {command}: {error}")

    # IPC event translation

    async def _on_window_event(self, conn: aio.Connection, event: IpcBaseEvent) -> None:
        try:
            await self.handle_window_event(event)
        except Exception as e:
            logger.error(f"Error handling window::{getattr(event, 'change', '?')} event: {e}", exc_info=True)

    async def handle_window_event(self, event) -> None:
        container = event.container
        con_id = container.id

        if event.change == "close":
            window = self.windows.pop(con_id, None)
            if window is not None:
                window.update_rect(container.rect)
                await window.emit(WindowEventType.UNMANAGING)
            return

        if not self.conn:
            return

        tree = await self.conn.get_tree()
        located = find_window(tree, con_id)
        if located is None:
            return
        con, workspace = located

        window = self.windows.get(con_id)
        if window is None:
            window = SwayWindow(self, con_id, ContainerState.from_container(con, workspace))
            self.windows[con_id] = window
            logger.debug(f"Window appeared: {con_id} ({window.class_id})")
            await self._announce(window)
            return

        for event_type in window.update(con, workspace):
            await window.emit(event_type)

    async def _announce(self, window: SwayWindow) -> None:
        for callback in list(self._appeared):
            try:
                await invoke_callback(callback, window)
            except Exception as e:
                logger.exception(f"Window-appeared handler failed for {window.window_id}: {e}")

    async def handle_restart(self) -> None:
        """Replace every cached window after the window manager restarted.

        Old handles are unmanaged so their sessions save and tear down;
        the rebuilt handles are announced like new windows.
        """
        stale = list(self.windows.values())
        self.windows.clear()
        for window in stale:
            await window.emit(WindowEventType.UNMANAGING)

        await self.load_existing_windows()
        for window in list(self.windows.values()):
            await self._announce(window)
        logger.info(f"Rebuilt window state: {len(stale)} dropped, {len(self.windows)} rediscovered")

    async def _on_shutdown_event(self, conn: aio.Connection, event: IpcBaseEvent) -> None:
        change = getattr(event, "change", None)
        if change == "restart":
            logger.info("Window manager is restarting - will auto-reconnect")
            await asyncio.sleep(2)
            try:
                await self.handle_restart()
            except Exception as e:
                logger.error(f"Failed to rebuild window state after restart: {e}", exc_info=True)
        elif change == "exit":
            logger.info("Window manager is exiting - shutting down daemon")
            self.is_shutting_down = True
        else:
            logger.warning(f"Unknown shutdown change: {change}")
