"""Geometry records exchanged between the backend, reconciler and sessions."""

from dataclasses import dataclass, field
from typing import List, Optional

from ..constants import NO_WORKSPACE


@dataclass(frozen=True)
class Rect:
    """Rectangle in absolute screen coordinates (pixels)."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center_x(self) -> int:
        return self.x + (self.width // 2)

    @property
    def center_y(self) -> int:
        return self.y + (self.height // 2)

    def contains_point(self, x: int, y: int) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom


@dataclass(frozen=True)
class WindowObservation:
    """Geometry and flags of a window captured at one instant.

    Captured synchronously when a change event arrives so the debounced
    save persists what the window looked like at that event.
    """

    frame: Rect
    maximized: bool = False
    minimized: bool = False
    above: bool = False
    sticky: bool = False
    workspace_index: int = NO_WORKSPACE


@dataclass
class WindowContext:
    """Everything the reconciler needs to know about a window's surroundings.

    Attributes:
        frame: Current frame rectangle of the window
        maximized: Whether the window is currently maximized
        work_area: Work area of the window's monitor on its workspace
        workspace_index: Index of the window's workspace
        active_workspace_index: Index of the currently active workspace
        workspace_count: Number of addressable workspaces
        siblings: Frames of visible, non-minimized windows of the same class
            on the same workspace (excluding the window itself)
    """

    frame: Rect
    maximized: bool
    work_area: Rect
    workspace_index: int
    active_workspace_index: int
    workspace_count: int
    siblings: List[Rect] = field(default_factory=list)

    def is_valid_workspace(self, index: Optional[int]) -> bool:
        return index is not None and 0 <= index < self.workspace_count


@dataclass
class RestorePlan:
    """Commands computed for the first restoration of a window.

    ``None`` for a flag means "leave it alone".
    """

    x: int
    y: int
    width: int
    height: int
    center_only: bool = False
    apply_geometry: bool = True
    unmaximize: bool = False
    workspace: Optional[int] = None
    activate_workspace: bool = False
    sticky: Optional[bool] = None
    above: Optional[bool] = None
    minimized: Optional[bool] = None
    maximize: bool = False

    @property
    def target(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)
