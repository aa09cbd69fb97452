"""Data models for window-state-daemon."""

from .geometry import Rect, RestorePlan, WindowContext, WindowObservation
from .rule import RULE_FLAGS, WindowAppRule
from .saved_state import SavedState
from .settings import DaemonSettings

__all__ = [
    "DaemonSettings",
    "RULE_FLAGS",
    "Rect",
    "RestorePlan",
    "SavedState",
    "WindowAppRule",
    "WindowContext",
    "WindowObservation",
]
