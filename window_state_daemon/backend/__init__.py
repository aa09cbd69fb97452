"""Windowing-system backends."""

from .base import CHANGE_EVENTS, WindowBackend, WindowEventType, WindowGoneError, WindowHandle

__all__ = [
    "CHANGE_EVENTS",
    "WindowBackend",
    "WindowEventType",
    "WindowGoneError",
    "WindowHandle",
]
