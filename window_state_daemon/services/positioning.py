"""
Work-Area Positioning Helpers

Geometry used when restoring a window:
1. Validate a saved top-left corner against the work area (with tolerance)
2. Center a frame on the work area
3. Step away from same-class windows occupying the same spot
4. Clamp the result so the title bar stays reachable

All functions are pure; they never talk to the window manager.
"""

import logging
from typing import Iterable, Sequence, Tuple

from ..constants import (
    CLAMP_MARGIN,
    COLLISION_MAX_ATTEMPTS,
    COLLISION_OFFSET_STEP,
    COLLISION_TOLERANCE,
    WORK_AREA_TOLERANCE,
)
from ..models.geometry import Rect

logger = logging.getLogger(__name__)


def is_point_in_work_area(x: int, y: int, area: Rect, tolerance: int = WORK_AREA_TOLERANCE) -> bool:
    """Check if a window's top-left corner is roughly within the work area.

    The corner may sit up to ``tolerance`` pixels left of/above the work
    area, and must leave ``tolerance`` pixels before the right/bottom edge
    so the title bar stays accessible.

    Examples:
        >>> area = Rect(0, 0, 1920, 1080)
        >>> is_point_in_work_area(100, 100, area)
        True
        >>> is_point_in_work_area(-5000, 100, area)
        False
    """
    return (
        area.x - tolerance <= x <= area.right - tolerance
        and area.y - tolerance <= y <= area.bottom - tolerance
    )


def center_in(area: Rect, width: int, height: int) -> Tuple[int, int]:
    """Top-left corner that centers a ``width`` x ``height`` frame on ``area``."""
    return (
        area.x + (area.width - width) // 2,
        area.y + (area.height - height) // 2,
    )


def _collides(x: int, y: int, others: Iterable[Rect], tolerance: int) -> bool:
    # Only the top-left corner matters: identical corners cause exact occlusion
    return any(abs(other.x - x) + abs(other.y - y) < tolerance for other in others)


def find_free_position(
    x: int,
    y: int,
    others: Sequence[Rect],
    step: int = COLLISION_OFFSET_STEP,
    tolerance: int = COLLISION_TOLERANCE,
    max_attempts: int = COLLISION_MAX_ATTEMPTS,
) -> Tuple[int, int]:
    """Offset a candidate diagonally until no sibling sits on its corner.

    Candidates are not clamped while iterating; after ``max_attempts``
    the last candidate is accepted.

    Examples:
        >>> find_free_position(560, 400, [Rect(560, 400, 800, 600)])
        (610, 450)
    """
    if not others:
        return x, y

    start = (x, y)
    for _ in range(max_attempts):
        if not _collides(x, y, others, tolerance):
            break
        x += step
        y += step

    if (x, y) != start:
        logger.debug(f"Collision avoidance moved target {start} → ({x}, {y})")
    return x, y


def clamp_to_work_area(x: int, y: int, area: Rect, margin: int = CLAMP_MARGIN) -> Tuple[int, int]:
    """Keep at least ``margin`` pixels of the frame inside the right/bottom edges."""
    max_x = area.right - margin
    max_y = area.bottom - margin

    clamped = (min(x, max_x), min(y, max_y))
    if clamped != (x, y):
        logger.debug(f"Clamped target ({x}, {y}) → {clamped}")
    return clamped
