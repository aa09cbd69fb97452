"""Centralized configuration paths and constants for window-state-daemon.

Single source of truth for settings file locations and the geometry
thresholds shared by the reconciler and the positioning helpers.
"""

from pathlib import Path
from typing import Final


class ConfigPaths:
    """Centralized configuration paths.

    Example:
        from .constants import ConfigPaths

        rules_text = ConfigPaths.SETTINGS_DIR.joinpath("window-app-configs.json").read_text()
    """

    HOME: Final[Path] = Path.home()
    SETTINGS_DIR: Final[Path] = HOME / ".config" / "window-state-daemon"

    @classmethod
    def ensure_dirs(cls) -> None:
        """Create the default settings directory if it doesn't exist."""
        cls.SETTINGS_DIR.mkdir(parents=True, exist_ok=True)


class SettingsKeys:
    """Logical keys of the settings store (one JSON file per key)."""

    RULES: Final[str] = "window-app-configs"
    STATES: Final[str] = "window-app-states"
    KNOWN_CLASSES: Final[str] = "known-wm-classes"


# Saved width/height must exceed this to be restored or persisted
MIN_SANE_SIZE: Final[int] = 50

# Saved top-left may sit this far outside the work area and still be valid
WORK_AREA_TOLERANCE: Final[int] = 50

# Collision avoidance between windows of the same class
COLLISION_OFFSET_STEP: Final[int] = 50
COLLISION_TOLERANCE: Final[int] = 10
COLLISION_MAX_ATTEMPTS: Final[int] = 50

# Visible title-bar area kept inside the work area after restore
CLAMP_MARGIN: Final[int] = 50

# Positions at or below this are transient off-screen coordinates
OFFSCREEN_LIMIT: Final[int] = -10000

# Timers (milliseconds)
DEFAULT_SAVE_DELAY_MS: Final[int] = 500
DEFAULT_WORKSPACE_SWITCH_DELAY_MS: Final[int] = 100
DEFAULT_SETTINGS_DEBOUNCE_MS: Final[int] = 100

# Workspace index meaning "no workspace"
NO_WORKSPACE: Final[int] = -1
