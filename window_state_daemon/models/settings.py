"""Daemon runtime settings loaded from the environment."""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..constants import (
    ConfigPaths,
    DEFAULT_SAVE_DELAY_MS,
    DEFAULT_SETTINGS_DEBOUNCE_MS,
    DEFAULT_WORKSPACE_SWITCH_DELAY_MS,
)


class DaemonSettings(BaseModel):
    """Tunable daemon behaviour."""

    settings_dir: Path = Field(default=ConfigPaths.SETTINGS_DIR, description="Directory holding the settings JSON files")
    save_delay_ms: int = Field(default=DEFAULT_SAVE_DELAY_MS, ge=0, le=10000, description="Debounce before persisting geometry")
    workspace_switch_delay_ms: int = Field(
        default=DEFAULT_WORKSPACE_SWITCH_DELAY_MS, ge=0, le=10000, description="Delay before activating a restored workspace"
    )
    watch_settings: bool = Field(default=True, description="Watch settings directory for external edits")
    settings_debounce_ms: int = Field(default=DEFAULT_SETTINGS_DEBOUNCE_MS, ge=0, le=10000)

    @field_validator("settings_dir", mode="before")
    @classmethod
    def expand_user(cls, v):
        return Path(v).expanduser()

    @property
    def save_delay(self) -> float:
        """Save debounce in seconds."""
        return self.save_delay_ms / 1000

    @property
    def workspace_switch_delay(self) -> float:
        """Workspace activation delay in seconds."""
        return self.workspace_switch_delay_ms / 1000

    @classmethod
    def from_environment(cls) -> "DaemonSettings":
        """Load settings from environment variables."""
        return cls(
            settings_dir=os.getenv("WINDOW_STATE_DIR", str(ConfigPaths.SETTINGS_DIR)),
            save_delay_ms=int(os.getenv("WINDOW_STATE_SAVE_DELAY_MS", str(DEFAULT_SAVE_DELAY_MS))),
            workspace_switch_delay_ms=int(
                os.getenv("WINDOW_STATE_WORKSPACE_SWITCH_DELAY_MS", str(DEFAULT_WORKSPACE_SWITCH_DELAY_MS))
            ),
            watch_settings=os.getenv("WINDOW_STATE_WATCH", "1").lower() not in ("0", "false", "no"),
            settings_debounce_ms=int(os.getenv("WINDOW_STATE_WATCH_DEBOUNCE_MS", str(DEFAULT_SETTINGS_DEBOUNCE_MS))),
        )
