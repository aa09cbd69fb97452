"""Persisted per-class window state.

One entry per class identifier, shared by every window of that class.
Absent fields mean "not saved"; unknown fields are carried through
untouched so older or newer writers stay compatible.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..constants import NO_WORKSPACE


class SavedState(BaseModel):
    """Saved geometry and flags for one class identifier."""

    model_config = ConfigDict(extra="allow")

    x: Optional[int] = None
    y: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    maximized: Optional[bool] = None
    minimized: Optional[bool] = None
    above: Optional[bool] = None
    sticky: Optional[bool] = None

    workspace: Optional[int] = None

    @field_validator("x", "y", "width", "height", "workspace", mode="before")
    @classmethod
    def round_floats(cls, v: Any) -> Any:
        """Older writers stored centered coordinates as floats."""
        if isinstance(v, float):
            return int(round(v))
        return v

    @property
    def has_position(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def has_workspace(self) -> bool:
        return self.workspace is not None and self.workspace != NO_WORKSPACE

    def to_json(self) -> dict:
        """Serialize only the fields that are set."""
        return self.model_dump(exclude_none=True)
