"""Per-application restoration rule.

Rules are stored as a JSON array under the ``window-app-configs`` key using
the historical field names (``wm_class``, ``restore_pos``...). Every flag is
optional on disk and defaults to ``False``.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Flags that can be toggled by a configuration front-end
RULE_FLAGS = (
    "is_regex",
    "restore_size",
    "restore_pos",
    "restore_maximized",
    "restore_workspace",
    "restore_minimized",
    "restore_above",
    "restore_sticky",
    "switch_to_workspace",
)


class WindowAppRule(BaseModel):
    """One configured application.

    Examples:
        >>> rule = WindowAppRule.model_validate({"wm_class": "firefox", "restore_pos": True})
        >>> rule.restore_position
        True
        >>> rule.needs_restore
        True
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    class_pattern: str = Field(..., alias="wm_class", min_length=1, description="Literal class or regex source")
    is_regex: bool = Field(default=False, description="Interpret class_pattern as a regular expression")

    restore_size: bool = False
    restore_position: bool = Field(default=False, alias="restore_pos")
    restore_maximized: bool = False
    restore_workspace: bool = False
    restore_minimized: bool = False
    restore_above: bool = False
    restore_sticky: bool = False
    switch_to_workspace: bool = False

    @field_validator("class_pattern")
    @classmethod
    def strip_pattern(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("wm_class cannot be blank")
        return v

    @property
    def needs_restore(self) -> bool:
        """True if at least one restoration axis is enabled."""
        return (
            self.restore_size
            or self.restore_position
            or self.restore_maximized
            or self.restore_workspace
            or self.restore_minimized
            or self.restore_above
            or self.restore_sticky
        )

    def to_json(self) -> dict:
        """Serialize with the on-disk field names."""
        return self.model_dump(by_alias=True)
