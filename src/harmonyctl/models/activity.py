"""Activity model for hub presets (e.g. "Watch TV")."""

from dataclasses import dataclass, replace
from typing import Any, Self

# Activity id the hub reports when everything is switched off
POWER_OFF_ACTIVITY_ID = "-1"


@dataclass(frozen=True, slots=True)
class Activity:
    """A named preset state of the hub.

    Attributes:
        id: Activity identifier from the hub configuration.
        label: Human-readable name.
        is_active: Whether this is the hub's current activity.
    """

    id: str
    label: str
    is_active: bool = False

    @property
    def is_power_off(self) -> bool:
        """Return True for the hub's built-in PowerOff activity."""
        return self.id == POWER_OFF_ACTIVITY_ID

    def with_active(self, is_active: bool) -> Self:
        """Return a copy with is_active changed."""
        return replace(self, is_active=is_active)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {"id": self.id, "label": self.label, "is_active": self.is_active}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create an activity from a dict produced by ``to_dict``."""
        return cls(
            id=str(data.get("id", "")),
            label=str(data.get("label", "")),
            is_active=bool(data.get("is_active", False)),
        )
