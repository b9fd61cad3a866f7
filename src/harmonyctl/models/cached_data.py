"""CachedData model: last-known hub configuration snapshot."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Self

from harmonyctl.models.activity import Activity
from harmonyctl.models.device import Device
from harmonyctl.models.hub import Hub


@dataclass(frozen=True, slots=True)
class CachedData:
    """Snapshot of a hub's activities and devices.

    Derived data, always rebuildable from a live connection.

    Attributes:
        hub: The hub the snapshot was taken from.
        activities: Activities at snapshot time.
        devices: Devices (with commands) at snapshot time.
        timestamp: ISO-8601 UTC time the snapshot was taken.
    """

    hub: Hub
    activities: list[Activity] = field(default_factory=list)
    devices: list[Device] = field(default_factory=list)
    timestamp: str = ""

    @classmethod
    def snapshot(
        cls, hub: Hub, activities: list[Activity], devices: list[Device]
    ) -> Self:
        """Create a snapshot stamped with the current time."""
        return cls(
            hub=hub,
            activities=activities,
            devices=devices,
            timestamp=datetime.now(UTC).isoformat(),
        )

    def age_seconds(self, now: datetime | None = None) -> float:
        """Return snapshot age in seconds (infinite if unparsable)."""
        try:
            taken = datetime.fromisoformat(self.timestamp)
        except ValueError:
            return float("inf")
        if taken.tzinfo is None:
            taken = taken.replace(tzinfo=UTC)
        return ((now or datetime.now(UTC)) - taken).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "hub": self.hub.to_dict(),
            "activities": [a.to_dict() for a in self.activities],
            "devices": [d.to_dict() for d in self.devices],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a snapshot from a dict produced by ``to_dict``.

        Raises:
            KeyError: If the hub entry is missing.
        """
        return cls(
            hub=Hub.from_dict(data["hub"]),
            activities=[Activity.from_dict(a) for a in data.get("activities", [])],
            devices=[Device.from_dict(d) for d in data.get("devices", [])],
            timestamp=str(data.get("timestamp", "")),
        )
