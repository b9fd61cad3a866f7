"""Hub model representing a discovered Harmony hub."""

from dataclasses import dataclass
from typing import Any, Self

# WebSocket control port exposed by current hub firmware
DEFAULT_HUB_PORT = 8088


@dataclass(frozen=True, slots=True)
class Hub:
    """A Harmony hub found on the local network.

    Identity is ``id`` (the hub uuid). Hubs are replaced wholesale when
    they are rediscovered, never patched in place.

    Attributes:
        id: Unique hub identifier (uuid from the discovery announcement).
        friendly_name: Human-readable hub name.
        ip: IPv4 address of the hub.
        remote_id: Remote id used to address the WebSocket channel.
        port: Control port (default 8088).
        hub_version: Firmware version string, if announced.
    """

    id: str
    friendly_name: str
    ip: str
    remote_id: str = ""
    port: int = DEFAULT_HUB_PORT
    hub_version: str = ""

    @property
    def display_name(self) -> str:
        """Return friendly name or IP as fallback for display."""
        return self.friendly_name or self.ip

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "id": self.id,
            "friendly_name": self.friendly_name,
            "ip": self.ip,
            "remote_id": self.remote_id,
            "port": self.port,
            "hub_version": self.hub_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a hub from a dict produced by ``to_dict``."""
        port = data.get("port", DEFAULT_HUB_PORT)
        return cls(
            id=str(data.get("id", "")),
            friendly_name=str(data.get("friendly_name", "")),
            ip=str(data.get("ip", "")),
            remote_id=str(data.get("remote_id", "") or ""),
            port=int(port) if isinstance(port, int) else DEFAULT_HUB_PORT,
            hub_version=str(data.get("hub_version", "") or ""),
        )
