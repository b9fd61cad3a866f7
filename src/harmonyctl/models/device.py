"""Device and command models."""

from dataclasses import dataclass, field
from typing import Any, Self


@dataclass(frozen=True, slots=True)
class Command:
    """A single command exposed by a device.

    Attributes:
        id: Raw command name sent to the hub (e.g. "VolumeUp").
        label: Display label, defaults to the raw name.
        device_id: Id of the owning device (lookup only).
    """

    id: str
    label: str
    device_id: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {"id": self.id, "label": self.label, "device_id": self.device_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a command from a dict produced by ``to_dict``."""
        return cls(
            id=str(data.get("id", "")),
            label=str(data.get("label", "")),
            device_id=str(data.get("device_id", "")),
        )


@dataclass(frozen=True, slots=True)
class Device:
    """A controllable appliance known to the hub.

    Attributes:
        id: Device identifier from the hub configuration.
        label: Human-readable name.
        type: Device type as reported by the hub (e.g. "Television").
        commands: Flattened list of commands the device accepts.
    """

    id: str
    label: str
    type: str = ""
    commands: list[Command] = field(default_factory=list)

    @property
    def command_count(self) -> int:
        """Return number of commands."""
        return len(self.commands)

    def get_command(self, command_id: str) -> Command | None:
        """Get a command by ID.

        Args:
            command_id: The command ID to look up.

        Returns:
            The Command if found, else None.
        """
        for command in self.commands:
            if command.id == command_id:
                return command
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "commands": [c.to_dict() for c in self.commands],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a device from a dict produced by ``to_dict``."""
        raw_commands = data.get("commands", [])
        commands: list[Command] = []
        if isinstance(raw_commands, list):
            commands = [Command.from_dict(c) for c in raw_commands if isinstance(c, dict)]
        return cls(
            id=str(data.get("id", "")),
            label=str(data.get("label", "")),
            type=str(data.get("type", "")),
            commands=commands,
        )
