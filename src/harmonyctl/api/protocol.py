"""Message types for the Harmony hub WebSocket protocol.

Requests are wrapped in an envelope addressed to the hub's remote id:

    {"hubId": "<remoteId>", "timeout": 30,
     "hbus": {"cmd": "<command>", "id": "<msg id>", "params": {...}}}

Responses echo the message id and carry an HTTP-like ``code``: 200 on
success, 100 while a long-running request (e.g. starting an activity) is
still in progress.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

HARMONY_DOMAIN = "svcs.myharmony.com"
PROVISION_ORIGIN = "http://sl.dhg.myharmony.com"

CMD_PROVISION_INFO = "setup.account?getProvisionInfo"
CMD_CONFIG = "vnd.logitech.harmony/vnd.logitech.harmony.engine?config"
CMD_CURRENT_ACTIVITY = "vnd.logitech.harmony/vnd.logitech.harmony.engine?getCurrentActivity"
CMD_START_ACTIVITY = "harmony.activityengine?runactivity"
CMD_HOLD_ACTION = "vnd.logitech.harmony/vnd.logitech.harmony.engine?holdAction"

CODE_SUCCESS = 200
CODE_IN_PROGRESS = 100

# Envelope timeout the hub applies to a request, in seconds
ENVELOPE_TIMEOUT = 30


class HoldStatus(Enum):
    """Button state for a hold action."""

    PRESS = "press"
    RELEASE = "release"


@dataclass(frozen=True)
class HubRequest:
    """A request sent over the hub WebSocket.

    Attributes:
        id: Message identifier echoed back by the hub.
        cmd: Command name.
        params: Command parameters.
    """

    id: str
    cmd: str
    params: dict[str, Any] = field(default_factory=dict)

    def to_message(self, remote_id: str) -> dict[str, Any]:
        """Wrap the request in the hub envelope."""
        return {
            "hubId": remote_id,
            "timeout": ENVELOPE_TIMEOUT,
            "hbus": {"cmd": self.cmd, "id": self.id, "params": self.params},
        }


@dataclass(frozen=True)
class HubResponse:
    """A response received over the hub WebSocket.

    Attributes:
        id: Message identifier of the matching request.
        cmd: Command name echoed by the hub.
        code: Status code (200 success, 100 in progress).
        msg: Status text.
        data: Response payload.
    """

    id: str | None = None
    cmd: str = ""
    code: int = 0
    msg: str = ""
    data: Any = None

    @property
    def is_success(self) -> bool:
        """Return True if the hub reported success."""
        return self.code == CODE_SUCCESS

    @property
    def is_in_progress(self) -> bool:
        """Return True for an intermediate progress message."""
        return self.code == CODE_IN_PROGRESS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HubResponse":
        """Create response from JSON dict."""
        raw_code = data.get("code", 0)
        try:
            code = int(raw_code)
        except (TypeError, ValueError):
            code = 0
        raw_id = data.get("id")
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            cmd=str(data.get("cmd", "")),
            code=code,
            msg=str(data.get("msg", "")),
            data=data.get("data"),
        )


def start_activity_params(activity_id: str, timestamp_ms: int) -> dict[str, Any]:
    """Build parameters for starting an activity."""
    return {
        "async": "true",
        "timestamp": timestamp_ms,
        "args": {"rule": "start"},
        "activityId": activity_id,
    }


def hold_action_params(
    device_id: str, command: str, status: HoldStatus, timestamp_ms: int = 0
) -> dict[str, Any]:
    """Build parameters for a button press or release.

    Args:
        device_id: Target device id.
        command: Raw command name (e.g. "VolumeUp").
        status: Press or release.
        timestamp_ms: Milliseconds since the press started.
    """
    action = {"command": command, "type": "IRCommand", "deviceId": device_id}
    return {
        "status": status.value,
        "timestamp": str(timestamp_ms),
        "verb": "render",
        "action": json.dumps(action),
    }
