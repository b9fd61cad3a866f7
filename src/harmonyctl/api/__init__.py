"""API client for the Harmony hub WebSocket protocol."""

from harmonyctl.api.client import HarmonyClient
from harmonyctl.api.protocol import HoldStatus, HubRequest, HubResponse

__all__ = [
    "HarmonyClient",
    "HoldStatus",
    "HubRequest",
    "HubResponse",
]
