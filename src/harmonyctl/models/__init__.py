"""Data models for Harmony hubs, activities, devices, and sessions."""

from harmonyctl.models.activity import Activity
from harmonyctl.models.cached_data import CachedData
from harmonyctl.models.device import Command, Device
from harmonyctl.models.hub import Hub
from harmonyctl.models.session import Session

__all__ = [
    "Activity",
    "CachedData",
    "Command",
    "Device",
    "Hub",
    "Session",
]
