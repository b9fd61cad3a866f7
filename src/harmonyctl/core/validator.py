"""Validation of hub, activity, device, and command data.

Each entity has an ordered list of field rules. Validation stops at the
first failing rule and raises ``ValidationError`` with that rule's message.
The ``*_response`` variants first coerce loosely typed wire data into the
canonical shape, then apply the same rules.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from harmonyctl.core.errors import ValidationError
from harmonyctl.models.activity import Activity
from harmonyctl.models.device import Command, Device
from harmonyctl.models.hub import DEFAULT_HUB_PORT, Hub

_IPV4_RE = re.compile(r"^(?:[0-9]{1,3}\.){3}[0-9]{1,3}$")


@dataclass(frozen=True)
class _Rule:
    field: str
    check: Callable[[Any], bool]
    message: str


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def _ipv4(value: Any) -> bool:
    return isinstance(value, str) and _IPV4_RE.match(value) is not None


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


_HUB_RULES = (
    _Rule("id", _non_empty_str, "Hub ID must be a non-empty string"),
    _Rule("friendly_name", _non_empty_str, "Hub friendly name must be a non-empty string"),
    _Rule("ip", _ipv4, "Hub IP must be a valid IPv4 address"),
)

_ACTIVITY_RULES = (
    _Rule("id", _non_empty_str, "Activity ID must be a non-empty string"),
    _Rule("label", _non_empty_str, "Activity label must be a non-empty string"),
)

_DEVICE_RULES = (
    _Rule("id", _non_empty_str, "Device ID must be a non-empty string"),
    _Rule("label", _non_empty_str, "Device label must be a non-empty string"),
    _Rule("commands", _is_list, "Device commands must be an array"),
)

_COMMAND_RULES = (
    _Rule("id", _non_empty_str, "Command ID must be a non-empty string"),
    _Rule("label", _non_empty_str, "Command label must be a non-empty string"),
    _Rule("device_id", _non_empty_str, "Command device ID must be a non-empty string"),
)


def _apply(candidate: Mapping[str, Any], rules: tuple[_Rule, ...]) -> None:
    for rule in rules:
        if not rule.check(candidate.get(rule.field)):
            raise ValidationError(rule.message)


def validate_hub(candidate: Mapping[str, Any]) -> Hub:
    """Validate a hub candidate and build a Hub.

    Raises:
        ValidationError: On the first failing rule.
    """
    _apply(candidate, _HUB_RULES)
    port = candidate.get("port", DEFAULT_HUB_PORT)
    return Hub(
        id=candidate["id"],
        friendly_name=candidate["friendly_name"],
        ip=candidate["ip"],
        remote_id=str(candidate.get("remote_id") or ""),
        port=port if isinstance(port, int) and port > 0 else DEFAULT_HUB_PORT,
        hub_version=str(candidate.get("hub_version") or ""),
    )


def validate_activity(candidate: Mapping[str, Any]) -> Activity:
    """Validate an activity candidate and build an Activity.

    Raises:
        ValidationError: On the first failing rule.
    """
    _apply(candidate, _ACTIVITY_RULES)
    return Activity(
        id=candidate["id"],
        label=candidate["label"],
        is_active=bool(candidate.get("is_active", False)),
    )


def validate_command(candidate: Mapping[str, Any]) -> Command:
    """Validate a command candidate and build a Command.

    Raises:
        ValidationError: On the first failing rule.
    """
    _apply(candidate, _COMMAND_RULES)
    return Command(
        id=candidate["id"],
        label=candidate["label"],
        device_id=candidate["device_id"],
    )


def validate_device(candidate: Mapping[str, Any]) -> Device:
    """Validate a device candidate and each of its commands.

    Commands may be given as mappings or as already-built Command records.

    Raises:
        ValidationError: On the first failing rule.
    """
    _apply(candidate, _DEVICE_RULES)
    commands = [
        c if isinstance(c, Command) else validate_command(c) for c in candidate["commands"]
    ]
    return Device(
        id=candidate["id"],
        label=candidate["label"],
        type=str(candidate.get("type") or ""),
        commands=commands,
    )


def _text(value: Any) -> str:
    """Coerce a loose wire value to a string, mapping missing to ""."""
    if value is None or value is False:
        return ""
    return str(value)


def _port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        return DEFAULT_HUB_PORT
    return port if port > 0 else DEFAULT_HUB_PORT


def validate_hub_response(response: Mapping[str, Any]) -> Hub:
    """Coerce a raw discovery announcement into a validated Hub.

    Accepts both announcement keys (``uuid``, ``friendlyName``, ``remoteId``,
    ``current_fw_version``) and canonical keys.

    Raises:
        ValidationError: If the coerced hub fails validation.
    """
    try:
        return validate_hub(
            {
                "id": _text(response.get("id") or response.get("uuid")),
                "friendly_name": _text(
                    response.get("friendly_name") or response.get("friendlyName")
                ),
                "ip": _text(response.get("ip")),
                "remote_id": _text(response.get("remote_id") or response.get("remoteId")),
                "port": _port(response.get("port")),
                "hub_version": _text(
                    response.get("hub_version") or response.get("current_fw_version")
                ),
            }
        )
    except ValidationError as e:
        raise ValidationError(f"Hub response validation failed: {e}") from e


def validate_activity_response(
    response: Mapping[str, Any], current_activity_id: str = ""
) -> Activity:
    """Coerce a raw hub activity into a validated Activity.

    Args:
        response: Activity entry from the hub configuration.
        current_activity_id: The hub's current activity; sets ``is_active``.

    Raises:
        ValidationError: If the coerced activity fails validation.
    """
    activity_id = _text(response.get("id"))
    try:
        return validate_activity(
            {
                "id": activity_id,
                "label": _text(response.get("label")),
                "is_active": bool(current_activity_id) and activity_id == current_activity_id,
            }
        )
    except ValidationError as e:
        raise ValidationError(f"Activity response validation failed: {e}") from e


def _coerce_command(response: Mapping[str, Any], device_id: str) -> dict[str, Any]:
    command_id = _text(response.get("id") or response.get("name"))
    return {
        "id": command_id,
        "label": _text(response.get("label")) or command_id,
        "device_id": _text(response.get("device_id") or response.get("deviceId")) or device_id,
    }


def validate_command_response(response: Mapping[str, Any], device_id: str = "") -> Command:
    """Coerce a raw hub function entry into a validated Command.

    The raw ``name`` is the command id; the label defaults to it.

    Args:
        response: Function entry (``name``, optional ``label``) or a
            canonical command mapping.
        device_id: Owning device id when the entry does not carry one.

    Raises:
        ValidationError: If the coerced command fails validation.
    """
    try:
        return validate_command(_coerce_command(response, device_id))
    except ValidationError as e:
        raise ValidationError(f"Command response validation failed: {e}") from e


def flatten_commands(response: Mapping[str, Any], device_id: str) -> list[dict[str, Any]]:
    """Flatten a device's controlGroup -> function hierarchy.

    Args:
        response: Raw device entry from the hub configuration.
        device_id: Id of the owning device.

    Returns:
        Canonical command mappings in hub order.
    """
    commands: list[dict[str, Any]] = []
    groups = response.get("controlGroup")
    if not isinstance(groups, list):
        return commands
    for group in groups:
        if not isinstance(group, dict):
            continue
        functions = group.get("function")
        if not isinstance(functions, list):
            continue
        for fn in functions:
            if isinstance(fn, dict):
                commands.append(_coerce_command(fn, device_id))
    return commands


def validate_device_response(response: Mapping[str, Any]) -> Device:
    """Coerce a raw hub device into a validated Device.

    Commands come from ``commands`` when present, otherwise they are
    flattened from the nested ``controlGroup`` entries.

    Raises:
        ValidationError: If the device or any of its commands is invalid.
    """
    device_id = _text(response.get("id"))
    raw_commands = response.get("commands")
    if isinstance(raw_commands, list):
        commands = [_coerce_command(c, device_id) for c in raw_commands if isinstance(c, dict)]
    else:
        commands = flatten_commands(response, device_id)
    try:
        return validate_device(
            {
                "id": device_id,
                "label": _text(response.get("label")),
                "type": _text(response.get("type")),
                "commands": commands,
            }
        )
    except ValidationError as e:
        raise ValidationError(f"Device response validation failed: {e}") from e
