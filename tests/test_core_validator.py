"""Tests for the validator."""

from typing import Any

import pytest

from harmonyctl.core.errors import ValidationError
from harmonyctl.core.validator import (
    flatten_commands,
    validate_activity,
    validate_activity_response,
    validate_command_response,
    validate_device,
    validate_device_response,
    validate_hub,
    validate_hub_response,
)
from harmonyctl.models.device import Command


class TestValidateHub:
    """Test hub validation rules."""

    def test_valid(self) -> None:
        """Test a valid hub is built."""
        hub = validate_hub({"id": "u1", "friendly_name": "Den", "ip": "192.168.1.2"})
        assert hub.id == "u1"
        assert hub.port == 8088

    def test_reports_first_failing_rule(self) -> None:
        """Test only the first failing rule is reported."""
        with pytest.raises(ValidationError, match="Hub ID must be a non-empty string"):
            validate_hub({"id": "", "friendly_name": "", "ip": "nope"})

    @pytest.mark.parametrize("ip", ["", "localhost", "1.2.3", "1.2.3.4.5", "a.b.c.d"])
    def test_rejects_bad_ip(self, ip: str) -> None:
        """Test IPs must look like dotted IPv4."""
        with pytest.raises(ValidationError, match="valid IPv4"):
            validate_hub({"id": "u1", "friendly_name": "Den", "ip": ip})

    def test_is_value_error(self) -> None:
        """Test ValidationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            validate_activity({"id": "1"})


class TestResponses:
    """Test coercion of raw wire data."""

    def test_hub_announcement_keys(self) -> None:
        """Test announcement field names are mapped."""
        hub = validate_hub_response(
            {
                "uuid": "abc",
                "ip": "10.0.0.9",
                "friendlyName": "Harmony Hub",
                "remoteId": "999",
                "port": "8088",
                "current_fw_version": "4.15.250",
            }
        )
        assert (hub.id, hub.friendly_name, hub.remote_id) == ("abc", "Harmony Hub", "999")
        assert hub.hub_version == "4.15.250"

    def test_hub_failure_is_wrapped(self) -> None:
        """Test failures name the response type."""
        with pytest.raises(ValidationError, match="^Hub response validation failed: Hub ID"):
            validate_hub_response({"ip": "10.0.0.9"})

    def test_activity_marks_current(self) -> None:
        """Test is_active follows the hub's current activity."""
        assert validate_activity_response({"id": "100", "label": "TV"}, "100").is_active
        assert not validate_activity_response({"id": "100", "label": "TV"}, "200").is_active
        assert not validate_activity_response({"id": "100", "label": "TV"}).is_active

    def test_activity_missing_label(self) -> None:
        """Test missing fields are coerced to empty and then rejected."""
        with pytest.raises(ValidationError, match="Activity response validation failed"):
            validate_activity_response({"id": 100})

    def test_command_label_defaults_to_name(self) -> None:
        """Test a function without label uses its raw name."""
        command = validate_command_response({"name": "VolumeDown"}, "d1")
        assert command == Command("VolumeDown", "VolumeDown", "d1")

    def test_command_needs_device(self) -> None:
        """Test commands must reference a device."""
        with pytest.raises(ValidationError, match="Command device ID"):
            validate_command_response({"name": "VolumeDown"})


class TestDevices:
    """Test device flattening and validation."""

    def test_flattens_control_groups(self, raw_config: dict[str, Any]) -> None:
        """Test 2 groups x 2 functions produce 4 commands."""
        device = validate_device_response(raw_config["device"][0])
        assert device.command_count == 4
        assert [c.id for c in device.commands] == ["PowerOn", "PowerOff", "VolumeUp", "VolumeDown"]
        assert device.get_command("VolumeDown").label == "VolumeDown"  # type: ignore[union-attr]
        assert all(c.device_id == "53161234" for c in device.commands)

    def test_flatten_ignores_malformed_groups(self) -> None:
        """Test malformed groups and functions are skipped."""
        raw = {"controlGroup": ["junk", {"function": "junk"}, {"function": [{"name": "Ok"}, 1]}]}
        assert flatten_commands(raw, "d1") == [{"id": "Ok", "label": "Ok", "device_id": "d1"}]

    def test_canonical_commands_preferred(self) -> None:
        """Test an explicit commands list wins over controlGroup."""
        device = validate_device_response(
            {
                "id": "d1",
                "label": "TV",
                "commands": [{"id": "Mute", "label": "Mute"}],
                "controlGroup": [{"function": [{"name": "Ignored"}]}],
            }
        )
        assert [c.id for c in device.commands] == ["Mute"]

    def test_device_without_commands(self) -> None:
        """Test a device with no control groups has no commands."""
        assert validate_device_response({"id": "d1", "label": "Amp"}).commands == []

    def test_invalid_command_fails_device(self) -> None:
        """Test a bad command fails the whole device."""
        with pytest.raises(ValidationError, match="Command ID"):
            validate_device({"id": "d1", "label": "TV", "commands": [{"id": "", "label": "x"}]})

    def test_commands_must_be_list(self) -> None:
        """Test the commands field must be an array."""
        with pytest.raises(ValidationError, match="must be an array"):
            validate_device({"id": "d1", "label": "TV", "commands": "nope"})
