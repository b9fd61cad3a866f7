"""Tests for data models."""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta

import pytest

from harmonyctl.models import Activity, CachedData, Command, Device, Hub, Session
from harmonyctl.models.hub import DEFAULT_HUB_PORT


class TestHub:
    """Test Hub model."""

    def test_defaults(self) -> None:
        """Test default port and optional fields."""
        hub = Hub(id="u1", friendly_name="Hub", ip="10.0.0.2")
        assert hub.port == DEFAULT_HUB_PORT == 8088
        assert hub.remote_id == ""
        assert hub.hub_version == ""

    def test_display_name_falls_back_to_ip(self) -> None:
        """Test display_name uses the IP when no name is known."""
        assert Hub(id="u1", friendly_name="", ip="10.0.0.2").display_name == "10.0.0.2"
        assert Hub(id="u1", friendly_name="Den", ip="10.0.0.2").display_name == "Den"

    def test_immutable(self) -> None:
        """Test hubs are replaced, not patched."""
        hub = Hub(id="u1", friendly_name="Hub", ip="10.0.0.2")
        with pytest.raises(FrozenInstanceError):
            hub.ip = "10.0.0.3"  # type: ignore[misc]

    def test_from_dict_bad_port(self) -> None:
        """Test a non-integer port falls back to the default."""
        hub = Hub.from_dict({"id": "u1", "friendly_name": "Hub", "ip": "1.2.3.4", "port": "x"})
        assert hub.port == DEFAULT_HUB_PORT


class TestActivity:
    """Test Activity model."""

    def test_power_off(self) -> None:
        """Test the built-in PowerOff activity is recognized."""
        assert Activity(id="-1", label="PowerOff").is_power_off
        assert not Activity(id="100", label="Watch TV").is_power_off

    def test_with_active(self) -> None:
        """Test with_active returns a modified copy."""
        activity = Activity(id="100", label="Watch TV")
        active = activity.with_active(True)
        assert active.is_active
        assert not activity.is_active


class TestDevice:
    """Test Device and Command models."""

    def test_command_lookup(self) -> None:
        """Test get_command finds commands by id."""
        device = Device(
            id="d1",
            label="TV",
            commands=[Command("VolumeUp", "Volume Up", "d1"), Command("Mute", "Mute", "d1")],
        )
        assert device.command_count == 2
        assert device.get_command("Mute") == Command("Mute", "Mute", "d1")
        assert device.get_command("Missing") is None

    def test_from_dict_skips_bad_commands(self) -> None:
        """Test non-mapping command entries are ignored."""
        device = Device.from_dict(
            {"id": "d1", "label": "TV", "commands": [{"id": "A", "label": "A"}, "junk"]}
        )
        assert [c.id for c in device.commands] == ["A"]


class TestSession:
    """Test Session model."""

    def test_expiry_and_inactivity(self) -> None:
        """Test expiry and inactivity checks are strict."""
        session = Session(token="t", expires_at=100.0, last_activity_at=50.0)
        assert not session.is_expired(100.0)
        assert session.is_expired(100.1)
        assert not session.is_inactive(60.0, 10.0)
        assert session.is_inactive(60.1, 10.0)

    def test_touched(self) -> None:
        """Test touched moves only the activity time."""
        session = Session(token="t", expires_at=100.0, last_activity_at=50.0)
        touched = session.touched(75.0)
        assert touched.last_activity_at == 75.0
        assert touched.expires_at == 100.0

    def test_from_dict_missing_field(self) -> None:
        """Test from_dict rejects incomplete data."""
        with pytest.raises(KeyError):
            Session.from_dict({"token": "t", "expires_at": 1.0})


class TestCachedData:
    """Test CachedData model."""

    def test_snapshot_roundtrip(self, hub: Hub) -> None:
        """Test a snapshot survives serialization."""
        device = Device(id="d1", label="TV", commands=[Command("PowerOn", "Power On", "d1")])
        data = CachedData.snapshot(hub, [Activity("100", "Watch TV", True)], [device])

        restored = CachedData.from_dict(data.to_dict())
        assert restored == data
        assert restored.devices[0].commands[0].device_id == "d1"

    def test_age(self, hub: Hub) -> None:
        """Test age is measured from the timestamp."""
        taken = datetime(2024, 1, 1, tzinfo=UTC)
        data = CachedData(hub=hub, timestamp=taken.isoformat())
        assert data.age_seconds(taken + timedelta(seconds=90)) == pytest.approx(90.0)

    def test_unparsable_timestamp_is_infinitely_old(self, hub: Hub) -> None:
        """Test a corrupt timestamp never counts as fresh."""
        assert CachedData(hub=hub, timestamp="yesterday").age_seconds() == float("inf")
