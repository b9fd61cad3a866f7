"""Tests for hub discovery."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from harmonyctl.core.discovery import (
    DiscoveryEngine,
    DiscoverySession,
    parse_announcement,
)
from harmonyctl.core.errors import CacheOperationError, NetworkError
from harmonyctl.models.hub import Hub

ANNOUNCEMENT = (
    b"uuid:hub-uuid-1;ip:127.0.0.1;friendlyName:Living Room;"
    b"remoteId:12345678;port:8088;current_fw_version:4.15.250"
)


def _hub(n: int) -> Hub:
    return Hub(id=f"hub-{n}", friendly_name=f"Hub {n}", ip=f"192.168.1.{n}")


class FakeSession:
    """Discovery session stand-in returning canned hubs."""

    instances: list["FakeSession"] = []

    def __init__(
        self, hubs: list[Hub] | None = None, gate: asyncio.Event | None = None,
        error: Exception | None = None,
    ) -> None:
        self._hubs = hubs or []
        self._gate = gate
        self._error = error
        self.entered = False
        self.exited = False
        FakeSession.instances.append(self)

    async def __aenter__(self) -> "FakeSession":
        self.entered = True
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.exited = True

    async def collect(self, window: float) -> list[Hub]:
        if self._gate is not None:
            await self._gate.wait()
        if self._error is not None:
            raise self._error
        return list(self._hubs)


@pytest.fixture(autouse=True)
def _reset_fake_sessions() -> None:
    FakeSession.instances = []


class TestParseAnnouncement:
    """Test hub descriptor parsing."""

    def test_parses_pairs(self) -> None:
        """Test all key:value pairs are returned."""
        parsed = parse_announcement(ANNOUNCEMENT)
        assert parsed["uuid"] == "hub-uuid-1"
        assert parsed["friendlyName"] == "Living Room"
        assert parsed["current_fw_version"] == "4.15.250"

    def test_value_with_colon(self) -> None:
        """Test only the first colon splits a pair."""
        assert parse_announcement(b"setupSessionId:a:b:c")["setupSessionId"] == "a:b:c"

    def test_skips_malformed(self) -> None:
        """Test pairs without a key or separator are skipped."""
        assert parse_announcement(b"junk;:novalue;ip:1.2.3.4;") == {"ip": "1.2.3.4"}


class TestDiscoverySession:
    """Test announcement handling and session lifecycle."""

    def test_ping_payload(self) -> None:
        """Test the ping names the call-back port."""
        session = DiscoverySession(port=61991)
        assert session.ping_payload() == b"_logitech-reverse-bonjour._tcp.local.\n61991"

    def test_deduplicates_by_id(self) -> None:
        """Test a hub announced twice is recorded once."""
        found: list[Hub] = []
        session = DiscoverySession(on_found=found.append)
        raw = parse_announcement(ANNOUNCEMENT)

        assert session.handle_announcement(raw) is not None
        assert session.handle_announcement(raw) is None
        assert len(session.hubs) == 1
        assert [h.id for h in found] == ["hub-uuid-1"]

    def test_invalid_announcement_ignored(self) -> None:
        """Test malformed announcements do not abort discovery."""
        session = DiscoverySession()
        assert session.handle_announcement({"uuid": "x", "ip": "not-an-ip"}) is None
        assert session.hubs == []

    def test_preserves_discovery_order(self) -> None:
        """Test hubs are listed in the order they answered."""
        session = DiscoverySession()
        for n in (3, 1, 2):
            session.handle_announcement(
                {"uuid": f"hub-{n}", "ip": f"10.0.0.{n}", "friendlyName": f"Hub {n}"}
            )
        assert [h.id for h in session.hubs] == ["hub-3", "hub-1", "hub-2"]

    @pytest.mark.asyncio
    async def test_loopback_announcement(self) -> None:
        """Test a hub calling back over TCP is discovered."""
        async with DiscoverySession(
            port=0, host="127.0.0.1", broadcast_address="127.0.0.1", ping_interval=0.05
        ) as session:
            assert session.is_running
            _, writer = await asyncio.open_connection("127.0.0.1", session.port)
            writer.write(ANNOUNCEMENT)
            await writer.drain()
            writer.close()
            await writer.wait_closed()

            hubs = await session.collect(0.3)

        assert [h.id for h in hubs] == ["hub-uuid-1"]
        assert hubs[0].remote_id == "12345678"
        assert not session.is_running

    @pytest.mark.asyncio
    async def test_reported_error_fails_collect(self) -> None:
        """Test a listener error ends the window with NetworkError."""
        async with DiscoverySession(
            port=0, host="127.0.0.1", broadcast_address="127.0.0.1"
        ) as session:
            session.report_error(OSError("boom"))
            with pytest.raises(NetworkError, match="boom"):
                await session.collect(5.0)

    @pytest.mark.asyncio
    async def test_collect_requires_start(self) -> None:
        """Test collecting before start is an error."""
        with pytest.raises(NetworkError):
            await DiscoverySession().collect(0.1)


class TestDiscoveryEngine:
    """Test single-flight discovery."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_scan(self) -> None:
        """Test overlapping calls start exactly one session."""
        gate = asyncio.Event()
        hubs = [_hub(1), _hub(2)]
        engine = DiscoveryEngine(session_factory=lambda: FakeSession(hubs, gate))

        first = asyncio.create_task(engine.discover_hubs())
        second = asyncio.create_task(engine.discover_hubs())
        await asyncio.sleep(0)
        assert engine.is_discovering
        gate.set()

        assert await first == hubs
        assert await second == hubs
        assert len(FakeSession.instances) == 1
        assert FakeSession.instances[0].exited
        assert not engine.is_discovering

    @pytest.mark.asyncio
    async def test_error_clears_inflight(self) -> None:
        """Test a failed scan propagates and allows a new one."""
        engine = DiscoveryEngine(session_factory=lambda: FakeSession(error=NetworkError("bind")))

        with pytest.raises(NetworkError, match="bind"):
            await engine.discover_hubs()
        assert not engine.is_discovering
        assert FakeSession.instances[0].exited

        with pytest.raises(NetworkError):
            await engine.discover_hubs()
        assert len(FakeSession.instances) == 2

    @pytest.mark.asyncio
    async def test_caches_first_hub(self) -> None:
        """Test the handler receives the first hub of a non-empty scan."""
        handler = AsyncMock()
        engine = DiscoveryEngine(
            session_factory=lambda: FakeSession([_hub(1), _hub(2)]), on_hubs_found=handler
        )
        await engine.discover_hubs()
        handler.assert_awaited_once_with(_hub(1))

    @pytest.mark.asyncio
    async def test_no_handler_call_for_empty_scan(self) -> None:
        """Test an empty scan does not trigger caching."""
        handler = AsyncMock()
        engine = DiscoveryEngine(session_factory=lambda: FakeSession([]), on_hubs_found=handler)
        assert await engine.discover_hubs() == []
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_failure_does_not_fail_discovery(self) -> None:
        """Test a failing handler is logged only."""
        handler = AsyncMock(side_effect=CacheOperationError("disk full"))
        engine = DiscoveryEngine(
            session_factory=lambda: FakeSession([_hub(1)]), on_hubs_found=handler
        )
        assert await engine.discover_hubs() == [_hub(1)]
