"""Tests for HubWorker (QThread running the manager's event loop)."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytestqt.qtbot import QtBot

from harmonyctl.core.errors import NetworkError, UnknownError
from harmonyctl.core.manager import ConnectionManager
from harmonyctl.core.worker import HubWorker
from harmonyctl.models.cached_data import CachedData
from harmonyctl.models.hub import Hub


@pytest.fixture
def manager(hub: Hub) -> MagicMock:
    """Return a mock connection manager."""
    manager = MagicMock(spec=ConnectionManager)
    manager.discover_hubs = AsyncMock(return_value=[hub])
    manager.connect = AsyncMock()
    manager.disconnect = AsyncMock()
    manager.fetch_config = AsyncMock(return_value=CachedData(hub=hub))
    manager.start_activity = AsyncMock()
    manager.execute_command = AsyncMock()
    manager.clear_cache = AsyncMock()
    manager.clear_session = AsyncMock()
    manager.load_cached_hub_data = MagicMock(return_value=None)
    return manager


@pytest.fixture
def running(qtbot: QtBot, manager: MagicMock) -> Iterator[HubWorker]:
    """Return a started worker, stopped after the test."""
    worker = HubWorker(manager)
    worker.start()
    assert worker.wait_until_ready(2.0)
    yield worker
    worker.stop()
    assert worker.wait(2000)


class TestHubWorkerNotRunning:
    """Test requests are dropped safely before the loop starts."""

    def test_initial_state(self, manager: MagicMock) -> None:
        """Test a new worker has no loop."""
        worker = HubWorker(manager)
        assert worker.manager is manager
        assert not worker.is_running_loop

    def test_requests_dropped(self, manager: MagicMock, hub: Hub) -> None:
        """Test requests without a loop return None and do not crash."""
        worker = HubWorker(manager)
        assert worker.discover() is None
        assert worker.connect_hub(hub) is None
        assert worker.execute_command("d1", "Mute") is None
        manager.discover_hubs.assert_not_called()

    def test_stop_without_loop(self, manager: MagicMock) -> None:
        """Test stop is safe before start."""
        HubWorker(manager).stop()


class TestHubWorkerRunning:
    """Test results and failures come back as signals."""

    def test_discover(self, qtbot: QtBot, running: HubWorker, hub: Hub) -> None:
        """Test discovered hubs are emitted."""
        with qtbot.waitSignal(running.hubs_discovered, timeout=2000) as blocker:
            running.discover()
        assert blocker.args == [[hub]]

    def test_connect(self, qtbot: QtBot, running: HubWorker, hub: Hub) -> None:
        """Test a connect emits the hub."""
        with qtbot.waitSignal(running.connected, timeout=2000) as blocker:
            running.connect_hub(hub)
        assert blocker.args == [hub]

    def test_execute_command(
        self, qtbot: QtBot, running: HubWorker, manager: MagicMock
    ) -> None:
        """Test a sent command is reported."""
        with qtbot.waitSignal(running.command_sent, timeout=2000) as blocker:
            running.execute_command("53161234", "VolumeUp")
        assert blocker.args == ["53161234", "VolumeUp"]
        manager.execute_command.assert_awaited_once_with("53161234", "VolumeUp")

    def test_error(self, qtbot: QtBot, running: HubWorker, manager: MagicMock) -> None:
        """Test failures are emitted instead of results."""
        manager.connect.side_effect = NetworkError("refused")
        with (
            qtbot.assertNotEmitted(running.connected),
            qtbot.waitSignal(running.error_occurred, timeout=2000) as blocker,
        ):
            running.connect_hub(MagicMock())
        assert isinstance(blocker.args[0], NetworkError)

    def test_disconnect_always_reported(
        self, qtbot: QtBot, running: HubWorker, manager: MagicMock
    ) -> None:
        """Test disconnected is emitted even when closing failed."""
        manager.disconnect.side_effect = NetworkError("reset")
        with qtbot.waitSignals([running.error_occurred, running.disconnected], timeout=2000):
            running.disconnect_hub()

    def test_unclassified_error_wrapped(
        self, qtbot: QtBot, running: HubWorker, manager: MagicMock
    ) -> None:
        """Test failures outside the taxonomy arrive as UnknownError."""
        manager.start_activity.side_effect = RuntimeError("boom")
        with qtbot.waitSignal(running.error_occurred, timeout=2000) as blocker:
            running.start_activity("100")
        assert isinstance(blocker.args[0], UnknownError)
        assert isinstance(blocker.args[0].__cause__, RuntimeError)

    def test_clear_session_runs_on_worker(
        self, qtbot: QtBot, running: HubWorker, manager: MagicMock
    ) -> None:
        """Test the session is dropped by the worker loop."""
        running.clear_session()
        qtbot.waitUntil(lambda: manager.clear_session.await_count == 1, timeout=2000)

    def test_load_cache(self, qtbot: QtBot, running: HubWorker) -> None:
        """Test an empty cache is reported as None."""
        with qtbot.waitSignal(running.cache_loaded, timeout=2000) as blocker:
            running.load_cache()
        assert blocker.args == [None]

    def test_shutdown_disconnects(self, qtbot: QtBot, manager: MagicMock) -> None:
        """Test stopping the worker closes the hub connection."""
        worker = HubWorker(manager)
        worker.start()
        assert worker.wait_until_ready(2.0)
        worker.stop()
        assert worker.wait(2000)
        manager.disconnect.assert_awaited()
        assert not worker.is_running_loop
