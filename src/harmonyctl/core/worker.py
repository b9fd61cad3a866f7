"""QThread worker running the connection manager's asyncio loop.

Qt objects live in the main thread, but the hub transport uses asyncio.
This worker runs the event loop in a background thread; the main thread
schedules manager operations through thread-safe methods and receives
results and failures via Qt signals.
"""

import asyncio
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import Future
from contextlib import suppress
from typing import Any

from PySide6.QtCore import QThread, Signal

from harmonyctl.core.errors import HarmonyError, wrap_unknown
from harmonyctl.core.manager import ConnectionManager
from harmonyctl.models.hub import Hub

logger = logging.getLogger(__name__)


class HubWorker(QThread):
    """Background thread driving a ConnectionManager.

    Example:
        worker = HubWorker(manager)
        worker.hubs_discovered.connect(lambda hubs: print(hubs))
        worker.error_occurred.connect(lambda e: print(f"Error: {e}"))
        worker.start()
        worker.discover()
    """

    # Result signals
    hubs_discovered = Signal(object)  # list[Hub]
    cache_loaded = Signal(object)  # CachedData | None
    connected = Signal(object)  # Hub
    config_loaded = Signal(object)  # CachedData
    activity_started = Signal(str)  # activity id
    command_sent = Signal(str, str)  # device id, command id
    disconnected = Signal()
    cache_cleared = Signal()

    # Error signal
    error_occurred = Signal(object)  # Exception

    def __init__(self, manager: ConnectionManager) -> None:
        """Initialize the worker.

        Args:
            manager: The connection manager to drive.
        """
        super().__init__()
        self._manager = manager
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ready = threading.Event()

    @property
    def manager(self) -> ConnectionManager:
        """Return the driven manager."""
        return self._manager

    @property
    def is_running_loop(self) -> bool:
        """Return True while the event loop accepts work."""
        return self._loop is not None and self._loop.is_running()

    def wait_until_ready(self, timeout: float | None = None) -> bool:
        """Block until the event loop has started."""
        return self._ready.wait(timeout)

    def stop(self) -> None:
        """Stop the event loop (called from main thread)."""
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)

        try:
            self._loop.run_forever()
        finally:
            self._loop.run_until_complete(self._shutdown())
            self._loop.close()
            self._loop = None
            self._ready.clear()

    async def _shutdown(self) -> None:
        tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        try:
            await self._manager.disconnect()
        except (HarmonyError, OSError) as e:
            logger.debug("Error disconnecting during shutdown: %s", e)

    def _submit(self, coro: Coroutine[Any, Any, None]) -> Future[None] | None:
        """Schedule a coroutine on the worker loop.

        Thread-safe call from main thread.
        """
        if self._loop is None or not self._loop.is_running():
            logger.warning("Worker loop not running, dropping request")
            coro.close()
            return None
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    # -- Thread-safe requests --------------------------------------------------

    def discover(self) -> Future[None] | None:
        """Discover hubs; emits ``hubs_discovered``."""
        return self._submit(self._safe_discover())

    def load_cache(self) -> Future[None] | None:
        """Load cached hub data; emits ``cache_loaded``."""
        return self._submit(self._safe_load_cache())

    def connect_hub(self, hub: Hub) -> Future[None] | None:
        """Connect to ``hub``; emits ``connected``."""
        return self._submit(self._safe_connect(hub))

    def fetch_config(self) -> Future[None] | None:
        """Fetch activities and devices; emits ``config_loaded``."""
        return self._submit(self._safe_fetch_config())

    def start_activity(self, activity_id: str) -> Future[None] | None:
        """Start an activity; emits ``activity_started``."""
        return self._submit(self._safe_start_activity(activity_id))

    def execute_command(self, device_id: str, command_id: str) -> Future[None] | None:
        """Press and release a command; emits ``command_sent``."""
        return self._submit(self._safe_execute_command(device_id, command_id))

    def disconnect_hub(self) -> Future[None] | None:
        """Disconnect from the hub; emits ``disconnected``."""
        return self._submit(self._safe_disconnect())

    def clear_session(self) -> Future[None] | None:
        """Drop the session on the worker loop, next to its readers."""
        return self._submit(self._safe_clear_session())

    def clear_cache(self) -> Future[None] | None:
        """Clear persisted data; emits ``cache_cleared``."""
        return self._submit(self._safe_clear_cache())

    # -- Coroutines run on the worker loop -------------------------------------

    async def _safe_discover(self) -> None:
        try:
            hubs = await self._manager.discover_hubs()
        except Exception as e:
            self._fail(e)
            return
        self.hubs_discovered.emit(hubs)

    async def _safe_load_cache(self) -> None:
        try:
            data = self._manager.load_cached_hub_data()
        except Exception as e:
            self._fail(e)
            return
        self.cache_loaded.emit(data)

    async def _safe_connect(self, hub: Hub) -> None:
        try:
            await self._manager.connect(hub)
        except Exception as e:
            self._fail(e)
            return
        self.connected.emit(hub)

    async def _safe_fetch_config(self) -> None:
        try:
            data = await self._manager.fetch_config()
        except Exception as e:
            self._fail(e)
            return
        self.config_loaded.emit(data)

    async def _safe_start_activity(self, activity_id: str) -> None:
        try:
            await self._manager.start_activity(activity_id)
        except Exception as e:
            self._fail(e)
            return
        self.activity_started.emit(activity_id)

    async def _safe_execute_command(self, device_id: str, command_id: str) -> None:
        try:
            await self._manager.execute_command(device_id, command_id)
        except Exception as e:
            self._fail(e)
            return
        self.command_sent.emit(device_id, command_id)

    async def _safe_disconnect(self) -> None:
        try:
            await self._manager.disconnect()
        except Exception as e:
            self._fail(e)
        # State is reset even when the graceful close failed
        self.disconnected.emit()

    async def _safe_clear_cache(self) -> None:
        try:
            await self._manager.clear_cache()
        except Exception as e:
            self._fail(e)
            return
        self.cache_cleared.emit()

    async def _safe_clear_session(self) -> None:
        try:
            await self._manager.clear_session()
        except Exception as e:
            self._fail(e)

    def _fail(self, error: Exception) -> None:
        logger.debug("Worker request failed: %r", error)
        self.error_occurred.emit(wrap_unknown(error))
