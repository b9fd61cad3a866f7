"""Connection manager: the single live control connection to a hub.

The manager owns the transport handle and the connection state and keeps
them in agreement. "Connected" means the last liveness probe succeeded,
not merely that the socket opened: the hub's control channel can lag
behind the WebSocket handshake.

One instance is built at startup and handed to every collaborator.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from enum import Enum

from harmonyctl.api.client import HarmonyClient
from harmonyctl.api.protocol import HoldStatus
from harmonyctl.core.cache import CacheStore
from harmonyctl.core.config import ConfigManager
from harmonyctl.core.discovery import DiscoveryEngine
from harmonyctl.core.errors import (
    AuthenticationError,
    CacheOperationError,
    ConnectionLostError,
    HarmonyError,
    HubTimeoutError,
    NetworkError,
    NotConnectedError,
)
from harmonyctl.core.session import SessionStore
from harmonyctl.core.validator import validate_activity_response, validate_device_response
from harmonyctl.models.activity import Activity
from harmonyctl.models.cached_data import CachedData
from harmonyctl.models.device import Device
from harmonyctl.models.hub import Hub

logger = logging.getLogger(__name__)

# Wait after failed attempt N, before retry N (seconds)
RETRY_DELAYS = (1.0, 2.0, 4.0)
MAX_ATTEMPTS = 1 + len(RETRY_DELAYS)  # first try plus one retry per delay

PROBE_INTERVAL = 0.5  # seconds
CONNECT_TIMEOUT = 5.0  # seconds
SETTLE_DELAY = 1.0  # seconds, after tearing down a previous handle
HOLD_TIME = 0.1  # seconds between press and release
CACHE_DURATION = 3600.0  # seconds

ClientFactory = Callable[[Hub], HarmonyClient]


class ConnectionState(Enum):
    """Connection lifecycle state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int) -> float:
    """Return the wait after a failed attempt (1-based).

    Attempts past the end of the table reuse its last entry.
    """
    index = min(max(attempt, 1), len(RETRY_DELAYS)) - 1
    return RETRY_DELAYS[index]


def _default_client_factory(hub: Hub) -> HarmonyClient:
    return HarmonyClient(hub.ip, port=hub.port, remote_id=hub.remote_id)


class ConnectionManager:
    """Owns the hub transport, its state, and command dispatch.

    High-level operations are serialized by an internal lock, so a command
    execution never interleaves with a disconnect or a reconnect.

    Example:
        manager = ConnectionManager(sessions, cache)
        hubs = await manager.discover_hubs()
        await manager.connect(hubs[0])
        await manager.execute_command("53161234", "VolumeUp")
    """

    def __init__(
        self,
        sessions: SessionStore,
        cache: CacheStore,
        discovery: DiscoveryEngine | None = None,
        client_factory: ClientFactory = _default_client_factory,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        hold_time: float = HOLD_TIME,
        probe_interval: float = PROBE_INTERVAL,
        connect_timeout: float = CONNECT_TIMEOUT,
        settle_delay: float = SETTLE_DELAY,
        cache_duration: float = CACHE_DURATION,
    ) -> None:
        """Initialize the manager.

        Args:
            sessions: Session store gating privileged operations.
            cache: Store for last-known hub data.
            discovery: Discovery engine (a default one is created).
            client_factory: Builds a transport for a hub.
            max_attempts: First try plus retries before giving up.
            hold_time: Seconds between button press and release.
            probe_interval: Seconds between liveness probes while connecting.
            connect_timeout: Seconds to wait for the first successful probe.
            settle_delay: Seconds to wait after dropping an old handle.
            cache_duration: Maximum age of cached hub data, in seconds.
        """
        self._sessions = sessions
        self._cache = cache
        self._discovery = discovery or DiscoveryEngine()
        self._discovery.set_hubs_found_handler(self.cache_hub_data)
        self._client_factory = client_factory
        self._max_attempts = max(1, max_attempts)
        self._hold_time = hold_time
        self._probe_interval = probe_interval
        self._connect_timeout = connect_timeout
        self._settle_delay = settle_delay
        self._cache_duration = cache_duration

        self._lock = asyncio.Lock()
        self._client: HarmonyClient | None = None
        self._state = ConnectionState.DISCONNECTED
        self._hub: Hub | None = None
        self._last_hub: Hub | None = None
        self._discovered_hubs: list[Hub] = []
        self._retry_count = 0

    @classmethod
    def from_config(
        cls,
        config: ConfigManager,
        sessions: SessionStore,
        cache: CacheStore,
        discovery: DiscoveryEngine | None = None,
    ) -> "ConnectionManager":
        """Build a manager tuned by the user preferences in ``config``."""
        timeout = config.get_network_timeout() / 1000

        def client_factory(hub: Hub) -> HarmonyClient:
            return HarmonyClient(hub.ip, port=hub.port, remote_id=hub.remote_id, timeout=timeout)

        return cls(
            sessions,
            cache,
            discovery,
            client_factory,
            max_attempts=config.get_max_attempts(),
            hold_time=config.get_command_hold_time() / 1000,
            connect_timeout=timeout,
            cache_duration=config.get_cache_duration(),
        )

    @property
    def state(self) -> ConnectionState:
        """Return the connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Return True if the last probe succeeded and a handle exists."""
        return self._state is ConnectionState.CONNECTED and self._client is not None

    @property
    def hub(self) -> Hub | None:
        """Return the hub the current handle points at."""
        return self._hub if self._client is not None else None

    @property
    def last_hub(self) -> Hub | None:
        """Return the most recently connected hub."""
        return self._last_hub

    @property
    def discovered_hubs(self) -> list[Hub]:
        """Return hubs found by the last discovery."""
        return list(self._discovered_hubs)

    @property
    def retry_count(self) -> int:
        """Return the failed attempts of the last command execution."""
        return self._retry_count

    # -- Discovery -------------------------------------------------------------

    async def discover_hubs(self) -> list[Hub]:
        """Discover hubs on the network (single-flight).

        Raises:
            NetworkError: If the discovery listener fails.
        """
        hubs = await self._discovery.discover_hubs()
        self._discovered_hubs = list(hubs)
        return hubs

    # -- Connection lifecycle --------------------------------------------------

    async def connect(self, hub: Hub) -> None:
        """Open a verified connection to ``hub``.

        Raises:
            HubTimeoutError: If no liveness probe succeeds in time.
            NetworkError: If the transport cannot be opened.
        """
        async with self._lock:
            await self._connect(hub)

    async def _connect(self, hub: Hub) -> None:
        if self._client is not None:
            logger.info("Cleaning up existing hub connection")
            try:
                await self._disconnect()
            except (HarmonyError, OSError) as e:
                logger.warning("Error closing previous connection: %s", e)
            await asyncio.sleep(self._settle_delay)

        logger.info("Connecting to hub: %s (%s)", hub.friendly_name, hub.ip)
        self._state = ConnectionState.CONNECTING
        client = self._client_factory(hub)
        self._client = client
        self._hub = hub
        try:
            await client.connect()
            await asyncio.wait_for(self._await_ready(client), timeout=self._connect_timeout)
        except (HarmonyError, OSError, TimeoutError) as e:
            await self._discard(client)
            if isinstance(e, HarmonyError) and not isinstance(e, HubTimeoutError):
                logger.error("Failed to connect to hub %s: %s", hub.friendly_name, e)
                raise
            logger.error("Timed out waiting for hub %s", hub.friendly_name)
            raise HubTimeoutError(f"Connection timeout after {self._connect_timeout:g}s") from e

        self._state = ConnectionState.CONNECTED
        self._last_hub = hub
        self._sessions.create_session(uuid.uuid4().hex)
        logger.info("Successfully connected to hub: %s", hub.friendly_name)

    async def _await_ready(self, client: HarmonyClient) -> None:
        """Poll the liveness probe until it succeeds."""
        attempts = max(1, int(round(self._connect_timeout / self._probe_interval)))
        last_error: Exception | None = None
        for _ in range(attempts):
            try:
                await client.get_activities()
                return
            except (HarmonyError, OSError) as e:
                last_error = e
                logger.debug("Hub not ready yet: %s", e)
            await asyncio.sleep(self._probe_interval)
        raise HubTimeoutError(f"Hub never answered the liveness probe: {last_error}")

    async def _discard(self, client: HarmonyClient) -> None:
        """Drop a handle that never became ready."""
        if self._client is client:
            self._client = None
            self._hub = None
        self._state = ConnectionState.DISCONNECTED
        try:
            await client.disconnect()
        except (HarmonyError, OSError) as e:
            logger.debug("Error closing failed connection: %s", e)

    async def disconnect(self) -> None:
        """Close the connection; state is reset even if closing fails.

        Raises:
            NetworkError: If the graceful close failed (after cleanup).
        """
        async with self._lock:
            await self._disconnect()

    async def _disconnect(self) -> None:
        client = self._client
        self._client = None
        self._hub = None
        self._state = ConnectionState.DISCONNECTED
        if client is None:
            return

        logger.info("Disconnecting from hub")
        try:
            await client.disconnect()
        except (HarmonyError, OSError) as e:
            logger.error("Error during disconnect: %s", e)
            raise NetworkError(f"Error during disconnect: {e}") from e
        logger.info("Successfully disconnected from hub")

    async def ensure_connected(self) -> None:
        """Verify the connection with a liveness probe.

        Raises:
            NotConnectedError: If there is no handle.
            ConnectionLostError: If the probe fails; the handle is dropped.
        """
        async with self._lock:
            await self._ensure_connected()

    async def _ensure_connected(self) -> None:
        client = self._client
        if client is None:
            self._state = ConnectionState.DISCONNECTED
            raise NotConnectedError("Not connected to hub. Please select a hub first.")

        try:
            await client.get_activities()
        except (HarmonyError, OSError) as e:
            logger.error("Connection test failed: %s", e)
            self._client = None
            self._hub = None
            self._state = ConnectionState.DISCONNECTED
            try:
                await client.disconnect()
            except (HarmonyError, OSError) as close_error:
                logger.debug("Error closing lost connection: %s", close_error)
            raise ConnectionLostError("Lost connection to hub. Please try reconnecting.") from e

        if self._state is not ConnectionState.CONNECTED:
            logger.info("Connection verified but state was %s, fixing", self._state.value)
            self._state = ConnectionState.CONNECTED

    def _require_client(self) -> HarmonyClient:
        if self._client is None:
            raise NotConnectedError("Not connected to hub")
        return self._client

    def _require_session(self) -> None:
        if not self._sessions.validate_session():
            raise AuthenticationError("Session expired. Please reconnect to your Hub.")

    # -- Queries ---------------------------------------------------------------

    async def get_activities(self) -> list[Activity]:
        """Return the hub's activities, flagging the current one.

        Raises:
            NotConnectedError: If there is no handle.
            AuthenticationError: If the session is not valid.
            ValidationError: If the hub returned malformed data.
        """
        async with self._lock:
            return await self._get_activities()

    async def _get_activities(self) -> list[Activity]:
        client = self._require_client()
        self._require_session()
        logger.info("Fetching activities...")
        raw = await client.get_activities()
        if not raw:
            logger.warning("No activities returned from hub")
            return []
        current = await client.get_current_activity()
        activities = [validate_activity_response(a, current) for a in raw]
        logger.info("Found %d activities", len(activities))
        return activities

    async def get_devices(self) -> list[Device]:
        """Return the hub's devices with flattened command lists.

        Raises:
            NotConnectedError: If there is no handle.
            AuthenticationError: If the session is not valid.
            ValidationError: If the hub returned malformed data.
        """
        async with self._lock:
            return await self._get_devices()

    async def _get_devices(self) -> list[Device]:
        client = self._require_client()
        self._require_session()
        logger.info("Fetching devices...")
        config = await client.get_available_commands()
        raw = config.get("device")
        if not isinstance(raw, list) or not raw:
            logger.warning("No devices returned from hub")
            return []
        devices = [validate_device_response(d) for d in raw if isinstance(d, dict)]
        for device in devices:
            logger.debug("Device: %s (%s), %d commands", device.label, device.id,
                         device.command_count)
        logger.info("Found %d devices", len(devices))
        return devices

    # -- Commands --------------------------------------------------------------

    async def start_activity(self, activity_id: str) -> None:
        """Start an activity on the hub.

        Local activity flags are left alone; the state orchestrator updates
        them when it sees the success.

        Raises:
            NotConnectedError: If there is no handle.
            AuthenticationError: If the session is not valid.
        """
        async with self._lock:
            client = self._require_client()
            self._require_session()
            logger.info("Starting activity: %s", activity_id)
            await client.start_activity(activity_id)
            logger.info("Activity started successfully")

    async def execute_command(self, device_id: str, command_id: str) -> None:
        """Press and release a device command, retrying with backoff.

        Each attempt checks the session, probes the connection, then sends
        press, waits the hold time, and sends release. Network failures are
        retried after ``RETRY_DELAYS`` with a best-effort reconnect in
        between; session and validation failures are not retried.

        Raises:
            AuthenticationError: If the session is not valid.
            NetworkError: The last failure once attempts are exhausted.
        """
        async with self._lock:
            self._retry_count = 0
            for attempt in range(1, self._max_attempts + 1):
                try:
                    self._require_session()
                    await self._ensure_connected()
                    await self._press_and_release(device_id, command_id)
                    logger.info("Command %s executed for device %s", command_id, device_id)
                    return
                except (NetworkError, OSError) as e:
                    self._retry_count += 1
                    logger.error("Command execution failed (attempt %d/%d): %s",
                                 attempt, self._max_attempts, e)
                    if attempt >= self._max_attempts:
                        logger.error("Max retries reached. Command execution failed.")
                        raise

                delay = backoff_delay(attempt)
                logger.info("Retrying command in %.1fs (attempt %d/%d)",
                            delay, attempt + 1, self._max_attempts)
                await asyncio.sleep(delay)
                await self._reconnect_for_retry()

    async def _press_and_release(self, device_id: str, command_id: str) -> None:
        client = self._require_client()
        await client.hold_action(device_id, command_id, HoldStatus.PRESS, 0)
        await asyncio.sleep(self._hold_time)
        await client.hold_action(
            device_id, command_id, HoldStatus.RELEASE, int(self._hold_time * 1000)
        )

    async def _reconnect_for_retry(self) -> None:
        """Reconnect to the last known hub; failures are only logged."""
        hub = self._last_hub
        if hub is None:
            cached = self.load_cached_hub_data()
            hub = cached.hub if cached else None
        if hub is None:
            logger.info("No known hub to reconnect to before retry")
            return

        logger.info("Attempting to reconnect before retry")
        try:
            await self._connect(hub)
        except (HarmonyError, OSError) as e:
            logger.error("Reconnection attempt failed: %s", e)

    # -- Cache -----------------------------------------------------------------

    async def fetch_config(self) -> CachedData:
        """Fetch activities and devices of the connected hub.

        The result is cached; a cache write failure is logged only.

        Raises:
            NotConnectedError: If there is no handle.
            AuthenticationError: If the session is not valid.
        """
        async with self._lock:
            hub = self.hub
            if hub is None:
                raise NotConnectedError("Not connected to hub")
            data = await self._snapshot(hub)
            try:
                self._cache.save_hub_data(data)
            except CacheOperationError as e:
                logger.warning("Could not cache hub data: %s", e)
            return data

    async def cache_hub_data(self, hub: Hub) -> CachedData:
        """Fetch activities and devices of ``hub`` and cache them.

        Connects to ``hub`` first unless it is already the live connection.

        Raises:
            HarmonyError: If connecting, fetching, or writing fails.
        """
        async with self._lock:
            if not (self.is_connected and self._hub is not None and self._hub.id == hub.id):
                await self._connect(hub)
            logger.info("Caching hub data for: %s", hub.friendly_name)
            data = await self._snapshot(hub)
            self._cache.save_hub_data(data)
            return data

    async def _snapshot(self, hub: Hub) -> CachedData:
        activities = await self._get_activities()
        devices = await self._get_devices()
        return CachedData.snapshot(hub, activities, devices)

    def load_cached_hub_data(self) -> CachedData | None:
        """Return cached hub data younger than the cache duration."""
        return self._cache.load_hub_data(max_age=self._cache_duration)

    async def clear_cache(self) -> None:
        """Delete persisted data and reset in-memory state.

        Raises:
            CacheOperationError: If the persisted keys cannot be removed.
        """
        async with self._lock:
            client = self._client
            self._client = None
            self._hub = None
            self._last_hub = None
            self._state = ConnectionState.DISCONNECTED
            self._discovered_hubs = []
            self._retry_count = 0
            if client is not None:
                try:
                    await client.disconnect()
                except (HarmonyError, OSError) as e:
                    logger.debug("Error closing connection while clearing cache: %s", e)
            self._cache.clear()

    async def clear_session(self) -> None:
        """Drop the session so the next connect starts a fresh one."""
        async with self._lock:
            self._sessions.clear_session()
