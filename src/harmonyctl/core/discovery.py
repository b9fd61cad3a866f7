"""Harmony hub discovery on the local network.

Hubs answer the Logitech reverse-discovery handshake: the client listens on
a TCP port and broadcasts a UDP ping naming that port; every hub that hears
the ping connects back and writes a ``key:value;key:value`` descriptor.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager, suppress
from typing import Any

from harmonyctl.core.errors import HarmonyError, NetworkError, ValidationError
from harmonyctl.core.validator import validate_hub_response
from harmonyctl.models.hub import Hub

logger = logging.getLogger(__name__)

DEFAULT_PORT = 61991
DISCOVERY_WINDOW = 60.0  # seconds
PING_INTERVAL = 5.0  # seconds
BROADCAST_ADDRESS = "255.255.255.255"
BROADCAST_PORT = 5224
PING_PREFIX = "_logitech-reverse-bonjour._tcp.local.\n"

# Upper bound for a single hub descriptor
_MAX_ANNOUNCEMENT_BYTES = 64 * 1024
_READ_TIMEOUT = 5.0


def parse_announcement(payload: bytes) -> dict[str, str]:
    """Parse a hub descriptor (``uuid:...;ip:...;friendlyName:...``).

    Values may themselves contain ``:``; only the first one splits.

    Args:
        payload: Raw bytes written by the hub.

    Returns:
        Mapping of descriptor keys to values. Malformed pairs are skipped.
    """
    text = payload.decode("utf-8", errors="replace").strip()
    result: dict[str, str] = {}
    for pair in text.split(";"):
        key, sep, value = pair.partition(":")
        key = key.strip()
        if sep and key:
            result[key] = value.strip()
    return result


class _PingProtocol(asyncio.DatagramProtocol):
    """UDP endpoint used only for sending broadcast pings."""

    def __init__(self, on_error: Callable[[Exception], None]) -> None:
        self._on_error = on_error

    def error_received(self, exc: Exception) -> None:
        self._on_error(exc)


class DiscoverySession:
    """One bounded discovery run owning its sockets and timers.

    Use as an async context manager; leaving the block releases the TCP
    listener, the UDP endpoint and the ping task, and detaches callbacks,
    whether the run ended by timeout, error, or an early exit.

    Example:
        async with DiscoverySession(on_found=print) as session:
            hubs = await session.collect(10.0)
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        on_found: Callable[[Hub], None] | None = None,
        ping_interval: float = PING_INTERVAL,
        broadcast_address: str = BROADCAST_ADDRESS,
        host: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            port: Local TCP port hubs call back on.
            on_found: Callback for every newly discovered hub.
            ping_interval: Seconds between broadcast pings.
            broadcast_address: Destination of the UDP ping.
            host: Listen address (default: all interfaces).
        """
        self._port = port
        self._on_found = on_found
        self._ping_interval = ping_interval
        self._broadcast_address = broadcast_address
        self._host = host
        self._hubs: dict[str, Hub] = {}
        self._server: asyncio.Server | None = None
        self._transport: asyncio.DatagramTransport | None = None
        self._ping_task: asyncio.Task[None] | None = None
        self._failure: asyncio.Future[None] | None = None

    @property
    def port(self) -> int:
        """Return the TCP call-back port."""
        return self._port

    @property
    def hubs(self) -> list[Hub]:
        """Return hubs discovered so far, in discovery order."""
        return list(self._hubs.values())

    @property
    def is_running(self) -> bool:
        """Return True while the listener is open."""
        return self._server is not None

    async def __aenter__(self) -> DiscoverySession:
        """Start listening and pinging."""
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Release every resource."""
        await self.stop()

    async def start(self) -> None:
        """Bind the call-back listener and start broadcasting pings.

        Raises:
            NetworkError: If the port cannot be bound or the UDP endpoint
                cannot be created.
        """
        loop = asyncio.get_running_loop()
        self._failure = loop.create_future()
        try:
            self._server = await asyncio.start_server(
                self._handle_connection, host=self._host, port=self._port
            )
            if self._port == 0:
                self._port = self._server.sockets[0].getsockname()[1]
            self._transport, _ = await loop.create_datagram_endpoint(
                lambda: _PingProtocol(self.report_error),
                family=socket.AF_INET,
                allow_broadcast=True,
            )
        except OSError as e:
            raise NetworkError(f"Cannot start discovery on port {self._port}: {e}") from e

        self._ping_task = asyncio.create_task(self._ping_loop())
        logger.debug("Started hub discovery on port %d", self._port)

    async def stop(self) -> None:
        """Stop listening and release sockets, timers and callbacks."""
        if self._ping_task:
            self._ping_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._ping_task
            self._ping_task = None

        if self._transport:
            self._transport.close()
            self._transport = None

        if self._server:
            self._server.close()
            with suppress(OSError):
                await self._server.wait_closed()
            self._server = None

        if self._failure is not None:
            if not self._failure.done():
                self._failure.cancel()
            elif not self._failure.cancelled():
                # Mark a late error as retrieved
                self._failure.exception()
        self._on_found = None
        logger.debug("Stopped hub discovery")

    def ping_payload(self) -> bytes:
        """Return the broadcast datagram naming the call-back port."""
        return f"{PING_PREFIX}{self._port}".encode()

    async def _ping_loop(self) -> None:
        payload = self.ping_payload()
        while self._transport is not None:
            try:
                self._transport.sendto(payload, (self._broadcast_address, BROADCAST_PORT))
            except OSError as e:
                self.report_error(e)
                return
            await asyncio.sleep(self._ping_interval)

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Read one hub descriptor from a call-back connection."""
        try:
            payload = await asyncio.wait_for(
                reader.read(_MAX_ANNOUNCEMENT_BYTES), timeout=_READ_TIMEOUT
            )
        except (OSError, TimeoutError) as e:
            logger.debug("Discarding incomplete hub announcement: %s", e)
            payload = b""
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()

        if payload:
            self.handle_announcement(parse_announcement(payload))

    def handle_announcement(self, raw: dict[str, Any]) -> Hub | None:
        """Record a "hub online" announcement.

        Args:
            raw: Parsed descriptor.

        Returns:
            The hub if it was new, None if invalid or already seen.
        """
        logger.debug("Raw hub announcement: %s", raw)
        try:
            hub = validate_hub_response(raw)
        except ValidationError as e:
            logger.warning("Invalid hub data received: %s", e)
            return None

        if hub.id in self._hubs:
            return None

        self._hubs[hub.id] = hub
        logger.info("Discovered hub: %s at %s", hub.friendly_name, hub.ip)
        if self._on_found:
            self._on_found(hub)
        return hub

    def report_error(self, error: Exception) -> None:
        """Record a terminal listener error; ``collect`` raises it."""
        logger.error("Hub discovery error: %s", error)
        if self._failure is not None and not self._failure.done():
            self._failure.set_exception(error)

    async def collect(self, window: float = DISCOVERY_WINDOW) -> list[Hub]:
        """Wait for the discovery window and return the hubs found.

        Args:
            window: Seconds to listen.

        Returns:
            Deduplicated hubs in discovery order.

        Raises:
            NetworkError: If the listener reported a terminal error.
        """
        if self._failure is None:
            raise NetworkError("Discovery session not started")

        done, _ = await asyncio.wait({self._failure}, timeout=window)
        if self._failure in done and not self._failure.cancelled():
            error = self._failure.exception()
            if error is not None:
                if isinstance(error, NetworkError):
                    raise error
                raise NetworkError(f"Hub discovery failed: {error}") from error

        logger.info("Hub discovery complete. Found %d hub(s)", len(self._hubs))
        return self.hubs


SessionFactory = Callable[[], AbstractAsyncContextManager[DiscoverySession]]
HubsFoundHandler = Callable[[Hub], Awaitable[object]]


class DiscoveryEngine:
    """Runs discovery with at most one scan in flight.

    Concurrent ``discover_hubs()`` callers share the running scan and all
    receive the same list.

    Example:
        engine = DiscoveryEngine()
        hubs = await engine.discover_hubs()
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        window: float = DISCOVERY_WINDOW,
        on_hubs_found: HubsFoundHandler | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            session_factory: Creates a discovery session (default binds
                ``DEFAULT_PORT``).
            window: Seconds each scan listens for.
            on_hubs_found: Awaited with the first hub after a non-empty scan.
        """
        self._session_factory: SessionFactory = session_factory or DiscoverySession
        self._window = window
        self._on_hubs_found = on_hubs_found
        self._inflight: asyncio.Task[list[Hub]] | None = None

    @property
    def is_discovering(self) -> bool:
        """Return True while a scan is in flight."""
        return self._inflight is not None

    def set_hubs_found_handler(self, handler: HubsFoundHandler | None) -> None:
        """Set the handler awaited after a non-empty scan."""
        self._on_hubs_found = handler

    async def discover_hubs(self) -> list[Hub]:
        """Scan the network, or join the scan already running.

        Returns:
            Deduplicated hubs in discovery order.

        Raises:
            NetworkError: If the listener fails.
        """
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._run())
            self._inflight.add_done_callback(self._clear_inflight)
        else:
            logger.info("Discovery already in progress, joining it")
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, task: asyncio.Task[list[Hub]]) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _run(self) -> list[Hub]:
        logger.info("Starting hub discovery...")
        async with self._session_factory() as session:
            hubs = await session.collect(self._window)

        if hubs and self._on_hubs_found is not None:
            try:
                await self._on_hubs_found(hubs[0])
            except (HarmonyError, OSError) as e:
                logger.warning("Could not cache data for %s: %s", hubs[0].friendly_name, e)
        return hubs
