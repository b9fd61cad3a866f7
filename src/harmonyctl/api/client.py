"""Harmony hub WebSocket client.

The hub exposes a WebSocket control channel on port 8088. Addressing it
requires the hub's remote id, which discovery usually announces; when it
does not, the id is fetched once over HTTP before opening the socket.
"""

import asyncio
import json
import logging
from contextlib import suppress
from typing import Any

import aiohttp

from harmonyctl.api.protocol import (
    CMD_CONFIG,
    CMD_CURRENT_ACTIVITY,
    CMD_HOLD_ACTION,
    CMD_PROVISION_INFO,
    CMD_START_ACTIVITY,
    HARMONY_DOMAIN,
    PROVISION_ORIGIN,
    HoldStatus,
    HubRequest,
    HubResponse,
    hold_action_params,
    start_activity_params,
)
from harmonyctl.core.errors import ConnectionLostError, HubResponseError, NetworkError
from harmonyctl.models.hub import DEFAULT_HUB_PORT

logger = logging.getLogger(__name__)


class HarmonyClient:
    """Async WebSocket client for one Harmony hub.

    Example:
        async with HarmonyClient("192.168.1.50", remote_id="12345") as client:
            config = await client.get_config()
            print(len(config["activity"]), "activities")
    """

    _DEFAULT_TIMEOUT: float = 5.0

    def __init__(
        self,
        ip: str,
        port: int = DEFAULT_HUB_PORT,
        remote_id: str = "",
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            ip: Hub IP address.
            port: Hub control port (default 8088).
            remote_id: Hub remote id; fetched from the hub when empty.
            timeout: Connection/request timeout in seconds.
        """
        self._ip = ip
        self._port = port
        self._remote_id = remote_id
        self._timeout = timeout
        self._http: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._request_id: int = 0
        self._pending: dict[str, asyncio.Future[HubResponse]] = {}
        self._connected: bool = False
        self._receive_task: asyncio.Task[None] | None = None

    @property
    def ip(self) -> str:
        """Return hub IP address."""
        return self._ip

    @property
    def port(self) -> int:
        """Return hub control port."""
        return self._port

    @property
    def remote_id(self) -> str:
        """Return the remote id used to address the hub."""
        return self._remote_id

    @property
    def is_connected(self) -> bool:
        """Return True if the WebSocket is open."""
        return self._connected and self._ws is not None and not self._ws.closed

    async def __aenter__(self) -> "HarmonyClient":
        """Enter async context (connect)."""
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context (disconnect)."""
        await self.disconnect()

    def _ws_url(self) -> str:
        return f"ws://{self._ip}:{self._port}/?domain={HARMONY_DOMAIN}&hubId={self._remote_id}"

    async def connect(self) -> None:
        """Open the WebSocket control channel.

        Raises:
            NetworkError: If the hub cannot be reached.
        """
        if self._connected:
            return

        self._http = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))
        try:
            if not self._remote_id:
                self._remote_id = await self._fetch_remote_id()
            self._ws = await self._http.ws_connect(self._ws_url(), heartbeat=30.0)
        except (aiohttp.ClientError, OSError, TimeoutError, KeyError, TypeError) as e:
            await self._close_http()
            raise NetworkError(f"Failed to connect to {self._ip}:{self._port}: {e}") from e

        self._connected = True
        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.debug("WebSocket open to %s (remote id %s)", self._ip, self._remote_id)

    async def _fetch_remote_id(self) -> str:
        """Ask the hub for its active remote id over HTTP."""
        assert self._http is not None
        payload = {"id": 1, "cmd": CMD_PROVISION_INFO, "timeout": 90000}
        headers = {"Origin": PROVISION_ORIGIN, "Accept-Charset": "utf-8"}
        async with self._http.post(
            f"http://{self._ip}:{self._port}/", json=payload, headers=headers
        ) as resp:
            resp.raise_for_status()
            body = await resp.json(content_type=None)
        remote_id = str(body["data"]["activeRemoteId"])
        logger.debug("Hub %s reported remote id %s", self._ip, remote_id)
        return remote_id

    async def disconnect(self) -> None:
        """Close the control channel and fail outstanding requests."""
        self._connected = False

        if self._receive_task:
            self._receive_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._receive_task
            self._receive_task = None

        if self._ws is not None:
            try:
                await asyncio.wait_for(self._ws.close(), timeout=1.0)
            except (aiohttp.ClientError, OSError, TimeoutError):
                pass
            self._ws = None

        await self._close_http()
        self._fail_pending(ConnectionLostError("Connection closed"))

    async def _close_http(self) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def _receive_loop(self) -> None:
        """Background task to receive and dispatch messages."""
        if self._ws is None:
            return

        try:
            async for message in self._ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    try:
                        data = json.loads(message.data)
                    except json.JSONDecodeError as e:
                        logger.debug("Ignoring malformed hub message: %s", e)
                        continue
                    if isinstance(data, dict):
                        self._handle_message(data)
                elif message.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSED):
                    break
        except asyncio.CancelledError:
            pass
        finally:
            self._connected = False
            self._fail_pending(ConnectionLostError("Hub closed the connection"))

    def _handle_message(self, data: dict[str, Any]) -> None:
        """Resolve the pending request a response belongs to."""
        response = HubResponse.from_dict(data)
        if response.id is None:
            # Unsolicited state digest; not consumed here
            return
        if response.is_in_progress:
            return
        future = self._pending.pop(response.id, None)
        if future and not future.done():
            future.set_result(response)

    def _next_id(self) -> str:
        """Generate next message ID."""
        self._request_id += 1
        return str(self._request_id)

    async def request(
        self, cmd: str, params: dict[str, Any] | None = None, wait: bool = True
    ) -> Any:
        """Send a command and optionally wait for its response.

        Args:
            cmd: Command name.
            params: Command parameters.
            wait: Wait for the hub's response (hold actions are not answered).

        Returns:
            The response ``data`` payload, or None when not waiting.

        Raises:
            NetworkError: If not connected, the send fails, or the hub does
                not answer in time.
            HubResponseError: If the hub answers with a failure code.
        """
        if not self.is_connected or self._ws is None:
            raise NetworkError("Not connected to hub")

        request = HubRequest(id=self._next_id(), cmd=cmd, params=params or {})
        future: asyncio.Future[HubResponse] | None = None
        if wait:
            future = asyncio.get_running_loop().create_future()
            self._pending[request.id] = future

        try:
            await self._ws.send_json(request.to_message(self._remote_id))
            if future is None:
                return None
            response = await asyncio.wait_for(future, timeout=self._timeout)
        except TimeoutError:
            self._pending.pop(request.id, None)
            raise NetworkError(f"Request {request.id} ({cmd}) timed out") from None
        except (aiohttp.ClientError, ConnectionResetError) as e:
            self._pending.pop(request.id, None)
            raise NetworkError(f"Request {request.id} ({cmd}) failed: {e}") from e

        if not response.is_success:
            raise HubResponseError(f"Hub rejected {cmd}: {response.code} {response.msg}")
        return response.data

    async def get_config(self) -> dict[str, Any]:
        """Fetch the hub configuration (activities and devices)."""
        data = await self.request(CMD_CONFIG, {"verb": "get"})
        return data if isinstance(data, dict) else {}

    async def get_activities(self) -> list[dict[str, Any]]:
        """Fetch the raw activity list. Also used as the liveness probe."""
        activities = (await self.get_config()).get("activity")
        return activities if isinstance(activities, list) else []

    async def get_available_commands(self) -> dict[str, Any]:
        """Fetch the raw configuration holding the ``device`` list."""
        return await self.get_config()

    async def get_current_activity(self) -> str:
        """Return the id of the activity the hub is running."""
        data = await self.request(CMD_CURRENT_ACTIVITY)
        if isinstance(data, dict):
            return str(data.get("result", ""))
        return ""

    async def start_activity(self, activity_id: str) -> None:
        """Start an activity and wait until the hub reports completion."""
        loop = asyncio.get_running_loop()
        await self.request(
            CMD_START_ACTIVITY, start_activity_params(activity_id, int(loop.time() * 1000))
        )

    async def hold_action(
        self, device_id: str, command: str, status: HoldStatus, timestamp_ms: int = 0
    ) -> None:
        """Send a button press or release for a device command."""
        await self.request(
            CMD_HOLD_ACTION,
            hold_action_params(device_id, command, status, timestamp_ms),
            wait=False,
        )
