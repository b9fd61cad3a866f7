"""Controller - bridges worker results and orchestrator events.

User intents enter through the controller as orchestrator events. State
changes and actions coming out of the orchestrator are turned into worker
requests, and worker results flow back in as events:

    discover() -> Discover -> discovering -> worker.discover()
    -> hubs_discovered -> DiscoveryComplete -> idle

The controller runs on the main thread. Persisted session and cache data
belong to the worker thread, so the session is cleared through
``worker.clear_session`` rather than touched from here.
"""

import logging

from PySide6.QtCore import QObject, Slot

from harmonyctl.core.config import ConfigManager
from harmonyctl.core.error_handler import ErrorDispatcher
from harmonyctl.core.machine import (
    Action,
    CacheEmpty,
    CacheLoaded,
    ConfigLoaded,
    Connect,
    Connected,
    Disconnect,
    Disconnected,
    Discover,
    DiscoveryComplete,
    Error,
    ExecuteCommand,
    HarmonyState,
    LoadCache,
    SelectHub,
    UpdateActivity,
)
from harmonyctl.core.notifications import Notifier
from harmonyctl.core.state import StateOrchestrator
from harmonyctl.core.worker import HubWorker
from harmonyctl.models.cached_data import CachedData
from harmonyctl.models.hub import Hub

logger = logging.getLogger(__name__)


class Controller(QObject):
    """Connects the worker, the orchestrator, and the error dispatcher.

    Example:
        controller = Controller(orchestrator, worker, dispatcher, notifier)
        controller.discover()
        # ... hubs_discovered -> DiscoveryComplete, first hub selected
        controller.connect_hub()
        controller.execute_command("53161234", "VolumeUp")
    """

    def __init__(
        self,
        orchestrator: StateOrchestrator,
        worker: HubWorker,
        dispatcher: ErrorDispatcher,
        notifier: Notifier | None = None,
        config: ConfigManager | None = None,
    ) -> None:
        """Initialize the controller and wire up signals.

        Args:
            orchestrator: The state orchestrator.
            worker: The worker running the connection manager.
            dispatcher: Maps worker failures to recovery actions.
            notifier: Sink for success notifications.
            config: Main-thread preference store; remembers the last hub.
                Must not be the ConfigManager the worker-side stores use.
        """
        super().__init__()
        self._orchestrator = orchestrator
        self._worker = worker
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._config = config

        orchestrator.state_changed.connect(self._on_state_changed)
        orchestrator.action_emitted.connect(self._on_action)

        worker.hubs_discovered.connect(self._on_hubs_discovered)
        worker.cache_loaded.connect(self._on_cache_loaded)
        worker.connected.connect(self._on_connected)
        worker.config_loaded.connect(self._on_config_loaded)
        worker.activity_started.connect(self._on_activity_started)
        worker.command_sent.connect(self._on_command_sent)
        worker.disconnected.connect(self._on_disconnected)
        worker.cache_cleared.connect(self._on_cache_cleared)
        worker.error_occurred.connect(self._on_error)

    # -- User intents ----------------------------------------------------------

    def discover(self) -> bool:
        """Start hub discovery."""
        return self._orchestrator.send(Discover())

    def load_cache(self) -> bool:
        """Restore the last cached hub configuration."""
        return self._orchestrator.send(LoadCache())

    def select_hub(self, hub: Hub) -> bool:
        """Select the hub the next connect targets."""
        return self._orchestrator.send(SelectHub(hub))

    def connect_hub(self, hub: Hub | None = None) -> bool:
        """Connect to ``hub``, or to the already selected hub."""
        if hub is not None:
            self.select_hub(hub)
        return self._orchestrator.send(Connect())

    def disconnect_hub(self) -> bool:
        """Disconnect from the hub."""
        return self._orchestrator.send(Disconnect())

    def execute_command(self, device_id: str, command_id: str) -> bool:
        """Press and release a device command."""
        return self._orchestrator.send(ExecuteCommand(device_id, command_id))

    def start_activity(self, activity_id: str) -> bool:
        """Start an activity on the connected hub."""
        if self._orchestrator.state is not HarmonyState.CONNECTED:
            logger.warning("Cannot start activity %s: not connected", activity_id)
            return False
        self._worker.start_activity(activity_id)
        return True

    def clear_cache(self) -> None:
        """Delete persisted data and reset the connection."""
        self._worker.clear_cache()

    # -- Orchestrator reactions ------------------------------------------------

    @Slot(object)
    def _on_state_changed(self, state: HarmonyState) -> None:
        context = self._orchestrator.context
        if state is HarmonyState.DISCOVERING:
            self._worker.discover()
        elif state is HarmonyState.LOADING_CACHE:
            self._worker.load_cache()
        elif state is HarmonyState.CONNECTING and context.hub is not None:
            self._worker.connect_hub(context.hub)
        elif state is HarmonyState.DISCONNECTING:
            self._worker.disconnect_hub()

    @Slot(object, object)
    def _on_action(self, action: Action, event: object) -> None:
        if action is Action.EXECUTE_COMMAND and isinstance(event, ExecuteCommand):
            self._worker.execute_command(event.device_id, event.command_id)

    # -- Worker results --------------------------------------------------------

    @Slot(object)
    def _on_hubs_discovered(self, hubs: list[Hub]) -> None:
        self._orchestrator.send(DiscoveryComplete(tuple(hubs)))
        if not hubs:
            self._notify_warning("No Hubs Found", "Make sure your hub is on the same network")
            return
        if self._orchestrator.context.hub is None:
            self._orchestrator.send(SelectHub(hubs[0]))

    @Slot(object)
    def _on_cache_loaded(self, data: CachedData | None) -> None:
        if data is None:
            self._orchestrator.send(CacheEmpty())
        else:
            self._orchestrator.send(CacheLoaded(data))

    @Slot(object)
    def _on_connected(self, hub: Hub) -> None:
        self._dispatcher.reset()
        if self._config is not None:
            self._config.set_last_hub_id(hub.id)
        if self._orchestrator.send(Connected()):
            self._worker.fetch_config()

    @Slot(object)
    def _on_config_loaded(self, data: CachedData) -> None:
        self._orchestrator.send(ConfigLoaded(tuple(data.activities), tuple(data.devices)))
        if self._notifier is not None:
            self._notifier.success("Connected", f"Connected to {data.hub.display_name}")

    @Slot(str)
    def _on_activity_started(self, activity_id: str) -> None:
        self._orchestrator.send(UpdateActivity(activity_id))

    @Slot(str, str)
    def _on_command_sent(self, device_id: str, command_id: str) -> None:
        logger.debug("Command %s sent to %s", command_id, device_id)
        self._dispatcher.reset()

    @Slot()
    def _on_disconnected(self) -> None:
        self._orchestrator.send(Disconnected())

    @Slot()
    def _on_cache_cleared(self) -> None:
        self._orchestrator.reset()
        if self._notifier is not None:
            self._notifier.success("Cache Cleared", "All cached data has been removed")

    @Slot(object)
    def _on_error(self, error: Exception) -> None:
        self._dispatcher.handle_error(error)
        self._orchestrator.send(Error(str(error) or type(error).__name__))

    def _notify_warning(self, title: str, message: str) -> None:
        if self._notifier is not None:
            self._notifier.warning(title, message)
