"""Qt application wiring for HarmonyCTL.

``create_app`` builds the pieces a front end drives: the worker thread with
its connection manager, the state orchestrator, and the controller between
them. ``run_watch`` runs that stack headless behind ``harmonyctl watch``.

Threading: the controller owns a main-thread ``ConfigManager`` for
preferences. The session and cache stores get a second ``ConfigManager``
whose settings object lives on the worker thread, so neither thread shares
a ``QSettings`` with the other.
"""

import logging
import signal
import sys
from dataclasses import dataclass

from PySide6.QtCore import QCoreApplication, QTimer

from harmonyctl.core.cache import CacheStore
from harmonyctl.core.config import ConfigManager
from harmonyctl.core.controller import Controller
from harmonyctl.core.discovery import DiscoveryEngine
from harmonyctl.core.error_handler import ErrorDispatcher
from harmonyctl.core.machine import HarmonyState, MachineContext
from harmonyctl.core.manager import ConnectionManager
from harmonyctl.core.notifications import Notifier, print_notification
from harmonyctl.core.session import SessionStore
from harmonyctl.core.state import StateOrchestrator
from harmonyctl.core.worker import HubWorker
from harmonyctl.models.hub import Hub

logger = logging.getLogger(__name__)

ORGANIZATION = "HarmonyCTL"
APPLICATION = "HarmonyCTL"
READY_TIMEOUT = 5.0  # seconds
SIGNAL_POLL_MS = 200


@dataclass
class HarmonyApp:
    """A wired worker, orchestrator and controller."""

    config: ConfigManager
    store_config: ConfigManager
    notifier: Notifier
    worker: HubWorker
    orchestrator: StateOrchestrator
    dispatcher: ErrorDispatcher
    controller: Controller

    def start(self, timeout: float = READY_TIMEOUT) -> bool:
        """Start the worker thread and wait for its event loop."""
        self.worker.start()
        return self.worker.wait_until_ready(timeout)

    def stop(self) -> None:
        """Stop the worker thread and wait for it to finish."""
        self.worker.stop()
        self.worker.wait()

    def auto_connect(self, hub: Hub | None = None) -> None:
        """Connect to ``hub``, or discover and connect to the selected hub."""
        if hub is not None:
            self.controller.connect_hub(hub)
            return
        self.orchestrator.context_changed.connect(self._connect_discovered)
        self.controller.discover()

    def _connect_discovered(self, context: MachineContext) -> None:
        if context.hub is None or self.orchestrator.state is not HarmonyState.IDLE:
            return
        self.orchestrator.context_changed.disconnect(self._connect_discovered)
        self.controller.connect_hub()


def create_app(
    organization: str = ORGANIZATION,
    application: str = APPLICATION,
    notifier: Notifier | None = None,
    discovery: DiscoveryEngine | None = None,
) -> HarmonyApp:
    """Build the application stack without starting the worker.

    Args:
        organization: Organization name for QSettings.
        application: Application name for QSettings.
        notifier: Notification sink (a new one if None).
        discovery: Discovery engine for the manager (default engine if None).
    """
    notifier = notifier or Notifier()
    config = ConfigManager(organization, application)
    store_config = ConfigManager(organization, application)

    sessions = SessionStore(store_config, notifier)
    cache = CacheStore(store_config)
    manager = ConnectionManager.from_config(store_config, sessions, cache, discovery)
    worker = HubWorker(manager)
    store_config.settings.moveToThread(worker)

    orchestrator = StateOrchestrator()
    dispatcher = ErrorDispatcher(notifier, worker.clear_session, config.get_max_retries())
    controller = Controller(orchestrator, worker, dispatcher, notifier, config)
    return HarmonyApp(
        config=config,
        store_config=store_config,
        notifier=notifier,
        worker=worker,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
        controller=controller,
    )


def _print_state(state: HarmonyState) -> None:
    print(f"State: {state.value}")


def run_watch(hub: Hub | None = None, discovery: DiscoveryEngine | None = None) -> int:
    """Connect to a hub and print state changes until interrupted.

    Returns:
        Qt exit code, or 1 if the worker loop did not start.
    """
    qt_app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app = create_app(discovery=discovery)
    app.notifier.notification.connect(print_notification)
    app.orchestrator.state_changed.connect(_print_state)

    if not app.start():
        logger.error("Worker loop did not start")
        app.stop()
        return 1

    signal.signal(signal.SIGINT, lambda *_: qt_app.quit())
    # Python only runs signal handlers between bytecodes; wake it periodically
    timer = QTimer()
    timer.timeout.connect(lambda: None)
    timer.start(SIGNAL_POLL_MS)

    app.auto_connect(hub)
    try:
        return qt_app.exec()
    finally:
        timer.stop()
        app.stop()
