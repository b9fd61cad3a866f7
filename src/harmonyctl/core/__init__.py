"""Core hub logic: discovery, connection lifecycle, state, and persistence.

Modules:
    manager: ConnectionManager owning the single hub connection.
    discovery: DiscoveryEngine and DiscoverySession.
    machine: Pure state transition function.
    state: StateOrchestrator emitting Qt signals.
    worker: HubWorker running the asyncio loop in a QThread.
    controller: Controller wiring worker results into the orchestrator.
    config: ConfigManager (QSettings) for preferences and persisted keys.
"""
