"""State orchestrator with Qt signals.

Holds the current machine state and context, feeds events through
``transition()``, and notifies subscribers via Qt signals. Front ends and
the controller connect to these signals instead of polling.
"""

import logging

from PySide6.QtCore import QObject, Signal

from harmonyctl.core.machine import (
    Error,
    Event,
    HarmonyState,
    MachineContext,
    transition,
)

logger = logging.getLogger(__name__)


class StateOrchestrator(QObject):
    """Event-driven owner of the control flow state.

    Example:
        orchestrator = StateOrchestrator()
        orchestrator.state_changed.connect(lambda s: print(s.value))
        orchestrator.send(SelectHub(hub))
        orchestrator.send(Connect())
    """

    state_changed = Signal(object)  # HarmonyState
    context_changed = Signal(object)  # MachineContext
    action_emitted = Signal(object, object)  # Action, triggering event

    def __init__(self) -> None:
        """Initialize in ``idle`` with an empty context."""
        super().__init__()
        self._state = HarmonyState.IDLE
        self._context = MachineContext()

    @property
    def state(self) -> HarmonyState:
        """Return the current state."""
        return self._state

    @property
    def context(self) -> MachineContext:
        """Return the current context."""
        return self._context

    def send(self, event: Event) -> bool:
        """Apply an event.

        Returns:
            True if the event was accepted, False if it was ignored.
        """
        result = transition(self._state, self._context, event)
        accepted = result.state is not self._state or bool(result.actions)
        if not accepted:
            logger.debug("Ignoring %s in state %s", type(event).__name__, self._state.value)
            return False

        if isinstance(event, Error):
            if self._state is HarmonyState.IDLE:
                logger.warning("Error while idle: %s", event.message)
            else:
                logger.error("Error in state %s: %s", self._state.value, event.message)

        previous_state = self._state
        previous_context = self._context
        self._state = result.state
        self._context = result.context

        if self._state is not previous_state:
            logger.debug("State %s -> %s", previous_state.value, self._state.value)
            self.state_changed.emit(self._state)
        if self._context != previous_context:
            self.context_changed.emit(self._context)
        for action in result.actions:
            self.action_emitted.emit(action, event)
        return True

    def reset(self) -> None:
        """Return to ``idle`` with an empty context."""
        changed = self._state is not HarmonyState.IDLE
        self._state = HarmonyState.IDLE
        self._context = MachineContext()
        if changed:
            self.state_changed.emit(self._state)
        self.context_changed.emit(self._context)

