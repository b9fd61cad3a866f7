"""Pure state machine for the hub control flow.

``transition()`` maps (state, context, event) to the next state, the next
context, and the actions the caller should run. It performs no I/O; the
``StateOrchestrator`` applies the result and the controller reacts to the
actions.
"""

from dataclasses import dataclass, field, replace
from enum import Enum

from harmonyctl.models.activity import Activity
from harmonyctl.models.cached_data import CachedData
from harmonyctl.models.device import Device
from harmonyctl.models.hub import Hub


class HarmonyState(Enum):
    """UI-visible control flow state."""

    IDLE = "idle"
    LOADING_CACHE = "loading_cache"
    DISCOVERING = "discovering"
    CONNECTING = "connecting"
    FETCHING_CONFIG = "fetching_config"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class Action(Enum):
    """Named side effect attached to a transition."""

    SELECT_HUB = "select_hub"
    RECORD_ERROR = "record_error"
    APPLY_CACHE = "apply_cache"
    RECORD_DISCOVERED_HUB = "record_discovered_hub"
    RECORD_DISCOVERED_HUBS = "record_discovered_hubs"
    APPLY_CONFIG = "apply_config"
    UPDATE_ACTIVITY = "update_activity"
    EXECUTE_COMMAND = "execute_command"


# -- Events --------------------------------------------------------------------


@dataclass(frozen=True)
class Discover:
    pass


@dataclass(frozen=True)
class LoadCache:
    pass


@dataclass(frozen=True)
class CacheLoaded:
    data: CachedData


@dataclass(frozen=True)
class CacheEmpty:
    pass


@dataclass(frozen=True)
class SelectHub:
    hub: Hub


@dataclass(frozen=True)
class Connect:
    pass


@dataclass(frozen=True)
class HubFound:
    hub: Hub


@dataclass(frozen=True)
class DiscoveryComplete:
    hubs: tuple[Hub, ...] = ()


@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class ConfigLoaded:
    activities: tuple[Activity, ...] = ()
    devices: tuple[Device, ...] = ()


@dataclass(frozen=True)
class UpdateActivity:
    activity_id: str


@dataclass(frozen=True)
class ExecuteCommand:
    device_id: str
    command_id: str


@dataclass(frozen=True)
class Disconnect:
    pass


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class Error:
    message: str


Event = (
    Discover
    | LoadCache
    | CacheLoaded
    | CacheEmpty
    | SelectHub
    | Connect
    | HubFound
    | DiscoveryComplete
    | Connected
    | ConfigLoaded
    | UpdateActivity
    | ExecuteCommand
    | Disconnect
    | Disconnected
    | Error
)


@dataclass(frozen=True)
class MachineContext:
    """Payload carried alongside the state.

    Attributes:
        hub: Selected hub, required before connecting.
        discovered_hubs: Hubs from the last discovery, in discovery order.
        activities: Activities of the connected hub.
        devices: Devices of the connected hub.
        last_command: (device_id, command_id) of the last requested command.
        error: Message of the last recorded error.
    """

    hub: Hub | None = None
    discovered_hubs: tuple[Hub, ...] = ()
    activities: tuple[Activity, ...] = ()
    devices: tuple[Device, ...] = ()
    last_command: tuple[str, str] | None = None
    error: str | None = None

    @property
    def current_activity(self) -> Activity | None:
        """Return the active activity, if any."""
        return next((a for a in self.activities if a.is_active), None)


@dataclass(frozen=True)
class Transition:
    """Result of applying an event."""

    state: HarmonyState
    context: MachineContext
    actions: tuple[Action, ...] = field(default=())


_S = HarmonyState

# (state, event type) -> (next state, action)
_TABLE: dict[tuple[HarmonyState, type], tuple[HarmonyState, Action | None]] = {
    (_S.IDLE, Discover): (_S.DISCOVERING, None),
    (_S.IDLE, Connect): (_S.CONNECTING, None),
    (_S.IDLE, LoadCache): (_S.LOADING_CACHE, None),
    (_S.IDLE, SelectHub): (_S.IDLE, Action.SELECT_HUB),
    (_S.LOADING_CACHE, CacheLoaded): (_S.CONNECTED, Action.APPLY_CACHE),
    (_S.LOADING_CACHE, CacheEmpty): (_S.IDLE, None),
    (_S.DISCOVERING, HubFound): (_S.IDLE, Action.RECORD_DISCOVERED_HUB),
    (_S.DISCOVERING, DiscoveryComplete): (_S.IDLE, Action.RECORD_DISCOVERED_HUBS),
    (_S.CONNECTING, Connected): (_S.FETCHING_CONFIG, None),
    (_S.FETCHING_CONFIG, ConfigLoaded): (_S.CONNECTED, Action.APPLY_CONFIG),
    (_S.CONNECTED, Disconnect): (_S.DISCONNECTING, None),
    (_S.CONNECTED, UpdateActivity): (_S.CONNECTED, Action.UPDATE_ACTIVITY),
    (_S.CONNECTED, ExecuteCommand): (_S.CONNECTED, Action.EXECUTE_COMMAND),
    (_S.DISCONNECTING, Disconnected): (_S.IDLE, None),
}
_TABLE.update({(state, Error): (_S.IDLE, Action.RECORD_ERROR) for state in HarmonyState})


def _guard(state: HarmonyState, context: MachineContext, event: Event) -> bool:
    if state is _S.IDLE and isinstance(event, Connect):
        return context.hub is not None
    return True


def _apply(action: Action, context: MachineContext, event: Event) -> MachineContext:
    if action is Action.SELECT_HUB and isinstance(event, SelectHub):
        return replace(context, hub=event.hub, error=None)
    if action is Action.RECORD_ERROR and isinstance(event, Error):
        return replace(context, error=event.message)
    if action is Action.APPLY_CACHE and isinstance(event, CacheLoaded):
        return replace(
            context,
            hub=event.data.hub,
            activities=tuple(event.data.activities),
            devices=tuple(event.data.devices),
            error=None,
        )
    if action is Action.RECORD_DISCOVERED_HUB and isinstance(event, HubFound):
        known = tuple(h for h in context.discovered_hubs if h.id != event.hub.id)
        return replace(context, discovered_hubs=(*known, event.hub))
    if action is Action.RECORD_DISCOVERED_HUBS and isinstance(event, DiscoveryComplete):
        return replace(context, discovered_hubs=tuple(event.hubs))
    if action is Action.APPLY_CONFIG and isinstance(event, ConfigLoaded):
        return replace(
            context, activities=tuple(event.activities), devices=tuple(event.devices), error=None
        )
    if action is Action.UPDATE_ACTIVITY and isinstance(event, UpdateActivity):
        activities = tuple(a.with_active(a.id == event.activity_id) for a in context.activities)
        return replace(context, activities=activities)
    if action is Action.EXECUTE_COMMAND and isinstance(event, ExecuteCommand):
        return replace(context, last_command=(event.device_id, event.command_id))
    return context


def transition(state: HarmonyState, context: MachineContext, event: Event) -> Transition:
    """Apply ``event`` to ``(state, context)``.

    Unlisted (state, event) pairs and failed guards leave state and context
    unchanged and produce no actions.
    """
    entry = _TABLE.get((state, type(event)))
    if entry is None or not _guard(state, context, event):
        return Transition(state, context)

    next_state, action = entry
    if action is None:
        return Transition(next_state, context)
    return Transition(next_state, _apply(action, context, event), (action,))
