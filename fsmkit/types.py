"""
State machine data types and structures.

Defines the core types used by the engine:
- Definition / StateDef / Transition: the declarative state table
- Event: a triggering event (type plus payload)
- MachineState: an immutable snapshot of a running machine
- Send / SetContext: the two dispatch actions
- GuardParams / EffectParams / EffectCleanupParams: arguments handed to
  user guards, effects and effect cleanups
- MountedRef: shared cancellation flag
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Tuple, Union

from fsmkit.errors import ConfigurationError
from fsmkit.guard import GuardExpr

INIT_EVENT_TYPE = "$init"


@dataclass(frozen=True)
class Event:
    """
    An event sent to the machine.

    Frozen but unhashable: the payload is an arbitrary mapping. Events are
    compared by value, or by identity where a new event must be told apart
    from an equal one.

    Args:
        type: Event type, used to look up a transition.
        payload: Any extra data carried by the event.
    """

    type: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    __hash__ = None  # type: ignore[assignment]

    def get(self, key: str, default: Any = None) -> Any:
        """Return a payload value, or ``default`` if absent."""
        return self.payload.get(key, default)

    def to_dict(self) -> dict:
        """Serialise to a plain ``{"type": ..., **payload}`` dictionary."""
        return {"type": self.type, **self.payload}


Sendable = Union[str, Event, Mapping[str, Any]]


def is_sendable(value: Any) -> bool:
    """True if ``value`` can be normalised by ``to_event``."""
    if isinstance(value, (str, Event)):
        return True
    return isinstance(value, Mapping) and isinstance(value.get("type"), str)


def to_event(value: Sendable) -> Event:
    """
    Normalise a sendable into an Event.

    A string becomes an event of that type, a mapping must carry a ``type``
    key and its other keys become the payload, an Event is returned as-is.
    """
    if isinstance(value, Event):
        return value
    if isinstance(value, str):
        return Event(value)
    payload = {k: v for k, v in value.items() if k != "type"}
    return Event(value["type"], payload)


@dataclass(frozen=True)
class Transition:
    """
    Where an event leads, optionally behind a guard.

    Args:
        target: State value to move to.
        guard: Optional guard expression that must evaluate to True.
    """

    target: Hashable
    guard: Optional[GuardExpr] = None


@dataclass(frozen=True)
class StateDef:
    """
    Definition of a single state.

    Args:
        on: Event type → Transition for events handled in this state.
        effect: Name, or ordered names, of entry effects run on entering
                this state.
    """

    on: Mapping[str, Transition] = field(default_factory=dict)
    effect: Tuple[str, ...] = ()

    def __post_init__(self):
        if isinstance(self.effect, str):
            object.__setattr__(self, "effect", (self.effect,))
        else:
            object.__setattr__(self, "effect", tuple(self.effect))


@dataclass(frozen=True)
class Definition:
    """
    Declarative description of a machine.

    Args:
        initial: State value the machine starts in.
        states: State value → StateDef.
        on: Machine-wide fallback transitions, consulted when the current
            state has no transition for an event.
        context: Initial extended state.

    Raises:
        ConfigurationError: If the initial state or a transition target is
            not one of ``states``.
    """

    initial: Hashable
    states: Mapping[Hashable, StateDef]
    on: Mapping[str, Transition] = field(default_factory=dict)
    context: Any = None

    def __post_init__(self):
        if self.initial not in self.states:
            raise ConfigurationError(f"Initial state {self.initial!r} not found in states")

        for value, state_def in self.states.items():
            for event_type, transition in state_def.on.items():
                if transition.target not in self.states:
                    raise ConfigurationError(
                        f"Transition {event_type!r} from state {value!r} "
                        f"targets undefined state {transition.target!r}"
                    )
        for event_type, transition in self.on.items():
            if transition.target not in self.states:
                raise ConfigurationError(
                    f"Root transition {event_type!r} targets undefined state "
                    f"{transition.target!r}"
                )

    def next_events(self, value: Hashable) -> Tuple[str, ...]:
        """
        Event types accepted in ``value``: the state's own transition keys
        followed by root keys not already listed.
        """
        state_def = self.states.get(value)
        own = tuple(state_def.on) if state_def is not None else ()
        return own + tuple(k for k in self.on if k not in own)

    def find_transition(self, value: Hashable, event_type: str) -> Optional[Transition]:
        """Look ``event_type`` up in ``value``'s table, then in the root table."""
        state_def = self.states.get(value)
        if state_def is not None and event_type in state_def.on:
            return state_def.on[event_type]
        return self.on.get(event_type)


@dataclass(frozen=True)
class MachineState:
    """
    Snapshot of a machine. Replaced wholesale on every accepted action.

    Args:
        value: Current state value.
        context: Current extended state.
        event: Event that led here (``$init`` for the initial state).
        next_events: Event types that have a transition from ``value``.
    """

    value: Hashable
    context: Any
    event: Event
    next_events: Tuple[str, ...]


# ── Actions ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Send:
    """Send an event to the machine."""

    payload: Sendable


@dataclass(frozen=True)
class SetContext:
    """Replace the context with ``reducer(previous_context)``."""

    reducer: Callable[[Any], Any]


Action = Union[Send, SetContext]


# ── User callback parameters ───────────────────────────────────────────────────

@dataclass
class MountedRef:
    """Shared flag; once ``current`` is False, dispatches are dropped."""

    current: bool = True


@dataclass(frozen=True)
class GuardParams:
    """Arguments passed to every guard predicate."""

    event: Event
    context: Any


@dataclass(frozen=True)
class EffectParams:
    """
    Arguments passed to an entry effect.

    ``send`` and ``set_context`` dispatch back into the machine.
    ``set_context`` returns ``send`` so calls can be chained.
    """

    send: Callable[[Sendable], None]
    event: Event
    context: Any
    set_context: Callable[[Callable[[Any], Any]], Callable[[Sendable], None]]
    is_mounted: Callable[[], bool]


@dataclass(frozen=True)
class EffectCleanupParams:
    """Arguments passed to an effect's cleanup when its state is left."""

    event: Event
    context: Any
    send: Callable[[Sendable], None]
    set_context: Callable[[Callable[[Any], Any]], Callable[[Sendable], None]]
    is_mounted: Callable[[], bool]


EffectCleanup = Callable[[EffectCleanupParams], None]
Effect = Callable[[EffectParams], Optional[EffectCleanup]]
Guard = Callable[[GuardParams], bool]
ExitCleanup = Callable[[Event, Any], None]

GuardRegistry = Dict[str, Guard]
EffectRegistry = Dict[str, Effect]
