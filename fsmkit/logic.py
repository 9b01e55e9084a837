"""
Core transition logic.

Three entry points are meant for whatever owns the machine's lifecycle
(a scheduler, a shared machine, a UI binding):

- ``create_initial_state(definition)``
- ``apply_dispatch(definition, config, state, action)``: pure; returns the
  same state object when the action is rejected
- ``apply_effect(definition, config, state, dispatch, is_mounted, sync_mode)``:
  runs the entry effects of ``state`` and returns their combined cleanup
"""

from dataclasses import replace
from typing import Any, Callable, List, Optional

from fsmkit.config import Config
from fsmkit.console import DEBUG, ERROR, log
from fsmkit.errors import ConfigurationError, Diagnostic
from fsmkit.guard import evaluate, format_trace, trace
from fsmkit.types import (
    INIT_EVENT_TYPE,
    Action,
    Definition,
    EffectCleanupParams,
    EffectParams,
    Event,
    ExitCleanup,
    GuardParams,
    MachineState,
    MountedRef,
    Send,
    Sendable,
    SetContext,
    Transition,
    is_sendable,
    to_event,
)


def create_initial_state(definition: Definition) -> MachineState:
    """Return the state a machine built from ``definition`` starts in."""
    return MachineState(
        value=definition.initial,
        context=definition.context,
        event=Event(INIT_EVENT_TYPE),
        next_events=definition.next_events(definition.initial),
    )


def _check_guard(
    config: Config,
    state: MachineState,
    transition: Transition,
    event: Event,
) -> bool:
    params = GuardParams(event=event, context=state.context)
    allow = evaluate(config.guards, transition.guard, params)

    if not config.dev:
        return allow

    result = trace(config.guards, transition.guard, params)

    if result.allow is not allow:
        log(
            config.console, config.verbose, ERROR,
            Diagnostic.EVALUATOR_TRACER_DIVERGENCE,
            "Guard results differ between the evaluator and the tracer. "
            "This is a bug in fsmkit.",
            ("Event", event),
            ("Transition", transition),
            ("Traced", result.allow),
            ("Evaluated", allow),
        )

    if not allow:
        log(
            config.console, config.verbose, DEBUG,
            Diagnostic.GUARD_DENIED,
            f"Transition from {state.value!r} to {transition.target!r} denied by guard.",
            ("Guard", "\n" + format_trace(result)),
            ("Event", event),
            ("Context", state.context),
        )

    return allow


def apply_dispatch(
    definition: Definition,
    config: Config,
    state: MachineState,
    action: Action,
) -> MachineState:
    """
    Apply ``action`` to ``state`` and return the next state.

    ``Send`` looks the event up in the current state's transitions, then in
    the root transitions, and checks the guard if there is one. Unknown
    events and denied guards return ``state`` itself. ``SetContext``
    replaces the context and keeps everything else.

    Never raises for rejected actions; those are reported to the console.
    """
    if isinstance(action, SetContext):
        next_context = action.reducer(state.context)
        log(
            config.console, config.verbose, DEBUG,
            Diagnostic.CONTEXT_UPDATED,
            "Context updated.",
            ("Prev Context", state.context),
            ("Next Context", next_context),
        )
        return replace(state, context=next_context)

    if not isinstance(action, Send):
        raise TypeError(f"Unknown action: {action!r}")

    event = to_event(action.payload)

    if state.value not in definition.states:
        log(
            config.console, config.verbose, ERROR,
            Diagnostic.UNKNOWN_STATE,
            f"State {state.value!r} not defined.",
            ("State", state),
            ("Event", event),
        )
        return state

    transition = definition.find_transition(state.value, event.type)

    if transition is None:
        log(
            config.console, config.verbose, DEBUG,
            Diagnostic.UNKNOWN_EVENT,
            f"Current state {state.value!r} doesn't listen to event type {event.type!r}.",
            ("State", state),
            ("Event", event),
        )
        return state

    if transition.guard is not None and not _check_guard(config, state, transition, event):
        return state

    return MachineState(
        value=transition.target,
        context=state.context,
        event=event,
        next_events=definition.next_events(transition.target),
    )


def _effect(config: Config, state: MachineState, name: str) -> Callable[[EffectParams], Any]:
    try:
        return config.effects[name]
    except KeyError:
        raise ConfigurationError(
            f"Effect '{name}' for state {state.value!r} is not defined in the configuration"
        ) from None


def apply_effect(
    definition: Definition,
    config: Config,
    state: MachineState,
    dispatch: Callable[[Action], None],
    is_mounted: MountedRef,
    sync_mode: bool = False,
) -> Optional[ExitCleanup]:
    """
    Run the entry effects configured for ``state``.

    Each effect receives EffectParams; whatever callables they return are
    collected. The returned cleanup takes the exit ``(event, context)`` and
    calls each collected cleanup in registration order.

    In sync mode ``send`` and ``set_context`` only work while the effects
    or their cleanups are running; calls made later (from a timer, say) are
    dropped and reported.

    Returns:
        The combined cleanup, or None if the state has no effects.

    Raises:
        ConfigurationError: If an effect named by the state is not registered.
    """
    state_def = definition.states.get(state.value)
    if state_def is None or not state_def.effect:
        return None

    locked = False

    def send(payload: Sendable) -> None:
        if not is_sendable(payload):
            log(
                config.console, config.verbose, ERROR,
                Diagnostic.INVALID_EVENT,
                "Event must be a string, an Event, or a mapping with a 'type' key.",
                ("State", state),
                ("Event", payload),
            )
            return

        if locked:
            log(
                config.console, config.verbose, ERROR,
                Diagnostic.SYNCHRONOUS_MISUSE,
                "Send function not available. Must be used synchronously within an effect.",
                ("State", state),
                ("Event", payload),
            )
            return

        dispatch(Send(payload))

    def set_context(reducer: Callable[[Any], Any]) -> Callable[[Sendable], None]:
        if locked:
            log(
                config.console, config.verbose, ERROR,
                Diagnostic.SYNCHRONOUS_MISUSE,
                "Set context function not available. Must be used synchronously within an effect.",
                ("State", state),
                ("Action", reducer),
            )
        else:
            dispatch(SetContext(reducer))
        return send

    def mounted() -> bool:
        return is_mounted.current

    params = EffectParams(
        send=send,
        event=state.event,
        context=state.context,
        set_context=set_context,
        is_mounted=mounted,
    )
    cleanups: List[Callable[[EffectCleanupParams], None]] = []
    try:
        for name in state_def.effect:
            exit_fn = _effect(config, state, name)(params)
            if callable(exit_fn):
                cleanups.append(exit_fn)
    finally:
        locked = sync_mode

    def cleanup(event: Event, context: Any) -> None:
        nonlocal locked
        locked = False
        exit_params = EffectCleanupParams(
            event=event,
            context=context,
            send=send,
            set_context=set_context,
            is_mounted=mounted,
        )
        try:
            for exit_fn in cleanups:
                exit_fn(exit_params)
        finally:
            locked = sync_mode

    return cleanup
