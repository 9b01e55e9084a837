"""
Helper utilities for building state machines.

Provides conversion from plain dict literals to the typed definition
objects, plus a decorator that adds logging to entry effects.
"""

import logging
from functools import wraps
from typing import Any, Hashable, Mapping, Optional, Sequence, Union

from fsmkit.guard import And, GuardExpr, Leaf, Not, Or
from fsmkit.types import Definition, EffectParams, StateDef, Transition

logger = logging.getLogger(__name__)


def normalize_guard(raw: Any) -> GuardExpr:
    """
    Convert the literal guard DSL into a guard expression.

    Accepted shapes:
        ``"name"``                          → Leaf
        ``[g1, g2, ...]`` / tuple           → And
        ``{"op": "or", "value": [...]}``    → Or
        ``{"op": "not", "value": g}``       → Not
        Leaf / Not / And / Or               → unchanged

    Raises:
        ValueError: On any other shape.
    """
    if isinstance(raw, (Leaf, Not, And, Or)):
        return raw
    if isinstance(raw, str):
        return Leaf(raw)
    if isinstance(raw, (list, tuple)):
        return And(tuple(normalize_guard(g) for g in raw))
    if isinstance(raw, Mapping):
        op = raw.get("op")
        if op == "or":
            return Or(tuple(normalize_guard(g) for g in raw.get("value", ())))
        if op == "not" and "value" in raw:
            return Not(normalize_guard(raw["value"]))
    raise ValueError(f"Unrecognised guard: {raw!r}")


def create_transition(raw: Union[Hashable, Mapping[str, Any], Transition]) -> Transition:
    """
    Build a Transition from a bare target or a ``{"target", "guard"}`` dict.

    Raises:
        ValueError: If a dict is missing the required ``target`` key.
    """
    if isinstance(raw, Transition):
        return raw
    if isinstance(raw, Mapping):
        if "target" not in raw:
            raise ValueError(f"Transition {raw!r} missing required 'target' field")
        guard = raw.get("guard")
        return Transition(
            target=raw["target"],
            guard=normalize_guard(guard) if guard is not None else None,
        )
    return Transition(target=raw)


def create_state_def(
    on: Optional[Mapping[str, Any]] = None,
    effect: Union[str, Sequence[str], None] = None,
) -> StateDef:
    """
    Create a StateDef from literal transitions and effect names.

    Example:
        idle = create_state_def(
            on={"FETCH": "loading", "RETRY": {"target": "loading", "guard": "canRetry"}},
            effect="onIdle",
        )
    """
    return StateDef(
        on={event_type: create_transition(t) for event_type, t in (on or {}).items()},
        effect=effect or (),
    )


def build_definition(literal: Mapping[str, Any]) -> Definition:
    """
    Build a Definition from a compact dict literal.

    Supported keys:
        - ``initial`` (required): Initial state value.
        - ``states`` (required): State value → ``{"on": ..., "effect": ...}``.
        - ``on`` (optional): Root fallback transitions.
        - ``context`` (optional): Initial context.

    Raises:
        ValueError: If a required key is missing.
        ConfigurationError: If the resulting definition is inconsistent.

    Example:
        definition = build_definition({
            "initial": "idle",
            "states": {
                "idle": {"on": {"FETCH": "loading"}},
                "loading": {"on": {"RESOLVE": "idle"}, "effect": "load"},
            },
        })
    """
    for key in ("initial", "states"):
        if key not in literal:
            raise ValueError(f"Definition missing required '{key}' field")

    states = {}
    for value, raw in literal["states"].items():
        if isinstance(raw, StateDef):
            states[value] = raw
        else:
            raw = raw or {}
            states[value] = create_state_def(on=raw.get("on"), effect=raw.get("effect"))

    return Definition(
        initial=literal["initial"],
        states=states,
        on={event_type: create_transition(t) for event_type, t in (literal.get("on") or {}).items()},
        context=literal.get("context"),
    )


def log_effect(func):
    """
    Decorator that adds entry/cleanup logging to an entry effect.

    Logs the event type at DEBUG when the effect runs and when its cleanup
    runs, without requiring manual logger calls inside every effect.

    Usage:
        @log_effect
        def on_loading(params: EffectParams):
            params.send("RESOLVE")
    """

    @wraps(func)
    def wrapper(params: EffectParams):
        name = func.__name__
        logger.debug(f"{name}: entered on {params.event.type}")
        exit_fn = func(params)
        if not callable(exit_fn):
            return exit_fn

        @wraps(exit_fn)
        def cleanup(exit_params):
            logger.debug(f"{name}: cleanup on {exit_params.event.type}")
            return exit_fn(exit_params)

        return cleanup

    return wrapper
