"""
Error and diagnostic types.

Only configuration problems are raised. Everything that can go wrong while a
machine is running is reported through the console sink and absorbed:

- CONTEXT_UPDATED: a context reducer ran (debug trace)
- UNKNOWN_EVENT: the event has no transition in the current or root table
- GUARD_DENIED: a transition exists but its guard evaluated to False
- UNKNOWN_STATE: the machine state points at a value with no state definition
- SYNCHRONOUS_MISUSE: send / set_context called outside its synchronous window
- INVALID_EVENT: send called with something that is not an event
- DISPATCH_AFTER_UNMOUNT: an action dispatched after the owner went away
- EVALUATOR_TRACER_DIVERGENCE: production and diagnostic guard results differ
- FLUSH_LIMIT_REACHED: an opt-in flush cap stopped a scheduler from draining
"""

from enum import Enum


class ConfigurationError(ValueError):
    """
    Raised when a definition and its configuration do not fit together.

    Typical causes are a guard or effect name referenced by the definition
    with no matching function in the configuration, or a transition target
    that is not a defined state.
    """


class Diagnostic(Enum):
    """Kinds of diagnostics written to the console sink."""

    CONTEXT_UPDATED = "context_updated"
    UNKNOWN_EVENT = "unknown_event"
    GUARD_DENIED = "guard_denied"
    UNKNOWN_STATE = "unknown_state"
    SYNCHRONOUS_MISUSE = "synchronous_misuse"
    INVALID_EVENT = "invalid_event"
    DISPATCH_AFTER_UNMOUNT = "dispatch_after_unmount"
    EVALUATOR_TRACER_DIVERGENCE = "evaluator_tracer_divergence"
    FLUSH_LIMIT_REACHED = "flush_limit_reached"
