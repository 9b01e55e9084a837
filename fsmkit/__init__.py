"""
fsmkit
~~~~~~

A small finite-state-machine engine with guard diagnostics and synchronous
effect scheduling.

Quick start:
    from fsmkit import create_machine, SyncedMachine, and_, or_, not_
    from fsmkit import Send, SetContext, MachineState
"""

from fsmkit.config import Config
from fsmkit.console import LoggingConsole
from fsmkit.errors import ConfigurationError, Diagnostic
from fsmkit.guard import (
    And,
    Leaf,
    Not,
    Or,
    TraceNode,
    and_,
    evaluate,
    format_trace,
    leaf,
    not_,
    or_,
    render,
    trace,
)
from fsmkit.helpers import build_definition, create_state_def, log_effect, normalize_guard
from fsmkit.logic import apply_dispatch, apply_effect, create_initial_state
from fsmkit.machine import Machine, create_machine
from fsmkit.scheduler import SyncedMachine, SyncScheduler
from fsmkit.shared import SharedMachine
from fsmkit.types import (
    Definition,
    EffectCleanupParams,
    EffectParams,
    Event,
    GuardParams,
    MachineState,
    MountedRef,
    Send,
    SetContext,
    StateDef,
    Transition,
)

__all__ = [
    "Config",
    "ConfigurationError",
    "Diagnostic",
    "LoggingConsole",
    # guards
    "And",
    "Leaf",
    "Not",
    "Or",
    "TraceNode",
    "and_",
    "evaluate",
    "format_trace",
    "leaf",
    "not_",
    "or_",
    "render",
    "trace",
    # definitions
    "Definition",
    "StateDef",
    "Transition",
    "build_definition",
    "create_state_def",
    "normalize_guard",
    "log_effect",
    # runtime
    "Event",
    "MachineState",
    "Send",
    "SetContext",
    "GuardParams",
    "EffectParams",
    "EffectCleanupParams",
    "MountedRef",
    "apply_dispatch",
    "apply_effect",
    "create_initial_state",
    "Machine",
    "create_machine",
    "SyncScheduler",
    "SyncedMachine",
    "SharedMachine",
]
