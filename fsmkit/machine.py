"""
Machine — a validated definition/configuration pair.

Features:
- Accepts typed Definition / Config objects or plain dict literals
- Validates eagerly: every guard and effect the definition names must be
  registered, every transition target must be a defined state
- Exposes the three entry points used by schedulers and bindings:
  ``initial_state``, ``dispatch`` and ``run_effect``

Usage:
    from fsmkit import create_machine, Send

    machine = create_machine(
        {
            "initial": "idle",
            "states": {
                "idle": {"on": {"FETCH": {"target": "loading", "guard": "isOnline"}}},
                "loading": {"on": {"RESOLVE": "idle"}, "effect": "load"},
            },
        },
        {
            "guards": {"isOnline": lambda params: True},
            "effects": {"load": lambda params: params.send("RESOLVE")},
        },
    )

    state = machine.initial_state()
    state = machine.dispatch(state, Send("FETCH"))
"""

import logging
from typing import Any, Callable, Mapping, Optional, Union

from fsmkit.config import Config
from fsmkit.helpers import build_definition
from fsmkit.logic import apply_dispatch, apply_effect, create_initial_state
from fsmkit.types import (
    Action,
    Definition,
    ExitCleanup,
    MachineState,
    MountedRef,
    Send,
    Sendable,
)

logger = logging.getLogger(__name__)


class Machine:
    """
    A definition together with the configuration it needs.

    Construction validates the pair and raises ConfigurationError on
    problems, so nothing is looked up lazily at dispatch time.

    Args:
        definition: The state table.
        config: Guards, effects and diagnostic options (default: empty).
    """

    def __init__(self, definition: Definition, config: Optional[Config] = None):
        self.definition = definition
        self.config = config if config is not None else Config()
        self.config.validate(self.definition)

        logger.debug(
            f"Machine initialised — "
            f"{len(definition.states)} states, "
            f"starting at {definition.initial!r}"
        )

    def __iter__(self):
        # Allows ``definition, config = machine``.
        return iter((self.definition, self.config))

    def initial_state(self) -> MachineState:
        """Return a fresh initial state."""
        return create_initial_state(self.definition)

    def dispatch(self, state: MachineState, action: Action) -> MachineState:
        """Apply ``action`` to ``state``. Returns ``state`` itself on rejection."""
        return apply_dispatch(self.definition, self.config, state, action)

    def send(self, state: MachineState, payload: Sendable) -> MachineState:
        """Shorthand for ``dispatch(state, Send(payload))``."""
        return self.dispatch(state, Send(payload))

    def run_effect(
        self,
        state: MachineState,
        dispatch: Callable[[Action], None],
        is_mounted: Optional[MountedRef] = None,
        sync_mode: bool = False,
    ) -> Optional[ExitCleanup]:
        """Run ``state``'s entry effects and return their combined cleanup."""
        return apply_effect(
            self.definition,
            self.config,
            state,
            dispatch,
            is_mounted if is_mounted is not None else MountedRef(),
            sync_mode,
        )


def create_machine(
    definition: Union[Definition, Mapping[str, Any]],
    config: Union[Config, Mapping[str, Any], None] = None,
) -> Machine:
    """
    Create a Machine from typed objects or dict literals.

    Raises:
        ValueError: On a malformed literal.
        ConfigurationError: If the definition and configuration do not match.
    """
    if not isinstance(definition, Definition):
        definition = build_definition(definition)
    if config is not None and not isinstance(config, Config):
        config = Config(**config)
    return Machine(definition, config)
