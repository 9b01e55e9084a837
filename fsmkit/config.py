"""Machine configuration: guard/effect registries and diagnostic options."""

from dataclasses import dataclass, field
from typing import Optional

from fsmkit.console import ConsoleLike, Verbosity
from fsmkit.errors import ConfigurationError
from fsmkit.guard import guard_names
from fsmkit.types import Definition, EffectRegistry, GuardRegistry

VERBOSITY_LEVELS = (0, 1, 2)


@dataclass
class Config:
    """
    Functions and options that go with a Definition.

    Args:
        guards: Guard name → predicate taking GuardParams.
        effects: Effect name → callable taking EffectParams, optionally
                 returning a cleanup.
        verbose: 0/False silent, 1 errors only (default), 2/True everything.
        console: Diagnostic sink. None writes to the ``fsmkit`` logger.
        dev: Run the diagnostic guard tracer alongside the evaluator.
             Defaults to ``__debug__`` (off under ``python -O``).

    Raises:
        ValueError: If ``verbose`` is not a known level.
    """

    guards: GuardRegistry = field(default_factory=dict)
    effects: EffectRegistry = field(default_factory=dict)
    verbose: Verbosity = 1
    console: Optional[ConsoleLike] = None
    dev: bool = __debug__

    def __post_init__(self):
        if not isinstance(self.verbose, bool) and self.verbose not in VERBOSITY_LEVELS:
            raise ValueError(f"verbose must be one of 0, 1, 2 or a bool, got {self.verbose!r}")

    def validate(self, definition: Definition) -> None:
        """
        Check that every guard and effect named by ``definition`` is
        registered and callable.

        Raises:
            ConfigurationError: Naming the first missing guard or effect.
        """
        tables = [("root", definition.on)]
        tables.extend((value, state_def.on) for value, state_def in definition.states.items())

        for where, table in tables:
            for event_type, transition in table.items():
                if transition.guard is None:
                    continue
                for name in guard_names(transition.guard):
                    if not callable(self.guards.get(name)):
                        raise ConfigurationError(
                            f"Guard '{name}' used by transition {event_type!r} "
                            f"in {where!r} is not defined in the configuration"
                        )

        for value, state_def in definition.states.items():
            for name in state_def.effect:
                if not callable(self.effects.get(name)):
                    raise ConfigurationError(
                        f"Effect '{name}' for state {value!r} is not defined in the configuration"
                    )
