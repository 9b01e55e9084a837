"""
Diagnostic output.

Diagnostics are written to a console-like sink supplied through the machine
configuration. A sink needs a ``log`` method; ``error``, ``group``,
``group_collapsed`` and ``group_end`` are used when present. The default sink
forwards everything to the stdlib ``fsmkit`` logger.

Verbosity levels:
    0 / False   silent
    1           errors only (default)
    2 / True    everything
"""

import logging
from typing import Any, Optional, Protocol, Tuple, Union

from fsmkit.errors import Diagnostic

logger = logging.getLogger("fsmkit")

Verbosity = Union[bool, int]

DEBUG = "debug"
ERROR = "error"


class ConsoleLike(Protocol):
    """Minimal interface of a diagnostic sink."""

    def log(self, *args: Any) -> None: ...


class LoggingConsole:
    """
    Console sink backed by a stdlib logger.

    ``log`` lines go out at DEBUG, ``error`` lines at ERROR. Groups are
    rendered as a label line followed by indented entries.

    Args:
        target: Logger to write to (default: the ``fsmkit`` logger).
    """

    INDENT = "  "

    def __init__(self, target: Optional[logging.Logger] = None):
        self._logger = target or logger
        self._depth = 0

    def _emit(self, level: int, args: Tuple[Any, ...]) -> None:
        text = " ".join(str(a) for a in args)
        self._logger.log(level, "%s%s", self.INDENT * self._depth, text)

    def log(self, *args: Any) -> None:
        self._emit(logging.DEBUG, args)

    def error(self, *args: Any) -> None:
        self._emit(logging.ERROR, args)

    def group(self, *args: Any) -> None:
        self._emit(logging.DEBUG, args)
        self._depth += 1

    group_collapsed = group

    def group_end(self) -> None:
        self._depth = max(0, self._depth - 1)


def is_enabled(verbose: Verbosity, level: str) -> bool:
    """Return True if a diagnostic of ``level`` passes the ``verbose`` gate."""
    if not verbose:
        return False
    if level == DEBUG:
        return verbose is True or verbose >= 2
    return True


def log(
    console: Optional[ConsoleLike],
    verbose: Verbosity,
    level: str,
    kind: Diagnostic,
    label: str,
    *messages: Tuple[str, Any],
) -> None:
    """
    Write one diagnostic: a group label followed by ``(label, value)`` pairs.

    Nothing is written when the verbosity gate rejects ``level`` or when
    there are no messages.

    Args:
        console: Sink to write to. None selects a LoggingConsole.
        verbose: Verbosity level from the configuration.
        level: ``"debug"`` or ``"error"``.
        kind: Diagnostic kind, prefixed to the label.
        label: Human-readable summary line.
        messages: Key/value pairs written under the label.
    """
    if not is_enabled(verbose, level) or not messages:
        return

    cons = console if console is not None else LoggingConsole()
    write = cons.log
    if level == ERROR:
        write = getattr(cons, "error", None) or cons.log

    open_group = getattr(cons, "group", None) or getattr(cons, "group_collapsed", None)
    close_group = getattr(cons, "group_end", None)
    collapsible = open_group is not None and close_group is not None

    heading = f"[{kind.value}] {label}"
    if collapsible:
        open_group(heading)
    else:
        write(heading)

    for key, value in messages:
        write(key, value)

    if collapsible:
        close_group()
