"""
Synchronous batching scheduler.

Runs a machine without any external render loop. Actions are never applied
when dispatched; they are queued and applied inside ``act``:

    act(render):
        render()
        while the queue is not empty:
            apply every queued action in FIFO order
            flush entry effects once for the resulting state

Effects run in sync mode, so ``send`` / ``set_context`` only work from
inside the effect call itself. Anything an effect dispatches synchronously
is drained before ``act`` returns.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Optional, Sequence

from fsmkit.console import ERROR, log
from fsmkit.errors import Diagnostic
from fsmkit.logic import apply_dispatch, apply_effect, create_initial_state
from fsmkit.machine import Machine
from fsmkit.types import Action, MachineState, MountedRef, Send, Sendable

logger = logging.getLogger(__name__)

Reducer = Callable[[MachineState], MachineState]


def _same_deps(prev: Optional[Sequence[Any]], deps: Sequence[Any]) -> bool:
    """``[value, event]`` comparison: value by equality, event by identity."""
    if prev is None or len(prev) != len(deps):
        return False
    (prev_value, prev_event), (value, event) = prev, deps
    return prev_value == value and prev_event is event


class SyncScheduler:
    """
    Queue, drain and effect-flush primitives around one machine state slot.

    Attributes:
        MAX_FLUSHES_PER_ACT: Optional cap on drain/flush rounds per ``act()``
                             call. None (the default) drains until the
                             queue is empty. When set and reached, the
                             remaining queue is dropped and reported.
    """

    MAX_FLUSHES_PER_ACT: Optional[int] = None

    def __init__(self, machine: Machine, is_mounted: Optional[MountedRef] = None):
        self.machine = machine
        self.is_mounted = is_mounted if is_mounted is not None else MountedRef()
        self.state: MachineState = create_initial_state(machine.definition)

        self._queue: Deque[Reducer] = deque()
        self._deps: Optional[Sequence[Any]] = None
        self._exit_fn: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    @property
    def pending(self) -> int:
        """Number of queued reducers."""
        return len(self._queue)

    def enqueue(self, reducer: Reducer) -> None:
        """Queue a ``state -> state`` reducer for the next drain."""
        self._queue.append(reducer)

    def dispatch(self, action: Action) -> None:
        """
        Queue ``action``. Nothing is applied until the next drain.

        Dropped (and reported) once ``is_mounted.current`` is False.
        """
        if not self.is_mounted.current:
            config = self.machine.config
            log(
                config.console, config.verbose, ERROR,
                Diagnostic.DISPATCH_AFTER_UNMOUNT,
                "Cannot dispatch an action to the state machine after it is stopped.",
                ("Action", action),
            )
            return

        definition, config = self.machine
        self.enqueue(lambda prev: apply_dispatch(definition, config, prev, action))

    def drain(self) -> MachineState:
        """Fold every queued reducer over the state, in order."""
        while self._queue:
            reducer = self._queue.popleft()
            self.state = reducer(self.state)
        return self.state

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def side_effect(
        self,
        callback: Callable[[], Optional[Callable[[], None]]],
        deps: Sequence[Any],
    ) -> bool:
        """
        Run ``callback`` unless ``deps`` match the previous call's.

        When it runs, the previous cleanup is called first and the
        callback's return value becomes the new cleanup.

        Returns:
            True if the callback ran.
        """
        if _same_deps(self._deps, deps):
            return False
        self.cleanup()
        self._exit_fn = callback()
        self._deps = tuple(deps)
        return True

    def cleanup(self) -> None:
        """Run the current cleanup, if any, exactly once."""
        exit_fn, self._exit_fn = self._exit_fn, None
        if exit_fn is not None:
            exit_fn()

    def flush(self) -> bool:
        """Run entry effects for the current state if ``[value, event]`` changed."""
        state = self.state
        definition, config = self.machine

        def run():
            exit_fn = apply_effect(
                definition, config, state, self.dispatch, self.is_mounted, sync_mode=True
            )
            if exit_fn is None:
                return None

            def on_exit():
                # Cleanups receive the latest state, the one being moved to.
                exit_fn(self.state.event, self.state.context)

            return on_exit

        return self.side_effect(run, (state.value, state.event))

    def act(self, render: Callable[[], None]) -> MachineState:
        """
        Call ``render`` then drain and flush until the queue stays empty.

        Returns:
            The state after the last drain.
        """
        render()

        limit = self.MAX_FLUSHES_PER_ACT
        rounds = 0
        while self._queue:
            if limit is not None and rounds >= limit:
                config = self.machine.config
                log(
                    config.console, config.verbose, ERROR,
                    Diagnostic.FLUSH_LIMIT_REACHED,
                    f"Safety limit reached ({limit} flushes), dropping queued actions.",
                    ("State", self.state),
                    ("Dropped", len(self._queue)),
                )
                self._queue.clear()
                break
            self.drain()
            self.flush()
            rounds += 1

        logger.debug(f"act settled on {self.state.value!r} after {rounds} rounds")
        return self.state


class SyncedMachine:
    """
    A machine that transitions synchronously, without a render loop.

    ``start()`` runs the initial state's effects, ``send()`` applies an
    event and everything it triggers before returning, ``stop()`` runs the
    pending cleanup and drops any later dispatch.

    Usage:
        synced = SyncedMachine(machine)
        synced.start()
        synced.send("TOGGLE")
        synced.get_state().value
    """

    def __init__(self, machine: Machine):
        self.scheduler = SyncScheduler(machine)

    def start(self) -> MachineState:
        """Flush the effects of the current state."""
        return self.scheduler.act(self.scheduler.flush)

    def get_state(self) -> MachineState:
        return self.scheduler.state

    def send(self, payload: Sendable) -> MachineState:
        """Send an event and process everything it triggers."""
        return self.scheduler.act(lambda: self.scheduler.dispatch(Send(payload)))

    def stop(self) -> None:
        """Clean up the active effects; later dispatches are dropped."""
        self.scheduler.is_mounted.current = False
        self.scheduler.cleanup()
