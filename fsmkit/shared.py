"""Shared machine: one state, many observers."""

import logging
from typing import Any, Callable, Dict

from fsmkit.machine import Machine
from fsmkit.types import Action, MachineState, Send, Sendable, SetContext

logger = logging.getLogger(__name__)

Subscriber = Callable[[MachineState], None]


class SharedMachine:
    """
    A machine whose state lives here and is observed by subscribers.

    Every accepted action replaces the state and notifies subscribers in
    subscription order. Rejected actions (same state object back) notify
    nobody.

    Notification walks a snapshot of the subscribers taken when it starts:
    a subscriber added during notification is first called on the next
    transition, and a subscriber removed during notification is not called
    again, even later in the same round. Subscribers always receive the
    current state, so one that sends an event re-entrantly causes the rest
    of the round to see the newer state.

    Entry effects are not run by a shared machine.
    """

    def __init__(self, machine: Machine):
        self.machine = machine
        self._state = machine.initial_state()
        # dict used as an insertion-ordered set
        self._subscribers: Dict[Subscriber, None] = {}

    def get_state(self) -> MachineState:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Call ``callback(state)`` after every accepted transition.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers[callback] = None

        def unsubscribe() -> None:
            self._subscribers.pop(callback, None)

        return unsubscribe

    def dispatch(self, action: Action) -> None:
        next_state = self.machine.dispatch(self._state, action)
        if next_state is self._state:
            return

        self._state = next_state
        logger.debug(f"Shared machine → {next_state.value!r} on {next_state.event.type}")

        for callback in list(self._subscribers):
            if callback in self._subscribers:
                callback(self._state)

    def send(self, payload: Sendable) -> None:
        self.dispatch(Send(payload))

    def set_context(self, reducer: Callable[[Any], Any]) -> Callable[[Sendable], None]:
        """Replace the context; returns ``send`` for chaining."""
        self.dispatch(SetContext(reducer))
        return self.send
