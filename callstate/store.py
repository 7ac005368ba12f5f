"""
callstate — Store

A minimal event bus + state container for driving models in-process.

  - dispatch(Event | dict)   → folds the event through the reducer
  - dispatch(Invocation)     → runs it with this store's dispatch/get_state
  - every dispatched event is appended to `events` (clear with clear_events)

Events are applied one at a time, synchronously, in dispatch order.
Reducers may not dispatch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from callstate.actions import Invocation
from callstate.reducer import Reducer
from callstate.types import DEFAULT_TYPE_PREFIX, CallStateError, Event, InvalidEvent

logger = logging.getLogger(__name__)

INIT_TYPE = f"{DEFAULT_TYPE_PREFIX}/INIT"

Listener = Callable[[], None]


class Store:
    """In-memory state container. Holds no state beyond the current value."""

    def __init__(self, reducer: Reducer | None = None, state: Any = None) -> None:
        self._reducer = reducer
        self._state = state
        self._listeners: list[Listener] = []
        self._dispatching = False
        self.events: list[Event] = []

        if reducer is not None:
            self._state = reducer(state, Event(type=INIT_TYPE))

    # -- state --

    def get_state(self) -> Any:
        return self._state

    def replace_reducer(self, reducer: Reducer) -> None:
        self._reducer = reducer
        self._state = reducer(self._state, Event(type=INIT_TYPE))

    # -- dispatch --

    def dispatch(self, action: Any) -> Any:
        """
        Dispatch an event or run an invocation.
        Returns the event, or whatever the invocation returns.
        """
        if isinstance(action, Invocation):
            return action(self.dispatch, self.get_state)

        if isinstance(action, dict):
            action = Event.from_dict(action)
        if not isinstance(action, Event):
            raise InvalidEvent(f"Cannot dispatch {type(action).__name__}: expected Event or Invocation")

        if self._dispatching:
            raise CallStateError(f"Reducers may not dispatch ({action.type})")

        self.events.append(action)
        if self._reducer is not None:
            self._dispatching = True
            try:
                self._state = self._reducer(self._state, action)
            finally:
                self._dispatching = False

        for listener in list(self._listeners):
            listener()
        return action

    def clear_events(self) -> None:
        self.events.clear()

    # -- subscriptions --

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every dispatched event. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
