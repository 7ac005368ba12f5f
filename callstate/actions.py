"""
callstate — Actions

Wraps each operation into an action creator. Calling the creator with
arguments returns an Invocation: a thunk that, given a dispatch function,
runs the operation and emits its lifecycle events.

  constant          → success(result=constant)
  synchronous       → success(result) | failure(error), no start
  deferred (async)  → start, then success(result) | failure(error) once settled

A deferred operation is called at dispatch time. Inside a running event
loop its settlement is scheduled as a task, so it completes whether or not
the caller awaits the returned Deferred.

Errors are folded into a failure event and then re-raised to the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from callstate.events import failure_event, reset_event, start_event, success_event
from callstate.types import Deferred, Event, EventTypes, Immediate, OperationDescriptor

logger = logging.getLogger(__name__)

Dispatch = Callable[[Any], Any]

RESET_SUFFIX = "_reset"
MODIFY_SUFFIX = "_modify"


# ---------------------------------------------------------------------------
# Sibling access
# ---------------------------------------------------------------------------


class BoundOps:
    """
    The operations of one model, bound to a dispatch function.
    `ops.increase()` builds the invocation and dispatches it in one step;
    `ops.increase_modify(*args)(result)` dispatches the synthetic success.
    """

    def __init__(self, actions: dict[str, Callable[..., Any]], dispatch: Dispatch) -> None:
        self._actions = actions
        self._dispatch = dispatch

    def __getattr__(self, name: str) -> Callable[..., Any]:
        try:
            creator = self._actions[name]
        except KeyError:
            raise AttributeError(name) from None
        if getattr(creator, "is_modify", False):
            return lambda *args: lambda result: self._dispatch(creator(*args)(result))
        return lambda *args: self._dispatch(creator(*args))

    def __contains__(self, name: str) -> bool:
        return name in self._actions


@dataclass
class CallContext:
    """Passed as `ctx=` to handlers that ask for it."""

    ops: BoundOps
    dispatch: Dispatch
    get_state: Callable[[], Any] | None = None


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------


class Invocation:
    """
    One call of an operation with fixed arguments, not yet run.

    Introspection attributes (not part of any event):
      action_name, model_name, action_params, is_async
    """

    def __init__(
        self,
        descriptor: OperationDescriptor,
        types: EventTypes,
        params: tuple[Any, ...],
        next_seq: Callable[[], int],
        actions: dict[str, Callable[..., Any]],
    ) -> None:
        self.descriptor = descriptor
        self.types = types
        self.action_name = descriptor.operation_name
        self.model_name = descriptor.group_name
        self.action_params = params
        self.is_async = descriptor.is_invocable and descriptor.is_deferred
        self._next_seq = next_seq
        self._actions = actions

    def __repr__(self) -> str:
        return f"Invocation({self.model_name}.{self.action_name}{self.action_params!r})"

    def __call__(self, dispatch: Dispatch, get_state: Callable[[], Any] | None = None) -> Any:
        outcome = self.run(dispatch, get_state)
        if isinstance(outcome, Immediate):
            return outcome.value
        return outcome

    def run(self, dispatch: Dispatch, get_state: Callable[[], Any] | None = None) -> Immediate | Deferred:
        """Run the operation, emitting its events through `dispatch`."""
        d = self.descriptor
        params = self.action_params
        seq = self._next_seq()

        if not d.is_invocable:
            dispatch(success_event(self.types, params, d.constant_value, seq=seq))
            return Immediate(d.constant_value)

        kwargs: dict[str, Any] = {}
        if d.wants_context:
            kwargs["ctx"] = CallContext(
                ops=BoundOps(self._actions, dispatch),
                dispatch=dispatch,
                get_state=get_state,
            )

        if d.is_deferred:
            dispatch(start_event(self.types, params, seq=seq))

        try:
            value = d.fn(*params, **kwargs)  # type: ignore[misc]
        except Exception as e:
            logger.debug("%s.%s failed", self.model_name, self.action_name, exc_info=True)
            dispatch(failure_event(self.types, params, e, is_async=d.is_deferred, seq=seq))
            raise

        if d.is_deferred:
            return Deferred(_schedule(self._settle(dispatch, value, seq)))

        dispatch(success_event(self.types, params, value, seq=seq))
        return Immediate(value)

    async def _settle(self, dispatch: Dispatch, value: Any, seq: int) -> Any:
        params = self.action_params
        try:
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.debug("%s.%s failed", self.model_name, self.action_name, exc_info=True)
            dispatch(failure_event(self.types, params, e, is_async=True, seq=seq))
            raise

        dispatch(success_event(self.types, params, value, is_async=True, seq=seq))
        return value


def _schedule(settlement: Any) -> Any:
    """Run `settlement` as a task when a loop is running; otherwise hand it back."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return settlement
    return asyncio.ensure_future(settlement)


# ---------------------------------------------------------------------------
# Action creators
# ---------------------------------------------------------------------------


def create_action_creator(
    descriptor: OperationDescriptor,
    types: EventTypes,
    next_seq: Callable[[], int],
    actions: dict[str, Callable[..., Any]],
) -> Callable[..., Invocation]:
    """(*args) → Invocation for one operation."""

    def action_creator(*params: Any) -> Invocation:
        return Invocation(descriptor, types, tuple(params), next_seq, actions)

    action_creator.__name__ = descriptor.operation_name
    action_creator.types = types  # type: ignore[attr-defined]
    action_creator.descriptor = descriptor  # type: ignore[attr-defined]
    return action_creator


def create_reset_action(types: EventTypes) -> Callable[[], Event]:
    """() → reset event. Clears every record of the operation."""

    def reset_action() -> Event:
        return reset_event(types)

    return reset_action


def create_modify_action(types: EventTypes) -> Callable[..., Callable[[Any], Event]]:
    """
    (*args) → (new_result) → success event.
    Overwrites the record for `args` without calling the operation.
    """

    def modify_action(*params: Any) -> Callable[[Any], Event]:
        def with_result(result: Any) -> Event:
            return success_event(types, tuple(params), result)

        return with_result

    modify_action.is_modify = True  # type: ignore[attr-defined]
    return modify_action


def create_actions(
    descriptors: Iterable[OperationDescriptor],
    types_for: Callable[[str], EventTypes],
    next_seq: Callable[[], int] | None = None,
) -> dict[str, Callable[..., Any]]:
    """
    Build the action table for a set of accepted operations:
      name, name_reset, name_modify

    All creators share one table, so handlers see every sibling.
    """
    if next_seq is None:
        next_seq = itertools.count(1).__next__

    actions: dict[str, Callable[..., Any]] = {}
    for d in descriptors:
        types = types_for(d.operation_name)
        actions[d.operation_name] = create_action_creator(d, types, next_seq, actions)
        actions[f"{d.operation_name}{RESET_SUFFIX}"] = create_reset_action(types)
        actions[f"{d.operation_name}{MODIFY_SUFFIX}"] = create_modify_action(types)
    return actions
