"""
callstate — Event Types and Construction

Derives the namespaced event types of an operation and builds well-formed
events. Used by the actions layer to emit lifecycle events, by reducer
factories to match them, and by tests to build events concisely.

Type pattern:
  <PREFIX>/<GROUP>/<OP>            start
  <PREFIX>/<GROUP>/<OP>_SUCCESS    success
  <PREFIX>/<GROUP>/<OP>_ERROR      failure
  <PREFIX>/<GROUP>/<OP>_RESET      reset
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from callstate.types import DEFAULT_TYPE_PREFIX, Event, EventTypes, to_token

# ---------------------------------------------------------------------------
# Type derivation
# ---------------------------------------------------------------------------


def method_name_to_types(
    model_name: str,
    method_name: str,
    type_prefix: str | None = None,
) -> EventTypes:
    """
    Derive the four event types of one operation.

    Pure and deterministic. Names are normalized to upper snake tokens, so
    "syncLogin" and "sync_login" denote the same operation.
    """
    op_token = to_token(method_name or "")
    if not op_token:
        raise ValueError(f"Cannot derive event types for empty operation name: {method_name!r}")

    base = f"{type_prefix or DEFAULT_TYPE_PREFIX}/{to_token(model_name)}/{op_token}"
    return EventTypes(
        start=base,
        success=f"{base}_SUCCESS",
        failure=f"{base}_ERROR",
        reset=f"{base}_RESET",
    )


def action_constants(
    model_name: str,
    method_name: str,
    type_prefix: str | None = None,
) -> dict[str, str]:
    """
    Constant table for a single operation.

      LOGIN, LOGIN_START → start
      LOGIN_SUCCESS      → success
      LOGIN_ERROR        → failure
      LOGIN_RESET        → reset
    """
    types = method_name_to_types(model_name, method_name, type_prefix)
    token = to_token(method_name)
    return {
        token: types.start,
        f"{token}_START": types.start,
        f"{token}_SUCCESS": types.success,
        f"{token}_ERROR": types.failure,
        f"{token}_RESET": types.reset,
    }


def action_types(
    model_name: str,
    method_names: Iterable[str],
    type_prefix: str | None = None,
) -> dict[str, str]:
    """
    Constant table for a group of operations, handed to custom reducer factories.

    The bare token maps to the success type: a model-level reducer reacts to
    settled values (INCREASE, STOP) far more often than to starts.
    """
    table: dict[str, str] = {}
    for name in method_names:
        types = method_name_to_types(model_name, name, type_prefix)
        token = to_token(name)
        table[f"{token}_START"] = types.start
        table[token] = types.success
        table[f"{token}_SUCCESS"] = types.success
        table[f"{token}_ERROR"] = types.failure
        table[f"{token}_RESET"] = types.reset
    return table


# ---------------------------------------------------------------------------
# Event factories
# ---------------------------------------------------------------------------


def start_event(types: EventTypes, params: tuple[Any, ...], *, seq: int | None = None) -> Event:
    payload: dict[str, Any] = {"params": tuple(params), "async": True}
    if seq is not None:
        payload["seq"] = seq
    return Event(type=types.start, payload=payload)


def success_event(
    types: EventTypes,
    params: tuple[Any, ...],
    result: Any,
    *,
    is_async: bool = False,
    seq: int | None = None,
) -> Event:
    payload: dict[str, Any] = {"params": tuple(params), "result": result, "async": is_async}
    if seq is not None:
        payload["seq"] = seq
    return Event(type=types.success, payload=payload)


def failure_event(
    types: EventTypes,
    params: tuple[Any, ...],
    error: BaseException,
    *,
    is_async: bool = False,
    seq: int | None = None,
) -> Event:
    payload: dict[str, Any] = {"params": tuple(params), "error": error, "async": is_async}
    if seq is not None:
        payload["seq"] = seq
    return Event(type=types.failure, payload=payload)


def reset_event(types: EventTypes) -> Event:
    return Event(type=types.reset)
