"""
callstate — Reducer

Pure function: (records, event) → records
No side effects. No IO. Never raises on an event it does not know.

One collection of CallRecords per operation, one record per distinct
argument signature, in first-seen order. Records are replaced, never edited;
an event that does not concern the operation returns the input unchanged.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from typing import Any

from callstate.types import CallRecord, Event, EventTypes, now_iso

Records = tuple[CallRecord, ...]
Reducer = Callable[[Any, Any], Any]

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def initial_records() -> Records:
    """The collection of an operation that has never been called."""
    return ()


def reduce(
    state: Records | None,
    event: Event,
    types: EventTypes,
    *,
    strict: bool = False,
) -> Records:
    """
    Apply one event to one operation's record collection.

    reset                    → empty collection
    start/success/failure    → insert or replace the record for event params
    anything else            → state unchanged (same object)

    In strict mode a success/failure older than the newest start seen for
    the same params is ignored.
    """
    if state is None:
        state = initial_records()

    event_type = getattr(event, "type", None)
    if event_type == types.reset:
        return initial_records()
    if event_type not in types.tracked():
        return state

    payload = getattr(event, "payload", None) or {}
    params = _params(payload.get("params"))
    seq = payload.get("seq")
    is_start = event_type == types.start
    requested = event_type in (types.success, types.failure)
    error = payload.get("error") if event_type == types.failure else None

    index = find_index(state, params)

    if index is None:
        record = CallRecord(
            params=params,
            result=None if is_start or event_type == types.failure else payload.get("result"),
            error=error,
            requesting=is_start,
            requested=requested,
            updated_at=now_iso(),
            sequence=seq,
        )
        return (*state, record)

    current = state[index]

    if strict and not is_start and _is_stale(current, seq):
        return state

    if is_start:
        result = current.result
    elif event_type == types.success:
        result = payload.get("result")
    else:
        result = None

    record = dataclasses.replace(
        current,
        params=params,
        result=result,
        error=error,
        requesting=is_start,
        requested=requested,
        updated_at=now_iso(),
        sequence=_max_seq(current.sequence, seq),
    )
    return (*state[:index], record, *state[index + 1 :])


def create_method_reducer(types: EventTypes, *, strict: bool = False) -> Reducer:
    """Default reducer for one operation, bound to its event types."""

    def reducer(state: Records | None = None, event: Any = None) -> Records:
        return reduce(state, event, types, strict=strict)

    reducer.is_default = True  # type: ignore[attr-defined]
    reducer.types = types  # type: ignore[attr-defined]
    return reducer


def combine_reducers(reducers: Mapping[str, Reducer]) -> Reducer:
    """
    Keyed union of reducers. Each key owns one slice of a dict state.

    Returns the previous state object when no slice changed, so callers can
    detect no-ops by identity.
    """
    reducers = dict(reducers)

    def combined(state: Mapping[str, Any] | None = None, event: Any = None) -> dict[str, Any]:
        previous = state if state is not None else {}
        changed = state is None
        next_state: dict[str, Any] = {}
        for key, reducer in reducers.items():
            before = previous.get(key)
            after = reducer(before, event)
            next_state[key] = after
            if after is not before or key not in previous:
                changed = True
        return next_state if changed else previous  # type: ignore[return-value]

    combined.keys = tuple(reducers)  # type: ignore[attr-defined]
    return combined


def find_index(records: Records, params: tuple[Any, ...] | None) -> int | None:
    """Position of the record whose params deep-equal `params`, or None."""
    for i, record in enumerate(records):
        if record.params == params:
            return i
    return None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _params(raw: Any) -> tuple[Any, ...] | None:
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        return tuple(raw)
    return (raw,)


def _is_stale(record: CallRecord, seq: int | None) -> bool:
    return seq is not None and record.sequence is not None and seq < record.sequence


def _max_seq(a: int | None, b: int | None) -> int | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)
