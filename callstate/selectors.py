"""
callstate — Selectors

Read side. Given the full application state, derive one accessor per
operation:

  login(*args)         → CallRecord for args, or EMPTY_RECORD
  login_result(*args)  → that record's result, or None

State is always passed in explicitly. `selectors(state)` rebuilds the table
on every call, so accessors never see a stale snapshot.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from callstate.reducer import find_index
from callstate.types import EMPTY_RECORD, CallRecord

RESULT_SUFFIX = "_result"


class Selectors(dict):
    """Name → accessor table. Attribute access is sugar for item access."""

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None


@dataclass(frozen=True)
class SelectorContext:
    """First argument of every custom selector."""

    state: Any
    model_state: Any
    name: str
    method_state: Any = None
    mixin_state: Any = None
    model: Any = None


@dataclass(frozen=True)
class SelectorSpec:
    """
    How to read one operation.

    path     — keys from the model state down to the operation's slice
    raw      — slice is owned by a custom reducer; hand it back as-is
    custom   — caller-supplied selector taking a SelectorContext
    mixin    — owning bundle, if any
    """

    name: str
    path: tuple[str, ...]
    raw: bool = False
    custom: Callable[..., Any] | None = None
    mixin: str | None = None
    with_result: bool = True


@dataclass
class SelectorPlan:
    """Everything composition decided about the read side of one model."""

    specs: list[SelectorSpec] = field(default_factory=list)
    extras: dict[str, Callable[..., Any]] = field(default_factory=dict)
    nested: dict[str, list[SelectorSpec]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def find_record(records: Any, params: tuple[Any, ...]) -> CallRecord:
    """The record whose params deep-equal `params`, or EMPTY_RECORD."""
    if not records or not isinstance(records, (tuple, list)):
        return EMPTY_RECORD
    index = find_index(tuple(records), tuple(params))
    if index is None:
        return EMPTY_RECORD
    return records[index]


def result_of(value: Any) -> Any:
    """The bare result of whatever a selector returned."""
    if value is None:
        return None
    if isinstance(value, CallRecord):
        return value.result
    if isinstance(value, Mapping):
        return value.get("result")
    return getattr(value, "result", None)


def create_selectors(
    plan: SelectorPlan,
    state_to_model: Callable[[Any], Any],
    model: Any = None,
) -> Callable[[Any], Selectors]:
    """Return `selectors(state)` for one model."""

    def selectors(state: Any) -> Selectors:
        model_state = state_to_model(state) if state is not None else None
        if model_state is None:
            model_state = {}

        table = Selectors()
        for spec in plan.specs:
            _install(table, spec, state, model_state, model)

        for name, fn in plan.extras.items():
            if name in table:
                continue
            table[name] = _bind_extra(fn, SelectorContext(state=state, model_state=model_state, name=name, model=model))

        for mixin_name, specs in plan.nested.items():
            if mixin_name in table:
                continue
            nested = Selectors()
            for spec in specs:
                _install(nested, spec, state, model_state, model)
            table[mixin_name] = nested

        return table

    return selectors


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _install(table: Selectors, spec: SelectorSpec, state: Any, model_state: Any, model: Any) -> None:
    method_state = _dig(model_state, spec.path)
    mixin_state = _dig(model_state, (spec.mixin,)) if spec.mixin else None

    if spec.custom is not None:
        ctx = SelectorContext(
            state=state,
            model_state=model_state,
            name=spec.name,
            method_state=method_state,
            mixin_state=mixin_state,
            model=model,
        )
        selector = _bind_extra(spec.custom, ctx)
    elif spec.raw:
        selector = _raw_selector(method_state)
    else:
        selector = _record_selector(method_state)

    table[spec.name] = selector
    if spec.with_result:
        table[f"{spec.name}{RESULT_SUFFIX}"] = _result_selector(selector)


def _record_selector(records: Any) -> Callable[..., CallRecord]:
    def select(*params: Any) -> CallRecord:
        return find_record(records, params)

    return select


def _raw_selector(method_state: Any) -> Callable[..., Any]:
    def select(*params: Any) -> Any:
        return method_state

    return select


def _result_selector(selector: Callable[..., Any]) -> Callable[..., Any]:
    def select_result(*params: Any) -> Any:
        return result_of(selector(*params))

    return select_result


def _bind_extra(fn: Callable[..., Any], ctx: SelectorContext) -> Callable[..., Any]:
    def select(*params: Any) -> Any:
        return fn(ctx, *params)

    select.__name__ = getattr(fn, "__name__", ctx.name)
    return select


def _dig(state: Any, path: tuple[str, ...]) -> Any:
    current = state
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current
