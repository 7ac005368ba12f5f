"""
callstate — Operation Normalization

Turns the operations a caller supplies (a mapping or a list) into
OperationDescriptors. Anything without a usable name is dropped here,
before event types are derived.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from callstate.types import OperationDescriptor, to_token

logger = logging.getLogger(__name__)

CONTEXT_PARAM = "ctx"


@dataclass(frozen=True)
class Operation:
    """
    An operation with an explicit contract.

    deferred=None means "decide from the function": coroutine functions are
    deferred, everything else settles immediately.
    """

    fn: Callable[..., Any]
    name: str | None = None
    deferred: bool | None = None

    @property
    def label(self) -> str:
        return self.name or getattr(self.fn, "__name__", "")


def operation(
    fn: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    deferred: bool | None = None,
) -> Any:
    """
    Declare an operation's contract. Usable bare or with arguments:

        @operation(deferred=True)
        def fetch_user(user_id): ...

        ops = [operation(load, name="load_all")]
    """
    if fn is None:
        return lambda f: Operation(fn=f, name=name, deferred=deferred)
    return Operation(fn=fn, name=name, deferred=deferred)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def method_name(method: Any) -> str | None:
    """The name an operation is registered under, or None if it has none."""
    if isinstance(method, str):
        return method
    if isinstance(method, Operation):
        return method.label
    if callable(method):
        return getattr(method, "__name__", None)
    return None


def describe(group_name: str, name: str, method: Any) -> OperationDescriptor:
    """Build the descriptor for one named operation."""
    if isinstance(method, Operation):
        fn = method.fn
        deferred = method.deferred if method.deferred is not None else inspect.iscoroutinefunction(fn)
    elif callable(method):
        fn = method
        deferred = inspect.iscoroutinefunction(fn)
    else:
        return OperationDescriptor(
            group_name=group_name,
            operation_name=name,
            is_invocable=False,
            constant_value=method,
        )

    return OperationDescriptor(
        group_name=group_name,
        operation_name=name,
        is_invocable=True,
        fn=fn,
        is_deferred=deferred,
        wants_context=_accepts_context(fn),
    )


def normalize_methods(group_name: str, methods: Any) -> list[OperationDescriptor]:
    """
    Normalize an operation set into descriptors, preserving declaration order.

    Mapping: key is the name, value is a callable or a constant.
    List: callables and Operations are named by their __name__; a bare
    string is an operation whose constant value is its own name.
    Entries whose name is empty, anonymous or non-tokenizable are dropped.
    """
    if not methods:
        return []

    if isinstance(methods, dict):
        pairs = list(methods.items())
    else:
        pairs = [(method_name(m), m) for m in methods]

    descriptors: list[OperationDescriptor] = []
    for name, method in pairs:
        if not _is_usable_name(name):
            logger.debug("normalize_methods: dropping unnamed operation in %s: %r", group_name, method)
            continue
        descriptors.append(describe(group_name, name, method))
    return descriptors


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _is_usable_name(name: Any) -> bool:
    if not isinstance(name, str) or not name:
        return False
    if name == "<lambda>":
        return False
    return bool(to_token(name))


def _accepts_context(fn: Callable[..., Any]) -> bool:
    try:
        params = inspect.signature(fn).parameters
    except (TypeError, ValueError):
        return False
    param = params.get(CONTEXT_PARAM)
    if param is None:
        return False
    return param.kind in (inspect.Parameter.KEYWORD_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
