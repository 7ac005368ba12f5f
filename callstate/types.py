"""
callstate — Shared Types

Data classes used across events, reducer, actions, selectors and composition.
These are the contracts that bind the package together.

Records are frozen: the reducer replaces them, it never edits them in place.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Generator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_TYPE_PREFIX = "@@callstate"

# Key under which a whole-model custom reducer is installed
MODEL_REDUCER_KEY = "model"

# Word splitter for token normalization: acronyms, capitalized words, digit runs
_WORD_PATTERN = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CallStateError(Exception):
    """Base class for errors raised by callstate."""

    pass


class InvalidEvent(CallStateError):
    """Something that is neither an Event nor an Invocation reached dispatch."""

    pass


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventTypes:
    """The four namespaced event types of one operation."""

    start: str
    success: str
    failure: str
    reset: str

    def __iter__(self):
        return iter((self.start, self.success, self.failure, self.reset))

    def tracked(self) -> tuple[str, str, str]:
        return (self.start, self.success, self.failure)


@dataclass
class Event:
    """
    One lifecycle event pushed through the bus.
    Reducers read only `type` and `payload`.

    payload keys: params, result, error, async, seq
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type}
        if self.payload:
            d["payload"] = dict(self.payload)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Event:
        return cls(type=d["type"], payload=dict(d.get("payload") or {}))


@dataclass(frozen=True)
class CallRecord:
    """
    Tracked lifecycle of one operation at one argument signature.

    `sequence` is the highest invocation number seen for this signature.
    It only matters in strict ordering mode and is left out of equality.
    """

    params: tuple[Any, ...] | None = None
    result: Any = None
    error: Any = None
    requesting: bool = False
    requested: bool = False
    updated_at: str | None = None
    sequence: int | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "params": list(self.params) if self.params is not None else None,
            "result": self.result,
            "error": self.error,
            "requesting": self.requesting,
            "requested": self.requested,
            "updated_at": self.updated_at,
        }


# Returned by accessors when no record matches the queried signature
EMPTY_RECORD = CallRecord()


@dataclass(frozen=True)
class OperationDescriptor:
    """
    A normalized operation, created once at setup.

    A callable is invocable; anything else is a constant returned verbatim.
    `is_deferred` is the declared contract: coroutine functions, or
    operations wrapped with `operation(fn, deferred=True)`.
    """

    group_name: str
    operation_name: str
    is_invocable: bool
    constant_value: Any = None
    fn: Callable[..., Any] | None = None
    is_deferred: bool = False
    wants_context: bool = False


@dataclass
class Mixin:
    """
    An extension bundle: extra operations, optionally with their own reducer
    and selectors.

    methods           — operation set, or a factory taking the model
    create_reducer    — (model, types, combine_reducers) → reducer
    create_selectors  — (model) → {name: selector}
    """

    name: str
    methods: Any = None
    create_reducer: Any = None
    create_selectors: Any = None


@dataclass(frozen=True)
class Conflict:
    """A name collision resolved by precedence during composition."""

    name: str
    loser: str
    winner: str
    reason: str = "duplicate"

    def __str__(self) -> str:
        return f"{self.loser}: '{self.name}' not installed, {self.winner} wins ({self.reason})"


@dataclass(frozen=True)
class Immediate:
    """An invocation that settled synchronously."""

    value: Any


@dataclass
class Deferred:
    """
    An invocation still in flight. Await it to get the result.

    Inside a running event loop the settlement is already a scheduled task;
    awaiting only collects its result. Outside a loop it is a bare coroutine
    that settles when awaited.
    """

    awaitable: Awaitable[Any]

    def __await__(self) -> Generator[Any, None, Any]:
        return self.awaitable.__await__()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_token(name: str) -> str:
    """
    Normalize a name to an upper snake token.

    Examples:
      "login"              → "LOGIN"
      "methodToOverride"   → "METHOD_TO_OVERRIDE"
      "model1"             → "MODEL_1"
      "mixin-with-reducer" → "MIXIN_WITH_REDUCER"
      "sync_login"         → "SYNC_LOGIN"
    """
    return "_".join(word.upper() for word in _WORD_PATTERN.findall(name))


def now_iso() -> str:
    """Current UTC time as ISO 8601 string (microsecond precision)."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
