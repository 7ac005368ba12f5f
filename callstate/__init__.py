"""
callstate — parameterized call-state tracking.

Components:
  events       — operation names → namespaced event types
  actions      — operations → invocations that emit lifecycle events
  reducer      — (records, event) → records  (pure, total)
  selectors    — (state) → per-argument accessors
  composition  — model operations + mixins → actions, reducer, selectors

Entry points:
  create_model, create_models, Store
"""

from callstate.actions import CallContext, Invocation
from callstate.composition import merge_operations
from callstate.config import ModelConfig, settings
from callstate.events import action_constants, action_types, method_name_to_types
from callstate.methods import operation
from callstate.model import Model, ModelGroup, create_model, create_models
from callstate.reducer import combine_reducers, reduce
from callstate.selectors import SelectorContext, find_record
from callstate.store import Store
from callstate.types import (
    EMPTY_RECORD,
    CallRecord,
    CallStateError,
    Conflict,
    Deferred,
    Event,
    EventTypes,
    Immediate,
    InvalidEvent,
    Mixin,
)

__all__ = [
    "create_model",
    "create_models",
    "Model",
    "ModelGroup",
    "ModelConfig",
    "Mixin",
    "operation",
    "Store",
    "reduce",
    "combine_reducers",
    "find_record",
    "method_name_to_types",
    "action_constants",
    "action_types",
    "merge_operations",
    "CallContext",
    "Invocation",
    "SelectorContext",
    "CallRecord",
    "EMPTY_RECORD",
    "Event",
    "EventTypes",
    "Immediate",
    "Deferred",
    "Conflict",
    "CallStateError",
    "InvalidEvent",
    "settings",
]
