"""
callstate — Composition

Merges a model's own operations with its extension bundles (mixins) into
one action table, one reducer and one selector plan. Runs once per model,
at setup.

Precedence:
  - the model's own operations always win over bundle operations
  - among bundles, the first registered wins
  - a name whose event types or companions (_reset, _modify, _result)
    overlap an accepted one is rejected

Losers are not installed. Every collision becomes a Conflict record that is
returned to the caller and logged; composition itself never fails on one.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from callstate.actions import MODIFY_SUFFIX, RESET_SUFFIX, create_actions
from callstate.config import ModelConfig, settings
from callstate.events import action_types, method_name_to_types
from callstate.methods import normalize_methods
from callstate.reducer import Reducer, combine_reducers, create_method_reducer
from callstate.selectors import RESULT_SUFFIX, SelectorPlan, SelectorSpec
from callstate.types import MODEL_REDUCER_KEY, Conflict, EventTypes, Mixin, OperationDescriptor, to_token

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Bundle:
    """A mixin after its operations have been normalized."""

    name: str
    descriptors: list[OperationDescriptor]
    create_reducer: Callable[..., Any] | None = None
    create_selectors: Callable[..., Any] | None = None


@dataclass
class MergeResult:
    """
    Output of the merge fold.

    owners maps each accepted operation to the bundle that contributed it,
    or None for the model's own operations.
    """

    accepted: list[OperationDescriptor] = field(default_factory=list)
    owners: dict[str, str | None] = field(default_factory=dict)
    conflicts: list[Conflict] = field(default_factory=list)


@dataclass
class Composition:
    actions: dict[str, Callable[..., Any]]
    reducer: Reducer
    selector_plan: SelectorPlan
    types: dict[str, EventTypes]
    conflicts: list[Conflict]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def merge_operations(
    base: list[OperationDescriptor],
    bundles: list[Bundle],
    *,
    base_label: str = "base",
) -> MergeResult:
    """
    Fold the model's operations and then each bundle, left to right.
    Pure: inputs are not modified, conflicts are returned, not logged.
    """
    merged = MergeResult()
    claims: dict[str, str] = {}

    def label(owner: str | None) -> str:
        return base_label if owner is None else owner

    sources: list[tuple[str | None, list[OperationDescriptor]]] = [(None, base)]
    sources.extend((b.name, b.descriptors) for b in bundles)

    for owner, descriptors in sources:
        for d in descriptors:
            name = d.operation_name
            if name in merged.owners:
                merged.conflicts.append(
                    Conflict(name=name, loser=label(owner), winner=label(merged.owners[name]))
                )
                continue

            token_claims = _claims(to_token(name))
            other = next((claims[t] for t in token_claims if t in claims), None)
            if other is not None:
                merged.conflicts.append(
                    Conflict(
                        name=name,
                        loser=label(owner),
                        winner=label(merged.owners[other]),
                        reason=f"overlaps with '{other}'",
                    )
                )
                continue

            claims.update(dict.fromkeys(token_claims, name))
            merged.owners[name] = owner
            merged.accepted.append(d)

    return merged


def resolve_bundles(model: Any, mixins: list[Mixin]) -> tuple[list[Bundle], list[Conflict]]:
    """
    Normalize every mixin's operations. A factory that is declared but not
    callable is reported and ignored; the mixin's operations still install.
    """
    bundles: list[Bundle] = []
    conflicts: list[Conflict] = []
    seen: set[str] = set()

    for mixin in mixins:
        if not mixin.name:
            conflicts.append(Conflict(name="", loser=repr(mixin), winner=model.name, reason="mixin has no name"))
            continue
        if mixin.name in seen:
            conflicts.append(Conflict(name=mixin.name, loser=mixin.name, winner=mixin.name, reason="mixin registered twice"))
            continue
        seen.add(mixin.name)

        methods = mixin.methods
        if callable(methods):
            methods = methods(model)

        create_reducer = _factory(mixin, "create_reducer", conflicts)
        create_selectors = _factory(mixin, "create_selectors", conflicts)

        bundles.append(
            Bundle(
                name=mixin.name,
                descriptors=normalize_methods(model.name, methods),
                create_reducer=create_reducer,
                create_selectors=create_selectors,
            )
        )

    return bundles, conflicts


def compose(model: Any, config: ModelConfig) -> Composition:
    """Build actions, reducer and selector plan for one model."""
    base = normalize_methods(model.name, config.methods)
    bundles, conflicts = resolve_bundles(model, config.mixins)
    merged = merge_operations(base, bundles, base_label=model.name)
    conflicts.extend(merged.conflicts)

    types = {
        d.operation_name: method_name_to_types(model.name, d.operation_name, model.type_prefix)
        for d in merged.accepted
    }
    actions = create_actions(merged.accepted, types.__getitem__, itertools.count(1).__next__)

    combine = config.combine_reducers or combine_reducers
    reducers = _build_reducers(model, config, merged, bundles, types, combine, conflicts)
    plan = _build_selector_plan(model, config, merged, bundles, conflicts)

    if settings.LOG_CONFLICTS:
        for conflict in conflicts:
            logger.warning("compose %s: %s", model.name, conflict)

    return Composition(
        actions=actions,
        reducer=combine(reducers),
        selector_plan=plan,
        types=types,
        conflicts=conflicts,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


_COMPANION_SUFFIXES = (RESET_SUFFIX, MODIFY_SUFFIX, RESULT_SUFFIX)


def _claims(token: str) -> tuple[str, ...]:
    """
    Every token an operation occupies: its event types and action_types
    constants, plus the companion actions and accessors built from its name.
    """
    companions = tuple(f"{token}_{to_token(suffix)}" for suffix in _COMPANION_SUFFIXES)
    return (token, f"{token}_START", f"{token}_SUCCESS", f"{token}_ERROR", *companions)


def _factory(mixin: Mixin, attr: str, conflicts: list[Conflict]) -> Callable[..., Any] | None:
    value = getattr(mixin, attr, None)
    if value is None:
        return None
    if not callable(value):
        conflicts.append(
            Conflict(name=attr, loser=mixin.name, winner="default", reason=f"{attr} is not callable")
        )
        return None
    return value


def _method_reducer(
    name: str,
    types: EventTypes,
    config: ModelConfig,
    strict: bool,
) -> Reducer:
    factory = config.reducers.get(name)
    if factory is not None:
        return factory(types)
    return create_method_reducer(types, strict=strict)


def _build_reducers(
    model: Any,
    config: ModelConfig,
    merged: MergeResult,
    bundles: list[Bundle],
    types: dict[str, EventTypes],
    combine: Callable[..., Any],
    conflicts: list[Conflict],
) -> dict[str, Reducer]:
    by_name = {b.name: b for b in bundles}
    reducers: dict[str, Reducer] = {}

    for d in merged.accepted:
        owner = merged.owners[d.operation_name]
        if owner is not None and by_name[owner].create_reducer is not None:
            continue
        reducers[d.operation_name] = _method_reducer(d.operation_name, types[d.operation_name], config, model.strict_sequence)

    if config.reducer is not None:
        if MODEL_REDUCER_KEY in reducers:
            conflicts.append(
                Conflict(name=MODEL_REDUCER_KEY, loser="reducer", winner=model.name, reason="reducer key taken")
            )
        else:
            table = action_types(model.name, list(types), model.type_prefix)
            reducers[MODEL_REDUCER_KEY] = config.reducer(table)

    for bundle in bundles:
        if bundle.create_reducer is None:
            continue
        if bundle.name in reducers:
            conflicts.append(
                Conflict(name=bundle.name, loser=bundle.name, winner=model.name, reason="reducer key taken")
            )
            continue
        owned = [name for name, owner in merged.owners.items() if owner == bundle.name]
        table = action_types(model.name, owned, model.type_prefix)
        reducers[bundle.name] = bundle.create_reducer(model, table, combine)

    return reducers


def _build_selector_plan(
    model: Any,
    config: ModelConfig,
    merged: MergeResult,
    bundles: list[Bundle],
    conflicts: list[Conflict],
) -> SelectorPlan:
    by_name = {b.name: b for b in bundles}
    plan = SelectorPlan()

    for d in merged.accepted:
        name = d.operation_name
        owner = merged.owners[name]
        bundle = by_name.get(owner) if owner is not None else None

        if bundle is not None and bundle.create_selectors is not None:
            continue

        if bundle is not None and bundle.create_reducer is not None:
            spec = SelectorSpec(name=name, path=(bundle.name,), raw=True, custom=config.selectors.get(name), mixin=bundle.name)
        else:
            spec = SelectorSpec(
                name=name,
                path=(name,),
                raw=name in config.reducers,
                custom=config.selectors.get(name),
                mixin=owner,
            )
        plan.specs.append(spec)

    taken = {spec.name for spec in plan.specs}
    result_views = {f"{spec.name}{RESULT_SUFFIX}": spec.name for spec in plan.specs if spec.with_result}
    for name, fn in config.selectors.items():
        if name in taken or name in merged.owners:
            continue
        if name in result_views:
            conflicts.append(
                Conflict(name=name, loser="selectors", winner=result_views[name], reason="result accessor name taken")
            )
            continue
        plan.extras[name] = fn

    for bundle in bundles:
        if bundle.create_selectors is None:
            continue
        if bundle.name in taken or bundle.name in plan.extras:
            conflicts.append(
                Conflict(name=bundle.name, loser=bundle.name, winner=model.name, reason="selector name taken")
            )
            continue
        produced = bundle.create_selectors(model) or {}
        if not isinstance(produced, Mapping):
            conflicts.append(
                Conflict(name=bundle.name, loser=bundle.name, winner="default", reason="create_selectors must return a mapping")
            )
            continue
        nested_root = (bundle.name,) if bundle.create_reducer is not None else ()
        plan.nested[bundle.name] = [
            SelectorSpec(name=sel_name, path=(*nested_root, sel_name), custom=fn, mixin=bundle.name)
            for sel_name, fn in produced.items()
        ]

    return plan
