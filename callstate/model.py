"""
callstate — Models

A model is one named group of tracked operations:

    user = create_model(
        name="user",
        methods={"login": login, "logout": logout},
        mixins=[paging],
    )

    store.dispatch(user.login({"username": "alice"}))
    user.selectors(store.get_state()).login({"username": "alice"})

create_models() builds several models that share mixins and one reducer.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from callstate.composition import compose
from callstate.config import ModelConfig
from callstate.events import action_types
from callstate.reducer import Reducer
from callstate.reducer import combine_reducers as default_combine_reducers
from callstate.selectors import Selectors, create_selectors
from callstate.types import Conflict, EventTypes

logger = logging.getLogger(__name__)

DEFAULT_GROUP_KEY = "models"


class Model:
    """
    Composed model. Actions are reachable as attributes (`user.login`) as
    long as they do not shadow one of the attributes below; `model.actions`
    always has all of them.
    """

    def __init__(self, config: ModelConfig) -> None:
        self.config = config
        self.name: str = config.name or f"model_{uuid.uuid4().hex[:8]}"
        self.type_prefix: str = config.resolved_prefix()
        self.strict_sequence: bool = config.resolved_strict()

        composition = compose(self, config)
        self.actions: dict[str, Callable[..., Any]] = composition.actions
        self.reducer: Reducer = composition.reducer
        self.types: dict[str, EventTypes] = composition.types
        self.conflicts: list[Conflict] = composition.conflicts
        self.constants: dict[str, str] = action_types(self.name, list(self.types), self.type_prefix)
        self.selectors: Callable[[Any], Selectors] = create_selectors(
            composition.selector_plan,
            config.state_to_model or self._default_state_to_model,
            self,
        )

        logger.debug("model %s: %d operations, %d conflicts", self.name, len(self.types), len(self.conflicts))

    def __getattr__(self, name: str) -> Any:
        actions = self.__dict__.get("actions") or {}
        try:
            return actions[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__} {self.__dict__.get('name')!r} has no action {name!r}") from None

    def __repr__(self) -> str:
        return f"Model({self.name!r}, operations={list(self.types)})"

    def _default_state_to_model(self, state: Any) -> Any:
        if isinstance(state, Mapping):
            return state.get(self.name)
        return None


@dataclass
class ModelGroup:
    """Several models mounted side by side under one reducer."""

    models: dict[str, Model]
    reducer: Reducer
    conflicts: list[Conflict] = field(default_factory=list)

    def __getitem__(self, name: str) -> Model:
        return self.models[name]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_model(config: ModelConfig | Mapping[str, Any] | None = None, **kwargs: Any) -> Model:
    """
    Create one model. Accepts a ModelConfig, a mapping, or keyword arguments.
    Setup input is validated; a malformed config raises pydantic's
    ValidationError.
    """
    if config is None:
        config = ModelConfig(**kwargs)
    elif not isinstance(config, ModelConfig):
        config = ModelConfig(**{**dict(config), **kwargs})
    elif kwargs:
        config = ModelConfig(**{**_fields(config), **kwargs})
    return Model(config)


def create_models(
    models: list[ModelConfig | Mapping[str, Any]],
    mixins: list[Any] | tuple[Any, ...] = (),
    combine_reducers: Callable[..., Any] | None = None,
    state_to_model: Callable[[Any], Any] | None = None,
) -> ModelGroup:
    """
    Create a group of models.

    Shared mixins are registered before each model's own mixins. Each model
    reads its slice as state_to_model(state)[model_name]; by default the
    group lives under state["models"].
    """
    group_state = state_to_model or _default_group_state
    shared = ModelConfig(mixins=list(mixins)).mixins
    combine = combine_reducers or default_combine_reducers

    built: dict[str, Model] = {}
    conflicts: list[Conflict] = []

    for raw in models:
        config = raw if isinstance(raw, ModelConfig) else ModelConfig(**dict(raw))
        name = config.name or f"model_{uuid.uuid4().hex[:8]}"

        if name in built:
            conflicts.append(Conflict(name=name, loser=name, winner=name, reason="model registered twice"))
            logger.warning("create_models: model %s registered twice, keeping the first", name)
            continue

        config = ModelConfig(
            **{
                **_fields(config),
                "name": name,
                "mixins": [*shared, *config.mixins],
                "combine_reducers": combine_reducers or config.combine_reducers,
                "state_to_model": _slice_of(group_state, name),
            }
        )
        model = Model(config)
        built[name] = model
        conflicts.extend(model.conflicts)

    reducer = combine({name: model.reducer for name, model in built.items()})
    return ModelGroup(models=built, reducer=reducer, conflicts=conflicts)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _fields(config: ModelConfig) -> dict[str, Any]:
    return {name: getattr(config, name) for name in ModelConfig.model_fields}


def _default_group_state(state: Any) -> Any:
    if isinstance(state, Mapping):
        return state.get(DEFAULT_GROUP_KEY)
    return None


def _slice_of(group_state: Callable[[Any], Any], name: str) -> Callable[[Any], Any]:
    def state_to_model(state: Any) -> Any:
        group = group_state(state)
        if isinstance(group, Mapping):
            return group.get(name)
        return None

    return state_to_model
