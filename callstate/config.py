"""
callstate configuration.

Process-wide defaults come from environment variables, read once at import.
Per-model setup input is validated with pydantic before composition.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, field_validator

from callstate.types import DEFAULT_TYPE_PREFIX, Mixin


def _env_flag(name: str, default: str = "") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Library settings from environment variables."""

    # Namespace in front of every event type
    TYPE_PREFIX: str = os.environ.get("CALLSTATE_TYPE_PREFIX", DEFAULT_TYPE_PREFIX)

    # Highest invocation sequence wins instead of last event wins
    STRICT_SEQUENCE: bool = _env_flag("CALLSTATE_STRICT_SEQUENCE")

    # Log composition conflicts at warning level (always returned either way)
    LOG_CONFLICTS: bool = _env_flag("CALLSTATE_LOG_CONFLICTS", "true")


# Singleton instance
settings = Settings()


class ModelConfig(BaseModel):
    """What the caller supplies to create one model."""

    model_config = {"extra": "forbid", "arbitrary_types_allowed": True}

    name: str | None = None
    methods: dict[str, Any] | list[Any] = Field(default_factory=dict)
    mixins: list[Any] = Field(default_factory=list)
    reducer: Callable[..., Any] | None = None
    reducers: dict[str, Callable[..., Any]] = Field(default_factory=dict)
    selectors: dict[str, Callable[..., Any]] = Field(default_factory=dict)
    state_to_model: Callable[[Any], Any] | None = None
    combine_reducers: Callable[..., Any] | None = None
    type_prefix: str | None = None
    strict_sequence: bool | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("model name must not be blank")
        return v

    @field_validator("mixins", mode="before")
    @classmethod
    def _mixins_as_bundles(cls, v: Any) -> Any:
        if v is None:
            return []
        bundles = []
        for item in v:
            if isinstance(item, dict):
                try:
                    item = Mixin(**item)
                except TypeError as e:
                    raise ValueError(f"malformed mixin: {e}") from e
            if not isinstance(item, Mixin):
                raise ValueError(f"mixin must be a Mixin or a mapping, got {type(item).__name__}")
            bundles.append(item)
        return bundles

    @field_validator("methods", mode="before")
    @classmethod
    def _methods_container(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, tuple):
            return list(v)
        return v

    @field_validator("reducers", "selectors", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    def resolved_prefix(self) -> str:
        return self.type_prefix or settings.TYPE_PREFIX

    def resolved_strict(self) -> bool:
        if self.strict_sequence is None:
            return settings.STRICT_SEQUENCE
        return self.strict_sequence
