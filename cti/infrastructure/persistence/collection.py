"""Model collection: a list of models with keyed and grouped views."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cti.infrastructure.persistence.model import Model

KeyFn = str | Callable[["Model"], Any]


def _key_getter(key: KeyFn) -> Callable[[Model], Any]:
    if callable(key):
        return key
    return lambda model: model.get_attribute(key)


class ModelCollection(list):
    """List of hydrated models returned by QueryBuilder.get()."""

    def pluck(self, key: str) -> list[Any]:
        return [model.get_attribute(key) for model in self]

    def model_keys(self) -> list[Any]:
        return [model.get_key() for model in self]

    def key_by(self, key: KeyFn) -> dict[Any, Model]:
        getter = _key_getter(key)
        return {getter(model): model for model in self}

    def group_by(self, key: KeyFn) -> dict[Any, ModelCollection]:
        """Group models by an attribute name or a callable, preserving order within groups."""
        getter = _key_getter(key)
        groups: dict[Any, ModelCollection] = {}
        for model in self:
            groups.setdefault(getter(model), ModelCollection()).append(model)
        return groups

    def filter(self, predicate: Callable[[Model], bool]) -> ModelCollection:
        return ModelCollection(model for model in self if predicate(model))

    def first(self, predicate: Callable[[Model], bool] | None = None) -> Model | None:
        for model in self:
            if predicate is None or predicate(model):
                return model
        return None

    def last(self) -> Model | None:
        return self[-1] if self else None

    def is_empty(self) -> bool:
        return not self

    def to_dicts(self) -> list[dict[str, Any]]:
        return [model.to_dict() for model in self]
