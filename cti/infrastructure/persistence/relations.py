"""Relations between models: has-one, has-many, belongs-to and many-to-many.

A relation wraps a QueryBuilder on the related model that is already
constrained to the parent instance. Keys are given as "table.column" for the
related side so the constraint resolves unambiguously when joins exist.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_

if TYPE_CHECKING:
    from cti.infrastructure.persistence.collection import ModelCollection
    from cti.infrastructure.persistence.model import Model
    from cti.infrastructure.persistence.query import QueryBuilder


class Relation:
    """Base relation: a constrained query plus the instance it belongs to."""

    def __init__(self, query: QueryBuilder, parent: Model) -> None:
        self.query = query
        self.parent = parent
        self.related = query.model_cls
        self._add_constraints()

    def _add_constraints(self) -> None:
        raise NotImplementedError

    def get_results(self) -> Any:
        raise NotImplementedError

    def get(self) -> ModelCollection:
        return self.query.get()

    def first(self) -> Model | None:
        return self.query.first()

    def count(self) -> int:
        return self.query.count()

    def to_sql(self) -> str:
        return self.query.to_sql()


class HasOneOrMany(Relation):
    """Related rows hold a foreign key pointing at the parent's local key."""

    def __init__(
        self, query: QueryBuilder, parent: Model, foreign_key: str, local_key: str
    ) -> None:
        self.foreign_key = foreign_key
        self.local_key = local_key
        super().__init__(query, parent)

    @property
    def foreign_key_name(self) -> str:
        return self.foreign_key.rpartition(".")[2]

    def _add_constraints(self) -> None:
        self.query.where(self.foreign_key, self.parent.get_attribute(self.local_key))

    def make(self, attributes: dict[str, Any] | None = None) -> Model:
        """Build an unsaved related model with the foreign key set."""
        model = self.related(attributes or {})
        model.set_attribute(self.foreign_key_name, self.parent.get_attribute(self.local_key))
        return model

    def create(self, attributes: dict[str, Any] | None = None) -> Model:
        model = self.make(attributes)
        model.save()
        return model


class HasOne(HasOneOrMany):
    def get_results(self) -> Model | None:
        return self.query.first()


class HasMany(HasOneOrMany):
    def get_results(self) -> ModelCollection:
        return self.query.get()


class BelongsTo(Relation):
    """The child holds a foreign key pointing at the related model's owner key."""

    def __init__(self, query: QueryBuilder, child: Model, foreign_key: str, owner_key: str) -> None:
        self.foreign_key = foreign_key
        self.owner_key = owner_key
        super().__init__(query, child)

    def _add_constraints(self) -> None:
        owner = f"{self.query.table.name}.{self.owner_key}"
        self.query.where(owner, self.parent.get_attribute(self.foreign_key))

    def get_results(self) -> Model | None:
        if self.parent.get_attribute(self.foreign_key) is None:
            return None
        return self.query.first()

    def associate(self, model: Model) -> Model:
        """Point the child's foreign key at model (the child is not saved)."""
        self.parent.set_attribute(self.foreign_key, model.get_attribute(self.owner_key))
        return self.parent

    def dissociate(self) -> Model:
        self.parent.set_attribute(self.foreign_key, None)
        return self.parent


class BelongsToMany(Relation):
    """Many-to-many through a pivot table holding both keys."""

    def __init__(
        self,
        query: QueryBuilder,
        parent: Model,
        table: str,
        foreign_pivot_key: str,
        related_pivot_key: str,
        parent_key: str,
        related_key: str,
    ) -> None:
        self.pivot_table = table
        self.foreign_pivot_key = foreign_pivot_key
        self.related_pivot_key = related_pivot_key
        self.parent_key = parent_key
        self.related_key = related_key
        super().__init__(query, parent)

    def _add_constraints(self) -> None:
        related_table = self.query.table.name
        self.query.join(
            self.pivot_table,
            f"{related_table}.{self.related_key}",
            "=",
            f"{self.pivot_table}.{self.related_pivot_key}",
        ).where(
            f"{self.pivot_table}.{self.foreign_pivot_key}",
            self.parent.get_attribute(self.parent_key),
        )

    def get_results(self) -> ModelCollection:
        return self.query.get()

    def _related_ids(self, ids: Any) -> list[Any]:
        if ids is None:
            return []
        if not isinstance(ids, Iterable) or isinstance(ids, (str, bytes)):
            ids = [ids]
        return [
            item.get_attribute(self.related_key) if hasattr(item, "get_attribute") else item
            for item in ids
        ]

    def attach(self, ids: Any) -> None:
        """Insert pivot rows linking the parent to each related id (or model)."""
        database = self.parent.get_connection()
        table = database.table(self.pivot_table)
        parent_value = self.parent.get_attribute(self.parent_key)
        with database.transaction():
            for related_id in self._related_ids(ids):
                database.insert(
                    table,
                    {self.foreign_pivot_key: parent_value, self.related_pivot_key: related_id},
                )

    def detach(self, ids: Any = None) -> int:
        """Delete pivot rows for ids, or every pivot row of the parent when ids is None."""
        database = self.parent.get_connection()
        table = database.table(self.pivot_table)
        condition = table.c[self.foreign_pivot_key] == self.parent.get_attribute(self.parent_key)
        if ids is not None:
            condition = and_(condition, table.c[self.related_pivot_key].in_(self._related_ids(ids)))
        return database.execute_write(table.delete().where(condition))
