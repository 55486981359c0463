"""Relationship helpers for subtype models.

Relations owned by a subtype default their foreign (or pivot) key to the
subtype key name, so related tables can point at the subtype row's key
(for example quiz_questions.assessment_id).

Relations defined on the CTI parent are exposed on a subtype with
parent_relation():

    @Assessment.register_subtype("quiz")
    class Quiz(SubtypeModel):
        tags = parent_relation("tags")
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from cti.infrastructure.persistence.relations import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasOne,
    Relation,
)

if TYPE_CHECKING:
    from cti.infrastructure.persistence.model import Model


class SubtypeRelations:
    """Mixin for SubtypeModel adding subtype_has_one/has_many/belongs_to/belongs_to_many."""

    def subtype_has_one(
        self, related: type[Model], foreign_key: str | None = None, local_key: str | None = None
    ) -> HasOne:
        foreign_key = foreign_key or self.get_subtype_key_name()
        return HasOne(
            related.query(),
            self,
            f"{related.get_table()}.{foreign_key}",
            local_key or self.get_key_name(),
        )

    def subtype_has_many(
        self, related: type[Model], foreign_key: str | None = None, local_key: str | None = None
    ) -> HasMany:
        foreign_key = foreign_key or self.get_subtype_key_name()
        return HasMany(
            related.query(),
            self,
            f"{related.get_table()}.{foreign_key}",
            local_key or self.get_key_name(),
        )

    def subtype_belongs_to(
        self, related: type[Model], foreign_key: str | None = None, owner_key: str | None = None
    ) -> BelongsTo:
        return BelongsTo(
            related.query(),
            self,
            foreign_key or self.get_subtype_key_name(),
            owner_key or related.get_key_name(),
        )

    def subtype_belongs_to_many(
        self,
        related: type[Model],
        table: str | None = None,
        foreign_pivot_key: str | None = None,
        related_pivot_key: str | None = None,
        parent_key: str | None = None,
        related_key: str | None = None,
    ) -> BelongsToMany:
        return BelongsToMany(
            related.query(),
            self,
            table or self.joining_table(related),
            foreign_pivot_key or self.get_subtype_key_name(),
            related_pivot_key or related.get_foreign_key(),
            parent_key or self.get_key_name(),
            related_key or related.get_key_name(),
        )


def parent_relation(name: str) -> Callable[[Any], Relation]:
    """Expose the CTI parent's relation method name on a subtype class.

    The relation is built on a parent-class view of the instance (see
    SubtypeModel.as_parent()), so it uses the parent's keys and defaults.
    """

    def relation(self: Any) -> Relation:
        parent = self.as_parent()
        method = getattr(type(parent), name, None)
        if not callable(method):
            raise AttributeError(f"{type(parent).__name__} has no relation {name!r}")
        return method(parent)

    relation.__name__ = name
    relation.__doc__ = f"Relation {name!r} inherited from the CTI parent."
    return relation
