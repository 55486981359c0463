"""Discriminator scope: limit subtype-class queries to their own rows."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from cti.infrastructure.persistence.query import QueryBuilder

DISCRIMINATOR_SCOPE = "discriminator"


class DiscriminatorScope:
    """Adds parent.discriminator = <type id of the class's label> to every query.

    Classes without a CTI parent or without a registered label are not
    constrained. The type id comes from the resolver cache after the first
    query.
    """

    def clause(self, builder: QueryBuilder) -> ColumnElement | None:
        parent = getattr(builder.model_cls, "cti_parent", None)
        if parent is None:
            return None
        resolver = parent.discriminator_resolver()
        label = resolver.label_for_class(builder.model_cls)
        if label is None:
            return None
        column = builder.table.c[parent.get_discriminator_column()]
        return column == resolver.resolve_type_id(label)
