"""Subtype-aware query builder.

Queries started from a subtype class may name subtype columns anywhere a
column is accepted. The first such column joins the subtype table on the
shared key; later ones reuse that join.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cti.infrastructure.persistence.query import Column, QueryBuilder
from cti.infrastructure.persistence.subtypes.scope import DISCRIMINATOR_SCOPE

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from cti.infrastructure.persistence.subtypes.models import SubtypeModel

logger = logging.getLogger(__name__)


class SubtypeQueryBuilder(QueryBuilder):
    """QueryBuilder that joins the subtype table when a subtype column is used.

    Example:
        Quiz.query().where("passing_score", ">", 75).order_by("passing_score").get()
        # SELECT assessment.* FROM assessment
        # JOIN assessment_quiz ON assessment.id = assessment_quiz.assessment_id
        # WHERE assessment_quiz.passing_score > 75 AND assessment.type_id = 1 ...
    """

    model_cls: type[SubtypeModel]

    def __init__(self, model_cls: type[SubtypeModel]) -> None:
        super().__init__(model_cls)
        self.descriptor = model_cls.subtype_descriptor()

    def _resolve_column(self, column: Column) -> ColumnElement:
        if isinstance(column, str):
            self._join_subtype_if_needed(column)
        return super()._resolve_column(column)

    def _join_subtype_if_needed(self, column: str) -> None:
        table_name = self.descriptor.table
        if not table_name or not self.descriptor.owns(column) or self.has_join(table_name):
            return
        subtype_table = self.database.table(table_name)
        parent_key = self.table.c[self.model_cls.get_key_name()]
        self._add_join(subtype_table, parent_key == subtype_table.c[self.descriptor.key_name])
        logger.debug("Joined %s for column %s", table_name, column)

    def join_subtype(self) -> SubtypeQueryBuilder:
        """Join the subtype table explicitly (no-op when already joined)."""
        if self.descriptor.attributes:
            self._join_subtype_if_needed(self.descriptor.attributes[0])
        return self

    def without_discriminator_scope(self) -> SubtypeQueryBuilder:
        """Drop the constraint limiting rows to this class's discriminator value."""
        self.without_global_scope(DISCRIMINATOR_SCOPE)
        return self
