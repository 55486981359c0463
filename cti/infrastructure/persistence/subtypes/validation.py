"""Column overlap validation between a subtype class and its parent table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cti.domain.exceptions import OverlappingColumns
from cti.infrastructure.cache import CacheProtocol, column_overlap_key, schema_cache

if TYPE_CHECKING:
    from cti.infrastructure.persistence.subtypes.models import SubtypeModel

logger = logging.getLogger(__name__)


class ColumnOverlapValidator:
    """Check that no subtype attribute is also a parent table column.

    A class that passes is remembered in the schema cache, so the parent
    table is introspected once per class and connection.
    """

    def __init__(self, cache: CacheProtocol | None = None) -> None:
        self._cache = cache if cache is not None else schema_cache

    def validate(self, model_cls: type[SubtypeModel]) -> None:
        """Raise OverlappingColumns if model_cls declares subtype attributes the parent has."""
        descriptor = model_cls.subtype_descriptor()
        if not descriptor.attributes:
            return
        database = model_cls.get_connection()
        cache_key = column_overlap_key(
            database.name, f"{model_cls.__module__}.{model_cls.__qualname__}"
        )
        if self._cache.get(cache_key):
            return
        parent_columns = set(database.column_names(model_cls.get_table()))
        overlap = sorted(set(descriptor.attributes) & parent_columns)
        if overlap:
            logger.error(
                "Subtype attributes of %s overlap %s columns: %s",
                model_cls.__name__,
                model_cls.get_table(),
                overlap,
            )
            raise OverlappingColumns(model_cls.__name__, overlap)
        self._cache.set(cache_key, True)


column_validator = ColumnOverlapValidator()
