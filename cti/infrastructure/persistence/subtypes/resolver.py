"""Discriminator resolver: type id <-> label <-> subtype class.

Labels live in a lookup table (for example assessment_type(id, label)).
Resolutions in both directions are cached per connection and parent class
so each id or label hits the database at most once until clear_caches().
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cti.core.config import get_settings
from cti.domain.exceptions import (
    InvalidDiscriminator,
    MissingLookupTableConfig,
    TypeResolutionFailed,
)
from cti.infrastructure.cache import (
    CacheProtocol,
    discriminator_label_key,
    discriminator_type_id_key,
    label_cache,
)

if TYPE_CHECKING:
    from sqlalchemy import Table

    from cti.infrastructure.persistence.database import Database
    from cti.infrastructure.persistence.subtypes.models import HasSubtypes

logger = logging.getLogger(__name__)


def _entity_name(model_cls: type) -> str:
    return f"{model_cls.__module__}.{model_cls.__qualname__}"


class DiscriminatorResolver:
    """Resolve discriminator values of one parent class.

    Example:
        resolver = DiscriminatorResolver(Assessment)
        resolver.resolve_label(1)          # "quiz"
        resolver.class_for_label("quiz")   # Quiz
        resolver.resolve_type_id("quiz")   # 1
    """

    def __init__(self, parent_cls: type[HasSubtypes], cache: CacheProtocol | None = None) -> None:
        self.parent_cls = parent_cls
        self._cache = cache if cache is not None else label_cache
        self._entity = _entity_name(parent_cls)

    def _caching(self) -> bool:
        return get_settings().discriminator_cache_enabled and self._cache.is_available()

    def _lookup(self) -> tuple[Database, Table, str, str]:
        if not self.parent_cls.lookup_table:
            raise MissingLookupTableConfig(self.parent_cls.__name__)
        database = self.parent_cls.get_connection()
        table = database.table(self.parent_cls.get_lookup_table())
        return database, table, self.parent_cls.get_lookup_key(), self.parent_cls.get_lookup_label()

    def resolve_label(self, type_id: Any) -> str | None:
        """Return the label for a discriminator value, or None for an empty value.

        Raises:
            MissingLookupTableConfig: If the parent declares no lookup table.
            InvalidDiscriminator: If no lookup row (or an empty label) matches type_id.
        """
        if type_id is None or type_id == "":
            return None
        database, table, key_column, label_column = self._lookup()
        cache_key = discriminator_label_key(database.name, self._entity, type_id)
        if self._caching():
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached
        statement = select(table.c[label_column]).where(table.c[key_column] == type_id)
        try:
            label = database.scalar(statement)
        except SQLAlchemyError as exc:
            raise InvalidDiscriminator(type_id) from exc
        if not label:
            raise InvalidDiscriminator(type_id)
        logger.debug("Resolved %s discriminator %r to %r", self.parent_cls.__name__, type_id, label)
        if self._caching():
            self._cache.set(cache_key, label)
        return label

    def resolve_type_id(self, label: str) -> Any:
        """Return the discriminator value stored in the lookup table for label.

        Raises:
            MissingLookupTableConfig: If the parent declares no lookup table.
            TypeResolutionFailed: If no lookup row has this label.
        """
        database, table, key_column, label_column = self._lookup()
        cache_key = discriminator_type_id_key(database.name, self._entity, label)
        if self._caching():
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached
        statement = select(table.c[key_column]).where(table.c[label_column] == label)
        try:
            type_id = database.scalar(statement)
        except SQLAlchemyError as exc:
            raise TypeResolutionFailed(label, table.name) from exc
        if type_id is None:
            raise TypeResolutionFailed(label, table.name)
        if self._caching():
            self._cache.set(cache_key, type_id)
        return type_id

    def class_for_label(self, label: str | None) -> type | None:
        if label is None:
            return None
        return self.parent_cls.subtype_registry().class_for_label(label)

    def label_for_class(self, model_cls: type) -> str | None:
        return self.parent_cls.subtype_registry().label_for_class(model_cls)

    def resolve_class(self, type_id: Any) -> type | None:
        """Return the registered subtype class for a discriminator value, or None."""
        return self.class_for_label(self.resolve_label(type_id))
