"""Active-record model over one table.

A Model instance is an attribute bag backed by a row: it tracks which
attributes changed since the last sync with the database, applies casts on
read, fires lifecycle events around writes and maintains created_at and
updated_at. Attribute access by name (quiz.title) reads and writes the bag;
names that start with an underscore and names defined on the class are
ordinary Python attributes.

Subclasses customise persistence through the hook methods _on_creating,
_writable_attributes, _writable_dirty and _on_fetched_single rather than by
overriding save().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, ClassVar, Self

from sqlalchemy import Table, select

from cti.core.constants import (
    CANCELLABLE_EVENTS,
    CREATED_AT,
    EVENT_CREATED,
    EVENT_CREATING,
    EVENT_DELETED,
    EVENT_DELETING,
    EVENT_SAVED,
    EVENT_SAVING,
    EVENT_UPDATED,
    EVENT_UPDATING,
    UPDATED_AT,
)
from cti.infrastructure.persistence.casts import cast_for_read, cast_for_write, validate_casts
from cti.infrastructure.persistence.collection import ModelCollection
from cti.infrastructure.persistence.database import Database
from cti.infrastructure.persistence.database import get_connection as resolve_connection
from cti.infrastructure.persistence.events import Listener, dispatcher
from cti.infrastructure.persistence.query import QueryBuilder
from cti.infrastructure.persistence.relations import BelongsTo, BelongsToMany, HasMany, HasOne
from cti.shared.utils.datetime import utc_now
from cti.shared.utils.naming import snake_case

logger = logging.getLogger(__name__)

_MISSING: Any = object()


class Model:
    """Base class for table-backed models.

    Class attributes:
        table_name: Table name; defaults to the snake_case class name.
        primary_key: Primary key column (auto-increment when left unset on insert).
        timestamps: Maintain created_at / updated_at.
        casts: Attribute name -> cast name (int, float, bool, str, json, datetime).
        defaults: Attribute values for new instances.
        fillable: Attributes fill() accepts; None accepts every attribute.
        connection_name: Registered connection; None uses the default connection.
    """

    table_name: ClassVar[str | None] = None
    primary_key: ClassVar[str] = "id"
    timestamps: ClassVar[bool] = True
    casts: ClassVar[dict[str, str]] = {}
    defaults: ClassVar[dict[str, Any]] = {}
    fillable: ClassVar[Iterable[str] | None] = None
    connection_name: ClassVar[str | None] = None

    exists: bool

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        validate_casts(cls.casts, cls.__name__)

    def __init__(self, attributes: Mapping[str, Any] | None = None, **values: Any) -> None:
        self._attributes: dict[str, Any] = {}
        self._original: dict[str, Any] = {}
        self._casts: dict[str, str] = {}
        self.exists = False
        for key, value in self.defaults.items():
            self.set_attribute(key, value)
        self.fill({**(attributes or {}), **values})

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get_attribute(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or name == "exists" or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self.set_attribute(name, value)

    def __repr__(self) -> str:
        state = "exists" if self.exists else "new"
        return f"<{type(self).__name__} {self.get_key_name()}={self.get_key()!r} {state}>"

    # Table and connection

    @classmethod
    def get_table(cls) -> str:
        return cls.table_name or snake_case(cls.__name__)

    @classmethod
    def get_key_name(cls) -> str:
        return cls.primary_key

    @classmethod
    def get_foreign_key(cls) -> str:
        """Default foreign key other tables use to point at this model (quiz_category_id)."""
        return f"{snake_case(cls.__name__)}_{cls.primary_key}"

    @classmethod
    def get_connection(cls) -> Database:
        return resolve_connection(cls.connection_name)

    @classmethod
    def get_table_object(cls) -> Table:
        return cls.get_connection().table(cls.get_table())

    # Attributes

    def get_key(self) -> Any:
        return self._attributes.get(self.get_key_name())

    def get_casts(self) -> dict[str, str]:
        return {**type(self).casts, **self._casts}

    def has_cast(self, key: str) -> bool:
        return key in self.get_casts()

    def merge_casts(self, casts: Mapping[str, str]) -> Self:
        """Add instance-level casts on top of the class casts."""
        validate_casts(dict(casts), type(self).__name__)
        self._casts.update(casts)
        return self

    def get_attribute(self, key: str) -> Any:
        """Return the cast value of key, or None when the attribute is not set."""
        if key not in self._attributes:
            return None
        value = self._attributes[key]
        kind = self.get_casts().get(key)
        return cast_for_read(kind, value) if kind else value

    def set_attribute(self, key: str, value: Any) -> Self:
        kind = self.get_casts().get(key)
        self._attributes[key] = cast_for_write(kind, value) if kind else value
        return self

    def get_attributes(self) -> dict[str, Any]:
        """Return a copy of the raw (uncast) attributes."""
        return dict(self._attributes)

    def has_attribute(self, key: str) -> bool:
        return key in self._attributes

    def set_raw_attributes(self, attributes: Mapping[str, Any], sync: bool = False) -> Self:
        self._attributes = dict(attributes)
        if sync:
            self.sync_original()
        return self

    def merge_raw_attributes(self, attributes: Mapping[str, Any]) -> Self:
        """Merge database values into the attributes without casting and mark them clean."""
        self._attributes.update(attributes)
        self.sync_original_attributes(*attributes.keys())
        return self

    def is_fillable(self, key: str) -> bool:
        return self.fillable is None or key in self.fillable

    def fill(self, attributes: Mapping[str, Any]) -> Self:
        """Set attributes that are fillable; others are skipped."""
        for key, value in attributes.items():
            if self.is_fillable(key):
                self.set_attribute(key, value)
            else:
                logger.debug("Skipping non-fillable attribute %s on %s", key, type(self).__name__)
        return self

    def force_fill(self, attributes: Mapping[str, Any]) -> Self:
        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {key: self.get_attribute(key) for key in self._attributes}

    # Dirty tracking

    def get_original(self, key: str | None = None) -> Any:
        if key is None:
            return dict(self._original)
        return self._original.get(key)

    def get_dirty(self) -> dict[str, Any]:
        """Return raw attributes whose value differs from the last synced state."""
        return {
            key: value
            for key, value in self._attributes.items()
            if self._original.get(key, _MISSING) != value
        }

    def is_dirty(self, *keys: str) -> bool:
        dirty = self.get_dirty()
        if not keys:
            return bool(dirty)
        return any(key in dirty for key in keys)

    def is_clean(self, *keys: str) -> bool:
        return not self.is_dirty(*keys)

    def sync_original(self) -> Self:
        self._original = dict(self._attributes)
        return self

    def sync_original_attributes(self, *keys: str) -> Self:
        for key in keys:
            if key in self._attributes:
                self._original[key] = self._attributes[key]
            else:
                self._original.pop(key, None)
        return self

    def _snapshot_state(self) -> Any:
        return (dict(self._attributes), dict(self._original), self.exists)

    def _restore_state(self, state: Any) -> None:
        attributes, original, exists = state
        self._attributes = attributes
        self._original = original
        self.exists = exists

    # Events

    @classmethod
    def _listen(cls, event: str, listener: Listener) -> None:
        dispatcher.listen(cls, event, listener)

    @classmethod
    def saving(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_SAVING, listener)
        return listener

    @classmethod
    def saved(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_SAVED, listener)
        return listener

    @classmethod
    def creating(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_CREATING, listener)
        return listener

    @classmethod
    def created(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_CREATED, listener)
        return listener

    @classmethod
    def updating(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_UPDATING, listener)
        return listener

    @classmethod
    def updated(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_UPDATED, listener)
        return listener

    @classmethod
    def deleting(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_DELETING, listener)
        return listener

    @classmethod
    def deleted(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_DELETED, listener)
        return listener

    @classmethod
    def forget_listeners(cls) -> None:
        dispatcher.forget(cls)

    def fire_model_event(self, event: str) -> bool:
        """Fire event for this instance. Returns False if a cancellable event was halted."""
        if event in CANCELLABLE_EVENTS:
            return dispatcher.until(event, self)
        dispatcher.dispatch(event, self)
        return True

    # Persistence hooks

    def _on_creating(self) -> None:
        """Called before the creating event on insert."""

    def _writable_attributes(self) -> dict[str, Any]:
        """Attributes written to this model's table on insert."""
        return dict(self._attributes)

    def _writable_dirty(self) -> dict[str, Any]:
        """Changed attributes written to this model's table on update."""
        return self.get_dirty()

    def _on_fetched_single(self) -> None:
        """Called after first()/find() hydrates this instance."""

    # Persistence

    def _touch_timestamps(self, creating: bool) -> None:
        now = utc_now()
        if not self.is_dirty(UPDATED_AT):
            self.set_attribute(UPDATED_AT, now)
        if creating and self.get_attribute(CREATED_AT) is None:
            self.set_attribute(CREATED_AT, now)

    def save(self) -> bool:
        """Insert or update this model's row. Returns False if a listener cancelled."""
        if self.fire_model_event(EVENT_SAVING) is False:
            return False
        if self.exists:
            saved = self._perform_update() if self._writable_dirty() else True
        else:
            saved = self._perform_insert()
        if saved:
            self.fire_model_event(EVENT_SAVED)
            self.sync_original()
        return saved

    def _perform_insert(self) -> bool:
        self._on_creating()
        if self.fire_model_event(EVENT_CREATING) is False:
            return False
        if self.timestamps:
            self._touch_timestamps(creating=True)
        table = self.get_table_object()
        primary_key = self.get_connection().insert(table, self._writable_attributes())
        if primary_key and self.get_key() is None:
            self._attributes[self.get_key_name()] = primary_key[0]
        self.exists = True
        logger.debug("Inserted %s %s=%s", type(self).__name__, self.get_key_name(), self.get_key())
        self.fire_model_event(EVENT_CREATED)
        return True

    def _perform_update(self) -> bool:
        if self.fire_model_event(EVENT_UPDATING) is False:
            return False
        if self.timestamps:
            self._touch_timestamps(creating=False)
        dirty = self._writable_dirty()
        if dirty:
            table = self.get_table_object()
            statement = (
                table.update()
                .where(table.c[self.get_key_name()] == self.get_key())
                .values(**dirty)
            )
            self.get_connection().execute_write(statement)
            self.fire_model_event(EVENT_UPDATED)
        return True

    def delete(self) -> bool:
        """Delete this model's row. Returns False if it was never saved or a listener cancelled."""
        if not self.exists:
            return False
        if self.get_key() is None:
            raise ValueError(
                f"Cannot delete: primary key '{self.get_key_name()}' is missing on "
                f"{type(self).__name__} instance."
            )
        if self.fire_model_event(EVENT_DELETING) is False:
            return False
        table = self.get_table_object()
        self.get_connection().execute_write(
            table.delete().where(table.c[self.get_key_name()] == self.get_key())
        )
        self.exists = False
        self.fire_model_event(EVENT_DELETED)
        return True

    def refresh(self) -> Self:
        """Reload this model's table columns from the database."""
        if not self.exists:
            return self
        table = self.get_table_object()
        row = self.get_connection().select_one(
            select(table).where(table.c[self.get_key_name()] == self.get_key())
        )
        if row is not None:
            self.merge_raw_attributes(row)
        return self

    def replicate(self, except_: Iterable[str] | None = None) -> Self:
        """Return an unsaved copy without the primary key and timestamps."""
        excluded = {self.get_key_name(), CREATED_AT, UPDATED_AT, *(except_ or ())}
        clone = type(self)()
        clone._attributes = {k: v for k, v in self._attributes.items() if k not in excluded}
        clone._casts = dict(self._casts)
        return clone

    def is_same(self, other: Model | None) -> bool:
        """Return True if other is a model of the same table and connection with the same key."""
        return (
            other is not None
            and self.get_key() is not None
            and self.get_key() == other.get_key()
            and self.get_table() == other.get_table()
            and self.get_connection() is other.get_connection()
        )

    # Construction and queries

    @classmethod
    def hydrate(cls, row: Mapping[str, Any]) -> Self:
        """Build an existing instance of exactly this class from a row."""
        instance = cls()
        instance.set_raw_attributes(row, sync=True)
        instance.exists = True
        return instance

    @classmethod
    def new_from_row(cls, row: Mapping[str, Any]) -> Model:
        """Build the instance a query returns for row."""
        return cls.hydrate(row)

    @classmethod
    def new_collection(cls, models: Iterable[Model]) -> ModelCollection:
        return ModelCollection(models)

    @classmethod
    def new_query(cls) -> QueryBuilder:
        return QueryBuilder(cls)

    @classmethod
    def query(cls) -> QueryBuilder:
        return cls.new_query()

    @classmethod
    def all(cls) -> ModelCollection:
        return cls.query().get()

    @classmethod
    def find(cls, key: Any) -> Model | None:
        return cls.query().find(key)

    @classmethod
    def find_or_fail(cls, key: Any) -> Model:
        return cls.query().find_or_fail(key)

    @classmethod
    def create(cls, attributes: Mapping[str, Any] | None = None, **values: Any) -> Self:
        instance = cls(attributes, **values)
        instance.save()
        return instance

    # Relations

    @classmethod
    def joining_table(cls, related: type[Model]) -> str:
        """Default pivot table name: both snake_case names, sorted, joined by "_"."""
        return "_".join(sorted([snake_case(cls.__name__), snake_case(related.__name__)]))

    def has_one(
        self, related: type[Model], foreign_key: str | None = None, local_key: str | None = None
    ) -> HasOne:
        foreign_key = foreign_key or self.get_foreign_key()
        return HasOne(
            related.query(),
            self,
            f"{related.get_table()}.{foreign_key}",
            local_key or self.get_key_name(),
        )

    def has_many(
        self, related: type[Model], foreign_key: str | None = None, local_key: str | None = None
    ) -> HasMany:
        foreign_key = foreign_key or self.get_foreign_key()
        return HasMany(
            related.query(),
            self,
            f"{related.get_table()}.{foreign_key}",
            local_key or self.get_key_name(),
        )

    def belongs_to(
        self, related: type[Model], foreign_key: str | None = None, owner_key: str | None = None
    ) -> BelongsTo:
        return BelongsTo(
            related.query(),
            self,
            foreign_key or related.get_foreign_key(),
            owner_key or related.get_key_name(),
        )

    def belongs_to_many(
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
            foreign_pivot_key or self.get_foreign_key(),
            related_pivot_key or related.get_foreign_key(),
            parent_key or self.get_key_name(),
            related_key or related.get_key_name(),
        )

