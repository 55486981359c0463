"""Class table inheritance models.

A parent class mixes in HasSubtypes and names its discriminator column and
lookup table. Each subtype class extends SubtypeModel, declares its subtype
table and attributes, and registers itself on the parent under the label
stored in the lookup table:

    class Assessment(HasSubtypes, Model):
        table_name = "assessment"
        discriminator_column = "type_id"
        lookup_table = "assessment_type"

    @Assessment.register_subtype("quiz")
    class Quiz(SubtypeModel):
        table_name = "assessment"
        subtype_table = "assessment_quiz"
        subtype_attributes = ("passing_score", "time_limit")
        subtype_key_name = "assessment_id"

Assessment queries return Quiz instances for quiz rows. Quiz instances
read and write both tables; Quiz queries are limited to quiz rows and may
filter or sort on subtype columns directly.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, ClassVar, Self, TypeVar

from cti.core.config import get_settings
from cti.core.constants import (
    EVENT_SUBTYPE_DELETED,
    EVENT_SUBTYPE_DELETING,
    EVENT_SUBTYPE_SAVED,
    EVENT_SUBTYPE_SAVING,
)
from cti.domain.exceptions import MissingRequiredProperty
from cti.infrastructure.persistence.events import Listener
from cti.infrastructure.persistence.model import Model
from cti.infrastructure.persistence.subtypes import persistence
from cti.infrastructure.persistence.subtypes.collection import SubtypedCollection
from cti.infrastructure.persistence.subtypes.descriptor import SubtypeDescriptor, SubtypeRegistry
from cti.infrastructure.persistence.subtypes.morpher import EntityMorpher
from cti.infrastructure.persistence.subtypes.query import SubtypeQueryBuilder
from cti.infrastructure.persistence.subtypes.relations import SubtypeRelations
from cti.infrastructure.persistence.subtypes.resolver import DiscriminatorResolver
from cti.infrastructure.persistence.subtypes.scope import DISCRIMINATOR_SCOPE, DiscriminatorScope
from cti.infrastructure.persistence.subtypes.validation import column_validator

M = TypeVar("M", bound=type)


def _required(model_cls: type, name: str) -> str:
    value = getattr(model_cls, name, None)
    if not value:
        raise MissingRequiredProperty(model_cls.__name__, name)
    return value


class HasSubtypes:
    """Mixin for a CTI parent model: morphs rows into registered subtype classes.

    Class attributes:
        discriminator_column: Parent column holding the type id.
        lookup_table: Table mapping type ids to labels.
        lookup_key: Lookup table key column.
        lookup_label: Lookup table label column.
    """

    discriminator_column: ClassVar[str | None] = None
    lookup_table: ClassVar[str | None] = None
    lookup_key: ClassVar[str | None] = "id"
    lookup_label: ClassVar[str | None] = "label"

    _subtype_registry: ClassVar[SubtypeRegistry]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._subtype_registry = SubtypeRegistry(cls)

    @classmethod
    def register_subtype(cls, label: str) -> Callable[[M], M]:
        """Class decorator mapping label to the decorated subtype class."""

        def decorator(subtype_cls: M) -> M:
            current = subtype_cls.__dict__.get("cti_parent")
            if current is not None and current is not cls:
                raise ValueError(
                    f"{subtype_cls.__name__} already has CTI parent {current.__name__}"
                )
            cls._subtype_registry.register(label, subtype_cls)
            subtype_cls.cti_parent = cls
            return subtype_cls

        return decorator

    @classmethod
    def subtype_registry(cls) -> SubtypeRegistry:
        return cls._subtype_registry

    @classmethod
    def subtype_map(cls) -> dict[str, type]:
        """Return a copy of the label -> subtype class map."""
        return cls._subtype_registry.as_dict()

    @classmethod
    def get_discriminator_column(cls) -> str:
        return _required(cls, "discriminator_column")

    @classmethod
    def get_lookup_table(cls) -> str:
        return _required(cls, "lookup_table")

    @classmethod
    def get_lookup_key(cls) -> str:
        return _required(cls, "lookup_key")

    @classmethod
    def get_lookup_label(cls) -> str:
        return _required(cls, "lookup_label")

    @classmethod
    def discriminator_resolver(cls) -> DiscriminatorResolver:
        return DiscriminatorResolver(cls)

    @classmethod
    def new_from_row(cls, row: Mapping[str, Any]) -> Model:
        return EntityMorpher(cls, cls.discriminator_resolver()).morph(row)

    @classmethod
    def new_collection(cls, models: Iterable[Model]) -> SubtypedCollection:
        return SubtypedCollection(models)

    def get_subtype_label(self) -> str | None:
        """Return the label of this instance's discriminator value (None when unset)."""
        type_id = self.get_attribute(self.get_discriminator_column())
        return self.discriminator_resolver().resolve_label(type_id)


class SubtypeModel(SubtypeRelations, Model):
    """Model whose columns are split between the parent table and a subtype table.

    table_name names the parent table. Class attributes:
        subtype_table: Table holding the subtype columns.
        subtype_attributes: Attribute names stored in subtype_table.
        subtype_key_name: subtype_table column holding the parent key;
            defaults to the primary key name.
        cti_parent: The HasSubtypes parent class (set by register_subtype).

    A class without subtype_table and subtype_attributes saves and deletes
    like a plain Model.
    """

    subtype_table: ClassVar[str | None] = None
    subtype_attributes: ClassVar[Iterable[str]] = ()
    subtype_key_name: ClassVar[str | None] = None
    cti_parent: ClassVar[type | None] = None

    def __init__(self, attributes: Mapping[str, Any] | None = None, **values: Any) -> None:
        self._subtype_loaded = False
        super().__init__(attributes, **values)

    # Configuration

    @classmethod
    def subtype_descriptor(cls) -> SubtypeDescriptor:
        return SubtypeDescriptor(
            model=cls,
            table=cls.subtype_table,
            attributes=tuple(cls.subtype_attributes),
            key_name=cls.get_subtype_key_name(),
            parent_key_name=cls.get_key_name(),
        )

    @classmethod
    def get_subtype_table(cls) -> str | None:
        return cls.subtype_table

    @classmethod
    def get_subtype_attributes(cls) -> tuple[str, ...]:
        return tuple(cls.subtype_attributes)

    @classmethod
    def get_subtype_key_name(cls) -> str:
        return cls.subtype_key_name or cls.get_key_name()

    @classmethod
    def validate_subtype_columns(cls) -> None:
        """Raise OverlappingColumns if a subtype attribute is also a parent table column."""
        column_validator.validate(cls)

    def get_casts(self) -> dict[str, str]:
        inherited = self.cti_parent.casts if self.cti_parent is not None else {}
        return {**inherited, **super().get_casts()}

    # Subtype data

    @property
    def subtype_loaded(self) -> bool:
        return self._subtype_loaded

    def mark_subtype_loaded(self) -> None:
        self._subtype_loaded = True

    def merge_subtype_row(self, row: Mapping[str, Any], overwrite: bool = True) -> None:
        """Merge subtype columns of row into the instance and mark them clean.

        With overwrite=False, subtype attributes changed since the last sync
        keep their unsaved values.
        """
        dirty = self.get_dirty() if not overwrite else {}
        merged = [key for key in self.get_subtype_attributes() if key in row and key not in dirty]
        for key in merged:
            self._attributes[key] = row[key]
        self.sync_original_attributes(*merged)

    def load_subtype_data(self, overwrite: bool = True) -> Self:
        """Read this instance's subtype row now.

        Held subtype values are replaced unless overwrite is False, in which
        case unsaved changes are kept.
        """
        persistence.load_subtype_data(self.subtype_descriptor(), self, overwrite=overwrite)
        return self

    def get_attribute(self, key: str) -> Any:
        if (
            not self._subtype_loaded
            and self.exists
            and key not in self._attributes
            and key in self.get_subtype_attributes()
            and self.subtype_table
        ):
            self.load_subtype_data(overwrite=False)
        return super().get_attribute(key)

    def _snapshot_state(self) -> Any:
        return (super()._snapshot_state(), self._subtype_loaded)

    def _restore_state(self, state: Any) -> None:
        model_state, loaded = state
        super()._restore_state(model_state)
        self._subtype_loaded = loaded

    # Persistence hooks

    def _on_creating(self) -> None:
        persistence.assign_discriminator(self)

    def _writable_attributes(self) -> dict[str, Any]:
        return self.subtype_descriptor().parent_view(super()._writable_attributes())

    def _writable_dirty(self) -> dict[str, Any]:
        return self.subtype_descriptor().parent_view(super()._writable_dirty())

    def _on_fetched_single(self) -> None:
        if get_settings().eager_single_row_load and self.subtype_table and not self._subtype_loaded:
            self.load_subtype_data()

    def save(self) -> bool:
        """Save the parent row and the subtype row in one transaction."""
        descriptor = self.subtype_descriptor()
        if not descriptor.is_configured:
            return super().save()
        return persistence.save_subtyped(descriptor, self, super().save)

    def delete(self) -> bool:
        """Delete the subtype row, then the parent row, in one transaction."""
        descriptor = self.subtype_descriptor()
        if not descriptor.table:
            return super().delete()
        return persistence.delete_subtyped(descriptor, self, super().delete)

    def refresh(self) -> Self:
        super().refresh()
        if self.exists and self.subtype_table:
            self.load_subtype_data()
        return self

    def replicate(self, except_: Iterable[str] | None = None) -> Self:
        """Return an unsaved copy including subtype attributes, without the shared key."""
        if self.exists and self.subtype_table and not self._subtype_loaded:
            self.load_subtype_data()
        excluded = [*(except_ or ()), self.get_subtype_key_name()]
        return super().replicate(except_=excluded)

    def as_parent(self) -> Model:
        """Return a CTI parent instance sharing this instance's parent attributes."""
        if self.cti_parent is None:
            raise MissingRequiredProperty(type(self).__name__, "cti_parent")
        parent = self.cti_parent()
        parent.set_raw_attributes(self.subtype_descriptor().parent_view(self._attributes))
        parent._original = self.subtype_descriptor().parent_view(self._original)
        parent.exists = self.exists
        return parent

    # Queries

    @classmethod
    def new_query(cls) -> SubtypeQueryBuilder:
        builder = SubtypeQueryBuilder(cls)
        builder.with_global_scope(DISCRIMINATOR_SCOPE, DiscriminatorScope())
        return builder

    @classmethod
    def new_collection(cls, models: Iterable[Model]) -> SubtypedCollection:
        return SubtypedCollection(models)

    # Subtype events

    @classmethod
    def subtype_saving(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_SUBTYPE_SAVING, listener)
        return listener

    @classmethod
    def subtype_saved(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_SUBTYPE_SAVED, listener)
        return listener

    @classmethod
    def subtype_deleting(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_SUBTYPE_DELETING, listener)
        return listener

    @classmethod
    def subtype_deleted(cls, listener: Listener) -> Listener:
        cls._listen(EVENT_SUBTYPE_DELETED, listener)
        return listener
