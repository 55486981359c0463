"""Subtype persistence: save, delete and load across the parent and subtype tables.

A subtype instance is one logical entity stored in two rows: the parent
row (shared columns and the discriminator) and the subtype row keyed by the
parent's primary key. save_subtyped() and delete_subtyped() write both rows
in one transaction and fire the subtype events around the subtype write:

    subtype_saving -> parent save (saving/creating/updating ...) ->
    subtype row insert or update -> reload -> subtype_saved

    subtype_deleting -> subtype row delete -> subtype_deleted ->
    parent delete (deleting/deleted)

A listener returning False from any cancellable event rolls the
transaction back and the operation returns False. On cancellation or
failure the instance gets back its attributes, original snapshot and exists
flag from before the call.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cti.core.config import get_settings
from cti.core.constants import (
    EVENT_SUBTYPE_DELETED,
    EVENT_SUBTYPE_DELETING,
    EVENT_SUBTYPE_SAVED,
    EVENT_SUBTYPE_SAVING,
)
from cti.domain.exceptions import (
    CtiException,
    DeleteFailed,
    LoadFailed,
    MissingDiscriminatorKey,
    MissingSubtypeTableConfig,
    SaveFailed,
)
from cti.infrastructure.persistence.subtypes.descriptor import SubtypeDescriptor
from cti.infrastructure.persistence.subtypes.validation import column_validator
from cti.shared.telemetry import add_span_attributes, traced

if TYPE_CHECKING:
    from cti.infrastructure.persistence.subtypes.models import SubtypeModel

logger = logging.getLogger(__name__)


class _OperationCancelled(Exception):
    """A cancellable listener halted the save or delete; unwinds the transaction."""


def _validate_columns(model: SubtypeModel) -> None:
    if get_settings().validate_subtype_columns:
        column_validator.validate(type(model))


def _require_key(model: SubtypeModel) -> Any:
    key = model.get_key()
    if key is None:
        raise MissingDiscriminatorKey(type(model).__name__)
    return key


def assign_discriminator(model: SubtypeModel) -> None:
    """Set the parent discriminator column from the class's registered label.

    A value the caller already set is kept.

    Raises:
        TypeResolutionFailed: If the label is not in the lookup table.
    """
    parent = model.cti_parent
    if parent is None:
        return
    column = parent.get_discriminator_column()
    if model.get_attribute(column) not in (None, ""):
        return
    resolver = parent.discriminator_resolver()
    label = resolver.label_for_class(type(model))
    if label is None:
        logger.warning(
            "%s is not registered as a subtype of %s; discriminator left unset",
            type(model).__name__,
            parent.__name__,
        )
        return
    model.set_attribute(column, resolver.resolve_type_id(label))


def write_subtype_row(
    descriptor: SubtypeDescriptor,
    model: SubtypeModel,
    values: Mapping[str, Any],
    dirty: Mapping[str, Any],
    *,
    check_existing: bool = True,
) -> None:
    """Insert or update the subtype row of model.

    Inserts values plus the shared key when no row exists; otherwise updates
    only the dirty subtype attributes (nothing when none changed).
    """
    key = _require_key(model)
    database = model.get_connection()
    table = database.table(descriptor.table)
    key_column = table.c[descriptor.key_name]
    exists = check_existing and (
        database.select_one(select(key_column).where(key_column == key).limit(1)) is not None
    )
    if exists:
        if dirty:
            database.execute_write(table.update().where(key_column == key).values(**dirty))
            logger.debug("Updated %s row %s: %s", descriptor.table, key, sorted(dirty))
        return
    database.insert(table, {**values, descriptor.key_name: key})
    logger.debug("Inserted %s row %s", descriptor.table, key)


def _reload_parent_row(model: SubtypeModel) -> None:
    table = model.get_table_object()
    row = model.get_connection().select_one(
        select(table).where(table.c[model.get_key_name()] == model.get_key())
    )
    if row is not None:
        model.merge_raw_attributes(row)


def _fetch_subtype_row(descriptor: SubtypeDescriptor, model: SubtypeModel) -> Any:
    key = _require_key(model)
    database = model.get_connection()
    table = database.table(descriptor.table)
    return database.select_one(select(table).where(table.c[descriptor.key_name] == key))


@traced("cti.subtype.save", model_arg=1)
def save_subtyped(
    descriptor: SubtypeDescriptor, model: SubtypeModel, parent_save: Callable[[], bool]
) -> bool:
    """Save model's parent row via parent_save and its subtype row, atomically.

    Args:
        descriptor: Subtype configuration of the model's class.
        model: Instance to save.
        parent_save: The host save of the parent row (writes the parent view only).

    Returns:
        True on success, False if a listener cancelled.

    Raises:
        OverlappingColumns: If column validation is enabled and fails.
        SaveFailed: If a database write fails (cause chained).
    """
    _validate_columns(model)
    database = model.get_connection()
    state = model._snapshot_state()
    was_new = not model.exists
    values = descriptor.subtype_view(model.get_attributes())
    dirty = descriptor.subtype_view(model.get_dirty())
    stage = model.get_table()
    try:
        with database.transaction():
            if model.fire_model_event(EVENT_SUBTYPE_SAVING) is False:
                raise _OperationCancelled
            if not parent_save():
                raise _OperationCancelled
            stage = descriptor.table
            if was_new or dirty:
                write_subtype_row(descriptor, model, values, dirty, check_existing=not was_new)
            _reload_parent_row(model)
            row = _fetch_subtype_row(descriptor, model)
            if row is not None:
                model.merge_subtype_row(row, overwrite=True)
            model.sync_original()
            model.mark_subtype_loaded()
            model.fire_model_event(EVENT_SUBTYPE_SAVED)
    except _OperationCancelled:
        model._restore_state(state)
        logger.debug("Save of %s cancelled by listener", type(model).__name__)
        return False
    except CtiException:
        model._restore_state(state)
        raise
    except SQLAlchemyError as exc:
        model._restore_state(state)
        logger.error("Save of %s failed on %s: %s", type(model).__name__, stage, exc)
        raise SaveFailed(stage or "", str(exc)) from exc
    except Exception:
        model._restore_state(state)
        raise
    add_span_attributes(**{"cti.subtype_table": descriptor.table or "", "cti.created": was_new})
    return True


@traced("cti.subtype.delete", model_arg=1)
def delete_subtyped(
    descriptor: SubtypeDescriptor, model: SubtypeModel, parent_delete: Callable[[], bool]
) -> bool:
    """Delete model's subtype row, then its parent row via parent_delete, atomically.

    Returns:
        True on success, False if a listener cancelled or the parent delete did nothing.

    Raises:
        MissingDiscriminatorKey: If an existing model has no primary key.
        DeleteFailed: If a database delete fails (cause chained).
    """
    database = model.get_connection()
    state = model._snapshot_state()
    stage = descriptor.table
    try:
        with database.transaction():
            if model.fire_model_event(EVENT_SUBTYPE_DELETING) is False:
                raise _OperationCancelled
            if model.exists:
                key = _require_key(model)
                table = database.table(descriptor.table)
                database.execute_write(table.delete().where(table.c[descriptor.key_name] == key))
                logger.debug("Deleted %s row %s", descriptor.table, key)
                model.fire_model_event(EVENT_SUBTYPE_DELETED)
            stage = model.get_table()
            if not parent_delete():
                raise _OperationCancelled
    except _OperationCancelled:
        model._restore_state(state)
        logger.debug("Delete of %s cancelled or not persisted", type(model).__name__)
        return False
    except CtiException:
        model._restore_state(state)
        raise
    except SQLAlchemyError as exc:
        model._restore_state(state)
        logger.error("Delete of %s failed on %s: %s", type(model).__name__, stage, exc)
        raise DeleteFailed(stage or "", str(exc)) from exc
    except Exception:
        model._restore_state(state)
        raise
    return True


@traced("cti.subtype.load", model_arg=1)
def load_subtype_data(
    descriptor: SubtypeDescriptor, model: SubtypeModel, *, overwrite: bool = True
) -> None:
    """Read model's subtype row and merge it into the instance.

    With overwrite=False, subtype attributes changed since the last sync keep
    their unsaved values. When no row exists the instance keeps its
    attributes and is still marked loaded.

    Raises:
        MissingSubtypeTableConfig: If the class declares no subtype table.
        MissingDiscriminatorKey: If the model has no primary key.
        OverlappingColumns: If column validation is enabled and fails.
        LoadFailed: If the read fails (cause chained).
    """
    if not descriptor.table:
        raise MissingSubtypeTableConfig(type(model).__name__)
    _validate_columns(model)
    try:
        row = _fetch_subtype_row(descriptor, model)
    except SQLAlchemyError as exc:
        logger.error("Loading %s row for %s failed: %s", descriptor.table, model.get_key(), exc)
        raise LoadFailed(descriptor.table, str(exc)) from exc
    if row is not None:
        model.merge_subtype_row(row, overwrite=overwrite)
        model.exists = True
    model.mark_subtype_loaded()
