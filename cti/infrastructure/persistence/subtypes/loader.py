"""Batch subtype loader: fill many instances with one query per subtype class."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cti.domain.exceptions import LoadFailed
from cti.infrastructure.persistence.subtypes.descriptor import SubtypeCapable
from cti.shared.telemetry import TracedOperation

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Iterable[Any])


def _pending_by_class(models: Iterable[Any]) -> dict[type, list[SubtypeCapable]]:
    groups: dict[type, list[SubtypeCapable]] = {}
    for model in models:
        if not isinstance(model, SubtypeCapable) or model.subtype_loaded:
            continue
        if not model.subtype_descriptor().table or model.get_key() is None:
            continue
        groups.setdefault(type(model), []).append(model)
    return groups


def load_subtypes_for(models: S) -> S:
    """Load subtype rows for every subtype instance in models, in place.

    Instances are grouped by concrete class and each group is loaded with a
    single "key IN (...)" query against that class's subtype table. Instances
    that are not subtypes, have no key or are already loaded are skipped, so
    calling this twice issues no further queries. Order is preserved and
    models is returned.

    Raises:
        LoadFailed: If a subtype table query fails (cause chained).
    """
    for model_cls, members in _pending_by_class(models).items():
        descriptor = model_cls.subtype_descriptor()
        database = model_cls.get_connection()
        table = database.table(descriptor.table)
        key_column = table.c[descriptor.key_name]
        keys = list(dict.fromkeys(model.get_key() for model in members))
        with TracedOperation(
            "cti.subtype.load_batch",
            {"cti.model": model_cls.__name__, "cti.batch_size": len(keys)},
        ):
            try:
                rows = database.select_rows(select(table).where(key_column.in_(keys)))
            except SQLAlchemyError as exc:
                logger.error("Batch load from %s failed: %s", descriptor.table, exc)
                raise LoadFailed(descriptor.table, str(exc)) from exc
        by_key = {row[descriptor.key_name]: row for row in rows}
        for model in members:
            row = by_key.get(model.get_key())
            if row is not None:
                model.merge_subtype_row(row, overwrite=False)
            model.mark_subtype_loaded()
        logger.debug(
            "Batch loaded %d %s rows for %d %s instances",
            len(rows),
            descriptor.table,
            len(members),
            model_cls.__name__,
        )
    return models
