"""Persistence: connections, the active-record Model, queries and relations.

Class table inheritance builds on these in the subtypes subpackage.
"""

from cti.infrastructure.persistence.collection import ModelCollection
from cti.infrastructure.persistence.database import (
    Database,
    LoggedQuery,
    add_connection,
    get_connection,
    reset_connections,
)
from cti.infrastructure.persistence.events import EventDispatcher, dispatcher
from cti.infrastructure.persistence.model import Model
from cti.infrastructure.persistence.query import QueryBuilder
from cti.infrastructure.persistence.relations import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasOne,
    Relation,
)

__all__ = [
    "BelongsTo",
    "BelongsToMany",
    "Database",
    "EventDispatcher",
    "HasMany",
    "HasOne",
    "LoggedQuery",
    "Model",
    "ModelCollection",
    "QueryBuilder",
    "Relation",
    "add_connection",
    "dispatcher",
    "get_connection",
    "reset_connections",
]
