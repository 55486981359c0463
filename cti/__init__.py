"""Class table inheritance for SQLAlchemy Core backed active-record models.

Typical use:

    from cti import HasSubtypes, Model, SubtypeModel, add_connection

    add_connection("sqlite+pysqlite:///app.db")
"""

from cti.domain.exceptions import CtiException
from cti.infrastructure.cache import clear_caches
from cti.infrastructure.persistence import (
    Database,
    Model,
    ModelCollection,
    QueryBuilder,
    add_connection,
    get_connection,
    reset_connections,
)
from cti.infrastructure.persistence.subtypes import (
    HasSubtypes,
    SubtypedCollection,
    SubtypeModel,
    SubtypeQueryBuilder,
    load_subtypes_for,
    parent_relation,
)

__version__ = "0.1.0"

__all__ = [
    "CtiException",
    "Database",
    "HasSubtypes",
    "Model",
    "ModelCollection",
    "QueryBuilder",
    "SubtypeModel",
    "SubtypeQueryBuilder",
    "SubtypedCollection",
    "__version__",
    "add_connection",
    "clear_caches",
    "get_connection",
    "load_subtypes_for",
    "parent_relation",
    "reset_connections",
]
