"""Persistence: named database connections over SQLAlchemy Core.

A Database wraps one Engine plus the reflected tables of that database,
schema introspection, a scoped transaction and an optional query log.
Connections are registered by name; the "default" connection is created
lazily from settings on first use, so import does not trigger Settings
validation.

Transactions nest through savepoints: a transaction() opened while another
is active on the same Database runs on the same connection inside a
SAVEPOINT, so an exception raised inside it rolls back only its own writes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Connection, Engine, MetaData, Table, create_engine, event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import RowMapping
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Delete, Executable, Update

from cti.core.config import get_settings
from cti.core.constants import DEFAULT_CONNECTION
from cti.domain.exceptions import ConnectionNotConfigured

logger = logging.getLogger(__name__)

_TARGET_KEYWORDS = frozenset({"from", "join", "into", "update"})


@dataclass(frozen=True)
class LoggedQuery:
    """One statement seen by the engine while the query log is enabled."""

    sql: str
    parameters: Any


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith("sqlite:"))


def _create_engine(url: str, echo: bool) -> Engine:
    """Create an engine; in-memory SQLite shares one DBAPI connection across checkouts."""
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_sqlite_memory(url):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_recycle"] = 3600
    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _configure_sqlite_connection)
        event.listen(engine, "begin", _begin_sqlite_transaction)
    return engine


def _configure_sqlite_connection(dbapi_connection: Any, connection_record: Any) -> None:
    """Turn on FK enforcement and leave BEGIN to SQLAlchemy so savepoints work."""
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN")


class Database:
    """One named database connection: engine, reflected tables, transactions."""

    def __init__(
        self,
        url: str | None = None,
        *,
        name: str = DEFAULT_CONNECTION,
        echo: bool = False,
        engine: Engine | None = None,
    ) -> None:
        """Create a connection from a URL or an existing engine.

        Args:
            url: SQLAlchemy database URL; ignored when engine is given.
            name: Connection name models refer to.
            echo: Log SQL through SQLAlchemy's engine logger.
            engine: Pre-built engine (tests, or engines configured elsewhere).
        """
        if engine is None and not url:
            raise ValueError("Database requires a url or an engine")
        self.name = name
        self.engine = engine if engine is not None else _create_engine(url or "", echo)
        self.metadata = MetaData()
        self.query_log: list[LoggedQuery] = []
        self._logging_queries = False
        self._active: Connection | None = None
        event.listen(self.engine, "before_cursor_execute", self._record_query)

    def __repr__(self) -> str:
        return f"Database(name={self.name!r}, url={self.engine.url!r})"

    # Query log

    def _record_query(
        self,
        conn: Connection,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        if self._logging_queries:
            self.query_log.append(LoggedQuery(statement, parameters))

    def enable_query_log(self) -> None:
        """Start recording every statement sent to the database."""
        self._logging_queries = True

    def disable_query_log(self) -> None:
        self._logging_queries = False

    def flush_query_log(self) -> None:
        self.query_log.clear()

    def queries_against(self, table_name: str) -> list[LoggedQuery]:
        """Return logged statements that read from, join, or write to table_name."""
        needle = table_name.lower()
        matched = []
        for query in self.query_log:
            tokens = [
                t.strip('"`[]').lower()
                for t in query.sql.replace(",", " ").replace("(", " ").split()
            ]
            targets = {
                tokens[i + 1]
                for i, token in enumerate(tokens[:-1])
                if token in _TARGET_KEYWORDS
            }
            if needle in targets:
                matched.append(query)
        return matched

    # Schema

    def table(self, name: str) -> Table:
        """Return the reflected Table for name (reflected once per Database)."""
        table = self.metadata.tables.get(name)
        if table is not None:
            return table
        with self.connect() as conn:
            logger.debug("Reflecting table %s on connection %s", name, self.name)
            return Table(name, self.metadata, autoload_with=conn)

    def column_names(self, table_name: str) -> list[str]:
        """Introspect and return the column names of table_name."""
        with self.connect() as conn:
            return [col["name"] for col in sa_inspect(conn).get_columns(table_name)]

    def forget_tables(self) -> None:
        """Drop reflected tables so the next access reflects the current schema."""
        self.metadata.clear()

    # Connections and transactions

    @property
    def in_transaction(self) -> bool:
        return self._active is not None

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Yield the active transaction's connection, or a short-lived read connection."""
        if self._active is not None:
            yield self._active
            return
        with self.engine.connect() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Run the block in a transaction: commit on success, roll back on exception.

        A transaction() opened inside another one runs in a savepoint on the
        outer connection.
        """
        if self._active is not None:
            with self._active.begin_nested():
                yield self._active
            return
        with self.engine.begin() as conn:
            self._active = conn
            try:
                yield conn
            finally:
                self._active = None

    # Statement helpers

    def select_rows(self, statement: Executable) -> list[RowMapping]:
        with self.connect() as conn:
            return list(conn.execute(statement).mappings().all())

    def select_one(self, statement: Executable) -> RowMapping | None:
        with self.connect() as conn:
            return conn.execute(statement).mappings().first()

    def scalar(self, statement: Executable) -> Any:
        with self.connect() as conn:
            return conn.execute(statement).scalar()

    def insert(self, table: Table, values: dict[str, Any]) -> tuple[Any, ...] | None:
        """Insert one row and return its primary key tuple (None when the table has no PK)."""
        with self.transaction() as conn:
            result = conn.execute(table.insert().values(**values))
            pk = result.inserted_primary_key
            return tuple(pk) if pk is not None else None

    def execute_write(self, statement: Update | Delete | Executable) -> int:
        """Run an UPDATE/DELETE (or other write) and return the affected row count."""
        with self.transaction() as conn:
            return conn.execute(statement).rowcount

    def dispose(self) -> None:
        event.remove(self.engine, "before_cursor_execute", self._record_query)
        self.engine.dispose()


_connections: dict[str, Database] = {}


def add_connection(
    url: str | None = None,
    name: str = DEFAULT_CONNECTION,
    *,
    echo: bool = False,
    engine: Engine | None = None,
) -> Database:
    """Register (or replace) a named connection and return it."""
    existing = _connections.pop(name, None)
    if existing is not None:
        existing.dispose()
    database = Database(url, name=name, echo=echo, engine=engine)
    _connections[name] = database
    logger.debug("Registered database connection %s", name)
    return database


def get_connection(name: str | None = None) -> Database:
    """Return the named connection, building the default one from settings on first use.

    Raises:
        ConnectionNotConfigured: If a non-default name was never registered.
    """
    name = name or DEFAULT_CONNECTION
    database = _connections.get(name)
    if database is not None:
        return database
    if name != DEFAULT_CONNECTION:
        logger.error("Database connection %s requested but not registered", name)
        raise ConnectionNotConfigured(name)
    settings = get_settings()
    return add_connection(settings.database_url, name, echo=settings.database_echo)


def reset_connections() -> None:
    """Dispose and forget every registered connection."""
    for database in _connections.values():
        database.dispose()
    _connections.clear()
