"""Pytest configuration and fixtures for cti.

Every test starts with empty caches, no event listeners and fresh settings.
Integration tests use the db fixture: a new in-memory SQLite database with
the assessment schema registered as the default connection.
"""

from collections.abc import Iterator

import pytest

from cti.core.config import get_settings
from cti.infrastructure.cache import clear_caches
from cti.infrastructure.persistence import Database, add_connection, dispatcher, reset_connections
from tests.fixtures.schema import create_schema


@pytest.fixture(autouse=True)
def _isolated_state() -> Iterator[None]:
    """Reset settings, caches, listeners and connections around each test."""
    get_settings.cache_clear()
    clear_caches()
    dispatcher.forget()
    yield
    dispatcher.forget()
    clear_caches()
    reset_connections()
    get_settings.cache_clear()


@pytest.fixture
def db() -> Database:
    """In-memory database with the assessment schema as the default connection."""
    database = add_connection("sqlite+pysqlite:///:memory:")
    create_schema(database.engine)
    return database


@pytest.fixture
def query_log(db: Database) -> Iterator[Database]:
    """The db fixture with the query log enabled and empty."""
    db.enable_query_log()
    db.flush_query_log()
    yield db
    db.disable_query_log()


@pytest.fixture
def settings_env(monkeypatch: pytest.MonkeyPatch):
    """Set CTI_* environment variables and reload settings.

    Usage: settings_env(EAGER_SINGLE_ROW_LOAD="true")
    """

    def apply(**values: str) -> None:
        for key, value in values.items():
            monkeypatch.setenv(f"CTI_{key}", value)
        get_settings.cache_clear()

    return apply
