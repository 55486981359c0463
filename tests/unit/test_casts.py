"""Tests for attribute casts."""

from datetime import UTC, datetime

import pytest

from cti.infrastructure.persistence.casts import cast_for_read, cast_for_write, validate_casts


@pytest.mark.parametrize(
    ("kind", "raw", "expected"),
    [
        ("int", "42", 42),
        ("float", "1.5", 1.5),
        ("bool", 1, True),
        ("bool", 0, False),
        ("bool", "false", False),
        ("bool", "yes", True),
        ("str", 7, "7"),
        ("json", '{"a": [1, 2]}', {"a": [1, 2]}),
        ("json", {"already": "decoded"}, {"already": "decoded"}),
    ],
)
def test_cast_for_read(kind, raw, expected) -> None:
    assert cast_for_read(kind, raw) == expected


def test_none_is_never_cast() -> None:
    assert cast_for_read("int", None) is None
    assert cast_for_write("json", None) is None


def test_datetime_cast_returns_aware_utc() -> None:
    """Naive datetimes (as SQLite returns them) are read as UTC."""
    value = cast_for_read("datetime", datetime(2024, 1, 2, 3, 4, 5))
    assert value == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
    assert cast_for_read("datetime", "2024-01-02T03:04:05").tzinfo is not None


def test_json_is_serialized_on_write() -> None:
    assert cast_for_write("json", {"a": 1}) == '{"a": 1}'
    assert cast_for_write("json", "[1]") == '"[1]"'
    assert cast_for_write("json", "x") == '"x"'
    assert cast_for_write("int", 5) == 5


def test_validate_casts_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="Unknown cast type"):
        validate_casts({"score": "decimal"}, "Quiz")


def test_validate_casts_accepts_known_kinds() -> None:
    validate_casts({"a": "int", "b": "json", "c": "datetime"}, "Quiz")
