"""Column overlap validation against the parent table."""

import pytest

from cti.domain.exceptions import OverlappingColumns
from cti.infrastructure.cache import MemoryCache
from cti.infrastructure.persistence.subtypes import ColumnOverlapValidator
from tests.fixtures.models import OverlappingColumnsQuiz, Quiz, RegularModel

pytestmark = pytest.mark.integration


def test_valid_class_is_remembered(query_log) -> None:
    cache = MemoryCache("test")
    validator = ColumnOverlapValidator(cache)

    validator.validate(Quiz)
    assert len(cache) == 1
    query_log.flush_query_log()

    validator.validate(Quiz)
    assert query_log.query_log == []


def test_overlap_is_reported_and_not_cached(db) -> None:
    cache = MemoryCache("test")
    validator = ColumnOverlapValidator(cache)

    with pytest.raises(OverlappingColumns) as exc_info:
        validator.validate(OverlappingColumnsQuiz)

    assert exc_info.value.error_code == "OVERLAPPING_COLUMNS"
    assert exc_info.value.details == {"model": "OverlappingColumnsQuiz", "columns": ["title"]}
    assert len(cache) == 0


def test_class_without_subtype_attributes_passes(db) -> None:
    cache = MemoryCache("test")
    ColumnOverlapValidator(cache).validate(RegularModel)
    assert len(cache) == 0
