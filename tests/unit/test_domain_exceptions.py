"""Tests for CTI exceptions (error_code, message, details)."""

import pytest

from cti.domain.exceptions import (
    ConnectionNotConfigured,
    CtiException,
    DeleteFailed,
    InvalidDiscriminator,
    LoadFailed,
    MissingDiscriminatorKey,
    MissingLookupTableConfig,
    MissingRequiredProperty,
    MissingSubtypeTableConfig,
    ModelNotFound,
    OverlappingColumns,
    SaveFailed,
    TypeResolutionFailed,
)


def test_cti_exception_default_error_code() -> None:
    """Base CtiException uses class name as error_code when not provided."""
    exc = CtiException("Something failed")
    assert exc.message == "Something failed"
    assert exc.error_code == "CtiException"
    assert exc.details == {}
    assert str(exc) == "Something failed"


def test_cti_exception_custom_error_code_and_details() -> None:
    """CtiException accepts custom error_code and details."""
    exc = CtiException("Oops", error_code="CUSTOM", details={"key": "value"})
    assert exc.error_code == "CUSTOM"
    assert exc.details == {"key": "value"}


def test_missing_subtype_table_config() -> None:
    exc = MissingSubtypeTableConfig("Quiz")
    assert exc.message == "Subtype table must be defined on Quiz"
    assert exc.error_code == "MISSING_SUBTYPE_TABLE"
    assert exc.details == {"model": "Quiz"}


def test_missing_discriminator_key() -> None:
    exc = MissingDiscriminatorKey("Quiz")
    assert exc.message == "Missing type ID for model Quiz"
    assert exc.error_code == "MISSING_DISCRIMINATOR_KEY"


def test_invalid_discriminator_keeps_value() -> None:
    """InvalidDiscriminator names the unresolved value in message and details."""
    exc = InvalidDiscriminator(999)
    assert "999" in exc.message
    assert exc.error_code == "INVALID_DISCRIMINATOR"
    assert exc.details == {"type_id": 999}


def test_missing_lookup_table_config() -> None:
    exc = MissingLookupTableConfig("Assessment")
    assert exc.error_code == "MISSING_LOOKUP_TABLE"
    assert exc.details == {"model": "Assessment"}


def test_missing_required_property() -> None:
    """MissingRequiredProperty names the model and the missing class attribute."""
    exc = MissingRequiredProperty("Assessment", "discriminator_column")
    assert exc.message == "Missing CTI configuration property 'discriminator_column' on Assessment"
    assert exc.error_code == "MISSING_CONFIGURATION"
    assert exc.details == {"model": "Assessment", "property": "discriminator_column"}


def test_type_resolution_failed() -> None:
    exc = TypeResolutionFailed("exam", "assessment_type")
    assert exc.message == "Could not resolve type ID for label 'exam' in table 'assessment_type'"
    assert exc.error_code == "TYPE_RESOLUTION_FAILED"
    assert exc.details == {"label": "exam", "table": "assessment_type"}


@pytest.mark.parametrize(
    ("exc_cls", "code", "verb"),
    [
        (SaveFailed, "SAVE_FAILED", "save"),
        (DeleteFailed, "DELETE_FAILED", "delete"),
        (LoadFailed, "LOAD_FAILED", "load"),
    ],
)
def test_write_failures_carry_table_and_reason(exc_cls, code, verb) -> None:
    """Save/delete/load failures name the table and keep the underlying reason."""
    exc = exc_cls("assessment_quiz", "constraint failed")
    assert exc.error_code == code
    assert verb in exc.message.lower()
    assert "assessment_quiz" in exc.message
    assert exc.details == {"table": "assessment_quiz", "reason": "constraint failed"}


def test_overlapping_columns_lists_columns() -> None:
    exc = OverlappingColumns("OverlappingQuiz", ["created_at", "title"])
    assert exc.error_code == "OVERLAPPING_COLUMNS"
    assert "OverlappingQuiz" in exc.message
    assert "created_at, title" in exc.message
    assert exc.details == {"model": "OverlappingQuiz", "columns": ["created_at", "title"]}


def test_connection_not_configured() -> None:
    exc = ConnectionNotConfigured("reporting")
    assert exc.error_code == "CONNECTION_NOT_CONFIGURED"
    assert exc.details == {"connection": "reporting"}


def test_model_not_found() -> None:
    exc = ModelNotFound("Quiz", 42)
    assert exc.error_code == "MODEL_NOT_FOUND"
    assert exc.details == {"model": "Quiz", "key": 42}


def test_all_exceptions_are_cti_exceptions() -> None:
    """Every CTI failure can be caught with CtiException."""
    for exc in (
        MissingSubtypeTableConfig("M"),
        MissingDiscriminatorKey("M"),
        InvalidDiscriminator(1),
        MissingLookupTableConfig("M"),
        MissingRequiredProperty("M", "p"),
        TypeResolutionFailed("l", "t"),
        SaveFailed("t", "r"),
        DeleteFailed("t", "r"),
        LoadFailed("t", "r"),
        OverlappingColumns("M", ["c"]),
    ):
        assert isinstance(exc, CtiException)
