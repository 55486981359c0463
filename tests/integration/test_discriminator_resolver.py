"""Discriminator resolver and entity morpher integration tests."""

import pytest
from opentelemetry import trace

from cti.domain.exceptions import (
    InvalidDiscriminator,
    MissingLookupTableConfig,
    MissingRequiredProperty,
    TypeResolutionFailed,
)
from cti.infrastructure.cache import MemoryCache, clear_caches
from cti.infrastructure.persistence.subtypes import DiscriminatorResolver, EntityMorpher
from tests.fixtures.models import (
    Assessment,
    Exam,
    MisconfiguredAssessment,
    NoLookupAssessment,
    Quiz,
    Survey,
)

pytestmark = pytest.mark.integration


def _insert_assessment(db, **values) -> int:
    return db.insert(Assessment.get_table_object(), values)[0]


# Resolver


def test_resolve_label(db) -> None:
    resolver = Assessment.discriminator_resolver()
    assert resolver.resolve_label(1) == "quiz"
    assert resolver.resolve_label(2) == "survey"
    assert resolver.resolve_label(3) == "poll"


def test_resolve_label_empty_value_returns_none(query_log) -> None:
    resolver = Assessment.discriminator_resolver()
    assert resolver.resolve_label(None) is None
    assert resolver.resolve_label("") is None
    assert query_log.queries_against("assessment_type") == []


def test_resolve_label_is_cached(query_log) -> None:
    """A second resolution of the same id does not hit the lookup table."""
    resolver = Assessment.discriminator_resolver()
    resolver.resolve_label(2)
    assert len(query_log.queries_against("assessment_type")) == 1
    query_log.flush_query_log()
    assert Assessment.discriminator_resolver().resolve_label(2) == "survey"
    assert query_log.queries_against("assessment_type") == []


def test_clear_caches_forces_lookup(query_log) -> None:
    resolver = Assessment.discriminator_resolver()
    resolver.resolve_label(1)
    clear_caches()
    query_log.flush_query_log()
    resolver.resolve_label(1)
    assert len(query_log.queries_against("assessment_type")) == 1


def test_cache_disabled_queries_every_time(query_log, settings_env) -> None:
    settings_env(DISCRIMINATOR_CACHE_ENABLED="false")
    resolver = Assessment.discriminator_resolver()
    resolver.resolve_label(1)
    resolver.resolve_label(1)
    assert len(query_log.queries_against("assessment_type")) == 2


def test_resolver_with_custom_cache(db) -> None:
    cache = MemoryCache("test")
    resolver = DiscriminatorResolver(Assessment, cache)
    resolver.resolve_label(1)
    resolver.resolve_type_id("survey")
    assert len(cache) == 2


def test_unknown_type_id_raises_invalid_discriminator(db) -> None:
    with pytest.raises(InvalidDiscriminator) as exc_info:
        Assessment.discriminator_resolver().resolve_label(999)
    assert exc_info.value.error_code == "INVALID_DISCRIMINATOR"


def test_resolve_type_id(db) -> None:
    resolver = Assessment.discriminator_resolver()
    assert resolver.resolve_type_id("quiz") == 1
    assert resolver.resolve_type_id("survey") == 2


def test_resolve_type_id_unknown_label(db) -> None:
    with pytest.raises(TypeResolutionFailed):
        Assessment.discriminator_resolver().resolve_type_id("exam")


def test_class_and_label_mapping(db) -> None:
    resolver = Assessment.discriminator_resolver()
    assert resolver.class_for_label("quiz") is Quiz
    assert resolver.class_for_label("poll") is None
    assert resolver.class_for_label(None) is None
    assert resolver.label_for_class(Survey) == "survey"
    assert resolver.label_for_class(Assessment) is None
    assert resolver.resolve_class(1) is Quiz
    assert resolver.resolve_class(3) is None


def test_subtype_map_lists_registered_classes() -> None:
    assert Assessment.subtype_map() == {"quiz": Quiz, "survey": Survey, "exam": Exam}
    assert Quiz.cti_parent is Assessment


def test_missing_lookup_table(db) -> None:
    with pytest.raises(MissingLookupTableConfig):
        NoLookupAssessment.discriminator_resolver().resolve_label(1)


def test_missing_discriminator_column() -> None:
    with pytest.raises(MissingRequiredProperty) as exc_info:
        MisconfiguredAssessment.get_discriminator_column()
    assert exc_info.value.details["property"] == "discriminator_column"


def test_get_subtype_label(db) -> None:
    assessment_id = _insert_assessment(db, type_id=3, title="Poll")
    poll = Assessment.find(assessment_id)
    assert poll.get_subtype_label() == "poll"
    assert Assessment(title="Untyped").get_subtype_label() is None


# Morpher


def test_rows_morph_into_registered_subtypes(db) -> None:
    quiz_id = _insert_assessment(db, type_id=1, title="Quiz")
    survey_id = _insert_assessment(db, type_id=2, title="Survey")
    quiz = Assessment.find(quiz_id)
    survey = Assessment.find(survey_id)
    assert type(quiz) is Quiz
    assert type(survey) is Survey
    assert quiz.exists
    assert quiz.is_clean()
    assert not quiz.subtype_loaded
    assert "passing_score" not in quiz.get_attributes()


def test_unregistered_label_falls_back_to_base_class(db) -> None:
    assessment_id = _insert_assessment(db, type_id=3, title="Poll")
    assert type(Assessment.find(assessment_id)) is Assessment


def test_unknown_discriminator_falls_back_to_base_class(db) -> None:
    assessment_id = _insert_assessment(db, type_id=99, title="Orphan")
    found = Assessment.find(assessment_id)
    assert type(found) is Assessment
    assert found.type_id == 99


class _RecordingSpan:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def is_recording(self) -> bool:
        return True

    def add_event(self, name: str, attributes: dict) -> None:
        self.events.append((name, attributes))


def test_unknown_discriminator_fallback_is_recorded_on_span(db, monkeypatch) -> None:
    span = _RecordingSpan()
    monkeypatch.setattr(trace, "get_current_span", lambda: span)

    morpher = EntityMorpher(Assessment, Assessment.discriminator_resolver())
    assert morpher.target_class(99) is Assessment
    assert morpher.target_class(1) is Quiz
    assert span.events == [
        ("cti.discriminator_fallback", {"cti.model": "Assessment", "cti.type_id": "99"})
    ]


def test_null_discriminator_falls_back_to_base_class(db) -> None:
    assessment_id = _insert_assessment(db, title="Untyped")
    assert type(Assessment.find(assessment_id)) is Assessment


def test_morphed_instance_keeps_parent_casts(db) -> None:
    quiz_id = _insert_assessment(db, type_id=1, title="Quiz")
    quiz = Assessment.find(quiz_id)
    assert quiz.has_cast("enabled")
    assert quiz.enabled is True


def test_morph_directly(db) -> None:
    morpher = EntityMorpher(Assessment, Assessment.discriminator_resolver())
    survey = morpher.morph({"id": 5, "type_id": 2, "title": "Feedback"})
    assert type(survey) is Survey
    assert survey.exists
    assert survey.id == 5
    assert morpher.target_class(None) is Assessment
    assert morpher.target_class(1) is Quiz


def test_collection_morphs_each_row(db) -> None:
    _insert_assessment(db, type_id=1, title="A")
    _insert_assessment(db, type_id=2, title="B")
    _insert_assessment(db, type_id=3, title="C")
    kinds = [type(model) for model in Assessment.query().order_by("id").get()]
    assert kinds == [Quiz, Survey, Assessment]


def test_missing_discriminator_column_propagates_from_queries(db) -> None:
    _insert_assessment(db, type_id=1, title="Quiz")
    with pytest.raises(MissingRequiredProperty):
        MisconfiguredAssessment.query().get()


def test_missing_lookup_table_propagates_from_queries(db) -> None:
    _insert_assessment(db, type_id=1, title="Quiz")
    with pytest.raises(MissingLookupTableConfig):
        NoLookupAssessment.query().get()
