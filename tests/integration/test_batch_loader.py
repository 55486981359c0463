"""Batch subtype loading for collections of mixed subtype instances."""

import pytest

from cti import load_subtypes_for
from cti.infrastructure.persistence.subtypes import SubtypedCollection
from tests.fixtures.models import Assessment, Quiz, Survey

pytestmark = pytest.mark.integration


@pytest.fixture
def assessments(query_log):
    """Two quizzes, one survey and one poll (no registered subtype), in id order."""
    Quiz.create(title="Quiz A", passing_score=80, time_limit=30)
    Quiz.create(title="Quiz B", passing_score=90, time_limit=45)
    Survey.create(title="Survey", anonymous=True)
    query_log.insert(Assessment.get_table_object(), {"type_id": 3, "title": "Poll"})
    query_log.flush_query_log()
    return query_log


def test_collection_loads_each_subtype_table_once(assessments) -> None:
    """Loading four rows of three kinds queries each subtype table exactly once."""
    models = Assessment.query().order_by("id").get()

    assert isinstance(models, SubtypedCollection)
    assert [type(model) for model in models] == [Quiz, Quiz, Survey, Assessment]
    assert len(assessments.queries_against("assessment_quiz")) == 1
    assert len(assessments.queries_against("assessment_survey")) == 1
    assert all(model.subtype_loaded for model in models[:3])


def test_loaded_attributes_read_without_queries(assessments) -> None:
    models = Assessment.query().order_by("id").get()
    assessments.flush_query_log()

    assert [models[0].passing_score, models[1].passing_score] == [80, 90]
    assert models[1].time_limit == 45
    assert models[2].anonymous is True
    assert assessments.query_log == []


def test_order_is_preserved(assessments) -> None:
    models = Assessment.query().order_by_desc("id").get()
    assert [model.title for model in models] == ["Poll", "Survey", "Quiz B", "Quiz A"]
    assert models[2].passing_score == 90


def test_second_load_issues_no_queries(assessments) -> None:
    models = Assessment.all()
    assessments.flush_query_log()
    models.load_subtypes()
    load_subtypes_for(models)
    assert assessments.query_log == []


def test_loaded_instances_are_clean(assessments) -> None:
    models = Assessment.query().order_by("id").get()
    assert all(model.is_clean() for model in models)


def test_load_subtypes_for_plain_list(assessments) -> None:
    first, second = Assessment.query().where("type_id", 1).order_by("id").cursor()
    assert not first.subtype_loaded

    loaded = load_subtypes_for([first, second])

    assert loaded == [first, second]
    assert len(assessments.queries_against("assessment_quiz")) == 1
    assert first.subtype_loaded and second.subtype_loaded
    assert second.get_attributes()["passing_score"] == 90


def test_cursor_does_not_load_subtypes(assessments) -> None:
    models = list(Assessment.query().cursor())
    assert not any(getattr(model, "subtype_loaded", False) for model in models)
    assert assessments.queries_against("assessment_quiz") == []


def test_missing_subtype_row_still_marks_loaded(assessments) -> None:
    assessment_id = assessments.insert(
        Assessment.get_table_object(), {"type_id": 1, "title": "No quiz row"}
    )[0]
    assessments.flush_query_log()

    quiz = Assessment.query().where("id", assessment_id).get()[0]

    assert quiz.subtype_loaded
    assert quiz.passing_score is None
    assert len(assessments.queries_against("assessment_quiz")) == 1


def test_batch_load_keeps_unsaved_changes(assessments) -> None:
    quiz = Assessment.query().where("title", "Quiz A").first()
    quiz.passing_score = 99
    load_subtypes_for([quiz])
    assert quiz.passing_score == 99
    assert quiz.time_limit == 30
    assert quiz.is_dirty("passing_score")


def test_subtype_query_returns_loaded_collection(assessments) -> None:
    quizzes = Quiz.query().order_by("id").get()
    assert [quiz.passing_score for quiz in quizzes] == [80, 90]
    assert all(quiz.subtype_loaded for quiz in quizzes)
    assert len(assessments.queries_against("assessment_quiz")) == 1


def test_non_subtype_models_are_ignored(assessments) -> None:
    poll = Assessment.query().where("type_id", 3).first()
    assessments.flush_query_log()
    assert load_subtypes_for([poll]) == [poll]
    assert assessments.query_log == []
