"""Tests for default table and key naming."""

import pytest

from cti.shared.utils.naming import snake_case


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Quiz", "quiz"),
        ("QuizCategory", "quiz_category"),
        ("AssessmentTag", "assessment_tag"),
        ("HTTPRequest", "http_request"),
        ("Quiz2Attempt", "quiz2_attempt"),
    ],
)
def test_snake_case(name, expected) -> None:
    assert snake_case(name) == expected
