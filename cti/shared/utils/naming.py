"""Naming helpers for default table, foreign key and pivot table names."""

import re

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    """Convert a class name to snake_case (QuizCategory -> quiz_category)."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()
