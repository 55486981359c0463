"""Tests for cache key builders: format and separator validation."""

import pytest

from cti.infrastructure.cache.keys import (
    column_overlap_key,
    discriminator_label_key,
    discriminator_type_id_key,
)


def test_discriminator_label_key_format() -> None:
    key = discriminator_label_key("default", "app.models.Assessment", 1)
    assert key == "discriminator_label:default:app.models.Assessment:1"


def test_discriminator_type_id_key_format() -> None:
    key = discriminator_type_id_key("default", "app.models.Assessment", "quiz")
    assert key == "discriminator_type_id:default:app.models.Assessment:quiz"


def test_label_and_type_id_keys_do_not_collide() -> None:
    """A type id and a label with the same text map to different keys."""
    assert discriminator_label_key("c", "E", "1") != discriminator_type_id_key("c", "E", "1")


def test_keys_are_scoped_by_connection() -> None:
    assert discriminator_label_key("primary", "E", 1) != discriminator_label_key("replica", "E", 1)


def test_column_overlap_key_format() -> None:
    assert column_overlap_key("default", "app.Quiz") == "column_overlap:default:app.Quiz"


@pytest.mark.parametrize(
    "build",
    [
        lambda: discriminator_label_key("a:b", "E", 1),
        lambda: discriminator_label_key("c", "E:x", 1),
        lambda: discriminator_label_key("c", "E", "1:2"),
        lambda: discriminator_type_id_key("c", "E", "qu:iz"),
        lambda: column_overlap_key("c", "mod:Quiz"),
    ],
)
def test_components_with_separator_are_rejected(build) -> None:
    """Components containing ':' would make keys ambiguous and raise ValueError."""
    with pytest.raises(ValueError, match="separator"):
        build()
