"""Cache key builders. Single place for key format (DRY).

Key components (connection name, model name, label, etc.) must not contain
CACHE_KEY_SEP to avoid ambiguous or colliding keys. Labels are scoped by
connection because the lookup table lives in a specific database.
"""

from typing import Any

from cti.core.constants import (
    CACHE_KEY_SEP,
    CACHE_PREFIX_COLUMNS,
    CACHE_PREFIX_LABEL,
    CACHE_PREFIX_TYPE_ID,
)


def _validate_key_component(value: str, name: str) -> None:
    """Raise ValueError if value contains the cache key separator.

    Args:
        value: String component used in a cache key.
        name: Name of the component (for error message).

    Raises:
        ValueError: If value contains CACHE_KEY_SEP.
    """
    if CACHE_KEY_SEP in value:
        raise ValueError(
            f"Cache key component {name!r} must not contain separator {CACHE_KEY_SEP!r}"
        )


def _validate_key_components(components: list[tuple[str, str]]) -> None:
    """Validate multiple key components; raise on first invalid one.

    Args:
        components: List of (value, name) pairs to validate.

    Raises:
        ValueError: If any value contains CACHE_KEY_SEP.
    """
    for value, name in components:
        _validate_key_component(value, name)


def discriminator_label_key(connection: str, entity: str, type_id: Any) -> str:
    """Cache key for the label of a discriminator value (connection + parent entity + id)."""
    type_id_str = str(type_id)
    _validate_key_components(
        [(connection, "connection"), (entity, "entity"), (type_id_str, "type_id")]
    )
    return (
        f"{CACHE_PREFIX_LABEL}{CACHE_KEY_SEP}{connection}{CACHE_KEY_SEP}"
        f"{entity}{CACHE_KEY_SEP}{type_id_str}"
    )


def discriminator_type_id_key(connection: str, entity: str, label: str) -> str:
    """Cache key for the discriminator value of a label (connection + parent entity + label)."""
    _validate_key_components(
        [(connection, "connection"), (entity, "entity"), (label, "label")]
    )
    return (
        f"{CACHE_PREFIX_TYPE_ID}{CACHE_KEY_SEP}{connection}{CACHE_KEY_SEP}"
        f"{entity}{CACHE_KEY_SEP}{label}"
    )


def column_overlap_key(connection: str, model: str) -> str:
    """Cache key for a subtype class whose columns were validated as disjoint."""
    _validate_key_components([(connection, "connection"), (model, "model")])
    return f"{CACHE_PREFIX_COLUMNS}{CACHE_KEY_SEP}{connection}{CACHE_KEY_SEP}{model}"
