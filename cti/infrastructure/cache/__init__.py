"""Cache: in-process caches and cache key utilities.

label_cache holds discriminator id <-> label resolutions (scoped by
connection); schema_cache holds subtype classes whose columns were validated
against the parent table. Both are process-wide and reset explicitly with
clear_caches() (tests, or after a runtime schema change).
"""

from cti.infrastructure.cache.cache_protocol import CacheProtocol
from cti.infrastructure.cache.keys import (
    column_overlap_key,
    discriminator_label_key,
    discriminator_type_id_key,
)
from cti.infrastructure.cache.memory_cache import MemoryCache

label_cache = MemoryCache("discriminator_label")
schema_cache = MemoryCache("column_overlap")


def clear_caches() -> None:
    """Reset the discriminator label cache and the column validation cache."""
    label_cache.clear()
    schema_cache.clear()


__all__ = [
    "CacheProtocol",
    "MemoryCache",
    "clear_caches",
    "column_overlap_key",
    "discriminator_label_key",
    "discriminator_type_id_key",
    "label_cache",
    "schema_cache",
]
