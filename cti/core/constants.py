"""Core constants: event names, cache key prefixes and shared literal values.

Single source of truth for event names and cache key structure. Used by
the persistence layer, the subtype protocol and the cache key builders.
"""

# Host model events. "ing" events are cancellable (a listener returning False halts).
EVENT_SAVING = "saving"
EVENT_SAVED = "saved"
EVENT_CREATING = "creating"
EVENT_CREATED = "created"
EVENT_UPDATING = "updating"
EVENT_UPDATED = "updated"
EVENT_DELETING = "deleting"
EVENT_DELETED = "deleted"

# Subtype lifecycle events (fired around the dual-table write/delete).
EVENT_SUBTYPE_SAVING = "subtype_saving"
EVENT_SUBTYPE_SAVED = "subtype_saved"
EVENT_SUBTYPE_DELETING = "subtype_deleting"
EVENT_SUBTYPE_DELETED = "subtype_deleted"

CANCELLABLE_EVENTS = frozenset(
    {
        EVENT_SAVING,
        EVENT_CREATING,
        EVENT_UPDATING,
        EVENT_DELETING,
        EVENT_SUBTYPE_SAVING,
        EVENT_SUBTYPE_DELETING,
    }
)

# Connection used when a model does not name one.
DEFAULT_CONNECTION = "default"

# Timestamp columns maintained by models with timestamps enabled.
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"

# Cache key prefixes
CACHE_PREFIX_LABEL = "discriminator_label"
CACHE_PREFIX_TYPE_ID = "discriminator_type_id"
CACHE_PREFIX_COLUMNS = "column_overlap"

# Delimiter for composite keys
CACHE_KEY_SEP = ":"
