"""Domain layer: the CTI exception taxonomy.

No dependencies on infrastructure. Used by the persistence layer and by
callers catching CTI failures.
"""

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

__all__ = [
    "ConnectionNotConfigured",
    "CtiException",
    "DeleteFailed",
    "InvalidDiscriminator",
    "LoadFailed",
    "MissingDiscriminatorKey",
    "MissingLookupTableConfig",
    "MissingRequiredProperty",
    "MissingSubtypeTableConfig",
    "ModelNotFound",
    "OverlappingColumns",
    "SaveFailed",
    "TypeResolutionFailed",
]
