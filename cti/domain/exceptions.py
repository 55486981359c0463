"""Exceptions for class table inheritance.

All failure modes of subtype resolution, persistence and validation are
configuration or data errors: they are raised synchronously and are never
retried. Every exception carries a machine-readable error_code and a
details dict so callers can log or map them consistently.
"""

from typing import Any


class CtiException(Exception):
    """Base exception for all class table inheritance errors.

    All custom exceptions inherit from this class so callers can catch
    every CTI failure with a single except clause.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. model, table, columns).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class MissingSubtypeTableConfig(CtiException):
    """Raised when a subtype operation needs a subtype table the model does not declare."""

    def __init__(self, model: str) -> None:
        """Initialize with the model class name.

        Args:
            model: Name of the model class missing subtype_table.
        """
        super().__init__(
            f"Subtype table must be defined on {model}",
            "MISSING_SUBTYPE_TABLE",
            {"model": model},
        )


class MissingDiscriminatorKey(CtiException):
    """Raised when a subtype-table operation has no primary key to key the row by."""

    def __init__(self, model: str) -> None:
        """Initialize with the model class name.

        Args:
            model: Name of the model class whose key is missing.
        """
        super().__init__(
            f"Missing type ID for model {model}",
            "MISSING_DISCRIMINATOR_KEY",
            {"model": model},
        )


class InvalidDiscriminator(CtiException):
    """Raised when a discriminator value does not resolve to a lookup table row."""

    def __init__(self, type_id: Any) -> None:
        """Initialize with the unresolved discriminator value.

        Args:
            type_id: The discriminator value that was not found.
        """
        super().__init__(
            f"Invalid subtype discriminator: {type_id}",
            "INVALID_DISCRIMINATOR",
            {"type_id": type_id},
        )


class MissingLookupTableConfig(CtiException):
    """Raised when subtype resolution is attempted on a model with no lookup table."""

    def __init__(self, model: str) -> None:
        super().__init__(
            f"Subtypes require a defined lookup table on {model}",
            "MISSING_LOOKUP_TABLE",
            {"model": model},
        )


class MissingRequiredProperty(CtiException):
    """Raised when a required class-level CTI setting is absent."""

    def __init__(self, model: str, property_name: str) -> None:
        """Initialize with model and property.

        Args:
            model: Name of the model class.
            property_name: The missing class attribute (e.g. 'discriminator_column').
        """
        super().__init__(
            f"Missing CTI configuration property '{property_name}' on {model}",
            "MISSING_CONFIGURATION",
            {"model": model, "property": property_name},
        )


class TypeResolutionFailed(CtiException):
    """Raised when a subtype label cannot be resolved to a discriminator id."""

    def __init__(self, label: str, table: str) -> None:
        """Initialize with label and lookup table.

        Args:
            label: The subtype label that could not be resolved.
            table: The lookup table that was queried.
        """
        super().__init__(
            f"Could not resolve type ID for label '{label}' in table '{table}'",
            "TYPE_RESOLUTION_FAILED",
            {"label": label, "table": table},
        )


class SaveFailed(CtiException):
    """Raised when writing parent or subtype data fails. The cause is chained."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(
            f"Failed to save subtype data to table: {table}",
            "SAVE_FAILED",
            {"table": table, "reason": reason},
        )


class DeleteFailed(CtiException):
    """Raised when deleting parent or subtype data fails. The cause is chained."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(
            f"Failed to delete subtype data from table: {table}",
            "DELETE_FAILED",
            {"table": table, "reason": reason},
        )


class OverlappingColumns(CtiException):
    """Raised when declared subtype attributes also exist on the parent table."""

    def __init__(self, model: str, columns: list[str]) -> None:
        """Initialize with model and offending columns.

        Args:
            model: Name of the subtype model class.
            columns: Subtype attribute names that are also parent table columns.
        """
        super().__init__(
            f"Subtype attributes of {model} overlap parent table columns: {', '.join(columns)}",
            "OVERLAPPING_COLUMNS",
            {"model": model, "columns": columns},
        )


class ConnectionNotConfigured(CtiException):
    """Raised when a model names a connection that was never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Database connection not configured: {name}",
            "CONNECTION_NOT_CONFIGURED",
            {"connection": name},
        )


class ModelNotFound(CtiException):
    """Raised by find_or_fail when no row matches the key."""

    def __init__(self, model: str, key: Any) -> None:
        super().__init__(
            f"{model} not found: {key}",
            "MODEL_NOT_FOUND",
            {"model": model, "key": key},
        )


class LoadFailed(CtiException):
    """Raised when reading subtype rows fails. The cause is chained."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(
            f"Failed to load subtype data from table: {table}",
            "LOAD_FAILED",
            {"table": table, "reason": reason},
        )
