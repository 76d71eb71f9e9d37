"""Custom exceptions for CrossRecord library.

Every public operation either returns a value or raises exactly one of the
exceptions below. Native client failures are wrapped in BackendOperationError
with the original exception chained as ``__cause__``.
"""

from typing import Any, Dict


# Base exception
class CrossRecordError(Exception):
    """Base exception for all CrossRecord errors.

    Attributes:
        message: Error message
        details: Additional error context as key-value pairs
    """

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        """Initialize exception with message and additional details.

        Args:
            message: Human-readable error message
            **kwargs: Additional context (e.g., property_name, collection_name, backend)
        """
        self.message = message
        self.details: Dict[str, Any] = kwargs
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if not self.details:
            return self.message

        details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        if self.message:
            return f"{self.message} ({details_str})"
        return details_str

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# Schema exceptions
class SchemaError(CrossRecordError):
    """Raised when a record schema is invalid or contradicts backend capabilities.

    Example:
        >>> raise SchemaError("Record type has no key property", record_type="Hotel")
    """


class UnsupportedConfigurationError(CrossRecordError):
    """Raised when an index kind or distance function cannot be represented by a backend.

    Example:
        >>> raise UnsupportedConfigurationError("Unsupported distance function", property_name="embedding", value="manhattan")
    """


class UnsupportedTypeError(UnsupportedConfigurationError):
    """Raised when a filterable data property has a type the backend cannot index.

    Example:
        >>> raise UnsupportedTypeError("Unsupported filter type", property_name="tags", property_type="list[bool]")
    """


# Record exceptions
class MappingError(CrossRecordError):
    """Raised when a value cannot be converted between record and native storage form.

    Example:
        >>> raise MappingError("List contains mixed element types", property_name="tags")
    """


class NotFoundError(CrossRecordError):
    """Raised when a requested key does not exist in the collection.

    Example:
        >>> raise NotFoundError("Record not found", collection_name="hotels", key="h-1")
    """


# Operation exceptions
class BackendOperationError(CrossRecordError):
    """Raised when the native client fails while executing an operation.

    Example:
        >>> raise BackendOperationError("Call to vector store failed", backend="qdrant", operation="upsert")
    """


class ArgumentError(CrossRecordError):
    """Raised when an argument is invalid at construction or call time.

    Example:
        >>> raise ArgumentError("No collection name given and no default configured", argument="collection_name")
    """


# Configuration exceptions
class MissingConfigError(CrossRecordError):
    """Raised when a required configuration value is missing.

    Example:
        >>> raise MissingConfigError("Endpoint not configured", config_key="QDRANT_URL", env_file=".env")
    """
