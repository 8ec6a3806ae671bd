"""
Structured error types for tablemap.

Provides a small hierarchy of typed errors carrying the metadata a caller
needs to decide what to do next: whether the failure is a configuration
problem (fix the model or the mapper setup), a contract violation (fix the
calling code), or an optimistic-locking conflict (re-read and try again).

Manifesto:
    - **Typed Error Hierarchy:** One error type per failure domain
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry the record type, table, property and column
    - **Error Chaining:** Preserve original driver exceptions as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        TableMapError                          │
        │          (category, retryable, context, cause)                │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ConfigError             MapperError      OptimisticLocking   │
        │  (CONFIG)                (CONTRACT)       Error               │
        │       │                                   (CONCURRENCY,       │
        │  AnnotationError                           retryable=True)    │
        │  ColumnNotFoundError                                          │
        │  TableNotFoundError                                           │
        │  NamespaceConventionError                                     │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = OptimisticLockingError("Order update failed due to stale data")
    >>> error.retryable
    True
    >>> error.with_context(record_type="Order", table="orders").context.table
    'orders'

Guardrails:
    ❌ DON'T: Raise bare Exception for mapping failures
    ✅ DO: Raise the subclass matching the failure domain

    ❌ DON'T: Retry ConfigError or MapperError
    ✅ DO: Retry OptimisticLockingError only after re-reading the record

Tags:
    error-handling, exception-hierarchy, optimistic-locking, tablemap

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification.

    Attributes:
        CONFIG: Model declaration or mapper configuration is wrong
        CONTRACT: Caller passed a value or request the mapper cannot honour
        CONCURRENCY: Optimistic-locking conflict, row changed underneath
        DATABASE: Catalog or driver failure while talking to the database
        INTERNAL: Bugs, unexpected state
    """

    CONFIG = "CONFIG"
    CONTRACT = "CONTRACT"
    CONCURRENCY = "CONCURRENCY"
    DATABASE = "DATABASE"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are relevant to a given failure are set; ``to_dict``
    drops the rest so log lines stay short.

    Attributes:
        record_type: Simple name of the mapped class
        table: Table name
        schema: Resolved schema name
        catalog: Resolved catalog name
        property_name: Offending property
        column: Offending column
        metadata: Additional key-value pairs
    """

    record_type: str | None = None
    table: str | None = None
    schema: str | None = None
    catalog: str | None = None
    property_name: str | None = None
    column: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["record_type", "table", "schema", "catalog", "property_name", "column"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TableMapError(Exception):
    """
    Base exception for all tablemap errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    call sites only pass a message and, where useful, context.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TableMapError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ConfigError("bad table").with_context(record_type="Order", table="orders")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (never retryable)
# =============================================================================


class ConfigError(TableMapError):
    """
    Configuration error.

    The model declaration or the mapper setup must be fixed; retrying the
    same call will fail the same way.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class AnnotationError(ConfigError):
    """Markers on a record type are missing, duplicated or conflicting."""

    pass


class ColumnNotFoundError(AnnotationError):
    """A mapped property resolves to a column the table does not have."""

    def __init__(self, column: str, table: str, record_type: str, property_name: str):
        self.column = column
        self.table = table
        super().__init__(
            f"{column} column not found in table {table} for property {record_type}.{property_name}",
            context=ErrorContext(
                record_type=record_type, table=table, property_name=property_name, column=column
            ),
        )


class TableNotFoundError(ConfigError):
    """The catalog has no metadata for the resolved table."""

    def __init__(self, record_type: str, table: str, schema: str | None, catalog: str | None):
        self.table = table
        message = f"Unable to locate meta-data for table '{table}'"
        if schema and catalog:
            message += f" in schema {schema} and catalog {catalog}"
        elif schema:
            message += f" in schema {schema}"
        elif catalog:
            message += f" in catalog/database {catalog}"
        message += f" for class {record_type}"
        super().__init__(
            message,
            context=ErrorContext(record_type=record_type, table=table, schema=schema, catalog=catalog),
        )


class NamespaceConventionError(ConfigError):
    """Schema used where the database family expects a catalog, or vice versa."""

    pass


# =============================================================================
# CONTRACT ERRORS (caller misuse)
# =============================================================================


class MapperError(TableMapError):
    """
    The caller asked for something the mapper cannot do.

    Null id on update, null version on a versioned update, updating the id
    or a system-managed property, naming an unmapped property.
    """

    default_category = ErrorCategory.CONTRACT
    default_retryable = False


# =============================================================================
# CONCURRENCY ERRORS
# =============================================================================


class OptimisticLockingError(TableMapError):
    """
    An update guarded by a version column matched no rows.

    The in-memory record is stale. Callers may re-fetch and retry; the
    mapper itself never retries.
    """

    default_category = ErrorCategory.CONCURRENCY
    default_retryable = True


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, TableMapError):
        return error.retryable
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TableMapError",
    "ConfigError",
    "AnnotationError",
    "ColumnNotFoundError",
    "TableNotFoundError",
    "NamespaceConventionError",
    "MapperError",
    "OptimisticLockingError",
    "is_retryable",
]
