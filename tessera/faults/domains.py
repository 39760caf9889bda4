"""
Tessera Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- MODEL faults (entities, queries, storage)
- USAGE faults (programmer errors)
"""

from typing import Any, Optional
from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=severity,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# MODEL Faults (ORM / Database)
# ============================================================================

class ModelFault(Fault):
    """Base class for entity and database faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        retryable: bool = False,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.MODEL,
            severity=severity,
            retryable=retryable,
            public=public,
            metadata=metadata,
        )


class ModelNotFoundFault(ModelFault):
    """No row matched a lookup that required one."""

    def __init__(self, model_name: str, pk: Any = None, **kwargs):
        detail = f" with primary key {pk!r}" if pk is not None else ""
        super().__init__(
            code="MODEL_NOT_FOUND",
            message=f"No '{model_name}' record found{detail}",
            public=True,
            metadata={"model": model_name, "pk": pk, **kwargs.get("metadata", {})},
        )


class QueryFault(ModelFault):
    """Query execution failed (malformed SQL, constraint violation, ...)."""

    def __init__(self, model: str, operation: str, reason: str, **kwargs):
        super().__init__(
            code="QUERY_FAILED",
            message=f"Query on '{model}' ({operation}) failed: {reason}",
            metadata={"model": model, "operation": operation, "reason": reason, **kwargs.get("metadata", {})},
        )

    @property
    def sql(self) -> Optional[str]:
        return self.metadata.get("sql")


class DatabaseConnectionFault(ModelFault):
    """Database connection failed."""

    def __init__(self, url: str, reason: str, **kwargs):
        super().__init__(
            code="DB_CONNECTION_FAILED",
            message=f"Database connection failed ({url}): {reason}",
            severity=Severity.FATAL,
            metadata={"url": url, "reason": reason, **kwargs.get("metadata", {})},
        )


class CastFault(ModelFault):
    """A stored value could not be converted by its declared cast."""

    def __init__(self, column: str, cast: str, value: Any, reason: str = "", **kwargs):
        suffix = f": {reason}" if reason else ""
        super().__init__(
            code="CAST_FAILED",
            message=f"Cannot cast column '{column}' value {value!r} to {cast}{suffix}",
            metadata={"column": column, "cast": cast, "value": value, **kwargs.get("metadata", {})},
        )


# ============================================================================
# USAGE Faults
# ============================================================================

class UsageFault(Fault):
    """
    Programmer error in ORM usage.

    Raised immediately and never retried: unscoped mass update/delete,
    a BETWEEN pair of the wrong length, an unknown operator, and so on.
    """

    def __init__(self, operation: str, reason: str, **kwargs):
        super().__init__(
            code="ORM_USAGE_ERROR",
            message=f"Invalid use of {operation}: {reason}",
            domain=FaultDomain.USAGE,
            severity=Severity.ERROR,
            retryable=False,
            public=False,
            metadata={"operation": operation, "reason": reason, **kwargs.get("metadata", {})},
        )
