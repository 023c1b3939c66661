"""
StrataFaults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- MIGRATION faults (dependency graph, reversibility, history)
- SCHEMA faults (state replay, snapshots)
- DATABASE faults (connection, statement execution)
- IO faults (migration files)
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
# MIGRATION Faults
# ============================================================================

class MigrationFault(Fault):
    """Base class for migration graph and lifecycle faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.MIGRATION,
            severity=severity,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class CircularDependencyFault(MigrationFault):
    """The declared dependencies contain a cycle."""

    def __init__(self, remaining: list[str], **kwargs):
        super().__init__(
            code="CIRCULAR_DEPENDENCY",
            message=f"Circular dependency detected among migrations: {', '.join(remaining)}",
            severity=Severity.FATAL,
            metadata={"remaining": remaining, **kwargs.get("metadata", {})},
        )


class MissingDependencyFault(MigrationFault):
    """A migration depends on one that is unknown or not applied."""

    def __init__(self, migration: str, dependency: str, **kwargs):
        super().__init__(
            code="MISSING_DEPENDENCY",
            message=f"Migration '{migration}' depends on '{dependency}', which is not available",
            metadata={"migration": migration, "dependency": dependency, **kwargs.get("metadata", {})},
        )
        self.migration = migration
        self.dependency = dependency


class NotReversibleFault(MigrationFault):
    """Rollback requested for a migration without reversal information."""

    def __init__(self, migration: str, **kwargs):
        super().__init__(
            code="NOT_REVERSIBLE",
            message=f"Migration '{migration}' is not reversible",
            metadata={"migration": migration, **kwargs.get("metadata", {})},
        )
        self.migration = migration


class MigrationNotFoundFault(MigrationFault):
    """A migration was expected in the history or on disk but is absent."""

    def __init__(self, app: str, name: str, **kwargs):
        super().__init__(
            code="MIGRATION_NOT_FOUND",
            message=f"Migration not found: {app}/{name}",
            metadata={"app": app, "name": name, **kwargs.get("metadata", {})},
        )


# ============================================================================
# SCHEMA Faults
# ============================================================================

class SchemaFault(Fault):
    """Base class for schema state and snapshot faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.SCHEMA,
            severity=severity,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class InvalidStateFault(SchemaFault):
    """Replaying an operation hit an inconsistent schema state."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            code="INVALID_STATE",
            message=f"Invalid schema state: {reason}",
            metadata={"reason": reason, **kwargs.get("metadata", {})},
        )


class SchemaMismatchFault(SchemaFault):
    """A stored schema snapshot does not match what was expected."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            code="SCHEMA_MISMATCH",
            message=f"Schema mismatch: {reason}",
            metadata={"reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# DATABASE Faults
# ============================================================================

class DatabaseFault(Fault):
    """Base class for faults raised by the execution layer."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        retryable: bool = True,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.DATABASE,
            severity=severity,
            retryable=retryable,
            public=False,
            metadata=metadata,
        )


class DatabaseConnectionFault(DatabaseFault):
    """Database connection failed."""

    def __init__(self, url: str, reason: str, **kwargs):
        super().__init__(
            code="DB_CONNECTION_FAILED",
            message=f"Database connection failed ({url}): {reason}",
            severity=Severity.FATAL,
            metadata={"url": url, "reason": reason, **kwargs.get("metadata", {})},
        )


class QueryFault(DatabaseFault):
    """Statement execution failed."""

    def __init__(self, operation: str, reason: str, **kwargs):
        super().__init__(
            code="QUERY_FAILED",
            message=f"Statement failed ({operation}): {reason}",
            metadata={"operation": operation, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# IO Faults
# ============================================================================

class MigrationFileFault(Fault):
    """Base class for migration file faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.IO,
            retryable=False,
            metadata=metadata,
        )


class MigrationLoadFault(MigrationFileFault):
    """A migration file could not be imported or is malformed."""

    def __init__(self, path: str, reason: str, **kwargs):
        super().__init__(
            code="MIGRATION_LOAD_FAILED",
            message=f"Cannot load migration '{path}': {reason}",
            metadata={"path": path, "reason": reason, **kwargs.get("metadata", {})},
        )


class MigrationExistsFault(MigrationFileFault):
    """Refusing to overwrite an existing migration file."""

    def __init__(self, path: str, **kwargs):
        super().__init__(
            code="MIGRATION_EXISTS",
            message=f"Migration file already exists: {path}",
            metadata={"path": path, **kwargs.get("metadata", {})},
        )


class MigrationsDirNotFoundFault(MigrationFileFault):
    """The configured migrations directory does not exist."""

    def __init__(self, path: str, **kwargs):
        super().__init__(
            code="MIGRATIONS_DIR_NOT_FOUND",
            message=f"Migrations directory not found: {path}",
            metadata={"path": path, **kwargs.get("metadata", {})},
        )
