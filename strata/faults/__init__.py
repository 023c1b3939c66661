"""
StrataFaults - structured fault handling for the migration engine.

Failures in Strata are typed fault signals rather than bare exceptions:
each carries a stable code, a domain and a severity so the CLI and callers
can decide what to surface and what (if anything) to retry.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain taxonomy
- Severity: Severity levels
- Domain faults (see ``faults.domains``)
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    ConfigFault,
    ConfigInvalidFault,
    MigrationFault,
    CircularDependencyFault,
    MissingDependencyFault,
    NotReversibleFault,
    MigrationNotFoundFault,
    SchemaFault,
    InvalidStateFault,
    SchemaMismatchFault,
    DatabaseFault,
    DatabaseConnectionFault,
    QueryFault,
    MigrationFileFault,
    MigrationLoadFault,
    MigrationExistsFault,
    MigrationsDirNotFoundFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # Config
    "ConfigFault",
    "ConfigInvalidFault",

    # Migration graph / lifecycle
    "MigrationFault",
    "CircularDependencyFault",
    "MissingDependencyFault",
    "NotReversibleFault",
    "MigrationNotFoundFault",

    # Schema
    "SchemaFault",
    "InvalidStateFault",
    "SchemaMismatchFault",

    # Database
    "DatabaseFault",
    "DatabaseConnectionFault",
    "QueryFault",

    # Files
    "MigrationFileFault",
    "MigrationLoadFault",
    "MigrationExistsFault",
    "MigrationsDirNotFoundFault",
]
