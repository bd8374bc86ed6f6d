"""
conduit_db

Top-level package initializer for the conduit_db persistence engine.

This module does not contain any logic.
It re-exports the objects application code reaches for most often.

Submodules include:
    - db/        (connections, driver backends, execution helpers)
    - grammar/   (MySQL / PostgreSQL / SQLite SQL compilers)
    - query/     (fluent QueryBuilder)
    - schema/    (Blueprint, SchemaBuilder, migrations, SQL analyzer)
    - orm/       (Model, relations, persistence policies)
    - utils/     (naming helpers)
"""

from .collection import Collection
from .config import ConnectionConfig, DatabaseConfig, load_config
from .core import ConduitDB, create_conduit_db
from .db import Connection, ConnectionFactory
from .exceptions import (
    DatabaseConnectionError,
    DatabaseException,
    GrammarError,
    MigrationError,
    ModelError,
    ModelNotFoundException,
    QueryError,
    RawQueryDisabledError,
    TransactionError,
    UnsupportedColumnTypeError,
)
from .orm import BelongsTo, BelongsToMany, HasMany, HasOne, Model, ModelEvents, SoftDeletes, Timestamps
from .query import Expression, QueryBuilder
from .schema import Blueprint, Migration, Migrator, SchemaBuilder, SqlAnalyzer

__all__ = [
    "Collection",
    "ConnectionConfig",
    "DatabaseConfig",
    "load_config",
    "ConduitDB",
    "create_conduit_db",
    "Connection",
    "ConnectionFactory",
    "DatabaseException",
    "DatabaseConnectionError",
    "QueryError",
    "TransactionError",
    "ModelNotFoundException",
    "ModelError",
    "MigrationError",
    "GrammarError",
    "UnsupportedColumnTypeError",
    "RawQueryDisabledError",
    "Model",
    "HasOne",
    "HasMany",
    "BelongsTo",
    "BelongsToMany",
    "Timestamps",
    "SoftDeletes",
    "ModelEvents",
    "Expression",
    "QueryBuilder",
    "Blueprint",
    "SchemaBuilder",
    "Migration",
    "Migrator",
    "SqlAnalyzer",
]
