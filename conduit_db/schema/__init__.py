"""
conduit_db.schema

Schema definition and migrations.

- Table definition:
      * Blueprint, ColumnDefinition, ForeignKeyDefinition, Command
      * SchemaBuilder  (runs Blueprints on a Connection)

- Migrations:
      * Migration, load_migration
      * MigrationRepository, MigrationRecord
      * Migrator, MigratorState, MigrationStatus, MigrationPreview

- Advisory analysis:
      * SqlAnalyzer, RiskLevel, StatementAnalysis, BatchAnalysis
"""

from .blueprint import Blueprint, ColumnDefinition, Command, ForeignKeyDefinition
from .builder import SchemaBuilder
from .migration import Migration, load_migration
from .repository import MigrationRecord, MigrationRepository
from .migrator import MigrationPreview, MigrationStatus, Migrator, MigratorState
from .analyzer import BatchAnalysis, RiskLevel, SqlAnalyzer, StatementAnalysis

__all__ = [
    "Blueprint",
    "ColumnDefinition",
    "Command",
    "ForeignKeyDefinition",
    "SchemaBuilder",
    "Migration",
    "load_migration",
    "MigrationRecord",
    "MigrationRepository",
    "Migrator",
    "MigratorState",
    "MigrationStatus",
    "MigrationPreview",
    "SqlAnalyzer",
    "RiskLevel",
    "StatementAnalysis",
    "BatchAnalysis",
]
