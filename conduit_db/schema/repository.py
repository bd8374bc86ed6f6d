"""
Migration repository.

Tracks which migration units have been applied, and in which batch, in a
dedicated table:

    id           auto-increment
    migration    unique text (file stem, sorts by creation time)
    batch        integer, one per Migrator.run()
    executed_at  timestamp, default now

Records are only ever inserted (log) or deleted (delete); never updated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from .blueprint import Blueprint
from .builder import SchemaBuilder

if TYPE_CHECKING:
    from ..db.connection import Connection
    from ..query.builder import QueryBuilder

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Record
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class MigrationRecord:
    migration: str
    batch: int
    executed_at: Optional[str] = None


# ----------------------------------------------------------------------
# Repository
# ----------------------------------------------------------------------

class MigrationRepository:
    """
    DB-backed migration registry.

    Parameters
    ----------
    connection:
        Connection holding the repository table.
    table:
        Repository table name (unprefixed).
    """

    def __init__(self, connection: "Connection", table: str = "migrations"):
        self.connection = connection
        self.table = table
        self.schema = SchemaBuilder(connection)

    def _query(self) -> "QueryBuilder":
        return self.connection.table(self.table)

    # ------------------------------------------------------------------
    # Table lifecycle
    # ------------------------------------------------------------------

    def create_repository(self) -> None:
        def columns(table: Blueprint) -> None:
            table.increments("id")
            table.string("migration").unique()
            table.integer("batch")
            table.timestamp("executed_at").use_current()

        self.schema.create(self.table, columns)
        logger.info("Created migration repository table [%s]", self.table)

    def repository_exists(self) -> bool:
        return self.schema.has_table(self.table)

    def delete_repository(self) -> None:
        self.schema.drop_if_exists(self.table)
        logger.info("Dropped migration repository table [%s]", self.table)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_ran(self) -> List[str]:
        """Applied migration ids, in name order."""
        return self._query().order_by("migration").pluck("migration").all()

    def get_records(self) -> List[MigrationRecord]:
        rows = self._query().order_by("batch").order_by("migration").get()
        return [self._row_to_rec(r) for r in rows]

    def get_migration_batches(self) -> Dict[int, List[str]]:
        batches: Dict[int, List[str]] = {}
        for rec in self.get_records():
            batches.setdefault(rec.batch, []).append(rec.migration)
        return batches

    def get_last_batch_number(self) -> int:
        value = self._query().max("batch")
        return int(value) if value is not None else 0

    def get_next_batch_number(self) -> int:
        return self.get_last_batch_number() + 1

    def get_last_batch(self) -> List[str]:
        """Members of the newest batch, in descending name order."""
        return (
            self._query()
            .where("batch", self.get_last_batch_number())
            .order_by("migration", "desc")
            .pluck("migration")
            .all()
        )

    def has_run(self, migration: str) -> bool:
        return self._query().where("migration", migration).exists()

    def get_migrations(self, path: Union[str, Path]) -> List[str]:
        """
        Migration ids found on disk: ``*.py`` stems in ``path``, sorted
        lexicographically. Files starting with ``_`` are skipped.
        """
        directory = Path(path)
        if not directory.is_dir():
            return []
        return sorted(
            p.stem for p in directory.glob("*.py") if not p.name.startswith("_")
        )

    def get_pending(self, path: Union[str, Path]) -> List[str]:
        ran = set(self.get_ran()) if self.repository_exists() else set()
        return [m for m in self.get_migrations(path) if m not in ran]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def log(self, migration: str, batch: int) -> None:
        self._query().insert({"migration": migration, "batch": batch})

    def delete(self, migration: str) -> None:
        self._query().where("migration", migration).delete()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_rec(row: Dict[str, Any]) -> MigrationRecord:
        executed_at = row.get("executed_at")
        return MigrationRecord(
            migration=row["migration"],
            batch=int(row["batch"]),
            executed_at=str(executed_at) if executed_at is not None else None,
        )
