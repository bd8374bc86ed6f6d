"""
Migration engine.

State machine:

    UNINITIALIZED  no repository table yet
    READY          repository table exists, nothing running
    APPLYING       one migration unit is running inside its transaction

Each unit (``up`` + its repository record, or ``down`` + record removal)
runs in its own transaction. A failing unit is rolled back and surfaces
as MigrationError naming it; units already committed in the same run
stay applied. MySQL commits DDL implicitly, so there a failed unit may
leave its earlier schema statements in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Union

from ..exceptions import MigrationError
from .analyzer import BatchAnalysis, SqlAnalyzer
from .migration import Migration, load_migration
from .repository import MigrationRepository

if TYPE_CHECKING:
    from ..db.connection import Connection

logger = logging.getLogger(__name__)


class MigratorState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    APPLYING = "applying"


@dataclass(frozen=True)
class MigrationStatus:
    name: str
    batch: Optional[int]
    ran: bool


@dataclass(frozen=True)
class MigrationPreview:
    migration: str
    statements: List[str]
    analysis: BatchAnalysis


class Migrator:
    """
    Applies and reverses migration files found in ``path``.

    Parameters
    ----------
    connection:
        Connection migrations run on.
    path:
        Directory holding ``*.py`` migration files.
    repository:
        Optional MigrationRepository; defaults to one on ``connection``
        using the ``migrations`` table.
    output:
        Optional callback receiving progress messages (CLI use). Messages
        are always logged at INFO as well.
    """

    MAX_RESET_STEPS = 1000

    def __init__(
        self,
        connection: "Connection",
        path: Union[str, Path] = "./migrations",
        repository: Optional[MigrationRepository] = None,
        output: Optional[Callable[[str], None]] = None,
    ):
        self.connection = connection
        self.path = Path(path)
        self.repository = repository or MigrationRepository(connection)
        self.output = output
        self._applying = False

    # ------------------------------------------------------------------
    # State / helpers
    # ------------------------------------------------------------------

    @property
    def state(self) -> MigratorState:
        if self._applying:
            return MigratorState.APPLYING
        if self.repository.repository_exists():
            return MigratorState.READY
        return MigratorState.UNINITIALIZED

    def set_output(self, callback: Optional[Callable[[str], None]]) -> None:
        self.output = callback

    def note(self, message: str) -> None:
        logger.info(message)
        if self.output is not None:
            self.output(message)

    def resolve(self, name: str) -> Migration:
        """Instantiate the Migration defined in ``<path>/<name>.py``."""
        file = self.path / f"{name}.py"
        if not file.is_file():
            raise MigrationError(f"Migration file not found: {file}", migration=name)
        return load_migration(file)(self.connection)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def run(self) -> List[str]:
        """
        Apply every pending migration as one new batch.

        Returns the ids applied, in order.
        """
        if not self.repository.repository_exists():
            self.repository.create_repository()
            self.note("Migration table created successfully.")

        pending = self.repository.get_pending(self.path)
        if not pending:
            self.note("Nothing to migrate.")
            return []

        batch = self.repository.get_next_batch_number()
        self.note(f"Running batch #{batch}...")

        ran: List[str] = []
        for name in pending:
            self._run_up(name, batch)
            ran.append(name)
            self.note(f"Migrated: {name}")
        return ran

    def _run_up(self, name: str, batch: int) -> None:
        migration = self.resolve(name)

        def unit(_conn) -> None:
            migration.up()
            self.repository.log(name, batch)

        self._apply(name, unit, "Migration failed")

    def _apply(self, name: str, unit, failure: str) -> None:
        self._applying = True
        try:
            self.connection.transaction(unit)
        except Exception as e:
            raise MigrationError(f"{failure}: {name}\nError: {e}", migration=name) from e
        finally:
            self._applying = False

    # ------------------------------------------------------------------
    # Reverse
    # ------------------------------------------------------------------

    def rollback(self, steps: int = 1) -> List[str]:
        """
        Reverse the last ``steps`` batches, newest first.

        Returns the ids rolled back, in the order they were reversed.
        """
        if not self.repository.repository_exists():
            self.note("Nothing to rollback.")
            return []

        rolled: List[str] = []
        for _ in range(steps):
            if not self._rollback_last_batch(rolled):
                self.note("Nothing to rollback.")
                break
        return rolled

    def _rollback_last_batch(self, rolled: List[str]) -> bool:
        migrations = self.repository.get_last_batch()
        if not migrations:
            return False

        self.note(f"Rolling back batch #{self.repository.get_last_batch_number()}...")
        for name in migrations:
            self._run_down(name)
            rolled.append(name)
            self.note(f"Rolled back: {name}")
        return True

    def _run_down(self, name: str) -> None:
        migration = self.resolve(name)

        def unit(_conn) -> None:
            migration.down()
            self.repository.delete(name)

        self._apply(name, unit, "Rollback failed")

    def reset(self) -> List[str]:
        """
        Reverse every batch.

        Raises
        ------
        MigrationError
            More than MAX_RESET_STEPS batches were rolled back.
        """
        if not self.repository.repository_exists():
            self.note("Migration table does not exist.")
            return []

        self.note("Rolling back all migrations...")
        rolled: List[str] = []
        steps = 0
        while self._rollback_last_batch(rolled):
            steps += 1
            if steps >= self.MAX_RESET_STEPS:
                raise MigrationError("Too many rollback steps. Possible infinite loop.")
        return rolled

    def fresh(self) -> List[str]:
        """Reset, drop the repository table, then run everything."""
        self.reset()
        if self.repository.repository_exists():
            self.repository.delete_repository()
            self.note("Migration table dropped.")

        self.note("Running all migrations...")
        return self.run()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def status(self) -> List[MigrationStatus]:
        on_disk = self.repository.get_migrations(self.path)
        if not self.repository.repository_exists():
            return [MigrationStatus(name, None, False) for name in on_disk]

        batches = {rec.migration: rec.batch for rec in self.repository.get_records()}
        return [
            MigrationStatus(name, batches.get(name), name in batches)
            for name in on_disk
        ]

    def pending_count(self) -> int:
        return len(self.repository.get_pending(self.path))

    def preview(self) -> List[MigrationPreview]:
        """
        Compile every pending migration's ``up()`` without executing it,
        and run the risk analyzer over the statements.
        """
        previews: List[MigrationPreview] = []
        for name in self.repository.get_pending(self.path):
            migration = self.resolve(name)
            entries = self.connection.pretend(lambda _conn: migration.up())
            statements = [e.sql for e in entries]
            previews.append(
                MigrationPreview(name, statements, SqlAnalyzer.analyze_batch(statements))
            )
        return previews
