from __future__ import annotations

"""
Core façade for conduit_db.

ConduitDB is the single, high-level entrypoint used by application code
(controllers, CLI commands, scripts) that needs:

    - named connections built from configuration,
    - the schema builder for the default connection,
    - the migration repository + migrator.

It wraps:

    - DatabaseConfig
    - ConnectionFactory (cached, named Connection objects)
    - MigrationRepository / Migrator for the default connection

Every component underneath receives its Connection explicitly; the façade
only does the wiring.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .config import DatabaseConfig, load_config
from .db import Connection, ConnectionFactory
from .query.builder import QueryBuilder
from .schema import MigrationRepository, Migrator, SchemaBuilder

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ConduitDB façade
# ---------------------------------------------------------------------------

@dataclass
class ConduitDB:
    """
    High-level façade over the persistence engine.

    One instance per process (or per service). Connections it hands out
    are single-threaded: use one per worker.

    Attributes
    ----------
    config:
        DatabaseConfig used to construct this instance.

    factory:
        ConnectionFactory resolving named connections on demand.

    output:
        Optional callback receiving Migrator progress messages.
    """

    config: DatabaseConfig
    factory: ConnectionFactory
    output: Optional[Callable[[str], None]] = None
    _migrators: dict = field(default_factory=dict, repr=False)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: Optional[DatabaseConfig] = None,
        *,
        output: Optional[Callable[[str], None]] = None,
    ) -> "ConduitDB":
        """
        Construct a ConduitDB instance from a DatabaseConfig.

        No connection is opened here; handles are created lazily on first
        use.
        """
        cfg = config or load_config()

        if cfg.enable_logging:
            logging.basicConfig(level=logging.INFO)
            logger.info("Initializing ConduitDB with default connection: %s", cfg.default)

        return cls(config=cfg, factory=ConnectionFactory(cfg), output=output)

    @classmethod
    def from_env(cls, **kwargs) -> "ConduitDB":
        """Construct ConduitDB using environment variables."""
        return cls.from_config(load_config(), **kwargs)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def connection(self, name: Optional[str] = None) -> Connection:
        return self.factory.get(name)

    def table(self, table: str, connection: Optional[str] = None) -> QueryBuilder:
        return self.connection(connection).table(table)

    def schema(self, connection: Optional[str] = None) -> SchemaBuilder:
        return SchemaBuilder(self.connection(connection))

    def disconnect(self, name: Optional[str] = None) -> None:
        self.factory.disconnect(name)

    def close(self) -> None:
        """Disconnect every connection and forget cached migrators."""
        self.factory.purge()
        self._migrators.clear()

    # ------------------------------------------------------------------
    # Migrations
    # ------------------------------------------------------------------

    def repository(self, connection: Optional[str] = None) -> MigrationRepository:
        return MigrationRepository(
            self.connection(connection), table=self.config.migrations_table
        )

    def migrator(self, connection: Optional[str] = None) -> Migrator:
        key = connection or self.config.default
        if key not in self._migrators:
            self._migrators[key] = Migrator(
                self.connection(connection),
                path=self.config.migrations_path,
                repository=self.repository(connection),
                output=self.output,
            )
        return self._migrators[key]

    def migrate(self, connection: Optional[str] = None) -> List[str]:
        return self.migrator(connection).run()

    def rollback(self, steps: int = 1, connection: Optional[str] = None) -> List[str]:
        return self.migrator(connection).rollback(steps)


# ---------------------------------------------------------------------------
# Convenience
# ---------------------------------------------------------------------------

def create_conduit_db(
    config: Optional[DatabaseConfig] = None,
    *,
    output: Optional[Callable[[str], None]] = None,
) -> ConduitDB:
    """
    Convenience constructor used by services / scripts.
    """
    return ConduitDB.from_config(config, output=output)


__all__ = [
    "ConduitDB",
    "create_conduit_db",
]
