"""
Configuration settings for conduit_db.

This module centralizes configuration for:

    - named database connections (driver, host, credentials, prefix)
    - the runtime environment (drives the raw-SQL guard)
    - migration discovery (directory + repository table)
    - feature flags (logging)

It provides:
    ConnectionConfig  – one named connection
    DatabaseConfig    – the full set of connections + migration settings
    load_config()     – load from environment variables or defaults
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any, Dict, Mapping, Optional

from .exceptions import DatabaseConnectionError


SUPPORTED_DRIVERS = ("mysql", "pgsql", "sqlite")

DEFAULT_PORTS = {
    "mysql": 3306,
    "pgsql": 5432,
}

# Keys that must be present (and non-empty) per driver.
REQUIRED_KEYS = {
    "mysql": ("host", "database", "username"),
    "pgsql": ("host", "database", "username"),
    "sqlite": ("database",),
}


def _env_flag(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ConnectionConfig:
    """
    Settings for one database connection.

    Attributes
    ----------
    driver:
        Dialect tag: "mysql", "pgsql" or "sqlite".

    database:
        - For SQLite: path to the .db file, or ":memory:".
        - For MySQL / Postgres: the database name.

    host, port, username, password:
        Network credentials (ignored by SQLite). ``port`` defaults to the
        driver's standard port when left as None.

    prefix:
        Table-name prefix applied by the grammar to every wrapped table.

    charset:
        Connection charset (MySQL only).

    options:
        Extra keyword arguments handed straight to the driver's connect().

    foreign_key_constraints:
        SQLite only – run ``PRAGMA foreign_keys = ON`` after connecting.

    environment:
        "production", "testing", "local", ... Controls the raw-SQL guard.

    allow_raw_sql:
        Unlocks QueryBuilder.raw() in production.
    """

    driver: str = "sqlite"
    database: str = ":memory:"
    host: str = "127.0.0.1"
    port: Optional[int] = None
    username: str = ""
    password: str = ""
    prefix: str = ""
    charset: str = "utf8mb4"
    options: Dict[str, Any] = field(default_factory=dict)
    foreign_key_constraints: bool = True
    environment: str = "production"
    allow_raw_sql: bool = False

    def __post_init__(self) -> None:
        if self.port is None:
            self.port = DEFAULT_PORTS.get(self.driver)

    def validate(self) -> None:
        """
        Check the driver tag and driver-specific required keys.

        Raises
        ------
        DatabaseConnectionError
            Unknown driver or missing required key.
        """
        if self.driver not in SUPPORTED_DRIVERS:
            raise DatabaseConnectionError(
                f"Unsupported database driver [{self.driver}]. "
                f"Expected one of {', '.join(SUPPORTED_DRIVERS)}."
            )
        for key in REQUIRED_KEYS[self.driver]:
            if not getattr(self, key):
                raise DatabaseConnectionError(
                    f"Missing required config key [{key}] for driver [{self.driver}]."
                )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConnectionConfig":
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = set(cls.__dataclass_fields__)
        kwargs = {k: v for k, v in data.items() if k in known}
        if kwargs.get("port") is not None:
            kwargs["port"] = int(kwargs["port"])
        return cls(**kwargs)


@dataclass
class DatabaseConfig:
    """
    Canonical configuration for the conduit_db subsystem.

    Attributes
    ----------
    default:
        Name of the connection used when none is requested explicitly.

    connections:
        Named ConnectionConfig objects.

    migrations_table:
        Name of the migration repository table.

    migrations_path:
        Directory the Migrator scans for migration files.

    enable_logging:
        Whether to configure basic INFO logging on façade construction.
    """

    default: str = "sqlite"
    connections: Dict[str, ConnectionConfig] = field(default_factory=dict)
    migrations_table: str = "migrations"
    migrations_path: str = "./migrations"
    enable_logging: bool = False

    def connection(self, name: Optional[str] = None) -> ConnectionConfig:
        name = name or self.default
        try:
            return self.connections[name]
        except KeyError:
            raise DatabaseConnectionError(
                f"Database connection [{name}] not configured."
            ) from None


def load_config() -> DatabaseConfig:
    """
    Load DatabaseConfig from environment variables, falling back to defaults.

    Recognized variables:
        DB_CONNECTION              (sqlite|mysql|pgsql)
        DB_HOST, DB_PORT
        DB_DATABASE                (name, or file path for sqlite)
        DB_USERNAME, DB_PASSWORD
        DB_PREFIX                  (table-name prefix)
        APP_ENV                    (production|testing|local|...)
        ALLOW_RAW_SQL              ("true" / "false" / "1" / "0")
        DB_MIGRATIONS_TABLE
        DB_MIGRATIONS_PATH
        CONDUIT_DB_ENABLE_LOGGING  ("true" / "false" / "1" / "0")

    Returns
    -------
    DatabaseConfig
        With a single connection named after the driver.
    """
    driver = os.getenv("DB_CONNECTION", "sqlite")
    port = os.getenv("DB_PORT")

    conn = ConnectionConfig(
        driver=driver,
        host=os.getenv("DB_HOST", "127.0.0.1"),
        port=int(port) if port else None,
        database=os.getenv(
            "DB_DATABASE",
            "conduit.db" if driver == "sqlite" else "conduit"
        ),
        username=os.getenv("DB_USERNAME", "root" if driver == "mysql" else ""),
        password=os.getenv("DB_PASSWORD", ""),
        prefix=os.getenv("DB_PREFIX", ""),
        environment=os.getenv("APP_ENV", "production"),
        allow_raw_sql=_env_flag("ALLOW_RAW_SQL", default=False),
    )

    return DatabaseConfig(
        default=driver,
        connections={driver: conn},
        migrations_table=os.getenv("DB_MIGRATIONS_TABLE", "migrations"),
        migrations_path=os.getenv("DB_MIGRATIONS_PATH", "./migrations"),
        enable_logging=_env_flag(
            "CONDUIT_DB_ENABLE_LOGGING",
            default=False
        ),
    )
