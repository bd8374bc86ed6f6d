"""
Postgres backend for conduit_db.

It provides:
    - connect()          (psycopg2, autocommit, RealDictCursor rows)
    - last_insert_id()   (reads the RETURNING row of insert-get-id)

psycopg2 uses the "format" paramstyle; the shared helpers translate the
grammar's ``?`` placeholders before execution.
"""

from __future__ import annotations
from typing import Any
try:
    import psycopg2  # type: ignore
    import psycopg2.extras  # type: ignore
except ImportError:
    psycopg2 = None


from ..config import ConnectionConfig
from ..exceptions import DatabaseConnectionError
from .backend_base import DBBackend


class PostgresBackend(DBBackend):
    """
    Minimal Postgres backend implementation.

    Parameters
    ----------
    config : ConnectionConfig
        host / port / database / username / password, plus any extra
        psycopg2.connect() keyword arguments under ``options``.
    """

    driver = "pgsql"
    paramstyle = "format"

    def __init__(self, config: ConnectionConfig):
        self.config = config

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def connect(self) -> Any:
        """
        Create a psycopg2 connection with dict-like row access.
        """
        if psycopg2 is None:
            raise DatabaseConnectionError(
                "The pgsql driver requires psycopg2 (pip install psycopg2-binary)."
            )

        conn = psycopg2.connect(
            host=self.config.host,
            port=self.config.port,
            dbname=self.config.database,
            user=self.config.username,
            password=self.config.password,
            cursor_factory=psycopg2.extras.RealDictCursor,
            **self.config.options,
        )
        conn.autocommit = True

        return conn

    def last_insert_id(self, cursor: Any) -> Any:
        """
        Postgres has no lastrowid; insert-get-id statements end with
        ``RETURNING "<key>"`` and the key is the first column of that row.
        """
        if cursor.description is None:
            return None
        row = cursor.fetchone()
        if row is None:
            return None
        return next(iter(self.helpers.row_to_dict(row).values()), None)
