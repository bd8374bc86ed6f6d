"""
SQLite backend for conduit_db.

Used for:
    - local development
    - tests (":memory:" databases)
    - small single-process deployments

The connection is opened with ``isolation_level=None`` so the sqlite3
module never issues implicit BEGINs; the Connection drives BEGIN /
SAVEPOINT / COMMIT itself.
"""

from __future__ import annotations
from typing import Any
import sqlite3

from ..config import ConnectionConfig
from .backend_base import DBBackend


class SQLiteBackend(DBBackend):
    """
    Minimal SQLite backend.

    Parameters
    ----------
    config : ConnectionConfig
        ``database`` is the file path or ":memory:".
    """

    driver = "sqlite"
    paramstyle = "qmark"

    def __init__(self, config: ConnectionConfig):
        self.config = config

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """
        Open a SQLite3 connection with row_factory=dict-like access.

        Foreign keys are enforced unless the config turns them off.
        """
        conn = sqlite3.connect(
            str(self.config.database),
            isolation_level=None,
            **self.config.options,
        )
        conn.row_factory = sqlite3.Row

        if self.config.foreign_key_constraints:
            conn.execute("PRAGMA foreign_keys = ON;")

        return conn
