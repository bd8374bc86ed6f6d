"""
conduit_db.db

Database connection layer for conduit_db.

This package provides:

- The connection abstraction:
      * Connection         (lazy handle, execution, nested transactions)
      * ConnectionFactory  (named, cached connections)
      * QueryLogEntry

- Helper functions for safe SQL execution and row mapping:
      * safe_execute
      * safe_fetch_all
      * safe_fetch_one
      * row_to_dict
      * translate_placeholders

- Concrete driver backends:
      * SQLiteBackend   (sqlite3, local development + tests)
      * PostgresBackend (psycopg2)
      * MySQLBackend    (PyMySQL)

- Backend contracts:
      * DBBackend
      * BackendLike
      * ensure_backend
"""

from .connection import Connection, ConnectionFactory, QueryLogEntry, create_backend
from .sqlite_backend import SQLiteBackend
from .postgres_backend import PostgresBackend
from .mysql_backend import MySQLBackend
from .backend_base import DBBackend, BackendLike, ensure_backend
from .helpers import (
    safe_execute,
    safe_fetch_all,
    safe_fetch_one,
    row_to_dict,
    translate_placeholders,
)

__all__ = [
    # Connection
    "Connection",
    "ConnectionFactory",
    "QueryLogEntry",
    "create_backend",

    # Backends
    "SQLiteBackend",
    "PostgresBackend",
    "MySQLBackend",
    "DBBackend",
    "BackendLike",
    "ensure_backend",

    # Helpers
    "safe_execute",
    "safe_fetch_all",
    "safe_fetch_one",
    "row_to_dict",
    "translate_placeholders",
]
