"""
Connection abstraction for conduit_db.

This file defines:
- Connection: owns one lazily-opened database handle, executes
  parameterized statements, and emulates nested transactions with
  savepoints
- ConnectionFactory: builds and caches one Connection per configured name

Backends must expose (see backend_base):
    backend.connect() -> raw connection (autocommit)
    backend.helpers   -> module with safe_execute, safe_fetch_all, ...
    backend.paramstyle, backend.last_insert_id(cursor)

A Connection is single-threaded: one logical thread of control owns the
handle and the transaction depth counter.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from ..config import ConnectionConfig, DatabaseConfig
from ..exceptions import (
    DatabaseConnectionError,
    DatabaseException,
    TransactionError,
)
from ..grammar import Grammar, grammar_for
from ..query.builder import QueryBuilder
from .backend_base import DBBackend, ensure_backend
from .mysql_backend import MySQLBackend
from .postgres_backend import PostgresBackend
from .sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKENDS = {
    "sqlite": SQLiteBackend,
    "pgsql": PostgresBackend,
    "mysql": MySQLBackend,
}


def create_backend(config: ConnectionConfig) -> DBBackend:
    try:
        backend_cls = BACKENDS[config.driver]
    except KeyError:
        raise DatabaseConnectionError(
            f"Unsupported database driver [{config.driver}]."
        ) from None
    return backend_cls(config)


@dataclass(frozen=True)
class QueryLogEntry:
    sql: str
    bindings: tuple
    time_ms: float


# ----------------------------------------------------------------------
# Connection
# ----------------------------------------------------------------------

class Connection:
    """
    One database handle plus its transaction nesting state.

    Responsibilities:
        - Lazily open the handle on first use
        - Execute parameterized statements, returning dict rows
        - Track transaction depth: BEGIN at depth 0, SAVEPOINT beyond
        - Optionally log statements (query log) or only collect them
          without executing (pretend mode)

    Parameters
    ----------
    config:
        ConnectionConfig for this handle. Validated on construction.
    backend:
        Optional backend override; defaults to the backend registered for
        ``config.driver``.
    name:
        Name this connection was configured under.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        backend: Optional[Any] = None,
        *,
        name: Optional[str] = None,
    ):
        config.validate()
        self.config = config
        self.name = name or config.driver
        self.backend = ensure_backend(backend or create_backend(config))
        self.grammar: Grammar = grammar_for(config.driver, config.prefix)

        self._raw: Any = None
        self._transactions = 0

        self._logging_queries = False
        self._query_log: List[QueryLogEntry] = []
        self._pretending = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def driver_name(self) -> str:
        return self.config.driver

    @property
    def database_name(self) -> str:
        return self.config.database

    @property
    def table_prefix(self) -> str:
        return self.config.prefix

    @property
    def environment(self) -> str:
        return self.config.environment

    @property
    def transaction_level(self) -> int:
        return self._transactions

    def get_grammar(self) -> Grammar:
        return self.grammar

    # ------------------------------------------------------------------
    # Handle lifecycle
    # ------------------------------------------------------------------

    def get_handle(self) -> Any:
        """Return the raw driver connection, opening it on first use."""
        if self._raw is None:
            self.connect()
        return self._raw

    def connect(self) -> None:
        try:
            self._raw = self.backend.connect()
        except DatabaseException:
            raise
        except Exception as e:
            raise DatabaseConnectionError(
                f"Could not connect to [{self.name}] ({self.driver_name}): {e}"
            ) from e
        logger.debug("Opened %s connection [%s]", self.driver_name, self.name)

    def disconnect(self) -> None:
        """
        Drop the handle and reset transaction depth to 0.

        An open transaction is abandoned; the driver rolls it back when
        the handle closes.
        """
        raw, self._raw = self._raw, None
        self._transactions = 0
        if raw is not None:
            try:
                raw.close()
            except Exception:
                logger.exception("Error closing %s connection [%s]", self.driver_name, self.name)

    def reconnect(self) -> None:
        self.disconnect()
        self.connect()

    def is_connected(self) -> bool:
        return self._raw is not None

    # ------------------------------------------------------------------
    # SQL execution
    # ------------------------------------------------------------------

    def _run(self, sql: str, bindings: Sequence[Any], fn: Callable[[Any], T], default: T) -> T:
        """
        Run ``fn(raw_connection)``, timing and logging the statement.

        In pretend mode the statement is only recorded and ``default`` is
        returned without touching the handle.
        """
        bindings = tuple(bindings or ())

        if self._pretending:
            self._query_log.append(QueryLogEntry(sql, bindings, 0.0))
            return default

        raw = self.get_handle()
        start = time.perf_counter()
        result = fn(raw)
        elapsed = (time.perf_counter() - start) * 1000.0

        logger.debug("[%s] %.2fms %s %r", self.name, elapsed, sql, bindings)
        if self._logging_queries:
            self._query_log.append(QueryLogEntry(sql, bindings, elapsed))
        return result

    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> int:
        """
        Execute a statement and return the number of affected rows.

        Raises
        ------
        QueryError
            The driver rejected the statement.
        """
        h = self.backend.helpers

        def run(raw):
            cur = h.safe_execute(raw, sql, bindings, self.backend.paramstyle)
            return max(cur.rowcount, 0)

        return self._run(sql, bindings, run, 0)

    def statement(self, sql: str, bindings: Sequence[Any] = ()) -> bool:
        """Execute a statement (typically DDL) whose result is not needed."""
        h = self.backend.helpers

        def run(raw):
            h.safe_execute(raw, sql, bindings, self.backend.paramstyle)
            return True

        return self._run(sql, bindings, run, True)

    def query(self, sql: str, bindings: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """
        Execute a SELECT statement and return a list of dict rows.
        """
        h = self.backend.helpers

        def run(raw):
            rows = h.safe_fetch_all(raw, sql, bindings, self.backend.paramstyle)
            return [h.row_to_dict(r) for r in rows]

        return self._run(sql, bindings, run, [])

    def query_one(self, sql: str, bindings: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        """
        Execute a SELECT statement and return a single dict row or None.
        """
        h = self.backend.helpers

        def run(raw):
            row = h.safe_fetch_one(raw, sql, bindings, self.backend.paramstyle)
            return h.row_to_dict(row) if row is not None else None

        return self._run(sql, bindings, run, None)

    def insert(self, sql: str, bindings: Sequence[Any] = ()) -> Any:
        """
        Execute an INSERT and return the generated key.
        """
        h = self.backend.helpers

        def run(raw):
            cur = h.safe_execute(raw, sql, bindings, self.backend.paramstyle)
            return self.backend.last_insert_id(cur)

        return self._run(sql, bindings, run, None)

    def table(self, table: str) -> QueryBuilder:
        """Start a fluent query against ``table``."""
        return QueryBuilder(self).from_(table)

    def schema(self):
        from ..schema.builder import SchemaBuilder

        return SchemaBuilder(self)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _transaction_statement(self, sql: str, action: str) -> None:
        try:
            self.statement(sql)
        except DatabaseException as e:
            raise TransactionError(
                f"Failed to {action} transaction: {e}", sql=sql
            ) from e

    def begin_transaction(self) -> bool:
        """
        Start a transaction, or a savepoint when one is already open.

        Depth is only incremented once the statement succeeded.
        """
        if self._transactions == 0:
            self._transaction_statement(self.grammar.compile_begin(), "begin")
        else:
            self._transaction_statement(
                self.grammar.compile_savepoint(f"trans{self._transactions}"),
                "begin",
            )
        self._transactions += 1
        logger.debug("[%s] transaction level -> %d", self.name, self._transactions)
        return True

    def commit(self) -> bool:
        """
        Commit the innermost transaction level.

        Returns False (and issues nothing) when no transaction is open.
        Depth only drops once COMMIT / RELEASE succeeded, so a failed
        commit leaves the level open for the caller to roll back.
        """
        if self._transactions == 0:
            return False

        if self._transactions == 1:
            self._transaction_statement(self.grammar.compile_commit(), "commit")
        else:
            self._transaction_statement(
                self.grammar.compile_release_savepoint(f"trans{self._transactions - 1}"),
                "commit",
            )
        self._transactions -= 1
        logger.debug("[%s] transaction level -> %d", self.name, self._transactions)
        return True

    def rollback(self) -> bool:
        """
        Roll back the innermost transaction level.

        Returns False (and issues nothing) when no transaction is open.
        A failed outermost ROLLBACK still resets depth to 0: the driver
        has either discarded the transaction or lost the handle.
        """
        if self._transactions == 0:
            return False

        if self._transactions == 1:
            try:
                self._transaction_statement(self.grammar.compile_rollback(), "rollback")
            finally:
                self._transactions = 0
        else:
            self._transaction_statement(
                self.grammar.compile_rollback_to_savepoint(f"trans{self._transactions - 1}"),
                "rollback",
            )
            self._transactions -= 1
        logger.debug("[%s] transaction level -> %d", self.name, self._transactions)
        return True

    def in_transaction(self) -> bool:
        return self._transactions > 0

    def transaction(self, callback: Callable[["Connection"], T]) -> T:
        """
        Run ``callback(connection)`` inside a transaction.

        Nested calls become savepoints. Any exception, including a failed
        COMMIT / RELEASE, rolls back the current level and is re-raised
        unchanged.
        """
        self.begin_transaction()
        try:
            result = callback(self)
            self.commit()
        except BaseException:
            self._rollback_after_failure()
            raise
        return result

    def _rollback_after_failure(self) -> None:
        try:
            self.rollback()
        except TransactionError:
            logger.exception("[%s] rollback after failed transaction also failed", self.name)

    # ------------------------------------------------------------------
    # Query log / pretend mode
    # ------------------------------------------------------------------

    def enable_query_log(self) -> None:
        self._logging_queries = True

    def disable_query_log(self) -> None:
        self._logging_queries = False

    @property
    def query_log(self) -> List[QueryLogEntry]:
        return list(self._query_log)

    def get_query_log(self) -> List[QueryLogEntry]:
        return self.query_log

    def flush_query_log(self) -> None:
        self._query_log = []

    def pretend(self, callback: Callable[["Connection"], Any]) -> List[QueryLogEntry]:
        """
        Run ``callback`` collecting its statements instead of executing them.

        Returns the collected statements. Reads return empty results while
        pretending.
        """
        saved_log, saved_depth = self._query_log, self._transactions
        self._query_log = []
        self._pretending = True
        try:
            callback(self)
            return self._query_log
        finally:
            self._pretending = False
            self._query_log = saved_log
            self._transactions = saved_depth

    def is_pretending(self) -> bool:
        return self._pretending

    def __repr__(self) -> str:
        return f"Connection(name={self.name!r}, driver={self.driver_name!r})"


# ----------------------------------------------------------------------
# Connection factory
# ----------------------------------------------------------------------

class ConnectionFactory:
    """
    Builds Connections from a DatabaseConfig and caches one per name.

    The cache is in-process only; every name maps to a single Connection
    shared by its callers.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._connections: Dict[str, Connection] = {}

    def get(self, name: Optional[str] = None) -> Connection:
        """
        Return the cached Connection for ``name`` (default connection when
        omitted), creating it on first request.
        """
        name = name or self.config.default
        conn = self._connections.get(name)
        if conn is None:
            conn = Connection(self.config.connection(name), name=name)
            self._connections[name] = conn
        return conn

    def make(self, config: ConnectionConfig, name: Optional[str] = None) -> Connection:
        """Build an uncached Connection."""
        return Connection(config, name=name)

    def disconnect(self, name: Optional[str] = None) -> None:
        conn = self._connections.get(name or self.config.default)
        if conn is not None:
            conn.disconnect()

    def purge(self) -> None:
        """Disconnect and forget every cached connection."""
        for conn in self._connections.values():
            conn.disconnect()
        self._connections.clear()

    def connections(self) -> Dict[str, Connection]:
        return dict(self._connections)
