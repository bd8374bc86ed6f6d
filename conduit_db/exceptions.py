"""
Error taxonomy for conduit_db.

Every error raised by the engine derives from DatabaseException so callers
(an HTTP layer, a CLI) can translate the whole family in one place.

    DatabaseException
        DatabaseConnectionError   – handle cannot be (re)established
        QueryError                – driver rejected a statement
        TransactionError          – begin/commit/rollback failed
        ModelNotFoundException    – find_or_fail / first_or_fail found nothing
        MigrationError            – a migration unit failed (wraps the cause)
        GrammarError              – compile-time failure, never retried
            UnsupportedColumnTypeError
        RawQueryDisabledError     – raw SQL guard tripped

Driver errors are always chained with ``raise ... from`` so the original
message and traceback stay available on ``__cause__``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class DatabaseException(Exception):
    """Base class for all conduit_db errors."""

    def __init__(
        self,
        message: str,
        *,
        sql: Optional[str] = None,
        bindings: Optional[Sequence[Any]] = None,
    ):
        super().__init__(message)
        self.sql = sql
        self.bindings = list(bindings) if bindings is not None else []

    def context(self) -> Dict[str, Any]:
        """Diagnostic payload suitable for structured logging."""
        return {
            "message": str(self),
            "sql": self.sql,
            "bindings": self.bindings,
        }


class DatabaseConnectionError(DatabaseException):
    pass


class QueryError(DatabaseException):
    """
    The driver rejected a statement.

    The message carries the driver error, the SQL text and the bindings,
    in the same shape the low-level helpers have always produced.
    """

    def __init__(self, driver_message: str, sql: str, bindings: Sequence[Any] = ()):
        self.driver_message = driver_message
        super().__init__(
            f"Query failed: {driver_message} | Query: {sql!r} | Params: {list(bindings)!r}",
            sql=sql,
            bindings=bindings,
        )


class TransactionError(DatabaseException):
    pass


class ModelNotFoundException(DatabaseException):
    def __init__(self, model: str, ids: Any = None):
        self.model = model
        self.ids = ids
        if ids is None:
            message = f"No query results for model [{model}]."
        else:
            message = f"No query results for model [{model}] {ids!r}."
        super().__init__(message)


class ModelError(DatabaseException):
    """Model misuse: missing connection, undefined relation, bad cast tag."""


class MigrationError(DatabaseException):
    def __init__(self, message: str, migration: Optional[str] = None):
        super().__init__(message)
        self.migration = migration

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["migration"] = self.migration
        return ctx


class GrammarError(DatabaseException):
    pass


class UnsupportedColumnTypeError(GrammarError):
    def __init__(self, column_type: str, dialect: str):
        self.column_type = column_type
        self.dialect = dialect
        super().__init__(
            f"Column type [{column_type}] is not supported by the {dialect} grammar."
        )


class RawQueryDisabledError(DatabaseException):
    pass


__all__ = [
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
]
