"""
Backend base interfaces for conduit_db.

This module defines the minimal contracts that all driver backends
(SQLite, Postgres, MySQL) must satisfy.

It is intentionally light-weight:

- It does NOT depend on any specific DB driver.
- It only encodes the structural requirements assumed by
  conduit_db.db.connection.Connection.

Backends must expose:

    backend.driver      -> dialect tag ("sqlite", "pgsql", "mysql")
    backend.paramstyle  -> "qmark" or "format"
    backend.helpers     -> module with safe_execute, safe_fetch_all,
                           safe_fetch_one, row_to_dict
    backend.connect()   -> raw DB-API connection in autocommit mode
    backend.last_insert_id(cursor) -> id generated by the last INSERT

Transactions are issued as explicit SQL statements by the Connection, so
every backend hands out connections in autocommit mode.

This file provides:
- DBBackend: abstract base class
- BackendLike: structural protocol
- ensure_backend: runtime validator
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from typing import Any, runtime_checkable
from typing import Protocol

from . import helpers as _helpers


# ---------------------------------------------------------------------------
# Abstract Base Backend
# ---------------------------------------------------------------------------

class DBBackend(ABC):
    """
    Abstract base class for a conduit_db driver backend.

    Concrete subclasses take a ConnectionConfig; they only differ in how
    they open the driver connection and read back generated keys.
    """

    driver: str = ""
    paramstyle: str = "qmark"

    @property
    def helpers(self) -> Any:
        """
        Return the helper module associated with this backend.

        Normally this is conduit_db.db.helpers; test backends may provide
        compatible modules.
        """
        return _helpers

    @abstractmethod
    def connect(self) -> Any:
        """
        Acquire and return a new raw DB-API 2.0 connection.
        """
        raise NotImplementedError

    def last_insert_id(self, cursor: Any) -> Any:
        """
        Return the key generated by the INSERT that ran on ``cursor``.

        Default: DB-API ``lastrowid``.
        """
        return getattr(cursor, "lastrowid", None)


# ---------------------------------------------------------------------------
# Structural Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class BackendLike(Protocol):
    """
    Structural protocol for objects usable as a conduit_db backend.
    """

    driver: str
    paramstyle: str
    helpers: Any

    def connect(self) -> Any:
        ...

    def last_insert_id(self, cursor: Any) -> Any:
        ...


# ---------------------------------------------------------------------------
# Runtime Guard
# ---------------------------------------------------------------------------

def ensure_backend(backend: Any) -> BackendLike:
    """
    Validate that an object behaves like a conduit_db backend.

    Raises:
        TypeError if required attributes are missing.
    """
    if not isinstance(backend, BackendLike):
        missing = [
            attr
            for attr in ("driver", "paramstyle", "helpers", "connect", "last_insert_id")
            if not hasattr(backend, attr)
        ]
        if missing:
            raise TypeError(
                f"Invalid conduit_db backend {backend!r}: missing attributes {missing}"
            )

    return backend  # type: ignore[return-value]


__all__ = [
    "DBBackend",
    "BackendLike",
    "ensure_backend",
]
