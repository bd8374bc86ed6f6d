"""
MySQL backend for conduit_db.

It provides:
    - connect()          (PyMySQL, autocommit, DictCursor rows)
    - last_insert_id()   (cursor.lastrowid)

PyMySQL uses the "format" paramstyle; the shared helpers translate the
grammar's ``?`` placeholders before execution.
"""

from __future__ import annotations
from typing import Any
try:
    import pymysql  # type: ignore
    import pymysql.cursors  # type: ignore
except ImportError:
    pymysql = None


from ..config import ConnectionConfig
from ..exceptions import DatabaseConnectionError
from .backend_base import DBBackend


class MySQLBackend(DBBackend):
    """
    Minimal MySQL backend implementation.

    Parameters
    ----------
    config : ConnectionConfig
        host / port / database / username / password / charset, plus any
        extra pymysql.connect() keyword arguments under ``options``.
    """

    driver = "mysql"
    paramstyle = "format"

    def __init__(self, config: ConnectionConfig):
        self.config = config

    def connect(self) -> Any:
        if pymysql is None:
            raise DatabaseConnectionError(
                "The mysql driver requires PyMySQL (pip install PyMySQL)."
            )

        return pymysql.connect(
            host=self.config.host,
            port=self.config.port,
            user=self.config.username,
            password=self.config.password,
            database=self.config.database,
            charset=self.config.charset,
            cursorclass=pymysql.cursors.DictCursor,
            autocommit=True,
            **self.config.options,
        )
