"""
Schema builder: runs Blueprints against a Connection.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List

from .blueprint import Blueprint

if TYPE_CHECKING:
    from ..db.connection import Connection

logger = logging.getLogger(__name__)


class SchemaBuilder:
    def __init__(self, connection: "Connection"):
        self.connection = connection
        self.grammar = connection.get_grammar()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def has_table(self, table: str) -> bool:
        sql, bindings = self.grammar.compile_table_exists(self.connection.database_name, table)
        return len(self.connection.query(sql, bindings)) > 0

    def get_column_listing(self, table: str) -> List[str]:
        sql, bindings = self.grammar.compile_column_listing(self.connection.database_name, table)
        return self.grammar.process_column_listing(self.connection.query(sql, bindings))

    def has_column(self, table: str, column: str) -> bool:
        return column.lower() in (c.lower() for c in self.get_column_listing(table))

    def has_columns(self, table: str, columns: List[str]) -> bool:
        existing = {c.lower() for c in self.get_column_listing(table)}
        return all(c.lower() in existing for c in columns)

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def create(self, table: str, callback: Callable[[Blueprint], None]) -> None:
        """Create ``table``; ``callback`` fills the Blueprint."""
        blueprint = Blueprint(table, creating=True)
        callback(blueprint)
        self.build(blueprint)

    def table(self, table: str, callback: Callable[[Blueprint], None]) -> None:
        """Alter ``table``; ``callback`` fills the Blueprint."""
        blueprint = Blueprint(table)
        callback(blueprint)
        self.build(blueprint)

    def drop(self, table: str) -> None:
        self.connection.statement(self.grammar.compile_drop_table(Blueprint(table)))

    def drop_if_exists(self, table: str) -> None:
        self.connection.statement(self.grammar.compile_drop_table_if_exists(Blueprint(table)))

    def rename(self, from_: str, to: str) -> None:
        blueprint = Blueprint(from_)
        blueprint.rename(to)
        self.build(blueprint)

    def build(self, blueprint: Blueprint) -> None:
        for sql in self.to_sql(blueprint):
            self.connection.statement(sql)
        logger.debug("Applied blueprint %r", blueprint)

    def to_sql(self, blueprint: Blueprint) -> List[str]:
        return blueprint.to_sql(self.grammar)
