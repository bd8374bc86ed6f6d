"""
SQLite grammar.

Double-quote quoting; ``INTEGER PRIMARY KEY AUTOINCREMENT`` keys; foreign
keys and composite primary keys are only expressible inside CREATE TABLE,
so ALTER-time variants raise GrammarError; TRUNCATE compiles to
``DELETE FROM``.
"""

from __future__ import annotations

from typing import Any, List, Tuple

from ..exceptions import GrammarError
from .base import Grammar


def _check_in(g: Grammar, column) -> str:
    values = ", ".join(g.quote_string(v) for v in column.get("allowed", []))
    return f"VARCHAR CHECK ({g.wrap(column.name)} IN ({values}))"


class SQLiteGrammar(Grammar):
    name = "sqlite"
    quote = '"'

    types = {
        "increments": lambda g, c: "INTEGER",
        "big_increments": lambda g, c: "INTEGER",
        "char": lambda g, c: "VARCHAR",
        "string": lambda g, c: "VARCHAR",
        "text": lambda g, c: "TEXT",
        "medium_text": lambda g, c: "TEXT",
        "long_text": lambda g, c: "TEXT",
        "integer": lambda g, c: "INTEGER",
        "tiny_integer": lambda g, c: "INTEGER",
        "small_integer": lambda g, c: "INTEGER",
        "medium_integer": lambda g, c: "INTEGER",
        "big_integer": lambda g, c: "INTEGER",
        "float": lambda g, c: "FLOAT",
        "double": lambda g, c: "FLOAT",
        "decimal": lambda g, c: "NUMERIC",
        "boolean": lambda g, c: "TINYINT(1)",
        "enum": _check_in,
        "json": lambda g, c: "TEXT",
        "jsonb": lambda g, c: "TEXT",
        "date": lambda g, c: "DATE",
        "datetime": lambda g, c: "DATETIME",
        "timestamp": lambda g, c: "DATETIME",
        "time": lambda g, c: "TIME",
        "year": lambda g, c: "INTEGER",
        "binary": lambda g, c: "BLOB",
        "uuid": lambda g, c: "VARCHAR",
    }

    modifiers = ("nullable", "default", "increment")

    def modify_increment(self, blueprint, column) -> str:
        return " PRIMARY KEY AUTOINCREMENT" if column.get("auto_increment") else ""

    # ------------------------------------------------------------------
    # DML
    # ------------------------------------------------------------------

    def compile_truncate(self, table: str) -> str:
        return f"DELETE FROM {self.wrap_table(table)}"

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def compile_create_table(self, blueprint) -> str:
        parts = self.get_columns(blueprint)

        for command in blueprint.get_commands("foreign"):
            parts.append(self.compile_foreign_reference(command))

        primary = blueprint.get_commands("primary")
        if primary:
            parts.append(f"PRIMARY KEY ({self.columnize(primary[-1].columns)})")

        temporary = "TEMPORARY " if blueprint.temporary else ""
        return f"CREATE {temporary}TABLE {self.wrap_table(blueprint.table)} ({', '.join(parts)})"

    def compile_add_column(self, blueprint) -> List[str]:
        table = self.wrap_table(blueprint.table)
        return [f"ALTER TABLE {table} ADD COLUMN {c}" for c in self.get_columns(blueprint)]

    def compile_primary(self, blueprint, command) -> List[str]:
        if blueprint.creating():
            return []
        raise GrammarError("SQLite cannot add a primary key to an existing table.")

    def compile_unique(self, blueprint, command) -> str:
        return (
            f"CREATE UNIQUE INDEX {self.wrap_value(command.index)} "
            f"ON {self.wrap_table(blueprint.table)} ({self.columnize(command.columns)})"
        )

    def compile_index(self, blueprint, command) -> str:
        return (
            f"CREATE INDEX {self.wrap_value(command.index)} "
            f"ON {self.wrap_table(blueprint.table)} ({self.columnize(command.columns)})"
        )

    def compile_foreign(self, blueprint, command) -> List[str]:
        if blueprint.creating():
            return []
        raise GrammarError("SQLite cannot add a foreign key to an existing table.")

    def compile_drop_column(self, blueprint, command) -> List[str]:
        table = self.wrap_table(blueprint.table)
        return [f"ALTER TABLE {table} DROP COLUMN {self.wrap(c)}" for c in command.columns]

    def compile_drop_primary(self, blueprint, command):
        raise GrammarError("SQLite cannot drop a primary key.")

    def compile_drop_unique(self, blueprint, command) -> str:
        return self.compile_drop_index(blueprint, command)

    def compile_drop_index(self, blueprint, command) -> str:
        return f"DROP INDEX {self.wrap_value(command.index)}"

    def compile_drop_foreign(self, blueprint, command):
        raise GrammarError("SQLite cannot drop a foreign key.")

    def compile_rename(self, blueprint, command) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} RENAME TO {self.wrap_table(command.to)}"

    def compile_table_exists(self, database: str, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT * FROM sqlite_master WHERE type = 'table' AND name = ?",
            [self.table_prefix + table],
        )

    def compile_column_listing(self, database: str, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT name FROM pragma_table_info(?)",
            [self.table_prefix + table],
        )
