"""
PostgreSQL grammar.

Double-quote quoting; SERIAL / BIGSERIAL auto-increment keys; unique
constraints via ADD CONSTRAINT; plain indexes via CREATE INDEX; DROP INDEX
without a table name; insert-get-id appends RETURNING.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Tuple

from .base import Grammar


def _check_in(g: Grammar, column) -> str:
    values = ", ".join(g.quote_string(v) for v in column.get("allowed", []))
    return f"VARCHAR(255) CHECK ({g.wrap(column.name)} IN ({values}))"


class PostgresGrammar(Grammar):
    name = "pgsql"
    quote = '"'

    types = {
        "increments": lambda g, c: "SERIAL",
        "big_increments": lambda g, c: "BIGSERIAL",
        "char": lambda g, c: f"CHAR({c.get('length', 255)})",
        "string": lambda g, c: f"VARCHAR({c.get('length', 255)})",
        "text": lambda g, c: "TEXT",
        "medium_text": lambda g, c: "TEXT",
        "long_text": lambda g, c: "TEXT",
        "integer": lambda g, c: "INTEGER",
        "tiny_integer": lambda g, c: "SMALLINT",
        "small_integer": lambda g, c: "SMALLINT",
        "medium_integer": lambda g, c: "INTEGER",
        "big_integer": lambda g, c: "BIGINT",
        "float": lambda g, c: "REAL",
        "double": lambda g, c: "DOUBLE PRECISION",
        "decimal": lambda g, c: f"DECIMAL({c.get('total', 8)}, {c.get('places', 2)})",
        "boolean": lambda g, c: "BOOLEAN",
        "enum": _check_in,
        "json": lambda g, c: "JSON",
        "jsonb": lambda g, c: "JSONB",
        "date": lambda g, c: "DATE",
        "datetime": lambda g, c: "TIMESTAMP(0) WITHOUT TIME ZONE",
        "timestamp": lambda g, c: "TIMESTAMP(0) WITHOUT TIME ZONE",
        "time": lambda g, c: "TIME(0) WITHOUT TIME ZONE",
        "year": lambda g, c: "INTEGER",
        "binary": lambda g, c: "BYTEA",
        "uuid": lambda g, c: "UUID",
    }

    modifiers = ("collate", "nullable", "default", "increment")

    # ------------------------------------------------------------------
    # Column modifiers
    # ------------------------------------------------------------------

    def get_default_value(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return super().get_default_value(value)

    def modify_collate(self, blueprint, column) -> str:
        collation = column.get("collation")
        return f" COLLATE {self.wrap_value(collation)}" if collation else ""

    def modify_increment(self, blueprint, column) -> str:
        return " PRIMARY KEY" if column.get("auto_increment") else ""

    def _comments(self, blueprint) -> List[str]:
        table = self.wrap_table(blueprint.table)
        return [
            f"COMMENT ON COLUMN {table}.{self.wrap_value(c.name)} IS {self.quote_string(c.get('comment'))}"
            for c in blueprint.get_added_columns()
            if c.get("comment") is not None
        ]

    # ------------------------------------------------------------------
    # DML
    # ------------------------------------------------------------------

    def compile_insert_get_id(self, table: str, values: Mapping[str, Any], sequence: str = "id") -> str:
        return f"{self.compile_insert(table, [values])} RETURNING {self.wrap(sequence)}"

    def compile_truncate(self, table: str) -> str:
        return f"TRUNCATE TABLE {self.wrap_table(table)} RESTART IDENTITY CASCADE"

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def compile_create_table(self, blueprint):
        temporary = "TEMPORARY " if blueprint.temporary else ""
        sql = (
            f"CREATE {temporary}TABLE {self.wrap_table(blueprint.table)} "
            f"({', '.join(self.get_columns(blueprint))})"
        )
        comments = self._comments(blueprint)
        return [sql] + comments if comments else sql

    def compile_add_column(self, blueprint):
        columns = ", ".join(f"ADD COLUMN {c}" for c in self.get_columns(blueprint))
        sql = f"ALTER TABLE {self.wrap_table(blueprint.table)} {columns}"
        comments = self._comments(blueprint)
        return [sql] + comments if comments else sql

    def compile_primary(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD PRIMARY KEY ({self.columnize(command.columns)})"
        )

    def compile_unique(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD CONSTRAINT {self.wrap_value(command.index)} UNIQUE ({self.columnize(command.columns)})"
        )

    def compile_index(self, blueprint, command) -> str:
        return (
            f"CREATE INDEX {self.wrap_value(command.index)} "
            f"ON {self.wrap_table(blueprint.table)} ({self.columnize(command.columns)})"
        )

    def compile_foreign(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD CONSTRAINT {self.wrap_value(command.index)} "
            + self.compile_foreign_reference(command)
        )

    def compile_drop_column(self, blueprint, command) -> str:
        columns = ", ".join(f"DROP COLUMN {self.wrap(c)}" for c in command.columns)
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} {columns}"

    def compile_drop_primary(self, blueprint, command) -> str:
        index = self.wrap_value(f"{self.table_prefix}{blueprint.table}_pkey")
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} DROP CONSTRAINT {index}"

    def compile_drop_unique(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"DROP CONSTRAINT {self.wrap_value(command.index)}"
        )

    def compile_drop_index(self, blueprint, command) -> str:
        return f"DROP INDEX {self.wrap_value(command.index)}"

    def compile_drop_foreign(self, blueprint, command) -> str:
        return self.compile_drop_unique(blueprint, command)

    def compile_rename(self, blueprint, command) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} RENAME TO {self.wrap_table(command.to)}"

    def compile_table_exists(self, database: str, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT * FROM information_schema.tables WHERE table_catalog = ? "
            "AND table_schema = current_schema() AND table_name = ? "
            "AND table_type = 'BASE TABLE'",
            [database, self.table_prefix + table],
        )

    def compile_column_listing(self, database: str, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT column_name FROM information_schema.columns WHERE table_catalog = ? "
            "AND table_schema = current_schema() AND table_name = ?",
            [database, self.table_prefix + table],
        )
