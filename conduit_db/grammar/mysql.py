"""
MySQL grammar.

Backtick quoting; ALTER TABLE ... ADD INDEX / ADD UNIQUE for indexes;
``DROP INDEX name ON table``; transactional DDL is not available, so a
failed migration may leave partial DDL behind even though its repository
record is rolled back.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Sequence, Tuple

from .base import Grammar


def _enum_values(g: Grammar, column) -> str:
    return ", ".join(g.quote_string(v) for v in column.get("allowed", []))


class MySQLGrammar(Grammar):
    name = "mysql"
    quote = "`"

    types = {
        "increments": lambda g, c: "INT",
        "big_increments": lambda g, c: "BIGINT",
        "char": lambda g, c: f"CHAR({c.get('length', 255)})",
        "string": lambda g, c: f"VARCHAR({c.get('length', 255)})",
        "text": lambda g, c: "TEXT",
        "medium_text": lambda g, c: "MEDIUMTEXT",
        "long_text": lambda g, c: "LONGTEXT",
        "integer": lambda g, c: "INT",
        "tiny_integer": lambda g, c: "TINYINT",
        "small_integer": lambda g, c: "SMALLINT",
        "medium_integer": lambda g, c: "MEDIUMINT",
        "big_integer": lambda g, c: "BIGINT",
        "float": lambda g, c: "FLOAT",
        "double": lambda g, c: "DOUBLE",
        "decimal": lambda g, c: f"DECIMAL({c.get('total', 8)}, {c.get('places', 2)})",
        "boolean": lambda g, c: "TINYINT(1)",
        "enum": lambda g, c: f"ENUM({_enum_values(g, c)})",
        "set": lambda g, c: f"SET({_enum_values(g, c)})",
        "json": lambda g, c: "JSON",
        "jsonb": lambda g, c: "JSON",
        "date": lambda g, c: "DATE",
        "datetime": lambda g, c: "DATETIME",
        "timestamp": lambda g, c: "TIMESTAMP",
        "time": lambda g, c: "TIME",
        "year": lambda g, c: "YEAR",
        "binary": lambda g, c: "BLOB",
        "uuid": lambda g, c: "CHAR(36)",
    }

    modifiers = (
        "unsigned", "charset", "collate", "nullable", "default",
        "on_update", "increment", "comment", "after", "first",
    )

    # ------------------------------------------------------------------
    # Column modifiers
    # ------------------------------------------------------------------

    def modify_unsigned(self, blueprint, column) -> str:
        return " UNSIGNED" if column.get("unsigned") else ""

    def modify_charset(self, blueprint, column) -> str:
        charset = column.get("charset")
        return f" CHARACTER SET {charset}" if charset else ""

    def modify_collate(self, blueprint, column) -> str:
        collation = column.get("collation")
        return f" COLLATE {self.quote_string(collation)}" if collation else ""

    def modify_nullable(self, blueprint, column) -> str:
        return " NULL" if column.get("nullable") else " NOT NULL"

    def modify_on_update(self, blueprint, column) -> str:
        return " ON UPDATE CURRENT_TIMESTAMP" if column.get("use_current_on_update") else ""

    def modify_increment(self, blueprint, column) -> str:
        return " AUTO_INCREMENT PRIMARY KEY" if column.get("auto_increment") else ""

    def modify_comment(self, blueprint, column) -> str:
        comment = column.get("comment")
        return f" COMMENT {self.quote_string(comment)}" if comment is not None else ""

    def modify_after(self, blueprint, column) -> str:
        after = column.get("after")
        return f" AFTER {self.wrap(after)}" if after else ""

    def modify_first(self, blueprint, column) -> str:
        return " FIRST" if column.get("first") else ""

    # ------------------------------------------------------------------
    # DML / transactions
    # ------------------------------------------------------------------

    def compile_insert(self, table: str, values: Sequence[Mapping[str, Any]]) -> str:
        if not values or not values[0]:
            return f"INSERT INTO {self.wrap_table(table)} () VALUES ()"
        return super().compile_insert(table, values)

    def compile_truncate(self, table: str) -> str:
        return f"TRUNCATE TABLE {self.wrap_table(table)}"

    def compile_begin(self) -> str:
        return "START TRANSACTION"

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def compile_create_table(self, blueprint) -> str:
        temporary = "TEMPORARY " if blueprint.temporary else ""
        sql = (
            f"CREATE {temporary}TABLE {self.wrap_table(blueprint.table)} "
            f"({', '.join(self.get_columns(blueprint))})"
        )
        if blueprint.charset:
            sql += f" DEFAULT CHARACTER SET {blueprint.charset}"
        if blueprint.collation:
            sql += f" COLLATE {self.quote_string(blueprint.collation)}"
        if blueprint.engine:
            sql += f" ENGINE = {blueprint.engine}"
        return sql

    def compile_add_column(self, blueprint) -> str:
        columns = ", ".join(f"ADD COLUMN {c}" for c in self.get_columns(blueprint))
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} {columns}"

    def compile_primary(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD PRIMARY KEY ({self.columnize(command.columns)})"
        )

    def compile_unique(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD UNIQUE {self.wrap_value(command.index)} ({self.columnize(command.columns)})"
        )

    def compile_index(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD INDEX {self.wrap_value(command.index)} ({self.columnize(command.columns)})"
        )

    def compile_fulltext(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD FULLTEXT {self.wrap_value(command.index)} ({self.columnize(command.columns)})"
        )

    def compile_spatial_index(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"ADD SPATIAL INDEX {self.wrap_value(command.index)} ({self.columnize(command.columns)})"
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
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} DROP PRIMARY KEY"

    def compile_drop_unique(self, blueprint, command) -> str:
        return self.compile_drop_index(blueprint, command)

    def compile_drop_index(self, blueprint, command) -> str:
        return f"DROP INDEX {self.wrap_value(command.index)} ON {self.wrap_table(blueprint.table)}"

    def compile_drop_fulltext(self, blueprint, command) -> str:
        return self.compile_drop_index(blueprint, command)

    def compile_drop_spatial_index(self, blueprint, command) -> str:
        return self.compile_drop_index(blueprint, command)

    def compile_drop_foreign(self, blueprint, command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} "
            f"DROP FOREIGN KEY {self.wrap_value(command.index)}"
        )

    def compile_rename(self, blueprint, command) -> str:
        return f"RENAME TABLE {self.wrap_table(blueprint.table)} TO {self.wrap_table(command.to)}"

    def compile_table_exists(self, database: str, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT * FROM information_schema.tables WHERE table_schema = ? "
            "AND table_name = ? AND table_type = 'BASE TABLE'",
            [database, self.table_prefix + table],
        )

    def compile_column_listing(self, database: str, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT column_name AS `column_name` FROM information_schema.columns "
            "WHERE table_schema = ? AND table_name = ?",
            [database, self.table_prefix + table],
        )
