"""
Grammar contract for conduit_db.

A Grammar is a pure translator: query descriptors (QueryComponents) and
schema descriptors (Blueprint) go in, SQL text with ``?`` placeholders
comes out. No grammar method performs I/O.

The base class carries the pieces every dialect shares verbatim
(identifier wrapping, SELECT / INSERT / UPDATE / DELETE assembly, WHERE
compilation). Everything dialect-shaped is abstract here and implemented
by exactly one flat subclass per dialect:

    MySQLGrammar     backtick quoting, ALTER TABLE ... ADD INDEX
    PostgresGrammar  double quotes, SERIAL keys, RETURNING, DROP INDEX "x"
    SQLiteGrammar    double quotes, inline foreign keys, DELETE FROM truncate

DDL compile methods may return a single statement or a list of them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Sequence, Tuple, Union

from ..exceptions import GrammarError, UnsupportedColumnTypeError
from ..query.components import Join, QueryComponents, Where
from ..query.expression import Expression

if TYPE_CHECKING:
    from ..schema.blueprint import Blueprint, ColumnDefinition, Command

Statements = Union[str, List[str]]

# Unbounded LIMIT used by dialects that cannot express OFFSET alone.
_NO_LIMIT = {"mysql": "18446744073709551615", "sqlite": "-1"}


def as_list(statements: Statements) -> List[str]:
    if isinstance(statements, str):
        return [statements]
    return list(statements)


class Grammar(ABC):
    """
    Abstract SQL grammar.

    Parameters
    ----------
    table_prefix:
        Prefix prepended to every wrapped table name.
    """

    name: str = ""
    quote: str = '"'

    # Logical column type -> callable(column) -> SQL type. Filled per dialect.
    types: Dict[str, Callable[["ColumnDefinition"], str]] = {}

    # Column modifiers applied in order after the type.
    modifiers: Tuple[str, ...] = ()

    def __init__(self, table_prefix: str = ""):
        self.table_prefix = table_prefix
        # Aliases declared by the query being compiled; never prefixed.
        self._aliases: frozenset = frozenset()

    # ------------------------------------------------------------------
    # Identifier wrapping
    # ------------------------------------------------------------------

    @contextmanager
    def _query_aliases(self, query: QueryComponents):
        saved = self._aliases
        self._aliases = saved | frozenset(query.aliases())
        try:
            yield
        finally:
            self._aliases = saved

    def wrap_value(self, value: str) -> str:
        """Quote a single identifier segment."""
        if value == "*":
            return value
        q = self.quote
        if len(value) >= 2 and value.startswith(q) and value.endswith(q):
            return value
        return q + value.replace(q, q + q) + q

    def wrap_table(self, table: Union[str, Expression]) -> str:
        if isinstance(table, Expression):
            return table.value

        lower = table.lower()
        if " as " in lower:
            idx = lower.index(" as ")
            return f"{self.wrap_table(table[:idx].strip())} AS {self.wrap_value(table[idx + 4:].strip())}"

        if "." in table:
            schema, _, name = table.rpartition(".")
            return f"{self.wrap_value(schema)}.{self.wrap_value(self.table_prefix + name)}"

        return self.wrap_value(self.table_prefix + table)

    def wrap(self, value: Union[str, Expression]) -> str:
        """
        Quote a column reference.

        Handles ``*``, ``table.column`` (table segment prefixed unless it
        is an alias declared by the query), ``table.*`` and
        ``expr AS alias``. Expressions pass through.
        """
        if isinstance(value, Expression):
            return value.value

        lower = value.lower()
        if " as " in lower:
            idx = lower.index(" as ")
            return f"{self.wrap(value[:idx].strip())} AS {self.wrap_value(value[idx + 4:].strip())}"

        if "." in value:
            table, _, column = value.rpartition(".")
            qualifier = self.wrap_value(table) if table in self._aliases else self.wrap_table(table)
            return f"{qualifier}.{self.wrap_value(column)}"

        return self.wrap_value(value)

    def columnize(self, columns: Sequence[Union[str, Expression]]) -> str:
        return ", ".join(self.wrap(c) for c in columns)

    def parameter(self, value: Any) -> str:
        return value.value if isinstance(value, Expression) else "?"

    def parameterize(self, values: Sequence[Any]) -> str:
        return ", ".join(self.parameter(v) for v in values)

    def quote_string(self, value: str) -> str:
        return "'" + str(value).replace("'", "''") + "'"

    # ------------------------------------------------------------------
    # SELECT
    # ------------------------------------------------------------------

    def compile_select(self, query: QueryComponents) -> str:
        if query.from_ is None:
            raise GrammarError("Cannot compile a SELECT without a table.")

        with self._query_aliases(query):
            return self._compile_select(query)

    def _compile_select(self, query: QueryComponents) -> str:
        columns = query.columns or ["*"]
        parts = [
            ("SELECT DISTINCT " if query.distinct else "SELECT ") + self.columnize(columns),
            "FROM " + self.wrap_table(query.from_),
        ]
        parts.extend(self.compile_join(j) for j in query.joins)
        parts.append(self.compile_wheres(query.wheres))
        if query.groups:
            parts.append("GROUP BY " + self.columnize(query.groups))
        parts.append(self.compile_havings(query.havings))
        if query.orders:
            parts.append(
                "ORDER BY "
                + ", ".join(f"{self.wrap(o.column)} {o.direction.upper()}" for o in query.orders)
            )
        parts.append(self.compile_limit_offset(query.limit, query.offset))

        return " ".join(p for p in parts if p)

    def compile_join(self, join: Join) -> str:
        return (
            f"{join.type.upper()} JOIN {self.wrap_table(join.table)} "
            f"ON {self.wrap(join.first)} {join.operator} {self.wrap(join.second)}"
        )

    def compile_limit_offset(self, limit, offset) -> str:
        parts = []
        if limit is not None:
            parts.append(f"LIMIT {int(limit)}")
        elif offset and self.name in _NO_LIMIT:
            parts.append(f"LIMIT {_NO_LIMIT[self.name]}")
        if offset:
            parts.append(f"OFFSET {int(offset)}")
        return " ".join(parts)

    def compile_aggregate(self, query: QueryComponents, function: str, column: str = "*") -> str:
        """
        Compile ``FUNCTION(column) AS aggregate`` over the query.

        Grouped or DISTINCT counts are wrapped in a subquery so they count
        result rows rather than group members.
        """
        function = function.upper()
        alias = self.wrap("aggregate")

        if function == "COUNT" and (query.groups or query.distinct):
            inner = self.compile_select(query)
            return (
                f"SELECT COUNT(*) AS {alias} FROM ({inner}) AS "
                f"{self.wrap_value('aggregate_table')}"
            )

        with self._query_aliases(query):
            target = "*" if column == "*" else self.wrap(column)
        agg = query.copy()
        agg.columns = [Expression(f"{function}({target}) AS {alias}")]
        agg.distinct = False
        return self.compile_select(agg)

    def compile_exists(self, query: QueryComponents) -> str:
        return f"SELECT EXISTS({self.compile_select(query)}) AS {self.wrap('exists')}"

    # ------------------------------------------------------------------
    # WHERE / HAVING
    # ------------------------------------------------------------------

    def compile_predicate(self, where: Where) -> str:
        col = self.wrap(where.column)
        kind = where.kind

        if kind == "basic":
            return f"{col} {where.operator.upper()} {self.parameter(where.value)}"
        if kind == "in":
            if not where.value:
                return "0 = 1"
            return f"{col} IN ({self.parameterize(where.value)})"
        if kind == "not_in":
            if not where.value:
                return "1 = 1"
            return f"{col} NOT IN ({self.parameterize(where.value)})"
        if kind == "null":
            return f"{col} IS NULL"
        if kind == "not_null":
            return f"{col} IS NOT NULL"
        if kind == "between":
            low, high = where.value
            return f"{col} BETWEEN {self.parameter(low)} AND {self.parameter(high)}"
        if kind == "not_between":
            low, high = where.value
            return f"{col} NOT BETWEEN {self.parameter(low)} AND {self.parameter(high)}"

        raise GrammarError(f"Unknown predicate kind [{kind}].")

    def _compile_conditions(self, conditions: Sequence[Where]) -> str:
        sql = ""
        for i, where in enumerate(conditions):
            clause = self.compile_predicate(where)
            sql += clause if i == 0 else f" {where.boolean.upper()} {clause}"
        return sql

    def compile_wheres(self, wheres: Sequence[Where]) -> str:
        if not wheres:
            return ""
        return "WHERE " + self._compile_conditions(wheres)

    def compile_havings(self, havings: Sequence[Where]) -> str:
        if not havings:
            return ""
        return "HAVING " + self._compile_conditions(havings)

    # ------------------------------------------------------------------
    # INSERT / UPDATE / DELETE
    # ------------------------------------------------------------------

    def compile_insert(self, table: str, values: Sequence[Mapping[str, Any]]) -> str:
        """
        Multi-row insert. Every row must share the first row's keys; the
        caller binds non-Expression values row by row in that key order.
        """
        if not values or not values[0]:
            return f"INSERT INTO {self.wrap_table(table)} DEFAULT VALUES"

        columns = list(values[0].keys())
        rows = ", ".join(f"({self.parameterize([row[c] for c in columns])})" for row in values)
        return f"INSERT INTO {self.wrap_table(table)} ({self.columnize(columns)}) VALUES {rows}"

    def compile_insert_get_id(self, table: str, values: Mapping[str, Any], sequence: str = "id") -> str:
        return self.compile_insert(table, [values])

    def compile_update(self, query: QueryComponents, values: Mapping[str, Any]) -> str:
        """
        ``UPDATE t SET a = ?, ...``. Expression values are inlined, so the
        caller binds only the non-Expression values, before the WHERE
        bindings.
        """
        with self._query_aliases(query):
            sets = []
            for column, value in values.items():
                rhs = value.value if isinstance(value, Expression) else "?"
                sets.append(f"{self.wrap(column)} = {rhs}")

            sql = f"UPDATE {self.wrap_table(query.from_)} SET {', '.join(sets)}"
            wheres = self.compile_wheres(query.wheres)
        return f"{sql} {wheres}" if wheres else sql

    def compile_delete(self, query: QueryComponents) -> str:
        with self._query_aliases(query):
            sql = f"DELETE FROM {self.wrap_table(query.from_)}"
            wheres = self.compile_wheres(query.wheres)
        return f"{sql} {wheres}" if wheres else sql

    @abstractmethod
    def compile_truncate(self, table: str) -> str:
        ...

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def compile_begin(self) -> str:
        return "BEGIN"

    def compile_commit(self) -> str:
        return "COMMIT"

    def compile_rollback(self) -> str:
        return "ROLLBACK"

    def compile_savepoint(self, name: str) -> str:
        return f"SAVEPOINT {name}"

    def compile_release_savepoint(self, name: str) -> str:
        return f"RELEASE SAVEPOINT {name}"

    def compile_rollback_to_savepoint(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {name}"

    # ------------------------------------------------------------------
    # Column compilation
    # ------------------------------------------------------------------

    def get_type(self, column: "ColumnDefinition") -> str:
        try:
            compile_type = self.types[column.type]
        except KeyError:
            raise UnsupportedColumnTypeError(column.type, self.name) from None
        return compile_type(self, column)

    def get_default_value(self, value: Any) -> str:
        if isinstance(value, Expression):
            return value.value
        if isinstance(value, bool):
            return "'1'" if value else "'0'"
        if isinstance(value, (int, float)):
            return str(value)
        return self.quote_string(value)

    def compile_column(self, blueprint: "Blueprint", column: "ColumnDefinition") -> str:
        sql = f"{self.wrap(column.name)} {self.get_type(column)}"
        for modifier in self.modifiers:
            sql += getattr(self, f"modify_{modifier}")(blueprint, column)
        return sql

    def get_columns(self, blueprint: "Blueprint") -> List[str]:
        return [self.compile_column(blueprint, c) for c in blueprint.get_added_columns()]

    def modify_nullable(self, blueprint, column) -> str:
        return "" if column.get("nullable") else " NOT NULL"

    def modify_default(self, blueprint, column) -> str:
        if column.get("use_current"):
            return " DEFAULT CURRENT_TIMESTAMP"
        if column.has("default"):
            return f" DEFAULT {self.get_default_value(column.get('default'))}"
        return ""

    # ------------------------------------------------------------------
    # Blueprint dispatch
    # ------------------------------------------------------------------

    def compile_command(self, blueprint: "Blueprint", command: "Command") -> List[str]:
        method = getattr(self, f"compile_{command.name}", None)
        if method is None:
            raise GrammarError(
                f"The {self.name} grammar does not support the [{command.name}] command."
            )
        return as_list(method(blueprint, command))

    def columnize_command(self, command: "Command") -> str:
        return self.columnize(command.columns)

    def foreign_actions(self, command) -> str:
        sql = ""
        if command.on_delete_action:
            sql += f" ON DELETE {command.on_delete_action.upper()}"
        if command.on_update_action:
            sql += f" ON UPDATE {command.on_update_action.upper()}"
        return sql

    def compile_foreign_reference(self, command) -> str:
        if not command.referenced_table or not command.referenced_columns:
            raise GrammarError(
                f"Foreign key [{command.index}] needs both references() and on()."
            )
        return (
            f"FOREIGN KEY ({self.columnize(command.columns)}) "
            f"REFERENCES {self.wrap_table(command.referenced_table)} "
            f"({self.columnize(command.referenced_columns)})"
            + self.foreign_actions(command)
        )

    def compile_rename_column(self, blueprint: "Blueprint", command: "Command") -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} RENAME COLUMN "
            f"{self.wrap(command.columns[0])} TO {self.wrap(command.to)}"
        )

    def compile_drop_table(self, blueprint: "Blueprint", command: "Command" = None) -> str:
        return f"DROP TABLE {self.wrap_table(blueprint.table)}"

    def compile_drop_table_if_exists(self, blueprint: "Blueprint", command: "Command" = None) -> str:
        return f"DROP TABLE IF EXISTS {self.wrap_table(blueprint.table)}"

    # ------------------------------------------------------------------
    # Dialect-specific DDL
    # ------------------------------------------------------------------

    @abstractmethod
    def compile_create_table(self, blueprint: "Blueprint") -> Statements:
        ...

    @abstractmethod
    def compile_add_column(self, blueprint: "Blueprint") -> Statements:
        ...

    @abstractmethod
    def compile_primary(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_unique(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_index(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_foreign(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_drop_column(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_drop_primary(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_drop_unique(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_drop_index(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_drop_foreign(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_rename(self, blueprint: "Blueprint", command: "Command") -> Statements:
        ...

    @abstractmethod
    def compile_table_exists(self, database: str, table: str) -> Tuple[str, List[Any]]:
        """Return (sql, bindings) selecting a row iff ``table`` exists."""

    @abstractmethod
    def compile_column_listing(self, database: str, table: str) -> Tuple[str, List[Any]]:
        """Return (sql, bindings) selecting one row per column of ``table``."""

    def process_column_listing(self, rows: Sequence[Mapping[str, Any]]) -> List[str]:
        out = []
        for row in rows:
            lowered = {str(k).lower(): v for k, v in row.items()}
            out.append(lowered.get("column_name", lowered.get("name")))
        return out

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table_prefix={self.table_prefix!r})"
