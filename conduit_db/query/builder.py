"""
Fluent query builder.

A QueryBuilder accumulates a QueryComponents descriptor through chained
calls, asks the connection's Grammar to compile it, runs it on the
Connection, and shapes the result as a Collection of dict rows (or of
hydrated models when bound to a model class).

Binding invariant: every value-bearing predicate appends its values in
the same call that appends the predicate, into the binding bucket of its
clause. Flattening the buckets in clause order (WHERE, then HAVING)
reproduces placeholder order in the compiled SQL.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Union,
)

from ..collection import Collection, data_get
from ..exceptions import ModelNotFoundException, RawQueryDisabledError
from .components import OPERATORS, Join, Order, QueryComponents, Where
from .expression import Expression

if TYPE_CHECKING:
    from ..db.connection import Connection
    from ..grammar.base import Grammar

logger = logging.getLogger(__name__)

_MISSING = object()

_READ_PREFIXES = ("SELECT", "WITH", "PRAGMA", "SHOW", "EXPLAIN", "DESCRIBE")


# ----------------------------------------------------------------------
# Pagination result
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Page:
    items: Collection
    total: int
    per_page: int
    current_page: int

    @property
    def last_page(self) -> int:
        return math.ceil(self.total / self.per_page)

    @property
    def from_(self) -> Optional[int]:
        if not len(self.items):
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def to(self) -> Optional[int]:
        if not len(self.items):
            return None
        return self.from_ + len(self.items) - 1

    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.items.to_list(),
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "last_page": self.last_page,
            "from": self.from_,
            "to": self.to,
        }


# ----------------------------------------------------------------------
# Builder
# ----------------------------------------------------------------------

class QueryBuilder:
    """
    Parameters
    ----------
    connection:
        Connection the query runs on.
    grammar:
        Grammar override; defaults to the connection's grammar.
    """

    def __init__(self, connection: "Connection", grammar: Optional["Grammar"] = None):
        self.connection = connection
        self.grammar = grammar or connection.get_grammar()
        self.components = QueryComponents()

        self._model: Optional[type] = None
        self._eager: Dict[str, Optional[Callable[["QueryBuilder"], Any]]] = {}
        self._scopes: Dict[str, Callable[["QueryBuilder"], Any]] = {}
        self._removed_scopes: Set[str] = set()

    # ------------------------------------------------------------------
    # Source / projection
    # ------------------------------------------------------------------

    def from_(self, table: str) -> "QueryBuilder":
        self.components.from_ = table
        return self

    table = from_

    def get_table(self) -> Optional[str]:
        return self.components.from_

    def select(self, *columns: Union[str, Expression, Sequence[str]]) -> "QueryBuilder":
        self.components.columns = self._flatten(columns) or ["*"]
        return self

    def add_select(self, *columns: Union[str, Expression, Sequence[str]]) -> "QueryBuilder":
        current = [c for c in self.components.columns if c != "*"]
        self.components.columns = current + self._flatten(columns)
        return self

    def distinct(self, value: bool = True) -> "QueryBuilder":
        self.components.distinct = value
        return self

    @staticmethod
    def _flatten(columns) -> List[Union[str, Expression]]:
        out: List[Union[str, Expression]] = []
        for c in columns:
            if isinstance(c, (list, tuple)):
                out.extend(c)
            else:
                out.append(c)
        return out

    # ------------------------------------------------------------------
    # Joins
    # ------------------------------------------------------------------

    def join(self, table: str, first: str, operator: Optional[str] = None,
             second: Optional[str] = None, type: str = "inner") -> "QueryBuilder":
        if second is None:
            operator, second = "=", operator
        self.components.joins.append(
            Join(table, first, self._check_operator(operator), second, type)
        )
        return self

    def left_join(self, table: str, first: str, operator: Optional[str] = None,
                  second: Optional[str] = None) -> "QueryBuilder":
        return self.join(table, first, operator, second, "left")

    def right_join(self, table: str, first: str, operator: Optional[str] = None,
                   second: Optional[str] = None) -> "QueryBuilder":
        return self.join(table, first, operator, second, "right")

    # ------------------------------------------------------------------
    # WHERE
    # ------------------------------------------------------------------

    @staticmethod
    def _check_operator(operator: str) -> str:
        if str(operator).lower() not in OPERATORS:
            raise ValueError(f"Illegal operator [{operator}].")
        return str(operator)

    def _add_binding(self, value: Any, clause: str = "where") -> None:
        if not isinstance(value, Expression):
            self.components.bindings[clause].append(value)

    def _add_bindings(self, values: Sequence[Any], clause: str = "where") -> None:
        for value in values:
            self._add_binding(value, clause)

    def where(self, column: Union[str, Mapping[str, Any]], operator: Any = None,
              value: Any = _MISSING, boolean: str = "and") -> "QueryBuilder":
        """
        Add a basic predicate.

        ``where(col, value)`` means ``col = value``. A None value with
        ``=`` / ``!=`` becomes IS NULL / IS NOT NULL. A mapping adds one
        equality predicate per item.
        """
        if isinstance(column, Mapping):
            for key, val in column.items():
                self.where(key, "=", val, boolean)
            return self

        if value is _MISSING:
            operator, value = "=", operator

        operator = self._check_operator(operator)

        if value is None:
            if operator == "=":
                return self.where_null(column, boolean)
            if operator in ("!=", "<>"):
                return self.where_not_null(column, boolean)
            raise ValueError(f"Operator [{operator}] cannot be compared with None.")

        self.components.wheres.append(Where("basic", column, operator, value, boolean))
        self._add_binding(value)
        return self

    def or_where(self, column: str, operator: Any = None, value: Any = _MISSING) -> "QueryBuilder":
        return self.where(column, operator, value, "or")

    def where_in(self, column: str, values: Iterable[Any], boolean: str = "and",
                 not_: bool = False) -> "QueryBuilder":
        values = list(values)
        kind = "not_in" if not_ else "in"
        self.components.wheres.append(Where(kind, column, value=values, boolean=boolean))
        self._add_bindings(values)
        return self

    def or_where_in(self, column: str, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_in(column, values, "or")

    def where_not_in(self, column: str, values: Iterable[Any], boolean: str = "and") -> "QueryBuilder":
        return self.where_in(column, values, boolean, not_=True)

    def or_where_not_in(self, column: str, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_in(column, values, "or", not_=True)

    def where_null(self, column: str, boolean: str = "and", not_: bool = False) -> "QueryBuilder":
        kind = "not_null" if not_ else "null"
        self.components.wheres.append(Where(kind, column, boolean=boolean))
        return self

    def or_where_null(self, column: str) -> "QueryBuilder":
        return self.where_null(column, "or")

    def where_not_null(self, column: str, boolean: str = "and") -> "QueryBuilder":
        return self.where_null(column, boolean, not_=True)

    def or_where_not_null(self, column: str) -> "QueryBuilder":
        return self.where_null(column, "or", not_=True)

    def where_between(self, column: str, values: Sequence[Any], boolean: str = "and",
                      not_: bool = False) -> "QueryBuilder":
        values = list(values)
        if len(values) != 2:
            raise ValueError("where_between expects exactly two values.")
        kind = "not_between" if not_ else "between"
        self.components.wheres.append(Where(kind, column, value=values, boolean=boolean))
        self._add_bindings(values)
        return self

    def where_not_between(self, column: str, values: Sequence[Any], boolean: str = "and") -> "QueryBuilder":
        return self.where_between(column, values, boolean, not_=True)

    # ------------------------------------------------------------------
    # GROUP / HAVING / ORDER / LIMIT
    # ------------------------------------------------------------------

    def group_by(self, *columns: str) -> "QueryBuilder":
        self.components.groups.extend(self._flatten(columns))
        return self

    def having(self, column: str, operator: Any = None, value: Any = _MISSING,
               boolean: str = "and") -> "QueryBuilder":
        if value is _MISSING:
            operator, value = "=", operator
        operator = self._check_operator(operator)
        if value is None:
            if operator == "=":
                self.components.havings.append(Where("null", column, boolean=boolean))
                return self
            if operator in ("!=", "<>"):
                self.components.havings.append(Where("not_null", column, boolean=boolean))
                return self
            raise ValueError(f"Operator [{operator}] cannot be compared with None.")
        self.components.havings.append(Where("basic", column, operator, value, boolean))
        self._add_binding(value, "having")
        return self

    def or_having(self, column: str, operator: Any = None, value: Any = _MISSING) -> "QueryBuilder":
        return self.having(column, operator, value, "or")

    def order_by(self, column: str, direction: str = "asc") -> "QueryBuilder":
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Order direction must be 'asc' or 'desc', got [{direction}].")
        self.components.orders.append(Order(column, direction))
        return self

    def order_by_desc(self, column: str) -> "QueryBuilder":
        return self.order_by(column, "desc")

    def latest(self, column: str = "created_at") -> "QueryBuilder":
        return self.order_by(column, "desc")

    def oldest(self, column: str = "created_at") -> "QueryBuilder":
        return self.order_by(column, "asc")

    def limit(self, value: Optional[int]) -> "QueryBuilder":
        if value is not None and int(value) < 0:
            raise ValueError("Limit must be a non-negative integer.")
        self.components.limit = None if value is None else int(value)
        return self

    take = limit

    def offset(self, value: Optional[int]) -> "QueryBuilder":
        if value is not None and int(value) < 0:
            raise ValueError("Offset must be a non-negative integer.")
        self.components.offset = None if value is None else int(value)
        return self

    skip = offset

    def for_page(self, page: int, per_page: int = 15) -> "QueryBuilder":
        return self.offset((max(1, int(page)) - 1) * per_page).limit(per_page)

    # ------------------------------------------------------------------
    # Model binding / eager loading / global scopes
    # ------------------------------------------------------------------

    def set_model(self, model: type) -> "QueryBuilder":
        self._model = model
        return self

    def get_model(self) -> Optional[type]:
        return self._model

    def with_(self, *relations: Union[str, Mapping[str, Callable]]) -> "QueryBuilder":
        """
        Request eager loading of relations (``"posts"``, ``"posts.comments"``
        or ``{"posts": lambda q: q.where(...)}``).
        """
        for relation in relations:
            if isinstance(relation, Mapping):
                self._eager.update(relation)
            else:
                self._eager.setdefault(relation, None)
        return self

    def get_eager_loads(self) -> Dict[str, Optional[Callable]]:
        return dict(self._eager)

    def without_eager_loads(self) -> "QueryBuilder":
        self._eager = {}
        return self

    def with_global_scope(self, name: str, scope: Callable[["QueryBuilder"], Any]) -> "QueryBuilder":
        self._scopes[name] = scope
        return self

    def without_global_scope(self, *names: str) -> "QueryBuilder":
        """Remove the named scopes, or every scope when called with none."""
        self._removed_scopes.update(names or self._scopes.keys())
        return self

    def _prepared(self) -> "QueryBuilder":
        """Clone with the active global scopes applied."""
        active = [s for n, s in self._scopes.items() if n not in self._removed_scopes]
        if not active:
            return self
        query = self.clone()
        query._scopes = {}
        for scope in active:
            scope(query)
        return query

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def to_sql(self) -> str:
        return self.grammar.compile_select(self._prepared().components)

    def get_bindings(self) -> List[Any]:
        return self._prepared().components.flat_bindings()

    def to_debug(self) -> Dict[str, Any]:
        query = self._prepared()
        return {
            "sql": self.grammar.compile_select(query.components),
            "bindings": query.components.flat_bindings(),
        }

    def clone(self) -> "QueryBuilder":
        query = QueryBuilder(self.connection, self.grammar)
        query.components = self.components.copy()
        query._model = self._model
        query._eager = dict(self._eager)
        query._scopes = dict(self._scopes)
        query._removed_scopes = set(self._removed_scopes)
        return query

    def reset(self) -> "QueryBuilder":
        table = self.components.from_
        self.components = QueryComponents(from_=table)
        return self

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, columns: Optional[Sequence[str]] = None) -> Collection:
        """
        Run the SELECT.

        Returns a Collection of dict rows, or of hydrated models (with any
        requested relations eager-loaded) when bound to a model class.
        """
        query = self._prepared()
        if columns:
            query = query.clone() if query is self else query
            query.components.columns = list(columns)

        rows = self.connection.query(
            self.grammar.compile_select(query.components),
            query.components.flat_bindings(),
        )

        if self._model is None:
            return Collection(rows)

        models = self._model.hydrate(rows, self.connection)
        if self._eager and len(models):
            self._model.eager_load(models, self._eager, self.connection)
        return models

    def first(self, columns: Optional[Sequence[str]] = None):
        """First row, or None. The builder's own limit is left untouched."""
        return self.clone().limit(1).get(columns).first()

    def first_or_fail(self, columns: Optional[Sequence[str]] = None):
        result = self.first(columns)
        if result is None:
            raise ModelNotFoundException(self._model_name())
        return result

    def _key_name(self) -> str:
        if self._model is not None:
            return self._model.primary_key
        return "id"

    def _model_name(self) -> str:
        if self._model is not None:
            return self._model.__name__
        return str(self.components.from_)

    def find(self, id: Any, columns: Optional[Sequence[str]] = None):
        """
        Look up by primary key. A list of ids returns a Collection.
        """
        if isinstance(id, (list, tuple, set)):
            return self.clone().where_in(self._key_name(), list(id)).get(columns)
        return self.clone().where(self._key_name(), "=", id).first(columns)

    def find_or_fail(self, id: Any, columns: Optional[Sequence[str]] = None):
        result = self.find(id, columns)
        if isinstance(id, (list, tuple, set)):
            if len(result) != len(set(id)):
                raise ModelNotFoundException(self._model_name(), list(id))
            return result
        if result is None:
            raise ModelNotFoundException(self._model_name(), id)
        return result

    def value(self, column: str) -> Any:
        row = self.first([column])
        if row is None:
            return None
        return data_get(row, column.rpartition(".")[2])

    def pluck(self, column: str, key: Optional[str] = None):
        columns = [column] if key is None else [column, key]
        results = self.get(columns)
        name = column.rpartition(".")[2]
        if key is None:
            return results.pluck(name)
        return results.pluck(name, key.rpartition(".")[2])

    def exists(self) -> bool:
        query = self._prepared()
        row = self.connection.query_one(
            self.grammar.compile_exists(query.components),
            query.components.flat_bindings(),
        )
        return bool(row and row.get("exists"))

    def doesnt_exist(self) -> bool:
        return not self.exists()

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def aggregate(self, function: str, column: str = "*") -> Any:
        query = self._prepared().clone()
        query.components.orders = []
        query.components.limit = None
        query.components.offset = None

        row = self.connection.query_one(
            self.grammar.compile_aggregate(query.components, function, column),
            query.components.flat_bindings(),
        )
        if not row:
            return None
        return row.get("aggregate")

    def count(self, column: str = "*") -> int:
        return int(self.aggregate("count", column) or 0)

    def max(self, column: str) -> Any:
        return self.aggregate("max", column)

    def min(self, column: str) -> Any:
        return self.aggregate("min", column)

    def avg(self, column: str) -> Any:
        return self.aggregate("avg", column)

    def sum(self, column: str) -> Any:
        return self.aggregate("sum", column) or 0

    # ------------------------------------------------------------------
    # Pagination / chunking
    # ------------------------------------------------------------------

    def paginate(self, per_page: int = 15, page: int = 1,
                 columns: Optional[Sequence[str]] = None) -> Page:
        """
        Count the full result set, then fetch one page of it.

        Raises
        ------
        ValueError
            ``per_page`` is not positive.
        """
        if per_page <= 0:
            raise ValueError("per_page must be a positive integer.")
        page = max(1, int(page))

        total = self.count()
        if total:
            items = self.clone().for_page(page, per_page).get(columns)
        else:
            items = Collection()
        return Page(items, total, per_page, page)

    def chunk(self, size: int, callback: Callable[[Collection], Any]) -> bool:
        """
        Feed the result set to ``callback`` ``size`` rows at a time.

        Stops after a short page, or as soon as the callback returns
        False. Returns False when stopped by the callback.
        """
        if size <= 0:
            raise ValueError("Chunk size must be a positive integer.")

        page = 1
        while True:
            results = self.clone().for_page(page, size).get()
            count = len(results)
            if count == 0:
                break
            if callback(results) is False:
                return False
            if count < size:
                break
            page += 1
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, values: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]) -> int:
        """
        Insert one row (mapping) or many rows (list of mappings sharing
        the same keys). Returns the affected-row count.
        """
        rows = [values] if isinstance(values, Mapping) else list(values)
        if not rows:
            return 0

        columns = list(rows[0].keys())
        bindings: List[Any] = []
        for row in rows:
            if set(row.keys()) != set(columns):
                raise ValueError("Every inserted row must have the same columns.")
            bindings.extend(row[c] for c in columns if not isinstance(row[c], Expression))

        ordered = [{c: row[c] for c in columns} for row in rows]
        sql = self.grammar.compile_insert(self.components.from_, ordered)
        return self.connection.execute(sql, bindings)

    def insert_get_id(self, values: Mapping[str, Any], sequence: str = "id") -> Any:
        sql = self.grammar.compile_insert_get_id(self.components.from_, values, sequence)
        bindings = [v for v in values.values() if not isinstance(v, Expression)]
        return self.connection.insert(sql, bindings)

    def update(self, values: Mapping[str, Any]) -> int:
        """
        UPDATE the matched rows. SET bindings precede WHERE bindings.
        """
        if not values:
            return 0
        query = self._prepared()
        sql = self.grammar.compile_update(query.components, values)
        bindings = [v for v in values.values() if not isinstance(v, Expression)]
        bindings.extend(query.components.bindings["where"])
        return self.connection.execute(sql, bindings)

    def increment(self, column: str, amount: Union[int, float] = 1,
                  extra: Optional[Mapping[str, Any]] = None) -> int:
        return self._step(column, amount, "+", extra)

    def decrement(self, column: str, amount: Union[int, float] = 1,
                  extra: Optional[Mapping[str, Any]] = None) -> int:
        return self._step(column, amount, "-", extra)

    def _step(self, column: str, amount, sign: str, extra) -> int:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError("Non-numeric value passed to increment method.")
        values: Dict[str, Any] = {
            column: Expression(f"{self.grammar.wrap(column)} {sign} {amount}")
        }
        values.update(extra or {})
        return self.update(values)

    def delete(self, id: Any = None) -> int:
        """Delete matching rows; ``id`` narrows a clone, never this builder."""
        builder = self if id is None else self.clone().where(self._key_name(), "=", id)
        query = builder._prepared()
        return self.connection.execute(
            self.grammar.compile_delete(query.components),
            query.components.bindings["where"],
        )

    def truncate(self) -> None:
        self.connection.statement(self.grammar.compile_truncate(self.components.from_))

    # ------------------------------------------------------------------
    # Escape hatches
    # ------------------------------------------------------------------

    def raw(self, sql: str, bindings: Sequence[Any] = ()):
        """
        Run a hand-written statement.

        Always allowed when the connection's environment is "testing".
        Refused in "production" unless ``allow_raw_sql`` is set. Any other
        environment runs it with a warning.

        Returns a Collection for reads, the affected-row count otherwise.

        Raises
        ------
        RawQueryDisabledError
            Production environment without ``allow_raw_sql``.
        """
        environment = self.connection.environment
        if environment == "production" and not self.connection.config.allow_raw_sql:
            raise RawQueryDisabledError(
                "Raw SQL is disabled in production. Set ALLOW_RAW_SQL=true to enable it.",
                sql=sql,
                bindings=bindings,
            )
        if environment != "testing":
            logger.warning("Raw SQL executed in %s environment: %s", environment, sql)

        if sql.lstrip().upper().startswith(_READ_PREFIXES):
            return Collection(self.connection.query(sql, bindings))
        return self.connection.execute(sql, bindings)

    def transaction(self, callback: Callable[["QueryBuilder"], Any]) -> Any:
        """Run ``callback(builder)`` inside a connection transaction."""
        return self.connection.transaction(lambda _conn: callback(self))

    def __repr__(self) -> str:
        return f"QueryBuilder({self.to_sql()!r})"
