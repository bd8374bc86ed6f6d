"""
Query descriptor types.

The QueryBuilder accumulates a QueryComponents instance; grammars read it
and never mutate it. Bindings are kept per clause so that the flattened
list always follows placeholder order (WHERE before HAVING) no matter in
which order the builder methods were called.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from .expression import Expression

Column = Union[str, Expression]

# Clause order used when flattening bindings.
BINDING_CLAUSES = ("join", "where", "having")

OPERATORS = (
    "=", "<", ">", "<=", ">=", "<>", "!=", "<=>",
    "like", "not like", "ilike", "not ilike",
)


@dataclass
class Where:
    """
    One predicate.

    kind:
        "basic", "in", "not_in", "null", "not_null", "between",
        "not_between".
    value:
        Scalar for basic predicates, list of values for in / not_in /
        between kinds, unused for null checks.
    boolean:
        Conjunction with the previous predicate ("and" / "or").
    """

    kind: str
    column: Column
    operator: str = "="
    value: Any = None
    boolean: str = "and"


@dataclass
class Join:
    table: str
    first: Column
    operator: str
    second: Column
    type: str = "inner"


@dataclass
class Order:
    column: Column
    direction: str = "asc"


@dataclass
class QueryComponents:
    columns: List[Column] = field(default_factory=lambda: ["*"])
    distinct: bool = False
    from_: Optional[str] = None
    joins: List[Join] = field(default_factory=list)
    wheres: List[Where] = field(default_factory=list)
    groups: List[Column] = field(default_factory=list)
    havings: List[Where] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    bindings: Dict[str, List[Any]] = field(
        default_factory=lambda: {clause: [] for clause in BINDING_CLAUSES}
    )

    def flat_bindings(self) -> List[Any]:
        out: List[Any] = []
        for clause in BINDING_CLAUSES:
            out.extend(self.bindings[clause])
        return out

    def aliases(self) -> Set[str]:
        """Aliases declared by ``table as alias`` in the FROM and JOIN clauses."""
        names = set()
        for table in [self.from_, *(j.table for j in self.joins)]:
            if isinstance(table, str) and " as " in table.lower():
                names.add(table[table.lower().index(" as ") + 4:].strip())
        return names

    def copy(self) -> "QueryComponents":
        return copy.deepcopy(self)
