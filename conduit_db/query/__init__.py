"""
conduit_db.query

Fluent query construction: the QueryBuilder, its descriptor types and the
Expression wrapper for raw SQL fragments.
"""

from .expression import Expression
from .components import Join, Order, QueryComponents, Where
from .builder import Page, QueryBuilder

__all__ = [
    "Expression",
    "Join",
    "Order",
    "QueryComponents",
    "Where",
    "Page",
    "QueryBuilder",
]
