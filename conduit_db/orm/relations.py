"""
Relation descriptors.

A relation is declared as a plain model method returning one of the
classes below:

    class User(Model):
        def posts(self):
            return self.has_many(Post)

A relation's query stays unconstrained until it is used: lazy access
(``user.related("posts")``) constrains it to the one parent, eager
loading (``User.with_("posts")``) constrains it to the key set of the
whole loaded batch and then matches results back onto each parent.

Match dictionaries are keyed by ``str(key)`` so integer keys read from
one table match string keys read from another driver's row format.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    Union,
)

from ..collection import Collection

if TYPE_CHECKING:
    from ..query.builder import QueryBuilder
    from .model import Model

logger = logging.getLogger(__name__)

Ids = Union[Any, Sequence[Any], Mapping[Any, Mapping[str, Any]]]


def _key(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _unique_keys(values: Iterable[Any]) -> List[Any]:
    seen = set()
    keys: List[Any] = []
    for value in values:
        k = _key(value)
        if k is None or k in seen:
            continue
        seen.add(k)
        keys.append(value)
    return keys


# ----------------------------------------------------------------------
# Base
# ----------------------------------------------------------------------

class Relation(ABC):
    """
    Parameters
    ----------
    parent:
        Model instance owning the relation.
    related:
        Related model class.
    """

    def __init__(self, parent: "Model", related: Type["Model"]):
        self.parent = parent
        self.related = related
        self.connection = parent.get_connection()
        self.query: "QueryBuilder" = related.query(self.connection)
        self._constrained = False

    # -- constraints ---------------------------------------------------

    @abstractmethod
    def add_constraints(self) -> None:
        """Constrain the query to ``self.parent``."""

    @abstractmethod
    def add_eager_constraints(self, models: Collection) -> None:
        """Constrain the query to every parent in ``models``."""

    @abstractmethod
    def match(self, models: Collection, results: Collection, name: str) -> Collection:
        """Attach ``results`` to the matching parents under ``name``."""

    @abstractmethod
    def get_results(self) -> Any:
        """Resolve the relation for ``self.parent``."""

    def get_query(self) -> "QueryBuilder":
        if not self._constrained:
            self._constrained = True
            self.add_constraints()
        return self.query

    def get_eager(self) -> Collection:
        return self.query.get()

    # -- fluent delegation ---------------------------------------------

    def where(self, column: str, operator: Any = None, *args: Any) -> "Relation":
        self.query.where(column, operator, *args)
        return self

    def where_in(self, column: str, values: Iterable[Any]) -> "Relation":
        self.query.where_in(column, values)
        return self

    def order_by(self, column: str, direction: str = "asc") -> "Relation":
        self.query.order_by(column, direction)
        return self

    def get(self) -> Collection:
        return self.get_query().get()

    def first(self):
        return self.get_query().first()

    def count(self) -> int:
        return self.get_query().count()

    def exists(self) -> bool:
        return self.get_query().exists()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({type(self.parent).__name__} -> {self.related.__name__})"


# ----------------------------------------------------------------------
# One-to-one / one-to-many
# ----------------------------------------------------------------------

class HasOneOrMany(Relation):
    def __init__(self, parent: "Model", related: Type["Model"],
                 foreign_key: Optional[str] = None, local_key: Optional[str] = None):
        super().__init__(parent, related)
        self.foreign_key = foreign_key or parent.get_foreign_key()
        self.local_key = local_key or parent.primary_key

    def parent_key(self) -> Any:
        return self.parent.get_attribute(self.local_key)

    def add_constraints(self) -> None:
        self.query.where(self.foreign_key, "=", self.parent_key())

    def add_eager_constraints(self, models: Collection) -> None:
        self._constrained = True
        keys = _unique_keys(m.get_attribute(self.local_key) for m in models)
        self.query.where_in(self.foreign_key, keys)

    def _dictionary(self, results: Collection) -> Dict[str, List["Model"]]:
        dictionary: Dict[str, List["Model"]] = {}
        for result in results:
            k = _key(result.get_attribute(self.foreign_key))
            if k is not None:
                dictionary.setdefault(k, []).append(result)
        return dictionary

    # -- writes --------------------------------------------------------

    def make(self, attributes: Optional[Mapping[str, Any]] = None) -> "Model":
        instance = self.related(attributes or {}, connection=self.connection)
        instance.set_attribute(self.foreign_key, self.parent_key())
        return instance

    def create(self, attributes: Mapping[str, Any]) -> "Model":
        instance = self.make(attributes)
        instance.save()
        return instance

    def create_many(self, records: Iterable[Mapping[str, Any]]) -> Collection:
        return Collection([self.create(attributes) for attributes in records])

    def save(self, model: "Model") -> "Model":
        if model.get_connection(required=False) is None:
            model.set_connection(self.connection)
        model.set_attribute(self.foreign_key, self.parent_key())
        model.save()
        return model

    def save_many(self, models: Iterable["Model"]) -> Collection:
        return Collection([self.save(model) for model in models])


class HasMany(HasOneOrMany):
    def get_results(self) -> Collection:
        if self.parent_key() is None:
            return Collection()
        return self.get()

    def match(self, models: Collection, results: Collection, name: str) -> Collection:
        dictionary = self._dictionary(results)
        for model in models:
            k = _key(model.get_attribute(self.local_key))
            model.set_relation(name, Collection(dictionary.get(k, [])))
        return models


class HasOne(HasOneOrMany):
    def get_results(self) -> Optional["Model"]:
        if self.parent_key() is None:
            return None
        return self.first()

    def match(self, models: Collection, results: Collection, name: str) -> Collection:
        dictionary = self._dictionary(results)
        for model in models:
            matches = dictionary.get(_key(model.get_attribute(self.local_key)))
            model.set_relation(name, matches[0] if matches else None)
        return models


# ----------------------------------------------------------------------
# Inverse one-to-many
# ----------------------------------------------------------------------

class BelongsTo(Relation):
    def __init__(self, parent: "Model", related: Type["Model"],
                 foreign_key: Optional[str] = None, owner_key: Optional[str] = None):
        super().__init__(parent, related)
        self.foreign_key = foreign_key or related.get_foreign_key()
        self.owner_key = owner_key or related.primary_key

    def child_key(self) -> Any:
        return self.parent.get_attribute(self.foreign_key)

    def add_constraints(self) -> None:
        self.query.where(self.owner_key, "=", self.child_key())

    def add_eager_constraints(self, models: Collection) -> None:
        self._constrained = True
        keys = _unique_keys(m.get_attribute(self.foreign_key) for m in models)
        self.query.where_in(self.owner_key, keys)

    def get_results(self) -> Optional["Model"]:
        if self.child_key() is None:
            return None
        return self.first()

    def match(self, models: Collection, results: Collection, name: str) -> Collection:
        dictionary = {_key(r.get_attribute(self.owner_key)): r for r in results}
        for model in models:
            model.set_relation(name, dictionary.get(_key(model.get_attribute(self.foreign_key))))
        return models

    def associate(self, model: "Model") -> "Model":
        self.parent.set_attribute(self.foreign_key, model.get_attribute(self.owner_key))
        return self.parent

    def dissociate(self) -> "Model":
        self.parent.set_attribute(self.foreign_key, None)
        return self.parent


# ----------------------------------------------------------------------
# Many-to-many
# ----------------------------------------------------------------------

PIVOT_PREFIX = "pivot_"


class BelongsToMany(Relation):
    """
    Many-to-many through a pivot table.

    Related models come back with the pivot row's columns under the
    ``pivot`` relation (``tag.pivot["post_id"]``).
    """

    def __init__(self, parent: "Model", related: Type["Model"],
                 table: Optional[str] = None,
                 foreign_pivot_key: Optional[str] = None,
                 related_pivot_key: Optional[str] = None,
                 parent_key: Optional[str] = None,
                 related_key: Optional[str] = None):
        super().__init__(parent, related)
        self.table = table or self.pivot_table_name(type(parent), related)
        self.foreign_pivot_key = foreign_pivot_key or parent.get_foreign_key()
        self.related_pivot_key = related_pivot_key or related.get_foreign_key()
        self.parent_key = parent_key or parent.primary_key
        self.related_key = related_key or related.primary_key
        self.pivot_columns: List[str] = []

        related_table = related.get_table()
        self.query.join(
            self.table,
            f"{related_table}.{self.related_key}",
            "=",
            f"{self.table}.{self.related_pivot_key}",
        )
        self._select_columns()

    @staticmethod
    def pivot_table_name(parent_cls: type, related_cls: type) -> str:
        segments = sorted([parent_cls.model_name(), related_cls.model_name()])
        return "_".join(segments)

    def _select_columns(self) -> None:
        columns = [f"{self.related.get_table()}.*"]
        for column in [self.foreign_pivot_key, self.related_pivot_key, *self.pivot_columns]:
            columns.append(f"{self.table}.{column} as {PIVOT_PREFIX}{column}")
        self.query.select(columns)

    def with_pivot(self, *columns: str) -> "BelongsToMany":
        self.pivot_columns.extend(columns)
        self._select_columns()
        return self

    def _parent_value(self) -> Any:
        return self.parent.get_attribute(self.parent_key)

    # -- reads ---------------------------------------------------------

    def add_constraints(self) -> None:
        self.query.where(f"{self.table}.{self.foreign_pivot_key}", "=", self._parent_value())

    def add_eager_constraints(self, models: Collection) -> None:
        self._constrained = True
        keys = _unique_keys(m.get_attribute(self.parent_key) for m in models)
        self.query.where_in(f"{self.table}.{self.foreign_pivot_key}", keys)

    def get(self) -> Collection:
        return self._hydrate_pivot(super().get())

    def first(self):
        return self._hydrate_pivot(self.get_query().clone().limit(1).get()).first()

    def get_eager(self) -> Collection:
        return self._hydrate_pivot(self.query.get())

    def get_results(self) -> Collection:
        if self._parent_value() is None:
            return Collection()
        return self.get()

    @staticmethod
    def _hydrate_pivot(models: Collection) -> Collection:
        for model in models:
            pivot = model.pop_attributes(PIVOT_PREFIX)
            model.set_relation("pivot", pivot)
        return models

    def match(self, models: Collection, results: Collection, name: str) -> Collection:
        dictionary: Dict[str, List["Model"]] = {}
        for result in results:
            k = _key(result.get_relation("pivot", {}).get(self.foreign_pivot_key))
            if k is not None:
                dictionary.setdefault(k, []).append(result)
        for model in models:
            k = _key(model.get_attribute(self.parent_key))
            model.set_relation(name, Collection(dictionary.get(k, [])))
        return models

    # -- pivot writes --------------------------------------------------

    def _pivot_query(self) -> "QueryBuilder":
        return self.connection.table(self.table).where(
            self.foreign_pivot_key, "=", self._parent_value()
        )

    @staticmethod
    def _normalize_ids(ids: Ids) -> Dict[Any, Dict[str, Any]]:
        if isinstance(ids, Mapping):
            return {k: dict(v or {}) for k, v in ids.items()}
        if isinstance(ids, (list, tuple, set, Collection)):
            return {i: {} for i in ids}
        return {ids: {}}

    def current_ids(self) -> List[Any]:
        return self._pivot_query().pluck(self.related_pivot_key).all()

    def attach(self, ids: Ids, attributes: Optional[Mapping[str, Any]] = None) -> int:
        """
        Insert pivot rows linking the parent to ``ids``.

        ``ids`` is one id, a sequence of ids, or a mapping of id to extra
        pivot columns for that row. Returns the number of rows inserted.
        """
        inserted = 0
        for related_id, extra in self._normalize_ids(ids).items():
            row = {
                self.foreign_pivot_key: self._parent_value(),
                self.related_pivot_key: related_id,
            }
            row.update(attributes or {})
            row.update(extra)
            inserted += self.connection.table(self.table).insert(row)
        return inserted

    def detach(self, ids: Optional[Ids] = None) -> int:
        """Delete pivot rows for ``ids``, or all of the parent's rows."""
        query = self._pivot_query()
        if ids is not None:
            keys = list(self._normalize_ids(ids))
            if not keys:
                return 0
            query.where_in(self.related_pivot_key, keys)
        return query.delete()

    def sync(self, ids: Ids, detaching: bool = True) -> Dict[str, List[Any]]:
        """
        Make the pivot rows match ``ids`` exactly.

        Returns ``{"attached": [...], "detached": [...]}``.
        """
        wanted = self._normalize_ids(ids)
        wanted_keys = {_key(i) for i in wanted}
        current = self.current_ids()
        current_keys = {_key(c) for c in current}

        detached = [c for c in current if _key(c) not in wanted_keys] if detaching else []
        if detached:
            self.detach(detached)

        to_attach = {i: extra for i, extra in wanted.items() if _key(i) not in current_keys}
        if to_attach:
            self.attach(to_attach)

        return {"attached": list(to_attach), "detached": detached}

    def toggle(self, ids: Ids) -> Dict[str, List[Any]]:
        """Detach the ids that are attached, attach the rest."""
        wanted = self._normalize_ids(ids)
        current_keys = {_key(c) for c in self.current_ids()}

        detached = [i for i in wanted if _key(i) in current_keys]
        if detached:
            self.detach(detached)

        to_attach = {i: extra for i, extra in wanted.items() if _key(i) not in current_keys}
        if to_attach:
            self.attach(to_attach)

        return {"attached": list(to_attach), "detached": detached}
