"""
Active-record base model.

Entities keep two attribute maps: the current values and the values as
last loaded or saved. ``save()`` diffs the two, so a clean entity never
issues a statement.

Attributes are stored in their storage form. Declared casts are applied
on read (``get_attribute``); ``set_attribute`` converts Python values
(dicts, dates, datetimes) back to storage form.

Connections are passed explicitly:

    user = User.find(conn, 1)
    post = Post.create(conn, {"title": "Hello", "user_id": user.get_key()})

Instances remember the connection they were loaded or created with.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from ..collection import Collection
from ..exceptions import ModelError, ModelNotFoundException
from ..query.builder import QueryBuilder
from ..utils.inflect import Pluralizer, default_pluralizer, snake_case
from . import policies as _policies
from .policies import TIMESTAMP_FORMAT, PersistencePolicy, SoftDeletes, Timestamps
from .relations import BelongsTo, BelongsToMany, HasMany, HasOne, Relation

if TYPE_CHECKING:
    from ..db.connection import Connection

logger = logging.getLogger(__name__)

M = TypeVar("M", bound="Model")

CAST_TYPES = frozenset({
    "int", "integer",
    "float", "double",
    "str", "string",
    "bool", "boolean",
    "array", "json",
    "date", "datetime",
})

_FALSE_STRINGS = frozenset({"", "0", "false", "f", "no", "off"})

EagerLoads = Mapping[str, Optional[Callable[[QueryBuilder], Any]]]


class Model:
    """
    Base class for entities.

    Class attributes
    ----------------
    table:
        Table name; defaults to the pluralized snake_case class name.
    primary_key:
        Key column (default ``id``).
    incrementing:
        Whether the key is generated by the database on insert.
    fillable / guarded:
        Mass-assignment allow list / deny list. ``("*",)`` in ``guarded``
        blocks everything not listed in ``fillable``.
    hidden / visible:
        Serialization filters for ``to_dict()``.
    casts:
        Column to cast tag (see CAST_TYPES).
    policies:
        PersistencePolicy instances (Timestamps, SoftDeletes, ModelEvents).
    """

    table: ClassVar[Optional[str]] = None
    primary_key: ClassVar[str] = "id"
    incrementing: ClassVar[bool] = True
    fillable: ClassVar[Sequence[str]] = ()
    guarded: ClassVar[Sequence[str]] = ("*",)
    hidden: ClassVar[Sequence[str]] = ()
    visible: ClassVar[Sequence[str]] = ()
    casts: ClassVar[Dict[str, str]] = {}
    policies: ClassVar[Sequence[PersistencePolicy]] = ()
    pluralizer: ClassVar[Pluralizer] = default_pluralizer

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        for column, tag in cls.casts.items():
            if tag not in CAST_TYPES:
                raise ModelError(
                    f"Unknown cast [{tag}] for {cls.__name__}.{column}. "
                    f"Expected one of {sorted(CAST_TYPES)}."
                )

    def __init__(self, attributes: Optional[Mapping[str, Any]] = None, *,
                 connection: Optional["Connection"] = None):
        self._attributes: Dict[str, Any] = {}
        self._original: Dict[str, Any] = {}
        self._relations: Dict[str, Any] = {}
        self._connection = connection
        self.exists = False
        if attributes:
            self.fill(attributes)

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    @classmethod
    def model_name(cls) -> str:
        return snake_case(cls.__name__)

    @classmethod
    def get_table(cls) -> str:
        return cls.table or cls.pluralizer.plural(cls.model_name())

    @classmethod
    def get_foreign_key(cls) -> str:
        """Column other tables use to point at this model (``user_id``)."""
        return f"{cls.model_name()}_{cls.primary_key}"

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def get_connection(self, required: bool = True) -> Optional["Connection"]:
        if self._connection is None and required:
            raise ModelError(
                f"{type(self).__name__} instance has no connection. "
                "Pass connection= or load it through a query."
            )
        return self._connection

    def set_connection(self: M, connection: "Connection") -> M:
        self._connection = connection
        return self

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    @classmethod
    def query(cls, connection: "Connection") -> QueryBuilder:
        """New builder bound to this model, with policy scopes registered."""
        builder = QueryBuilder(connection).from_(cls.get_table()).set_model(cls)
        for policy in cls.policies:
            policy.apply_scopes(builder, cls)
        return builder

    @classmethod
    def all(cls, connection: "Connection") -> Collection:
        return cls.query(connection).get()

    @classmethod
    def find(cls, connection: "Connection", id: Any):
        return cls.query(connection).find(id)

    @classmethod
    def find_or_fail(cls, connection: "Connection", id: Any):
        return cls.query(connection).find_or_fail(id)

    @classmethod
    def where(cls, connection: "Connection", column: Any, *args: Any) -> QueryBuilder:
        return cls.query(connection).where(column, *args)

    @classmethod
    def with_(cls, connection: "Connection", *relations: Union[str, EagerLoads]) -> QueryBuilder:
        return cls.query(connection).with_(*relations)

    @classmethod
    def create(cls: Type[M], connection: "Connection", attributes: Mapping[str, Any]) -> M:
        instance = cls(attributes, connection=connection)
        instance.save()
        return instance

    @classmethod
    def _soft_deletes(cls) -> Optional[SoftDeletes]:
        for policy in cls.policies:
            if isinstance(policy, SoftDeletes):
                return policy
        return None

    @classmethod
    def _require_soft_deletes(cls) -> SoftDeletes:
        policy = cls._soft_deletes()
        if policy is None:
            raise ModelError(f"{cls.__name__} does not use soft deletes.")
        return policy

    @classmethod
    def with_trashed(cls, connection: "Connection") -> QueryBuilder:
        cls._require_soft_deletes()
        return cls.query(connection).without_global_scope(SoftDeletes.SCOPE)

    @classmethod
    def only_trashed(cls, connection: "Connection") -> QueryBuilder:
        policy = cls._require_soft_deletes()
        return cls.with_trashed(connection).where_not_null(
            f"{cls.get_table()}.{policy.column}"
        )

    # ------------------------------------------------------------------
    # Hydration / eager loading
    # ------------------------------------------------------------------

    @classmethod
    def new_from_row(cls: Type[M], row: Mapping[str, Any],
                     connection: Optional["Connection"] = None) -> M:
        model = cls(connection=connection)
        model._attributes = dict(row)
        model._original = dict(row)
        model.exists = True
        return model

    @classmethod
    def hydrate(cls, rows: Sequence[Mapping[str, Any]],
                connection: Optional["Connection"] = None) -> Collection:
        return Collection([cls.new_from_row(row, connection) for row in rows])

    @staticmethod
    def _eager_tree(relations: EagerLoads) -> Dict[str, Tuple[Optional[Callable], Dict[str, Any]]]:
        """Split ``{"posts.comments": cb}`` into ``{"posts": (None, {"comments": cb})}``."""
        tree: Dict[str, Tuple[Optional[Callable], Dict[str, Any]]] = {}
        for name, constraint in relations.items():
            head, _, rest = name.partition(".")
            current, nested = tree.get(head, (None, {}))
            if rest:
                nested[rest] = constraint
            else:
                current = constraint
            tree[head] = (current, nested)
        return tree

    @classmethod
    def eager_load(cls, models: Collection, relations: EagerLoads,
                   connection: Optional["Connection"] = None) -> Collection:
        """
        Load ``relations`` for every model in ``models``.

        Issues one query per relation (and per nested level), constrained
        to the keys present in the batch, then matches the results back
        onto each model.
        """
        if not len(models):
            return models

        for name, (constraint, nested) in cls._eager_tree(relations).items():
            relation = models.first().relation(name)
            if constraint is not None:
                constraint(relation.query)
            relation.add_eager_constraints(models)
            results = relation.get_eager()
            if nested and len(results):
                relation.related.eager_load(results, nested, connection)
            relation.match(models, results, name)
        return models

    def load(self: M, *relations: Union[str, EagerLoads]) -> M:
        """Eager-load relations onto this already-loaded model."""
        eager: Dict[str, Any] = {}
        for relation in relations:
            if isinstance(relation, Mapping):
                eager.update(relation)
            else:
                eager.setdefault(relation, None)
        type(self).eager_load(Collection([self]), eager, self._connection)
        return self

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def get_key(self) -> Any:
        return self._attributes.get(self.primary_key)

    def set_key(self, value: Any) -> None:
        self._attributes[self.primary_key] = value

    def get_attribute(self, key: str) -> Any:
        if key in self._attributes:
            return self._cast(key, self._attributes[key])
        if key in self._relations:
            return self._relations[key]
        return None

    def set_attribute(self: M, key: str, value: Any) -> M:
        self._attributes[key] = self._to_storage(key, value)
        return self

    def get_raw_attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def pop_attributes(self, prefix: str) -> Dict[str, Any]:
        """Remove every attribute starting with ``prefix``; return them unprefixed."""
        popped: Dict[str, Any] = {}
        for key in [k for k in self._attributes if k.startswith(prefix)]:
            popped[key[len(prefix):]] = self._attributes.pop(key)
            self._original.pop(key, None)
        return popped

    def __getitem__(self, key: str) -> Any:
        return self.get_attribute(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set_attribute(key, value)

    def __contains__(self, key: str) -> bool:
        return key in self._attributes

    # -- casting -------------------------------------------------------

    def _cast(self, key: str, value: Any) -> Any:
        tag = self.casts.get(key)
        if tag is None or value is None:
            return value

        if tag in ("int", "integer"):
            return int(value)
        if tag in ("float", "double"):
            return float(value)
        if tag in ("str", "string"):
            return str(value)
        if tag in ("bool", "boolean"):
            if isinstance(value, str):
                return value.strip().lower() not in _FALSE_STRINGS
            return bool(value)
        if tag in ("array", "json"):
            if isinstance(value, (bytes, bytearray)):
                value = value.decode("utf-8")
            return json.loads(value) if isinstance(value, str) else value
        if tag == "datetime":
            if isinstance(value, datetime):
                return value
            if isinstance(value, date):
                return datetime(value.year, value.month, value.day)
            return datetime.fromisoformat(str(value))
        if tag == "date":
            if isinstance(value, datetime):
                return value.date()
            if isinstance(value, date):
                return value
            return date.fromisoformat(str(value)[:10])
        return value

    def _to_storage(self, key: str, value: Any) -> Any:
        tag = self.casts.get(key)
        if tag is None or value is None:
            return value

        if tag in ("array", "json") and not isinstance(value, str):
            return json.dumps(value)
        if tag == "datetime" and isinstance(value, datetime):
            return value.strftime(TIMESTAMP_FORMAT)
        if tag == "date" and isinstance(value, date):
            return (value.date() if isinstance(value, datetime) else value).isoformat()
        return value

    def _serialize(self, key: str) -> Any:
        value = self.get_attribute(key)
        if isinstance(value, datetime):
            return value.strftime(TIMESTAMP_FORMAT)
        if isinstance(value, date):
            return value.isoformat()
        return value

    # -- mass assignment -----------------------------------------------

    def is_fillable(self, key: str) -> bool:
        if self.fillable:
            return key in self.fillable
        if "*" in self.guarded:
            return False
        return key not in self.guarded

    def fill(self: M, attributes: Mapping[str, Any]) -> M:
        """Assign the fillable subset of ``attributes``; others are ignored."""
        for key, value in attributes.items():
            if self.is_fillable(key):
                self.set_attribute(key, value)
            else:
                logger.debug("Ignoring guarded attribute %s.%s", type(self).__name__, key)
        return self

    def force_fill(self: M, attributes: Mapping[str, Any]) -> M:
        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    # -- dirty tracking ------------------------------------------------

    def get_dirty(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in self._attributes.items()
            if key not in self._original or self._original[key] != value
        }

    def is_dirty(self, *keys: str) -> bool:
        dirty = self.get_dirty()
        if not keys:
            return bool(dirty)
        return any(key in dirty for key in keys)

    def is_clean(self, *keys: str) -> bool:
        return not self.is_dirty(*keys)

    def get_original(self, key: Optional[str] = None) -> Any:
        if key is None:
            return dict(self._original)
        return self._original.get(key)

    def sync_original(self: M) -> M:
        self._original = dict(self._attributes)
        return self

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _fire(self, event: str) -> bool:
        for policy in self.policies:
            if policy.fire(self, event) is False:
                return False
        return True

    @classmethod
    def listen(cls, event: str, callback: Callable[["Model"], Any]) -> None:
        """Register a lifecycle listener for exactly this class."""
        _policies.listen(cls, event, callback)

    @classmethod
    def clear_listeners(cls) -> None:
        _policies.clear_listeners(cls)

    def _key_query(self) -> QueryBuilder:
        key = self._original.get(self.primary_key, self.get_key())
        return (
            self.get_connection()
            .table(self.get_table())
            .where(self.primary_key, "=", key)
        )

    def save(self) -> bool:
        """
        INSERT a new entity, or UPDATE the dirty columns of an existing
        one. Saving a clean entity issues no statement and returns True.

        Returns False when a listener cancelled the save.
        """
        connection = self.get_connection()
        if not self._fire("saving"):
            return False

        if self.exists:
            saved = self._perform_update()
        else:
            saved = self._perform_insert(connection)

        if saved:
            self._fire("saved")
        return saved

    def _perform_insert(self, connection: "Connection") -> bool:
        for policy in self.policies:
            policy.before_insert(self)
        if not self._fire("creating"):
            return False

        query = connection.table(self.get_table())
        if self.incrementing and self.get_key() is None:
            attributes = {k: v for k, v in self._attributes.items() if k != self.primary_key}
            self.set_key(query.insert_get_id(attributes, self.primary_key))
        else:
            query.insert(dict(self._attributes))

        self.exists = True
        self.sync_original()
        self._fire("created")
        return True

    def _perform_update(self) -> bool:
        if not self.is_dirty():
            return True

        for policy in self.policies:
            policy.before_update(self)
        if not self._fire("updating"):
            return False

        self._key_query().update(self.get_dirty())
        self.sync_original()
        self._fire("updated")
        return True

    def update(self, attributes: Mapping[str, Any]) -> bool:
        return self.fill(attributes).save()

    def delete(self) -> bool:
        """
        Delete the row, or stamp it when the model uses SoftDeletes.

        Returns False for a model that does not exist or when a
        ``deleting`` listener cancelled it.
        """
        if not self.exists:
            return False
        if not self._fire("deleting"):
            return False

        for policy in self.policies:
            handled = policy.perform_delete(self)
            if handled is not None:
                if handled:
                    self._fire("deleted")
                return handled

        return self._hard_delete()

    def _hard_delete(self) -> bool:
        deleted = self._key_query().delete()
        self.exists = False
        self._fire("deleted")
        return deleted > 0

    def force_delete(self) -> bool:
        """Remove the row even when the model uses SoftDeletes."""
        if not self.exists:
            return False
        if not self._fire("deleting"):
            return False
        return self._hard_delete()

    def trashed(self) -> bool:
        policy = self._soft_deletes()
        return policy is not None and self._attributes.get(policy.column) is not None

    def restore(self) -> bool:
        policy = self._require_soft_deletes()
        if not self.trashed():
            return False
        if not self._fire("restoring"):
            return False

        self.set_attribute(policy.column, None)
        restored = self.save()
        if restored:
            self._fire("restored")
        return restored

    def touch(self) -> bool:
        """Bump ``updated_at`` and save. False without the Timestamps policy."""
        if not self.exists:
            return False
        stamped = False
        for policy in self.policies:
            if isinstance(policy, Timestamps):
                policy.before_update(self)
                stamped = True
        return self.save() if stamped else False

    def fresh(self: M) -> Optional[M]:
        """Reload this entity from the database as a new instance."""
        if not self.exists:
            return None
        return (
            type(self)
            .query(self.get_connection())
            .without_global_scope()
            .find(self.get_key())
        )

    def refresh(self: M) -> M:
        """
        Reload attributes in place and drop cached relations.

        Raises
        ------
        ModelNotFoundException
            The row no longer exists.
        """
        if not self.exists:
            return self
        fresh = self.fresh()
        if fresh is None:
            raise ModelNotFoundException(type(self).__name__, self.get_key())
        self._attributes = dict(fresh._attributes)
        self.sync_original()
        self._relations = {}
        return self

    def replicate(self: M, except_: Sequence[str] = ()) -> M:
        """Unsaved copy without the key and timestamp columns."""
        excluded = {self.primary_key, *except_}
        for policy in self.policies:
            if isinstance(policy, Timestamps):
                excluded.update((policy.created_at, policy.updated_at))
        replica = type(self)(connection=self._connection)
        replica.force_fill({k: v for k, v in self._attributes.items() if k not in excluded})
        return replica

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """
        Visible attributes (casts applied, dates as strings) plus loaded
        relations.
        """
        data: Dict[str, Any] = {key: self._serialize(key) for key in self._attributes}
        for name, value in self._relations.items():
            if isinstance(value, Collection):
                data[name] = value.to_list()
            elif isinstance(value, Model):
                data[name] = value.to_dict()
            else:
                data[name] = value

        for key in self.hidden:
            data.pop(key, None)
        if self.visible:
            data = {k: v for k, v in data.items() if k in self.visible}
        return data

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), default=str, **kwargs)

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def has_one(self, related: Type["Model"], foreign_key: Optional[str] = None,
                local_key: Optional[str] = None) -> HasOne:
        return HasOne(self, related, foreign_key, local_key)

    def has_many(self, related: Type["Model"], foreign_key: Optional[str] = None,
                 local_key: Optional[str] = None) -> HasMany:
        return HasMany(self, related, foreign_key, local_key)

    def belongs_to(self, related: Type["Model"], foreign_key: Optional[str] = None,
                   owner_key: Optional[str] = None) -> BelongsTo:
        return BelongsTo(self, related, foreign_key, owner_key)

    def belongs_to_many(self, related: Type["Model"], table: Optional[str] = None,
                        foreign_pivot_key: Optional[str] = None,
                        related_pivot_key: Optional[str] = None,
                        parent_key: Optional[str] = None,
                        related_key: Optional[str] = None) -> BelongsToMany:
        return BelongsToMany(
            self, related, table, foreign_pivot_key, related_pivot_key, parent_key, related_key
        )

    def relation(self, name: str) -> Relation:
        """Fresh, unresolved Relation declared by the method ``name``."""
        method = getattr(self, name, None)
        if not callable(method):
            raise ModelError(f"Relation [{name}] is not defined on {type(self).__name__}.")
        relation = method()
        if not isinstance(relation, Relation):
            raise ModelError(
                f"{type(self).__name__}.{name}() must return a Relation, "
                f"got {type(relation).__name__}."
            )
        return relation

    def related(self, name: str) -> Any:
        """Resolve relation ``name`` once, then serve it from the cache."""
        if name not in self._relations:
            self._relations[name] = self.relation(name).get_results()
        return self._relations[name]

    def set_relation(self: M, name: str, value: Any) -> M:
        self._relations[name] = value
        return self

    def get_relation(self, name: str, default: Any = None) -> Any:
        return self._relations.get(name, default)

    def relation_loaded(self, name: str) -> bool:
        return name in self._relations

    def get_relations(self) -> Dict[str, Any]:
        return dict(self._relations)

    @property
    def pivot(self) -> Optional[Dict[str, Any]]:
        return self._relations.get("pivot")

    def __repr__(self) -> str:
        state = "exists" if self.exists else "new"
        return f"<{type(self).__name__} {state} {self._attributes!r}>"
