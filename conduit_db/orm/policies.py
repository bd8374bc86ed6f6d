"""
Persistence policies.

A model class opts into behavior by listing policy instances:

    class Post(Model):
        policies = (Timestamps(), SoftDeletes(), ModelEvents())

The model calls each policy at fixed points of its lifecycle:

    apply_scopes(query, model_cls)   every new model query
    before_insert(model)             after the "creating" event, before INSERT
    before_update(model)             after the "updating" event, before UPDATE
    perform_delete(model)            may take over delete(); None = not handled
    fire(model, event)               lifecycle event; False cancels the step

Policies hold no per-instance state; one instance may be shared by many
model classes.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, DefaultDict, Dict, List, Optional

if TYPE_CHECKING:
    from ..query.builder import QueryBuilder
    from .model import Model

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

EVENTS = (
    "creating",
    "created",
    "updating",
    "updated",
    "saving",
    "saved",
    "deleting",
    "deleted",
    "restoring",
    "restored",
)


def fresh_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class PersistencePolicy:
    """No-op base; subclasses override the hooks they need."""

    def apply_scopes(self, query: "QueryBuilder", model_cls: type) -> None:
        return None

    def before_insert(self, model: "Model") -> None:
        return None

    def before_update(self, model: "Model") -> None:
        return None

    def perform_delete(self, model: "Model") -> Optional[bool]:
        return None

    def fire(self, model: "Model", event: str) -> Optional[bool]:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ----------------------------------------------------------------------
# Timestamps
# ----------------------------------------------------------------------

class Timestamps(PersistencePolicy):
    """Maintain ``created_at`` / ``updated_at`` as formatted strings."""

    def __init__(self, created_at: str = "created_at", updated_at: str = "updated_at"):
        self.created_at = created_at
        self.updated_at = updated_at

    def before_insert(self, model: "Model") -> None:
        now = fresh_timestamp()
        if model.get_attribute(self.created_at) is None:
            model.set_attribute(self.created_at, now)
        model.set_attribute(self.updated_at, now)

    def before_update(self, model: "Model") -> None:
        model.set_attribute(self.updated_at, fresh_timestamp())


# ----------------------------------------------------------------------
# Soft deletes
# ----------------------------------------------------------------------

class SoftDeletes(PersistencePolicy):
    """
    Redirect delete() to stamping ``deleted_at``, and hide stamped rows
    from every model query through the ``soft_deletes`` global scope.
    """

    SCOPE = "soft_deletes"

    def __init__(self, column: str = "deleted_at"):
        self.column = column

    def apply_scopes(self, query: "QueryBuilder", model_cls: type) -> None:
        column = f"{model_cls.get_table()}.{self.column}"
        query.with_global_scope(self.SCOPE, lambda q: q.where_null(column))

    def perform_delete(self, model: "Model") -> Optional[bool]:
        model.set_attribute(self.column, fresh_timestamp())
        return model.save()


# ----------------------------------------------------------------------
# Lifecycle events
# ----------------------------------------------------------------------

Listener = Callable[["Model"], Any]

# Listeners are keyed by the exact model class; subclasses do not inherit.
_LISTENERS: DefaultDict[type, Dict[str, List[Listener]]] = defaultdict(
    lambda: defaultdict(list)
)


def listen(model_cls: type, event: str, callback: Listener) -> None:
    if event not in EVENTS:
        raise ValueError(f"Unknown model event [{event}]. Expected one of {EVENTS}.")
    _LISTENERS[model_cls][event].append(callback)


def clear_listeners(model_cls: Optional[type] = None) -> None:
    if model_cls is None:
        _LISTENERS.clear()
    else:
        _LISTENERS.pop(model_cls, None)


def get_listeners(model_cls: type, event: str) -> List[Listener]:
    if model_cls not in _LISTENERS:
        return []
    return list(_LISTENERS[model_cls].get(event, ()))


class ModelEvents(PersistencePolicy):
    """
    Dispatch lifecycle events to listeners registered with
    ``Model.listen(event, callback)``.

    A listener returning False stops dispatch and cancels the step.
    """

    def fire(self, model: "Model", event: str) -> Optional[bool]:
        for callback in get_listeners(type(model), event):
            if callback(model) is False:
                logger.debug("%s listener cancelled %s", event, type(model).__name__)
                return False
        return True
