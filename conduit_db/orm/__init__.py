"""
conduit_db.orm

Active-record layer.

- Entities:
      * Model  (attribute map, dirty tracking, casts, persistence)

- Relations:
      * HasOne, HasMany, BelongsTo, BelongsToMany

- Persistence policies:
      * PersistencePolicy
      * Timestamps
      * SoftDeletes
      * ModelEvents
"""

from .model import CAST_TYPES, Model
from .policies import EVENTS, ModelEvents, PersistencePolicy, SoftDeletes, Timestamps
from .relations import BelongsTo, BelongsToMany, HasMany, HasOne, Relation

__all__ = [
    "Model",
    "CAST_TYPES",
    "Relation",
    "HasOne",
    "HasMany",
    "BelongsTo",
    "BelongsToMany",
    "PersistencePolicy",
    "Timestamps",
    "SoftDeletes",
    "ModelEvents",
    "EVENTS",
]
