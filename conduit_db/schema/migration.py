"""
Migration unit contract and file loader.

A migration file is a Python module in the migrations directory whose
stem is the migration id (``2024_01_01_000000_create_users_table.py``).
It defines exactly one Migration subclass, or names it explicitly with a
module-level ``migration = CreateUsersTable``.
"""

from __future__ import annotations

import importlib.util
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Type, Union

from ..exceptions import MigrationError
from .builder import SchemaBuilder

if TYPE_CHECKING:
    from ..db.connection import Connection


class Migration(ABC):
    """
    One reversible schema change.

    ``up()`` applies it, ``down()`` reverses it. Both run inside a
    transaction opened by the Migrator.
    """

    def __init__(self, connection: "Connection"):
        self.connection = connection
        self.schema = SchemaBuilder(connection)

    @abstractmethod
    def up(self) -> None:
        ...

    @abstractmethod
    def down(self) -> None:
        ...


def load_migration(path: Union[str, Path]) -> Type[Migration]:
    """
    Import a migration file and return its Migration class.

    Raises
    ------
    MigrationError
        The file cannot be imported or does not define exactly one
        Migration subclass.
    """
    path = Path(path)
    name = path.stem

    spec = importlib.util.spec_from_file_location(f"conduit_migrations.{name}", path)
    if spec is None or spec.loader is None:
        raise MigrationError(f"Cannot load migration file: {path}", migration=name)

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise MigrationError(f"Cannot import migration: {name}\nError: {e}", migration=name) from e

    explicit = getattr(module, "migration", None)
    if isinstance(explicit, type) and issubclass(explicit, Migration):
        return explicit

    classes = [
        obj for obj in vars(module).values()
        if isinstance(obj, type)
        and issubclass(obj, Migration)
        and obj is not Migration
        and obj.__module__ == module.__name__
    ]
    if len(classes) != 1:
        raise MigrationError(
            f"Migration file {name} must define exactly one Migration subclass "
            f"(found {len(classes)}).",
            migration=name,
        )
    return classes[0]
