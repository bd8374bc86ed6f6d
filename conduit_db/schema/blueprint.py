"""
Schema Blueprint DSL.

A Blueprint describes one table change: in *create* mode it becomes a
CREATE TABLE, otherwise an ALTER path. It holds ordered ColumnDefinitions
and ordered Commands; ``to_sql(grammar)`` turns the lot into a list of
statements. Nothing here talks to a database.

ForeignKeyDefinition is compiled lazily, so actions set after ``on()``
(``.on("users").on_delete("cascade")``) are honoured.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Union

from ..exceptions import GrammarError
from ..utils.inflect import Pluralizer, default_pluralizer

if TYPE_CHECKING:
    from ..grammar.base import Grammar


# ----------------------------------------------------------------------
# Columns
# ----------------------------------------------------------------------

class ColumnDefinition:
    """
    One column: a logical type plus fluent modifiers.

    Modifier state lives in ``attributes`` and is read by grammars through
    ``get()`` / ``has()``.
    """

    def __init__(self, blueprint: "Blueprint", type: str, name: str, **attributes: Any):
        self.blueprint = blueprint
        self.type = type
        self.name = name
        self.attributes: Dict[str, Any] = dict(attributes)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.attributes

    def _set(self, key: str, value: Any) -> "ColumnDefinition":
        self.attributes[key] = value
        return self

    # ------------------------------------------------------------------
    # Fluent modifiers
    # ------------------------------------------------------------------

    def nullable(self, value: bool = True) -> "ColumnDefinition":
        return self._set("nullable", value)

    def default(self, value: Any) -> "ColumnDefinition":
        return self._set("default", value)

    def unsigned(self) -> "ColumnDefinition":
        return self._set("unsigned", True)

    def auto_increment(self) -> "ColumnDefinition":
        return self._set("auto_increment", True)

    def primary(self) -> "ColumnDefinition":
        return self._set("primary", True)

    def unique(self, index: Optional[str] = None) -> "ColumnDefinition":
        return self._set("unique", index or True)

    def index(self, index: Optional[str] = None) -> "ColumnDefinition":
        return self._set("index", index or True)

    def fulltext(self, index: Optional[str] = None) -> "ColumnDefinition":
        return self._set("fulltext", index or True)

    def spatial_index(self, index: Optional[str] = None) -> "ColumnDefinition":
        return self._set("spatial_index", index or True)

    def comment(self, text: str) -> "ColumnDefinition":
        return self._set("comment", text)

    def after(self, column: str) -> "ColumnDefinition":
        return self._set("after", column)

    def first(self) -> "ColumnDefinition":
        return self._set("first", True)

    def charset(self, charset: str) -> "ColumnDefinition":
        return self._set("charset", charset)

    def collation(self, collation: str) -> "ColumnDefinition":
        return self._set("collation", collation)

    def use_current(self) -> "ColumnDefinition":
        return self._set("use_current", True)

    def use_current_on_update(self) -> "ColumnDefinition":
        return self._set("use_current_on_update", True)

    def constrained(
        self,
        table: Optional[str] = None,
        column: str = "id",
        pluralizer: Optional[Pluralizer] = None,
    ) -> "ForeignKeyDefinition":
        """Add a foreign key for this column (see ForeignKeyDefinition.constrained)."""
        return self.blueprint.foreign(self.name).constrained(table, column, pluralizer)

    def references(self, *columns: str) -> "ForeignKeyDefinition":
        return self.blueprint.foreign(self.name).references(*columns)

    def __repr__(self) -> str:
        return f"ColumnDefinition({self.type!r}, {self.name!r}, {self.attributes!r})"


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

@dataclass
class Command:
    """
    One non-column change.

    name:
        Grammar method suffix: "primary", "unique", "index", "fulltext",
        "spatial_index", "foreign", "drop_column", "drop_primary",
        "drop_unique", "drop_index", "drop_fulltext", "drop_spatial_index",
        "drop_foreign", "rename_column", "rename".
    columns:
        Affected columns (for rename_column: the current name).
    index:
        Constraint / index name.
    to:
        New name for rename / rename_column.
    """

    name: str
    columns: List[str] = field(default_factory=list)
    index: Optional[str] = None
    to: Optional[str] = None


class ForeignKeyDefinition(Command):
    """Fluent foreign-key command. Read by the grammar only at compile time."""

    def __init__(self, columns: List[str], index: str):
        super().__init__("foreign", columns, index)
        self.referenced_columns: List[str] = []
        self.referenced_table: Optional[str] = None
        self.on_delete_action: Optional[str] = None
        self.on_update_action: Optional[str] = None

    def references(self, *columns: str) -> "ForeignKeyDefinition":
        self.referenced_columns = list(columns)
        return self

    def on(self, table: str) -> "ForeignKeyDefinition":
        self.referenced_table = table
        return self

    def on_delete(self, action: str) -> "ForeignKeyDefinition":
        self.on_delete_action = action
        return self

    def on_update(self, action: str) -> "ForeignKeyDefinition":
        self.on_update_action = action
        return self

    def cascade_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("cascade")

    def cascade_on_update(self) -> "ForeignKeyDefinition":
        return self.on_update("cascade")

    def null_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("set null")

    def restrict_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("restrict")

    def constrained(
        self,
        table: Optional[str] = None,
        column: str = "id",
        pluralizer: Optional[Pluralizer] = None,
    ) -> "ForeignKeyDefinition":
        """
        Reference ``table.column``.

        Without ``table`` the referenced table is inferred from a
        ``<name>_id`` column by pluralizing ``<name>`` with ``pluralizer``
        (default: the module-level Pluralizer, whose irregular registry can
        be extended).

        Raises
        ------
        GrammarError
            The column does not end in ``_id`` and no table was given.
        """
        if table is None:
            source = self.columns[0]
            if len(self.columns) != 1 or not source.endswith("_id"):
                raise GrammarError(
                    f"Cannot infer the referenced table for [{', '.join(self.columns)}]; "
                    f"pass table= explicitly."
                )
            table = (pluralizer or default_pluralizer).plural(source[:-3])
        return self.references(column).on(table)

    def __repr__(self) -> str:
        return (
            f"ForeignKeyDefinition({self.columns!r} -> "
            f"{self.referenced_table}({', '.join(self.referenced_columns)}))"
        )


# ----------------------------------------------------------------------
# Blueprint
# ----------------------------------------------------------------------

class Blueprint:
    """
    Parameters
    ----------
    table:
        Unprefixed table name; the grammar applies the connection prefix.
    creating:
        True for CREATE TABLE, False for ALTER.
    """

    def __init__(self, table: str, creating: bool = False):
        self.table = table
        self._creating = creating
        self.columns: List[ColumnDefinition] = []
        self.commands: List[Command] = []

        self.temporary = False
        self.engine: Optional[str] = None
        self.charset: Optional[str] = None
        self.collation: Optional[str] = None

    def creating(self) -> bool:
        return self._creating

    def get_added_columns(self) -> List[ColumnDefinition]:
        return list(self.columns)

    def get_commands(self, name: str) -> List[Command]:
        return [c for c in self.commands if c.name == name]

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def _add_implied_commands(self) -> List[Command]:
        """
        Commands implied by column modifiers (``.unique()``, ``.index()``,
        ``.fulltext()``, ``.spatial_index()``, ``.primary()``), placed
        ahead of the explicit commands.
        """
        implied: List[Command] = []
        for column in self.columns:
            if column.get("primary") and not column.get("auto_increment"):
                implied.append(Command("primary", [column.name], self.create_index_name("primary", [column.name])))
            for kind in ("unique", "index", "fulltext", "spatial_index"):
                value = column.get(kind)
                if value:
                    name = value if isinstance(value, str) else self.create_index_name(kind, [column.name])
                    implied.append(Command(kind, [column.name], name))
        return implied

    def to_sql(self, grammar: "Grammar") -> List[str]:
        """Compile every column and command to a list of statements."""
        from ..grammar.base import as_list

        statements: List[str] = []
        commands = self._add_implied_commands() + self.commands

        saved, self.commands = self.commands, commands
        try:
            if self._creating:
                statements.extend(as_list(grammar.compile_create_table(self)))
            elif self.columns:
                statements.extend(as_list(grammar.compile_add_column(self)))

            for command in commands:
                statements.extend(grammar.compile_command(self, command))
        finally:
            self.commands = saved

        return statements

    def create_index_name(self, type: str, columns: Sequence[str]) -> str:
        """
        ``{table}_{col1}_{col2}_{type}``, lowercase, ``-``/``.`` -> ``_``.

        The table leads the bare ``{columns}_{type}`` form because SQLite
        and PostgreSQL index names share one namespace per schema: two
        tables each with a unique ``email`` would otherwise both produce
        ``email_unique``. The name is still a pure function of the table
        and columns, so recompiling a Blueprint yields the same names.
        """
        name = f"{self.table}_{'_'.join(columns)}_{type}".lower()
        return name.replace("-", "_").replace(".", "_")

    # ------------------------------------------------------------------
    # Table options
    # ------------------------------------------------------------------

    def temporary_table(self) -> None:
        self.temporary = True

    # ------------------------------------------------------------------
    # Column helpers
    # ------------------------------------------------------------------

    def add_column(self, type: str, name: str, **attributes: Any) -> ColumnDefinition:
        column = ColumnDefinition(self, type, name, **attributes)
        self.columns.append(column)
        return column

    def id(self, name: str = "id") -> ColumnDefinition:
        return self.big_increments(name)

    def increments(self, name: str) -> ColumnDefinition:
        return self.add_column("increments", name, auto_increment=True, unsigned=True)

    def big_increments(self, name: str) -> ColumnDefinition:
        return self.add_column("big_increments", name, auto_increment=True, unsigned=True)

    def uuid(self, name: str = "uuid") -> ColumnDefinition:
        return self.add_column("uuid", name)

    def char(self, name: str, length: int = 255) -> ColumnDefinition:
        return self.add_column("char", name, length=length)

    def string(self, name: str, length: int = 255) -> ColumnDefinition:
        return self.add_column("string", name, length=length)

    def text(self, name: str) -> ColumnDefinition:
        return self.add_column("text", name)

    def medium_text(self, name: str) -> ColumnDefinition:
        return self.add_column("medium_text", name)

    def long_text(self, name: str) -> ColumnDefinition:
        return self.add_column("long_text", name)

    def integer(self, name: str, auto_increment: bool = False, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("integer", name, auto_increment=auto_increment, unsigned=unsigned)

    def tiny_integer(self, name: str, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("tiny_integer", name, unsigned=unsigned)

    def small_integer(self, name: str, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("small_integer", name, unsigned=unsigned)

    def medium_integer(self, name: str, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("medium_integer", name, unsigned=unsigned)

    def big_integer(self, name: str, auto_increment: bool = False, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("big_integer", name, auto_increment=auto_increment, unsigned=unsigned)

    def unsigned_integer(self, name: str) -> ColumnDefinition:
        return self.integer(name, unsigned=True)

    def unsigned_big_integer(self, name: str) -> ColumnDefinition:
        return self.big_integer(name, unsigned=True)

    def foreign_id(self, name: str) -> ColumnDefinition:
        return self.unsigned_big_integer(name)

    def float(self, name: str) -> ColumnDefinition:
        return self.add_column("float", name)

    def double(self, name: str) -> ColumnDefinition:
        return self.add_column("double", name)

    def decimal(self, name: str, total: int = 8, places: int = 2) -> ColumnDefinition:
        return self.add_column("decimal", name, total=total, places=places)

    def boolean(self, name: str) -> ColumnDefinition:
        return self.add_column("boolean", name)

    def enum(self, name: str, allowed: Sequence[str]) -> ColumnDefinition:
        return self.add_column("enum", name, allowed=list(allowed))

    def set(self, name: str, allowed: Sequence[str]) -> ColumnDefinition:
        return self.add_column("set", name, allowed=list(allowed))

    def json(self, name: str) -> ColumnDefinition:
        return self.add_column("json", name)

    def jsonb(self, name: str) -> ColumnDefinition:
        return self.add_column("jsonb", name)

    def date(self, name: str) -> ColumnDefinition:
        return self.add_column("date", name)

    def datetime(self, name: str) -> ColumnDefinition:
        return self.add_column("datetime", name)

    def timestamp(self, name: str) -> ColumnDefinition:
        return self.add_column("timestamp", name)

    def time(self, name: str) -> ColumnDefinition:
        return self.add_column("time", name)

    def year(self, name: str) -> ColumnDefinition:
        return self.add_column("year", name)

    def binary(self, name: str) -> ColumnDefinition:
        return self.add_column("binary", name)

    def timestamps(self) -> None:
        """Nullable ``created_at`` / ``updated_at``."""
        self.timestamp("created_at").nullable()
        self.timestamp("updated_at").nullable()

    nullable_timestamps = timestamps

    def soft_deletes(self, column: str = "deleted_at") -> ColumnDefinition:
        return self.timestamp(column).nullable()

    def remember_token(self) -> ColumnDefinition:
        return self.string("remember_token", 100).nullable()

    def morphs(self, name: str, nullable: bool = False) -> None:
        """``{name}_type`` + ``{name}_id`` with a composite index."""
        self.string(f"{name}_type").nullable(nullable)
        self.unsigned_big_integer(f"{name}_id").nullable(nullable)
        self.index([f"{name}_type", f"{name}_id"])

    def nullable_morphs(self, name: str) -> None:
        self.morphs(name, nullable=True)

    # ------------------------------------------------------------------
    # Index / constraint commands
    # ------------------------------------------------------------------

    @staticmethod
    def _columns(columns: Union[str, Sequence[str]]) -> List[str]:
        return [columns] if isinstance(columns, str) else list(columns)

    def _index_command(self, type: str, columns, name: Optional[str]) -> Command:
        columns = self._columns(columns)
        command = Command(type, columns, name or self.create_index_name(type, columns))
        self.commands.append(command)
        return command

    def primary(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        return self._index_command("primary", columns, name)

    def unique(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        return self._index_command("unique", columns, name)

    def index(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        return self._index_command("index", columns, name)

    def fulltext(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        """FULLTEXT index (MySQL only)."""
        return self._index_command("fulltext", columns, name)

    def spatial_index(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        """SPATIAL index (MySQL only)."""
        return self._index_command("spatial_index", columns, name)

    def foreign(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> ForeignKeyDefinition:
        columns = self._columns(columns)
        command = ForeignKeyDefinition(columns, name or self.create_index_name("foreign", columns))
        self.commands.append(command)
        return command

    # ------------------------------------------------------------------
    # Drops / renames
    # ------------------------------------------------------------------

    def drop_column(self, *columns: Union[str, Sequence[str]]) -> Command:
        flat: List[str] = []
        for c in columns:
            flat.extend(self._columns(c))
        command = Command("drop_column", flat)
        self.commands.append(command)
        return command

    def _drop_index_command(self, type: str, index_type: str, index: Union[str, Sequence[str]]) -> Command:
        """A string names the index; a list of columns derives the name."""
        if isinstance(index, str):
            command = Command(type, [], index)
        else:
            columns = list(index)
            command = Command(type, columns, self.create_index_name(index_type, columns))
        self.commands.append(command)
        return command

    def drop_primary(self, index: Union[str, Sequence[str], None] = None) -> Command:
        return self._drop_index_command("drop_primary", "primary", index or f"{self.table}_pkey")

    def drop_unique(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_unique", "unique", index)

    def drop_index(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_index", "index", index)

    def drop_fulltext(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_fulltext", "fulltext", index)

    def drop_spatial_index(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_spatial_index", "spatial_index", index)

    def drop_foreign(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_foreign", "foreign", index)

    def drop_timestamps(self) -> Command:
        return self.drop_column("created_at", "updated_at")

    def drop_soft_deletes(self, column: str = "deleted_at") -> Command:
        return self.drop_column(column)

    def rename_column(self, from_: str, to: str) -> Command:
        command = Command("rename_column", [from_], to=to)
        self.commands.append(command)
        return command

    def rename(self, to: str) -> Command:
        command = Command("rename", to=to)
        self.commands.append(command)
        return command

    def __repr__(self) -> str:
        mode = "create" if self._creating else "alter"
        return f"Blueprint({self.table!r}, {mode}, columns={len(self.columns)}, commands={len(self.commands)})"


__all__ = [
    "Blueprint",
    "ColumnDefinition",
    "Command",
    "ForeignKeyDefinition",
]
