"""
conduit_db.grammar

SQL dialect compilers. One Grammar contract, three flat implementations,
selected from the connection's driver tag by ``grammar_for``.
"""

from ..exceptions import GrammarError
from .base import Grammar, as_list
from .mysql import MySQLGrammar
from .postgres import PostgresGrammar
from .sqlite import SQLiteGrammar

GRAMMARS = {
    "mysql": MySQLGrammar,
    "pgsql": PostgresGrammar,
    "sqlite": SQLiteGrammar,
}


def grammar_for(driver: str, table_prefix: str = "") -> Grammar:
    """
    Return the grammar for a driver tag ("mysql", "pgsql", "sqlite").

    Raises
    ------
    GrammarError
        Unknown driver tag.
    """
    try:
        return GRAMMARS[driver](table_prefix)
    except KeyError:
        raise GrammarError(f"No grammar registered for driver [{driver}].") from None


__all__ = [
    "Grammar",
    "MySQLGrammar",
    "PostgresGrammar",
    "SQLiteGrammar",
    "grammar_for",
    "as_list",
]
