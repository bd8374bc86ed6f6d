"""
Shared DB helper utilities.

These wrappers ensure:
    - consistent interfaces across drivers
    - placeholder translation for drivers that do not speak ``?``
    - predictable row→dict mapping
    - structured error handling (QueryError with SQL + bindings)

Backends expose this module as ``backend.helpers``.
"""

from __future__ import annotations
from typing import Any, List, Optional, Sequence, Tuple

from ..exceptions import QueryError


# ----------------------------------------------------------------------
# Placeholder translation
# ----------------------------------------------------------------------

_QUOTES = ("'", '"', "`")


def translate_placeholders(query: str) -> str:
    """
    Rewrite ``?`` placeholders to ``%s`` for "format" paramstyle drivers.

    psycopg2 and PyMySQL interpolate with the ``%`` operator, so every
    literal ``%`` must be doubled as well. ``?`` characters inside quoted
    literals or quoted identifiers are left untouched.

    Parameters
    ----------
    query:
        SQL text produced by a grammar (``?`` placeholders).

    Returns
    -------
    str
        SQL text with ``%s`` placeholders.
    """
    out: List[str] = []
    quote: Optional[str] = None
    i = 0
    n = len(query)

    while i < n:
        ch = query[i]

        if ch == "%":
            out.append("%%")
        elif quote is not None:
            out.append(ch)
            if ch == quote:
                # doubled quote char is an escape, stay inside the literal
                if i + 1 < n and query[i + 1] == quote:
                    out.append(query[i + 1])
                    i += 1
                else:
                    quote = None
        elif ch in _QUOTES:
            quote = ch
            out.append(ch)
        elif ch == "?":
            out.append("%s")
        else:
            out.append(ch)
        i += 1

    return "".join(out)


def prepare_query(
    query: str,
    params: Optional[Sequence[Any]],
    paramstyle: str = "qmark",
) -> Tuple[str, Optional[tuple]]:
    """
    Adapt SQL text and bindings to the driver's paramstyle.

    With no bindings the query is passed through untouched and params is
    None, so "format" drivers do not try to interpolate literal ``%``.
    """
    if not params:
        return query, None
    if paramstyle == "format":
        return translate_placeholders(query), tuple(params)
    return query, tuple(params)


# ----------------------------------------------------------------------
# Execution helpers
# ----------------------------------------------------------------------

def safe_execute(
    conn: Any,
    query: str,
    params: Optional[Sequence[Any]] = None,
    paramstyle: str = "qmark",
):
    """
    Execute a single SQL statement safely.
    Returns the raw cursor.

    Parameters
    ----------
    conn:
        DB-API compatible connection object (sqlite3, psycopg2, pymysql).
    query:
        SQL string with ``?`` placeholders.
    params:
        Optional parameter sequence.
    paramstyle:
        "qmark" or "format".

    Raises
    ------
    QueryError
        Wrapped driver error carrying the SQL and bindings.
    """
    sql, args = prepare_query(query, params, paramstyle)
    cur = conn.cursor()
    try:
        if args is None:
            cur.execute(sql)
        else:
            cur.execute(sql, args)
    except Exception as e:
        raise QueryError(str(e), query, params or ()) from e
    return cur


def safe_fetch_all(
    conn: Any,
    query: str,
    params: Optional[Sequence[Any]] = None,
    paramstyle: str = "qmark",
) -> list:
    """
    Execute a SELECT query and fetch all rows.

    Returns
    -------
    list
        List of backend-specific row records (e.g., sqlite3.Row).
    """
    cur = safe_execute(conn, query, params, paramstyle)
    if cur.description is None:
        return []
    return cur.fetchall()


def safe_fetch_one(
    conn: Any,
    query: str,
    params: Optional[Sequence[Any]] = None,
    paramstyle: str = "qmark",
):
    cur = safe_execute(conn, query, params, paramstyle)
    if cur.description is None:
        return None
    return cur.fetchone()


# ----------------------------------------------------------------------
# Row mapping
# ----------------------------------------------------------------------

def row_to_dict(row: Any) -> dict:
    """
    Convert sqlite3.Row, psycopg2 RealDictRow or a PyMySQL dict row to a
    plain Python dict.

    Parameters
    ----------
    row:
        Backend-specific row object.

    Returns
    -------
    dict
        Plain Python dictionary representation of the row.
    """
    if row is None:
        return {}

    if hasattr(row, "keys"):
        return {k: row[k] for k in row.keys()}

    return dict(enumerate(row))


__all__ = [
    "translate_placeholders",
    "prepare_query",
    "safe_execute",
    "safe_fetch_all",
    "safe_fetch_one",
    "row_to_dict",
]
