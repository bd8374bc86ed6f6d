"""
Raw SQL fragments.

An Expression is emitted verbatim by every grammar: it is never quoted,
never prefixed and never bound as a parameter. Use it for aggregate
projections (``COUNT(*)``) and server-side defaults
(``CURRENT_TIMESTAMP``).
"""

from __future__ import annotations


class Expression:
    __slots__ = ("value",)

    def __init__(self, value: str):
        self.value = str(value)

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"Expression({self.value!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Expression) and other.value == self.value

    def __hash__(self) -> int:
        return hash(("Expression", self.value))
