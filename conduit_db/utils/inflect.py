"""
Naming helpers used to derive table and key names.

Inference is deliberately explicit: a Pluralizer carries an irregular-noun
registry that callers can extend, and every place that infers a name also
accepts an explicit override.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional


IRREGULAR: Dict[str, str] = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "ox": "oxen",
    "criterion": "criteria",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "leaf": "leaves",
    "life": "lives",
    "knife": "knives",
    "wife": "wives",
    "half": "halves",
    "analysis": "analyses",
}

UNCOUNTABLE = frozenset({
    "data", "equipment", "information", "metadata", "news", "series",
    "sheep", "species", "fish", "deer", "feedback", "audio",
})

_VOWELS = set("aeiou")


class Pluralizer:
    """
    English pluralizer for snake_case identifiers.

    Only the last ``_``-separated segment is inflected, so
    ``blog_category`` becomes ``blog_categories``.
    """

    def __init__(
        self,
        irregular: Optional[Dict[str, str]] = None,
        uncountable: Optional[Iterable[str]] = None,
    ):
        self.irregular = dict(IRREGULAR)
        self.irregular.update(irregular or {})
        self.uncountable = set(UNCOUNTABLE)
        self.uncountable.update(uncountable or ())

    def register(self, singular: str, plural: str) -> None:
        self.irregular[singular.lower()] = plural.lower()

    def plural(self, word: str) -> str:
        head, sep, last = word.rpartition("_")
        return f"{head}{sep}{self._plural_word(last)}"

    def _plural_word(self, word: str) -> str:
        lower = word.lower()
        if not lower or lower in self.uncountable:
            return word
        if lower in self.irregular:
            return self.irregular[lower]
        if lower in self.irregular.values():
            return word
        if lower.endswith(("s", "x", "z", "ch", "sh")):
            return word + "es"
        if lower.endswith("y") and len(lower) > 1 and lower[-2] not in _VOWELS:
            return word[:-1] + "ies"
        return word + "s"


default_pluralizer = Pluralizer()


def plural(word: str) -> str:
    return default_pluralizer.plural(word)


_CAMEL_1 = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_2 = re.compile(r"([a-z0-9])([A-Z])")


def snake_case(name: str) -> str:
    """``BlogPost`` -> ``blog_post``."""
    return _CAMEL_2.sub(r"\1_\2", _CAMEL_1.sub(r"\1_\2", name)).lower()
