"""
Ordered result container.

Collection wraps a list of rows (dicts) or models and offers the
transformation helpers the query and model layers return results in.
Every transformation returns a new Collection; the original is never
mutated.
"""

from __future__ import annotations

import json
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    TypeVar,
    Union,
    overload,
)

T = TypeVar("T")
U = TypeVar("U")

Key = Union[str, Callable[[Any], Any]]

_MISSING = object()


def data_get(item: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` from a mapping, a model or a plain object."""
    if isinstance(item, Mapping):
        return item.get(key, default)
    getter = getattr(item, "get_attribute", None)
    if getter is not None:
        return getter(key)
    return getattr(item, key, default)


def _resolver(key: Key) -> Callable[[Any], Any]:
    if callable(key):
        return key
    return lambda item: data_get(item, key)


class Collection(Generic[T]):
    def __init__(self, items: Optional[Iterable[T]] = None):
        self._items: List[T] = list(items) if items is not None else []

    # ------------------------------------------------------------------
    # Sequence protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> "Collection[T]": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Collection(self._items[index])
        return self._items[index]

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Collection):
            return self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"Collection({self._items!r})"

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def all(self) -> List[T]:
        return list(self._items)

    def count(self) -> int:
        return len(self._items)

    def first(self, predicate: Optional[Callable[[T], bool]] = None, default: Any = None):
        for item in self._items:
            if predicate is None or predicate(item):
                return item
        return default

    def last(self, predicate: Optional[Callable[[T], bool]] = None, default: Any = None):
        for item in reversed(self._items):
            if predicate is None or predicate(item):
                return item
        return default

    def is_empty(self) -> bool:
        return not self._items

    def is_not_empty(self) -> bool:
        return bool(self._items)

    def contains(self, value: Any, key: Optional[str] = None) -> bool:
        """
        Membership test.

        ``contains(callable)`` tests a predicate, ``contains(v, key)``
        compares ``key`` of every item with ``v``.
        """
        if key is not None:
            return any(data_get(item, key) == value for item in self._items)
        if callable(value):
            return any(value(item) for item in self._items)
        return value in self._items

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def map(self, fn: Callable[[T], U]) -> "Collection[U]":
        return Collection(fn(item) for item in self._items)

    def filter(self, fn: Optional[Callable[[T], bool]] = None) -> "Collection[T]":
        if fn is None:
            return Collection(item for item in self._items if item)
        return Collection(item for item in self._items if fn(item))

    def reject(self, fn: Callable[[T], bool]) -> "Collection[T]":
        return Collection(item for item in self._items if not fn(item))

    def pluck(self, value: str, key: Optional[str] = None):
        """
        Extract ``value`` from every item. With ``key`` the result is a
        dict keyed by that attribute instead of a Collection.
        """
        if key is None:
            return Collection(data_get(item, value) for item in self._items)
        return {data_get(item, key): data_get(item, value) for item in self._items}

    def key_by(self, key: Key) -> Dict[Any, T]:
        resolve = _resolver(key)
        return {resolve(item): item for item in self._items}

    def group_by(self, key: Key) -> Dict[Any, "Collection[T]"]:
        resolve = _resolver(key)
        groups: Dict[Any, List[T]] = {}
        for item in self._items:
            groups.setdefault(resolve(item), []).append(item)
        return {k: Collection(v) for k, v in groups.items()}

    def sort_by(self, key: Key, descending: bool = False) -> "Collection[T]":
        resolve = _resolver(key)
        return Collection(sorted(self._items, key=resolve, reverse=descending))

    def sort_by_desc(self, key: Key) -> "Collection[T]":
        return self.sort_by(key, descending=True)

    def reverse(self) -> "Collection[T]":
        return Collection(reversed(self._items))

    def unique(self, key: Optional[Key] = None) -> "Collection[T]":
        resolve = _resolver(key) if key is not None else (lambda item: item)
        seen: List[Any] = []
        out: List[T] = []
        for item in self._items:
            marker = resolve(item)
            if marker in seen:
                continue
            seen.append(marker)
            out.append(item)
        return Collection(out)

    def chunk(self, size: int) -> "Collection[Collection[T]]":
        if size <= 0:
            raise ValueError("Chunk size must be positive.")
        return Collection(
            Collection(self._items[i:i + size])
            for i in range(0, len(self._items), size)
        )

    def take(self, limit: int) -> "Collection[T]":
        if limit < 0:
            return Collection(self._items[limit:])
        return Collection(self._items[:limit])

    def skip(self, count: int) -> "Collection[T]":
        return Collection(self._items[count:])

    def merge(self, items: Iterable[T]) -> "Collection[T]":
        return Collection(self._items + list(items))

    def reduce(self, fn: Callable[[Any, T], Any], initial: Any = None) -> Any:
        acc = initial
        for item in self._items:
            acc = fn(acc, item)
        return acc

    def sum(self, key: Optional[Key] = None) -> Any:
        if key is None:
            return sum(self._items)
        resolve = _resolver(key)
        return sum(resolve(item) for item in self._items)

    def each(self, fn: Callable[[T], Any]) -> "Collection[T]":
        """Call ``fn`` per item; stops early when it returns False."""
        for item in self._items:
            if fn(item) is False:
                break
        return self

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_list(self) -> List[Any]:
        out = []
        for item in self._items:
            to_dict = getattr(item, "to_dict", None)
            out.append(to_dict() if callable(to_dict) else item)
        return out

    def to_json(self, **kwargs: Any) -> str:
        kwargs.setdefault("default", str)
        return json.dumps(self.to_list(), **kwargs)
