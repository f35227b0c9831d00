"""
Stable multi-key ordering with an explicit then-by chain.

``order_by`` establishes the primary key; ``then_by`` appends secondary
keys.  Sorting is deferred until iteration and then applied from the
last key to the first, which relies on Python's sort being stable.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class SortKey:
    """
    One ordering key.  ``None`` values sort lowest when ``nulls_first``
    (so first ascending and last descending), highest otherwise.
    """

    extract: Callable[[Any], Any]
    descending: bool = False
    nulls_first: bool = True

    def __call__(self, item: Any) -> tuple[bool, Any]:
        value = self.extract(item)
        if value is None:
            return (not self.nulls_first, 0)
        return (self.nulls_first, value)


class OrderedSequence(Generic[T]):
    """An iterable with a primary order and optional then-by keys."""

    def __init__(self, source: Iterable[T], keys: tuple[SortKey, ...]) -> None:
        self._source = source
        self._keys = keys

    @property
    def keys(self) -> tuple[SortKey, ...]:
        return self._keys

    def then_by(
        self,
        key: Callable[[T], Any],
        descending: bool = False,
        *,
        nulls_first: bool = True,
    ) -> OrderedSequence[T]:
        return OrderedSequence(
            self._source, (*self._keys, SortKey(key, descending, nulls_first))
        )

    def __iter__(self) -> Iterator[T]:
        items = list(self._source)
        for key in reversed(self._keys):
            items.sort(key=key, reverse=key.descending)
        return iter(items)


def order_by(
    source: Iterable[T],
    key: Callable[[T], Any],
    descending: bool = False,
    *,
    nulls_first: bool = True,
) -> OrderedSequence[T]:
    """Order *source* by *key*, discarding any order it already had."""
    return OrderedSequence(source, (SortKey(key, descending, nulls_first),))
