"""Page window resolution and slicing for sync and async sources."""

from __future__ import annotations

import itertools
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import TYPE_CHECKING, NamedTuple, TypeVar

if TYPE_CHECKING:
    from .options import SieveOptions

T = TypeVar("T")


class PageWindow(NamedTuple):
    offset: int
    limit: int


def resolve_page_window(
    page: int | None,
    page_size: int | None,
    options: SieveOptions,
) -> PageWindow | None:
    """
    Turn a 1-based page request into an offset/limit window.

    ``page`` defaults to 1 and values below 1 are clamped to 1.
    ``page_size`` defaults to ``options.default_page_size``; a size of
    zero or less disables pagination (``None``).  The limit is capped by
    ``options.max_page_size`` when that is positive.
    """
    size = page_size if page_size is not None else options.default_page_size
    if size <= 0:
        return None
    number = max(1, page if page is not None else 1)
    limit = min(size, options.max_page_size) if options.max_page_size > 0 else size
    return PageWindow(offset=(number - 1) * size, limit=limit)


def paginate(source: Iterable[T], window: PageWindow | None) -> Iterable[T]:
    if window is None:
        return source
    return itertools.islice(source, window.offset, window.offset + window.limit)


async def apaginate(
    source: AsyncIterable[T],
    window: PageWindow | None,
) -> AsyncIterator[T]:
    """Async counterpart of ``paginate``; stops reading once the page is full."""
    if window is None:
        async for item in source:
            yield item
        return
    if window.limit <= 0:
        return
    index = 0
    end = window.offset + window.limit
    async for item in source:
        if index >= window.offset:
            yield item
        index += 1
        if index >= end:
            return
