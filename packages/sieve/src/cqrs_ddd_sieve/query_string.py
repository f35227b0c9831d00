"""Query-string encoding of a ``SieveModel`` (e.g. for pagination links)."""

from __future__ import annotations

import contextlib
from urllib.parse import parse_qs, urlencode

from .model import SieveModel

FILTERS_KEY = "filters"
SORTS_KEY = "sorts"
PAGE_KEY = "page"
PAGE_SIZE_KEY = "pageSize"


def encode_query(model: SieveModel) -> str:
    """Produce ``filters=..&sorts=..&page=..&pageSize=..``, skipping unset keys."""
    params: dict[str, str | int] = {}
    if model.filters:
        params[FILTERS_KEY] = model.filters
    if model.sorts:
        params[SORTS_KEY] = model.sorts
    if model.page is not None:
        params[PAGE_KEY] = model.page
    if model.page_size is not None:
        params[PAGE_SIZE_KEY] = model.page_size
    return urlencode(params) if params else ""


def _first(values: dict[str, list[str]], key: str) -> str | None:
    found = values.get(key)
    return found[0] if found else None


def _int_or_none(text: str | None) -> int | None:
    if text is None:
        return None
    result = None
    with contextlib.suppress(ValueError):
        result = int(text)
    return result


def decode_query(query: str) -> SieveModel:
    """
    Inverse of ``encode_query``.  A leading ``?`` is ignored and
    non-numeric paging values are dropped.
    """
    values = parse_qs(query.lstrip("?"))
    return SieveModel(
        filters=_first(values, FILTERS_KEY),
        sorts=_first(values, SORTS_KEY),
        page=_int_or_none(_first(values, PAGE_KEY)),
        page_size=_int_or_none(_first(values, PAGE_SIZE_KEY)),
    )
