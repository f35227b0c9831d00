"""SieveModel: the query unit handed to the processor."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from .parser import parse_filters, parse_sorts

if TYPE_CHECKING:
    from .terms import ParsedFilter, SortTerm


class SieveModel(BaseModel):
    """
    Filters, sorts and paging as received from a client.

    Accepts the wire name ``pageSize`` as well as ``page_size``::

        SieveModel.model_validate({"filters": "Title@=sieve", "pageSize": 10})
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filters: str | None = None
    sorts: str | None = None
    page: int | None = None
    page_size: int | None = Field(default=None, alias="pageSize")

    def get_filters_parsed(self) -> ParsedFilter | None:
        """
        Raises:
            FilterParseError: If ``filters`` is malformed.
        """
        return parse_filters(self.filters)

    def get_sorts_parsed(self) -> list[SortTerm]:
        return parse_sorts(self.sorts)
