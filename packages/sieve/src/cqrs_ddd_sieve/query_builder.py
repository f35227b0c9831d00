"""
Immutable fluent builder for filter/sort query strings.

Every call returns a new builder, so partially built queries can be
shared and extended freely::

    base = SieveQueryBuilder().filter_greater_or_equal("Price", 1000)

    laptops = (
        base.begin_group()
        .filter_equals("Processor", "Intel i9")
        .or_()
        .filter_equals("Processor", "AMD Ryzen 9")
        .end_group()
        .sort_by_descending("Price")
        .page_size(20)
    )
    laptops.build_filters_string()
    # -> "Price>=1000,(Processor==Intel i9 || Processor==AMD Ryzen 9)"

Inside a group ``or_()`` starts a new alternative; each alternative may
hold several AND-ed filters.  At top level ``or_()`` starts a new AND
chain, which cannot be mixed with groups.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from typing_extensions import Self

from .attributes import declared_fields, field_annotations
from .model import SieveModel
from .operators import FilterOperator, parse_operator, render_symbol
from .parser import parse_filters, parse_sorts
from .query_string import decode_query, encode_query
from .terms import FilterTerm, SortTerm, escape
from .values import format_value


@dataclass(frozen=True)
class FilterInfo:
    """A filter as seen from the builder: one term, flattened to text."""

    property_name: str
    operator: str
    value: str
    original_filter: str

    @classmethod
    def from_term(cls, term: FilterTerm) -> FilterInfo:
        return cls(
            property_name="|".join(term.names),
            operator=term.operator_symbol,
            value="|".join(term.values),
            original_filter=term.to_query_string(),
        )


@dataclass(frozen=True)
class SortInfo:
    property_name: str
    is_descending: bool
    original_sort: str

    @classmethod
    def from_term(cls, term: SortTerm) -> SortInfo:
        return cls(term.name, term.descending, term.to_query_string())


@dataclass(frozen=True)
class _Group:
    """A closed ``( ... || ... )`` segment; each alternative is an AND chain."""

    alternatives: tuple[tuple[str, ...], ...]

    def render(self) -> str:
        texts = [",".join(alternative) for alternative in self.alternatives]
        if len(texts) == 1:
            return texts[0]
        return "(" + " || ".join(texts) + ")"


_Part = str | _Group


def _render_values(value: Any) -> str:
    if isinstance(value, list | tuple | set | frozenset):
        return "|".join(format_value(v) for v in value)
    return format_value(value)


def _symbol(operator: FilterOperator | str) -> str:
    return operator.symbol if isinstance(operator, FilterOperator) else operator


def _render_names(names: Sequence[str]) -> str:
    text = "|".join(escape(name) for name in names)
    return f"({text})" if len(names) > 1 else text


@dataclass(frozen=True)
class SieveQueryBuilder:
    """
    Builds ``filters``/``sorts``/paging for a ``SieveModel``.

    Pass ``query_model`` to reject property names the model does not
    declare.
    """

    query_model: type | None = None
    _chains: tuple[tuple[_Part, ...], ...] = field(default=((),), repr=False)
    _group: tuple[tuple[str, ...], ...] | None = field(default=None, repr=False)
    _sorts: tuple[str, ...] = field(default=(), repr=False)
    _page: int | None = field(default=None, repr=False)
    _page_size: int | None = field(default=None, repr=False)

    # -- filters -------------------------------------------------------------

    def filter_equals(self, name: str, value: Any, *, case_insensitive: bool = False) -> Self:
        return self._filter(name, FilterOperator.EQUALS, value, case_insensitive=case_insensitive)

    def filter_not_equals(
        self, name: str, value: Any, *, case_insensitive: bool = False
    ) -> Self:
        return self._filter(
            name, FilterOperator.NOT_EQUALS, value, case_insensitive=case_insensitive
        )

    def filter_contains(
        self,
        name: str,
        value: Any,
        *,
        negated: bool = False,
        case_insensitive: bool = False,
    ) -> Self:
        return self._filter(
            name,
            FilterOperator.CONTAINS,
            value,
            negated=negated,
            case_insensitive=case_insensitive,
        )

    def filter_starts_with(
        self,
        name: str,
        value: Any,
        *,
        negated: bool = False,
        case_insensitive: bool = False,
    ) -> Self:
        return self._filter(
            name,
            FilterOperator.STARTS_WITH,
            value,
            negated=negated,
            case_insensitive=case_insensitive,
        )

    def filter_ends_with(
        self,
        name: str,
        value: Any,
        *,
        negated: bool = False,
        case_insensitive: bool = False,
    ) -> Self:
        return self._filter(
            name,
            FilterOperator.ENDS_WITH,
            value,
            negated=negated,
            case_insensitive=case_insensitive,
        )

    def filter_greater_than(self, name: str, value: Any) -> Self:
        return self._filter(name, FilterOperator.GREATER_THAN, value)

    def filter_less_than(self, name: str, value: Any) -> Self:
        return self._filter(name, FilterOperator.LESS_THAN, value)

    def filter_greater_or_equal(self, name: str, value: Any) -> Self:
        return self._filter(name, FilterOperator.GREATER_OR_EQUAL, value)

    def filter_less_or_equal(self, name: str, value: Any) -> Self:
        return self._filter(name, FilterOperator.LESS_OR_EQUAL, value)

    def filter_by_name(self, name: str, operator: FilterOperator | str, value: Any) -> Self:
        """
        Add a filter with any operator spelling, e.g. ``"!@=*"``.

        Raises:
            ValueError: If *operator* is not a known operator symbol.
        """
        token = parse_operator(_symbol(operator))
        return self._filter(
            name,
            token.operator,
            value,
            negated=token.negated,
            case_insensitive=token.case_insensitive,
        )

    def filter_with_alternatives(
        self,
        names: Sequence[str],
        operator: FilterOperator | str,
        values: Any,
    ) -> Self:
        """``(A|B)==x|y``: matches when any name equals any value."""
        if not names:
            raise ValueError("filter_with_alternatives() needs at least one name")
        for name in names:
            self._check_property(name)
        token = parse_operator(_symbol(operator))
        return self._add(f"{_render_names(names)}{token.symbol}{_render_values(values)}")

    def custom_filter(self, name: str) -> Self:
        """Add a name-only term, dispatched to a custom filter method."""
        return self._add(escape(name))

    def _filter(
        self,
        name: str,
        operator: FilterOperator,
        value: Any,
        *,
        negated: bool = False,
        case_insensitive: bool = False,
    ) -> Self:
        self._check_property(name)
        symbol = render_symbol(operator, negated, case_insensitive)
        return self._add(f"{escape(name)}{symbol}{_render_values(value)}")

    def _add(self, text: str) -> Self:
        if self._group is not None:
            *head, last = self._group
            return replace(self, _group=(*head, (*last, text)))
        *head, last = self._chains
        return replace(self, _chains=(*head, (*last, text)))

    # -- grouping ------------------------------------------------------------

    def or_(self) -> Self:
        """Start a new alternative (inside a group) or a new AND chain."""
        if self._group is not None:
            if not self._group[-1]:
                return self
            return replace(self, _group=(*self._group, ()))
        if not self._chains[-1]:
            return self
        if self._has_groups():
            raise ValueError(
                "Top-level or_() cannot be combined with groups; "
                "wrap the alternatives in begin_group()/end_group()"
            )
        return replace(self, _chains=(*self._chains, ()))

    def begin_group(self) -> Self:
        if self._group is not None:
            raise ValueError("Nested groups are not supported")
        if len(self._chains) > 1:
            raise ValueError(
                "Groups cannot be combined with a top-level or_(); "
                "wrap the alternatives in begin_group()/end_group()"
            )
        return replace(self, _group=((),))

    def end_group(self) -> Self:
        if self._group is None:
            raise ValueError("end_group() called without a matching begin_group()")
        alternatives = tuple(a for a in self._group if a)
        closed = replace(self, _group=None)
        if not alternatives:
            return closed
        *head, last = closed._chains
        return replace(closed, _chains=(*head, (*last, _Group(alternatives))))

    def with_shared_constraints(self, *filters: str | FilterTerm) -> Self:
        """
        AND the given filters onto every top-level alternative.

        Accepts raw filter text (``"Price>=1000"``) or ``FilterTerm``s.
        """
        if self._group is not None:
            raise ValueError("Close the open group before adding shared constraints")
        texts = tuple(
            f.to_query_string() if isinstance(f, FilterTerm) else f.strip() for f in filters
        )
        return replace(self, _chains=tuple((*chain, *texts) for chain in self._chains))

    def _has_groups(self) -> bool:
        return any(isinstance(part, _Group) for chain in self._chains for part in chain)

    # -- sorting & paging ----------------------------------------------------

    def sort_by(self, name: str) -> Self:
        self._check_property(name)
        return replace(self, _sorts=(*self._sorts, escape(name)))

    def sort_by_descending(self, name: str) -> Self:
        self._check_property(name)
        return replace(self, _sorts=(*self._sorts, "-" + escape(name)))

    def sort_by_name(self, text: str) -> Self:
        """Append raw sort text such as ``"-Price"``."""
        return replace(self, _sorts=(*self._sorts, text.strip()))

    def page(self, number: int) -> Self:
        if number < 1:
            raise ValueError(f"page must be 1 or greater, got {number}")
        return replace(self, _page=number)

    def page_size(self, size: int) -> Self:
        if size < 0:
            raise ValueError(f"page_size must not be negative, got {size}")
        return replace(self, _page_size=size)

    # -- output --------------------------------------------------------------

    def build_filters_string(self) -> str:
        """
        Raises:
            ValueError: If a group is still open.
        """
        if self._group is not None:
            raise ValueError("begin_group() without a matching end_group()")
        chains = [
            ",".join(part.render() if isinstance(part, _Group) else part for part in chain)
            for chain in self._chains
            if chain
        ]
        return " || ".join(chains)

    def build_sorts_string(self) -> str:
        return ",".join(self._sorts)

    def build_model(self) -> SieveModel:
        return SieveModel(
            filters=self.build_filters_string() or None,
            sorts=self.build_sorts_string() or None,
            page=self._page,
            page_size=self._page_size,
        )

    def build_query_string(self) -> str:
        return encode_query(self.build_model())

    # -- input ---------------------------------------------------------------

    @classmethod
    def from_model(cls, model: SieveModel, query_model: type | None = None) -> SieveQueryBuilder:
        """Rebuild a builder from a model; groups come back in expanded form."""
        parsed = parse_filters(model.filters)
        chains: tuple[tuple[_Part, ...], ...] = ((),)
        if parsed is not None:
            chains = tuple(tuple(t.to_query_string() for t in group) for group in parsed)
        return cls(
            query_model=query_model,
            _chains=chains,
            _sorts=tuple(s.to_query_string() for s in parse_sorts(model.sorts)),
            _page=model.page,
            _page_size=model.page_size,
        )

    @classmethod
    def parse_query_string(cls, query: str, query_model: type | None = None) -> SieveQueryBuilder:
        return cls.from_model(decode_query(query), query_model)

    # -- introspection -------------------------------------------------------

    def get_filters(self) -> list[FilterInfo]:
        """Every filter term added, in order, without expansion."""
        infos: list[FilterInfo] = []
        for chain in self._chains:
            for part in chain:
                texts: Iterable[str] = (
                    [t for alt in part.alternatives for t in alt]
                    if isinstance(part, _Group)
                    else [part]
                )
                infos.extend(FilterInfo.from_term(FilterTerm.parse(t)) for t in texts)
        return infos

    def get_filter_groups(self) -> list[list[FilterInfo]]:
        """The OR-groups the parser will see, after Cartesian expansion."""
        parsed = parse_filters(self.build_filters_string())
        if parsed is None:
            return []
        return [[FilterInfo.from_term(t) for t in group] for group in parsed]

    def get_sorts(self) -> list[SortInfo]:
        return [SortInfo.from_term(s) for s in parse_sorts(self.build_sorts_string())]

    def get_page(self) -> int | None:
        return self._page

    def get_page_size(self) -> int | None:
        return self._page_size

    def has_filter(self, name: str) -> bool:
        return any(name in info.property_name.split("|") for info in self.get_filters())

    def has_sort(self, name: str) -> bool:
        return any(s.name == name for s in parse_sorts(self.build_sorts_string()))

    # -- validation ----------------------------------------------------------

    def _check_property(self, name: str) -> None:
        if self.query_model is None:
            return
        known = _model_properties(self.query_model)
        head = name.split(".", 1)[0].casefold()
        if head not in known:
            raise ValueError(f"'{name}' is not a property of {self.query_model.__name__}")


def _model_properties(model: type) -> set[str]:
    names = {n.casefold() for n in field_annotations(model)}
    names.update(d.external_name.casefold() for d in declared_fields(model))
    return names
