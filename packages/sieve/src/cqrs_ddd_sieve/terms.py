"""
Structured term model for parsed filter and sort strings.

A ``FilterTerm`` is one ``names operator values`` clause; a ``FilterGroup``
ANDs its terms; a ``ParsedFilter`` ORs its groups.  All of them are
immutable and render back to canonical query text via
``to_query_string()``.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .exceptions import FilterParseError
from .operators import FilterOperator, find_operator, render_symbol

ESCAPE = "\\"
NULL_LITERAL = "null"
ESCAPED_NULL = ESCAPE + NULL_LITERAL

_ESCAPABLE = frozenset(",|()\\")


# ---------------------------------------------------------------------------
# Escape helpers
# ---------------------------------------------------------------------------


def split_unescaped(text: str, separator: str) -> list[str]:
    """Split *text* on a single-character separator not preceded by ``\\``."""
    parts: list[str] = []
    current: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == ESCAPE and i + 1 < len(text):
            current.append(text[i : i + 2])
            i += 2
            continue
        if char == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    parts.append("".join(current))
    return parts


def unescape(text: str) -> str:
    """Drop the escape in front of grammar characters; keep other backslashes."""
    out: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == ESCAPE and i + 1 < len(text) and text[i + 1] in _ESCAPABLE:
            out.append(text[i + 1])
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def escape(text: str) -> str:
    """Escape grammar characters so *text* survives as a single value."""
    return "".join(ESCAPE + c if c in _ESCAPABLE else c for c in text)


def is_null_literal(value: str) -> bool:
    return value.lower() == NULL_LITERAL


def is_escaped_null(value: str) -> bool:
    return value.lower() == ESCAPED_NULL


def _strip_parens(text: str) -> str:
    if len(text) >= 2 and text.startswith("(") and text.endswith(")"):
        return text[1:-1].strip()
    return text


def _parse_names(text: str, source: str) -> tuple[str, ...]:
    names = tuple(
        unescape(part.strip()) for part in split_unescaped(_strip_parens(text), "|")
    )
    if not names or any(not name for name in names):
        raise FilterParseError(f"Filter term has an empty property name: {source!r}", source)
    return names


def _parse_value(raw: str) -> str:
    raw = raw.strip()
    # ``\null`` is kept verbatim so the compiler can tell it from ``null``.
    if is_escaped_null(raw):
        return raw
    return unescape(raw)


def _render_value(value: str) -> str:
    if is_escaped_null(value):
        return value
    return escape(value)


# ---------------------------------------------------------------------------
# Filter terms
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilterTerm:
    """
    One filter clause such as ``(Title|Body)@=*sieve|filter``.

    Attributes:
        names: Alternative property (or custom method) names, OR-ed.
        operator: The comparison, or ``None`` for a name-only term.
        values: Alternative values, OR-ed.  Empty only for name-only terms;
            blank alternatives are dropped unless nothing else is left.
        negated: ``!`` prefix on the operator.
        case_insensitive: ``*`` suffix on the operator.
    """

    names: tuple[str, ...]
    operator: FilterOperator | None = None
    values: tuple[str, ...] = ()
    negated: bool = False
    case_insensitive: bool = False

    @classmethod
    def parse(cls, text: str) -> FilterTerm:
        """
        Parse a single term.

        A term without any operator becomes a name-only term; the compiler
        hands such terms to a custom filter method.

        Raises:
            FilterParseError: If a property name is empty.
        """
        source = text.strip()
        match = find_operator(source)
        if match is None:
            return cls(names=_parse_names(source, source))

        position, symbol, token = match
        names = _parse_names(source[:position].strip(), source)
        raw_values = source[position + len(symbol) :]
        values = tuple(_parse_value(v) for v in split_unescaped(raw_values, "|"))
        # A trailing ``|`` adds no alternative; ``Title==`` still means "".
        values = tuple(v for v in values if v) or ("",)
        return cls(
            names=names,
            operator=token.operator,
            values=values,
            negated=token.negated,
            case_insensitive=token.case_insensitive,
        )

    @property
    def name(self) -> str:
        """The first (usually only) name."""
        return self.names[0]

    @property
    def is_name_only(self) -> bool:
        return self.operator is None

    @property
    def operator_symbol(self) -> str:
        """Full operator text with modifiers, ``""`` for name-only terms."""
        if self.operator is None:
            return ""
        return render_symbol(self.operator, self.negated, self.case_insensitive)

    def to_query_string(self) -> str:
        names = "|".join(escape(n) for n in self.names)
        if len(self.names) > 1:
            names = f"({names})"
        if self.operator is None:
            return names
        values = "|".join(_render_value(v) for v in self.values)
        return f"{names}{self.operator_symbol}{values}"

    def __str__(self) -> str:
        return self.to_query_string()


@dataclass(frozen=True)
class FilterGroup:
    """AND-ed terms.  Never empty once produced by the parser."""

    terms: tuple[FilterTerm, ...]

    def __iter__(self) -> Iterator[FilterTerm]:
        return iter(self.terms)

    def __len__(self) -> int:
        return len(self.terms)

    def to_query_string(self) -> str:
        return ",".join(t.to_query_string() for t in self.terms)


@dataclass(frozen=True)
class ParsedFilter:
    """OR-ed groups of AND-ed terms."""

    groups: tuple[FilterGroup, ...]

    def __iter__(self) -> Iterator[FilterGroup]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    @property
    def terms(self) -> tuple[FilterTerm, ...]:
        """Every term of every group, in order, with repeats."""
        return tuple(term for group in self.groups for term in group)

    def to_query_string(self) -> str:
        return " || ".join(g.to_query_string() for g in self.groups)

    def is_equivalent_to(self, other: ParsedFilter) -> bool:
        """Equal up to group order and term order within each group."""
        return self._normalized() == other._normalized()

    def _normalized(self) -> frozenset[frozenset[FilterTerm]]:
        return frozenset(frozenset(group.terms) for group in self.groups)

    def __str__(self) -> str:
        return self.to_query_string()


# ---------------------------------------------------------------------------
# Sort terms
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SortTerm:
    """A sort key; a leading ``-`` in the text means descending."""

    name: str
    descending: bool = False

    @classmethod
    def parse(cls, text: str) -> SortTerm:
        source = text.strip()
        descending = source.startswith("-")
        name = unescape(source[1:].strip() if descending else source)
        if not name:
            raise FilterParseError(f"Sort term has an empty property name: {text!r}", text)
        return cls(name=name, descending=descending)

    def to_query_string(self) -> str:
        return ("-" if self.descending else "") + escape(self.name)

    def __str__(self) -> str:
        return self.to_query_string()
